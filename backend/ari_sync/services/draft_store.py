"""Redis-backed durable store for unsaved inventory drafts."""

import logging

import redis.asyncio as redis

from ari_sync.config import settings

logger = logging.getLogger(__name__)


class DraftStore:
    """String key/value store with a TTL. Every operation is best-effort."""

    def __init__(self, client: redis.Redis | None = None, ttl: int | None = None):
        self._redis: redis.Redis | None = client
        self._ttl = ttl or settings.draft_ttl_seconds

    async def _get_redis(self) -> redis.Redis | None:
        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._redis.ping()
            except Exception as e:
                logger.warning(f"Redis unavailable, draft persistence disabled: {e}")
                self._redis = None
                return None
        return self._redis

    async def get(self, key: str) -> str | None:
        """Get a stored draft. Returns None on miss or error."""
        try:
            r = await self._get_redis()
            if r is None:
                return None
            return await r.get(key)
        except Exception as e:
            logger.warning(f"Draft read failed for {key}: {e}")
            return None

    async def set(self, key: str, value: str) -> bool:
        """Store a draft with TTL. Returns False on error."""
        try:
            r = await self._get_redis()
            if r is None:
                return False
            await r.set(key, value, ex=self._ttl)
            return True
        except Exception as e:
            logger.warning(f"Draft write failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            r = await self._get_redis()
            if r is None:
                return False
            await r.delete(key)
            return True
        except Exception as e:
            logger.warning(f"Draft delete failed for {key}: {e}")
            return False

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None


draft_store = DraftStore()
