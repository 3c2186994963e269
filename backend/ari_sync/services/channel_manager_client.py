"""Channel manager API client — ARI snapshot reads, restriction/availability pushes, entity options."""

import asyncio
import logging
from datetime import date
from typing import Any

import httpx

from ari_sync.config import settings
from ari_sync.schemas.ari import (
    ARISnapshot,
    AvailabilityRecord,
    PushResult,
    PushWarning,
    RestrictionRecord,
)
from ari_sync.services.inventory.catalog import RatePlan, RoomType

logger = logging.getLogger(__name__)


class ChannelManagerClient:
    """Adapter for the channel manager endpoints of the back-office API."""

    def __init__(self, base_url: str | None = None, api_key: str | None = None,
                 transport: httpx.AsyncBaseTransport | None = None):
        self._base_url = base_url or settings.channel_manager_base_url
        self._api_key = api_key if api_key is not None else settings.channel_manager_api_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=settings.channel_manager_timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def _get(self, path: str, params: dict | None = None) -> Any:
        """GET with up to three attempts on 429 and transport errors."""
        client = await self._get_client()
        for attempt in range(3):
            try:
                resp = await client.get(path, params=params)
                resp.raise_for_status()
                return resp.json()
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 429 and attempt < 2:
                    await asyncio.sleep(2 ** attempt)
                    continue
                raise
            except httpx.RequestError:
                if attempt < 2:
                    await asyncio.sleep(2 ** attempt)
                    continue
                raise

    async def _post(self, path: str, payload: dict) -> Any:
        """POST once. Pushes are never retried."""
        client = await self._get_client()
        resp = await client.post(path, json=payload)
        resp.raise_for_status()
        return resp.json() if resp.content else {}

    # ── Remote ARI source ────────────────────────────────────

    async def fetch_ari(self, property_id: str, start: date, end: date) -> ARISnapshot:
        data = await self._get(
            "/ari",
            params={
                "property_id": property_id,
                "date_from": start.isoformat(),
                "date_to": end.isoformat(),
            },
        )
        return ARISnapshot.model_validate(data.get("data", {}))

    # ── Remote mutation sink ─────────────────────────────────

    async def push_restrictions(self, records: list[RestrictionRecord]) -> PushResult:
        data = await self._post(
            "/restrictions",
            {"values": [r.model_dump(mode="json", exclude_none=True) for r in records]},
        )
        return self._parse_push_result(data)

    async def push_availability(self, records: list[AvailabilityRecord]) -> PushResult:
        data = await self._post(
            "/availability",
            {"values": [r.model_dump(mode="json") for r in records]},
        )
        return self._parse_push_result(data)

    def _parse_push_result(self, data: dict) -> PushResult:
        raw = (data.get("meta") or {}).get("warnings") or []
        warnings = []
        for w in raw:
            try:
                warnings.append(PushWarning.model_validate(w))
            except Exception as e:
                logger.warning(f"Unparseable push warning {w!r}: {e}")
                warnings.append(PushWarning(warning={"message": [str(w)]}))
        return PushResult(warnings=warnings)

    # ── Entity provider ──────────────────────────────────────

    async def get_property_id(self, tenant_id: str) -> str | None:
        """External property id mapped to a tenant, or None if not synced yet."""
        data = await self._get(f"/stores/{tenant_id}/status")
        channex = (data.get("data") or {}).get("channex") or {}
        return channex.get("propertyId") or None

    async def get_room_types(self, property_id: str) -> list[RoomType]:
        data = await self._get("/room-types/options", params={"propertyId": property_id})
        items = data.get("data") if isinstance(data.get("data"), list) else []
        room_types = []
        for item in items:
            attrs = item.get("attributes") or {}
            room_types.append(RoomType(
                id=item.get("id") or attrs.get("id"),
                title=attrs.get("title", ""),
                position=attrs.get("position"),
                external_id=attrs.get("channex_id"),
            ))
        return room_types

    async def get_rate_plans(self, property_id: str) -> list[RatePlan]:
        data = await self._get(
            "/rate-plans/options",
            params={"propertyId": property_id, "multiOccupancy": "false"},
        )
        items = data.get("data") if isinstance(data.get("data"), list) else []
        rate_plans = []
        for item in items:
            attrs = item.get("attributes") or {}
            rate_plans.append(RatePlan(
                id=item.get("id") or attrs.get("id"),
                title=attrs.get("title", ""),
                room_type_id=attrs.get("room_type_id", ""),
                position=attrs.get("position"),
                external_id=attrs.get("channex_id"),
            ))
        return rate_plans

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None


channel_manager_client = ChannelManagerClient()
