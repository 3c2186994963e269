"""Session registry — one live inventory session per tenant."""

import asyncio
import logging

from ari_sync.config import settings
from ari_sync.services.channel_manager_client import ChannelManagerClient, channel_manager_client
from ari_sync.services.draft_store import DraftStore, draft_store
from ari_sync.services.inventory.calendar import DateRange, preset_range
from ari_sync.services.inventory.catalog import EntityCatalog
from ari_sync.services.inventory.session import InventorySession

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Builds sessions on first use and keeps them for the life of the process."""

    def __init__(self, client: ChannelManagerClient, store: DraftStore):
        self._client = client
        self._store = store
        self._sessions: dict[str, InventorySession] = {}

    def get(self, tenant_id: str) -> InventorySession | None:
        return self._sessions.get(tenant_id)

    async def _build(self, tenant_id: str) -> InventorySession:
        property_id = await self._client.get_property_id(tenant_id)
        if property_id:
            room_types, rate_plans = await asyncio.gather(
                self._client.get_room_types(property_id),
                self._client.get_rate_plans(property_id),
            )
        else:
            logger.warning(f"Tenant {tenant_id} has no channel manager property mapped")
            room_types, rate_plans = [], []

        return InventorySession(
            tenant_id=tenant_id,
            property_id=property_id,
            catalog=EntityCatalog(room_types, rate_plans),
            source=self._client,
            sink=self._client,
            store=self._store,
            date_range=preset_range(settings.default_window_days),
        )

    async def open(self, tenant_id: str, date_range: DateRange | None = None) -> InventorySession:
        """Get (or build) the tenant's session and activate a date range on it."""
        session = self._sessions.get(tenant_id)
        if session is None:
            session = await self._build(tenant_id)
            self._sessions[tenant_id] = session
            logger.info(
                f"Inventory session opened for {tenant_id}: "
                f"{len(session.catalog.room_types)} room types, "
                f"{len(session.catalog.rate_plans)} rate plans"
            )
        await session.activate(date_range)
        return session

    def close(self, tenant_id: str) -> None:
        self._sessions.pop(tenant_id, None)


session_registry = SessionRegistry(channel_manager_client, draft_store)


def get_registry() -> SessionRegistry:
    return session_registry
