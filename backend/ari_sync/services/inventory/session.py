"""Inventory session — one tenant's calendar: range, grid, draft and sync wired together."""

import logging
from datetime import date, datetime
from typing import Any

from ari_sync.services.inventory.calendar import CalendarRangeController, DateRange
from ari_sync.services.inventory.catalog import EntityCatalog
from ari_sync.services.inventory.derivation import room_type_availability
from ari_sync.services.inventory.drafts import DraftManager, DraftStorage
from ari_sync.services.inventory.errors import InventoryError
from ari_sync.services.inventory.grid import ARI_FIELDS, AVAILABILITY, ARISource, GridStore
from ari_sync.services.inventory.sync import SAVED, MutationSink, SaveResult, SyncEngine

logger = logging.getLogger(__name__)


class InventorySession:
    """Composition root for a single (tenant, property) calendar view."""

    def __init__(
        self,
        tenant_id: str,
        property_id: str | None,
        catalog: EntityCatalog,
        source: ARISource,
        sink: MutationSink,
        store: DraftStorage,
        date_range: DateRange,
    ):
        self.tenant_id = tenant_id
        self.catalog = catalog
        self.grid_store = GridStore(source, property_id)
        self.drafts = DraftManager(tenant_id, catalog, store, reload=self.reload)
        self.sync = SyncEngine(self.grid_store, self.drafts, sink, catalog)
        self.calendar = CalendarRangeController(date_range, on_change=self._on_range_change)
        self.load_error: str | None = None

    @property
    def property_id(self) -> str | None:
        return self.grid_store.property_id

    @property
    def date_range(self) -> DateRange:
        return self.calendar.date_range

    # ── Range ────────────────────────────────────────────────

    async def activate(self, date_range: DateRange | None = None) -> bool:
        """Make a range active: restore its draft, then load the grid."""
        date_range = date_range or self.calendar.date_range
        await self.calendar.set_range(date_range.start, date_range.end)
        return self.load_error is None

    async def shift(self, direction: int) -> bool:
        await self.calendar.shift_range(direction)
        return self.load_error is None

    async def preset(self, days: int, today: date | None = None) -> bool:
        await self.calendar.preset(days, today)
        return self.load_error is None

    async def _on_range_change(self, date_range: DateRange) -> None:
        await self.drafts.restore(date_range)
        await self.reload()

    async def reload(self) -> bool:
        range_ = self.calendar.date_range
        try:
            await self.grid_store.load(self.catalog, range_)
            self.load_error = None
            return True
        except InventoryError as e:
            self.load_error = str(e)
            return False

    # ── Editing ──────────────────────────────────────────────

    async def set_value(self, entity_id: str, day: date | datetime, name: str, value: Any) -> None:
        self.drafts.set(entity_id, day, name, value)
        await self.drafts.persist()

    async def set_range(
        self, entity_id: str, start: date | datetime, end: date | datetime, name: str, value: Any
    ) -> int:
        count = self.drafts.set_range(entity_id, start, end, name, value)
        await self.drafts.persist()
        return count

    async def toggle_day(self, day: date | datetime) -> bool:
        selected = self.drafts.toggle_day(day)
        await self.drafts.persist()
        return selected

    async def clear_selection(self) -> None:
        self.drafts.clear_selection()
        await self.drafts.persist()

    async def apply_to_selected(self, entity_id: str, name: str, value: Any) -> int:
        count = self.drafts.apply_to_selected(entity_id, name, value)
        await self.drafts.persist()
        return count

    def value(self, entity_id: str, day: date, name: str) -> Any:
        """Effective value of a cell: staged first, then the grid (derived for room types)."""
        staged = self.drafts.staged(entity_id, day, name)
        if staged is not None:
            return staged
        if self.catalog.room_type(entity_id) is not None:
            if name != AVAILABILITY:
                return None
            return room_type_availability(self.grid_store.grid, self.catalog, entity_id, day)
        return self.grid_store.get(entity_id, day, name)

    # ── Commit ───────────────────────────────────────────────

    async def save(self) -> SaveResult:
        result = await self.sync.save()
        if result.reload_error is not None:
            self.load_error = result.reload_error
        elif result.status == SAVED:
            self.load_error = None
        return result

    async def discard(self) -> bool:
        logger.info(f"Discarding staged edits for {self.tenant_id} ({self.drafts.state})")
        await self.drafts.reset()
        return self.load_error is None

    def snapshot(self) -> dict:
        """Plain view of the calendar for the presentation layer."""
        days = self.calendar.dates
        groups = []
        for g in self.catalog.groups:
            rt = g.room_type
            groups.append({
                "room_type": {"id": rt.id, "title": rt.title, "mapped": bool(rt.external_id)},
                "availability": {
                    d.isoformat(): self.value(rt.id, d, AVAILABILITY) for d in days
                },
                "rate_plans": [
                    {
                        "id": plan.id,
                        "title": plan.title,
                        "mapped": bool(plan.external_id),
                        "values": {
                            d.isoformat(): {
                                name: self.value(plan.id, d, name) for name in ARI_FIELDS
                            }
                            for d in days
                        },
                    }
                    for plan in g.rate_plans
                ],
            })
        return {
            "tenant_id": self.tenant_id,
            "property_id": self.property_id,
            "start_date": self.date_range.start.isoformat(),
            "end_date": self.date_range.end.isoformat(),
            "dates": [d.isoformat() for d in days],
            "state": self.drafts.state,
            "selected_days": [d.isoformat() for d in self.drafts.draft.selected_days],
            "load_error": self.load_error,
            "groups": groups,
        }
