"""Synchronization engine — overlays the draft on the grid and pushes two batches.

Pipeline:
    build_batches (restrictions per rate plan, availability per room type)
    → push both concurrently → merge warnings → optimistic merge
    → drop pushed values from the draft → reload grid
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Protocol

from ari_sync.schemas.ari import AvailabilityRecord, PushResult, PushWarning, RestrictionRecord
from ari_sync.services.inventory.catalog import EntityCatalog
from ari_sync.services.inventory.drafts import DraftManager
from ari_sync.services.inventory.errors import InventoryError, PushError
from ari_sync.services.inventory.grid import RATE, ARIRecord, GridStore

logger = logging.getLogger(__name__)

SAVED = "saved"
NOTHING_TO_SAVE = "nothing_to_save"
CONFIGURATION_ERROR = "configuration_error"
PUSH_FAILED = "push_failed"

RESTRICTIONS_BATCH = "restrictions"
AVAILABILITY_BATCH = "availability"


class MutationSink(Protocol):
    async def push_restrictions(self, records: list[RestrictionRecord]) -> PushResult: ...

    async def push_availability(self, records: list[AvailabilityRecord]) -> PushResult: ...


@dataclass
class SyncBatches:
    restrictions: list[RestrictionRecord] = field(default_factory=list)
    availability: list[AvailabilityRecord] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    # Local-id view of what is being pushed, for the optimistic merge
    rate_plan_values: dict[str, dict[date, dict[str, Any]]] = field(default_factory=dict)
    room_type_values: dict[str, dict[date, int]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.restrictions and not self.availability


@dataclass
class SaveResult:
    status: str
    warnings: list[PushWarning] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed_batches: list[str] = field(default_factory=list)
    error: str | None = None
    reload_error: str | None = None
    restrictions_sent: int = 0
    availability_sent: int = 0

    @property
    def ok(self) -> bool:
        return self.status in (SAVED, NOTHING_TO_SAVE)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "ok": self.ok,
            "warnings": [w.model_dump() for w in self.warnings],
            "skipped": self.skipped,
            "failed_batches": self.failed_batches,
            "error": self.error,
            "reload_error": self.reload_error,
            "restrictions_sent": self.restrictions_sent,
            "availability_sent": self.availability_sent,
        }


def merge_warnings(*groups: list[PushWarning]) -> list[PushWarning]:
    """Concatenate warning lists, dropping duplicates but keeping first-seen order."""
    seen = set()
    merged = []
    for warnings in groups:
        for w in warnings:
            key = w.dedup_key()
            if key not in seen:
                seen.add(key)
                merged.append(w)
    return merged


class SyncEngine:
    """Turns the draft into upstream batches and reconciles after the push."""

    def __init__(
        self,
        grid_store: GridStore,
        drafts: DraftManager,
        sink: MutationSink,
        catalog: EntityCatalog,
    ):
        self.grid_store = grid_store
        self.drafts = drafts
        self.sink = sink
        self.catalog = catalog

    def build_batches(self) -> SyncBatches:
        """Effective values (grid overlaid with the draft) for the active window.

        Pure; performs no I/O.
        """
        property_id = self.grid_store.property_id or ""
        grid = self.grid_store.grid
        draft = self.drafts.draft
        window = self.drafts.date_range
        batches = SyncBatches()
        skipped: dict[str, int] = {}

        def in_window(day: date) -> bool:
            return window is None or day in window

        # 1. Restrictions (and rates) per rate plan
        for plan in self.catalog.rate_plans:
            rates = draft.rates.get(plan.id, {})
            restrictions = draft.restrictions.get(plan.id, {})
            days = set(grid.rate_plan_ari.get(plan.id, {})) | set(rates) | set(restrictions)
            for day in sorted(d for d in days if in_window(d)):
                staged = dict(restrictions.get(day, {}))
                if day in rates:
                    staged[RATE] = rates[day]

                current = grid.record(plan.id, day) or ARIRecord()
                values = current.merged(staged).populated()
                # A zero or negative rate means unset, never free
                if values.get(RATE) is not None and values[RATE] <= 0:
                    values.pop(RATE)
                if not values:
                    continue

                if not plan.external_id:
                    skipped[plan.id] = skipped.get(plan.id, 0) + 1
                    continue

                batches.restrictions.append(RestrictionRecord(
                    property_id=property_id,
                    rate_plan_id=plan.external_id,
                    date=day.isoformat(),
                    **values,
                ))
                batches.rate_plan_values.setdefault(plan.id, {})[day] = values

        # 2. Room-type availability
        for room_type in self.catalog.room_types:
            effective = dict(grid.room_type_availability.get(room_type.id, {}))
            effective.update(draft.availability.get(room_type.id, {}))
            for day, value in sorted(effective.items()):
                if value is None or not in_window(day):
                    continue
                if not room_type.external_id:
                    skipped[room_type.id] = skipped.get(room_type.id, 0) + 1
                    continue
                batches.availability.append(AvailabilityRecord(
                    property_id=property_id,
                    room_type_id=room_type.external_id,
                    date=day.isoformat(),
                    availability=value,
                ))
                batches.room_type_values.setdefault(room_type.id, {})[day] = value

        for entity_id, count in skipped.items():
            logger.warning(
                f"Skipped {count} record(s) for {entity_id}: no channel manager mapping"
            )
        batches.skipped = list(skipped)
        return batches

    async def _push(
        self,
        name: str,
        records: list,
        push: Callable[[list], Awaitable[PushResult]],
    ) -> PushResult:
        if not records:
            return PushResult()
        try:
            return await push(records)
        except Exception as e:
            raise PushError(name, str(e)) from e

    async def save(self) -> SaveResult:
        """
        Push staged edits upstream.

        Only a rejected batch fails the save. Per-record warnings are returned
        alongside a successful save, and the grid is reloaded either way.
        """
        if not self.grid_store.property_id:
            return SaveResult(
                status=CONFIGURATION_ERROR,
                error="No channel manager property is mapped for this tenant",
            )

        if not self.drafts.dirty:
            return SaveResult(status=NOTHING_TO_SAVE)

        # The draft stays editable and the range may change while the push is in
        # flight; reconcile against what was actually sent.
        date_range = self.drafts.date_range
        key = self.drafts.key
        pushed = self.drafts.staged_values()
        batches = self.build_batches()

        results = await asyncio.gather(
            self._push(RESTRICTIONS_BATCH, batches.restrictions, self.sink.push_restrictions),
            self._push(AVAILABILITY_BATCH, batches.availability, self.sink.push_availability),
            return_exceptions=True,
        )

        failed: list[str] = []
        errors: list[str] = []
        warning_groups: list[list[PushWarning]] = []
        for name, result in zip((RESTRICTIONS_BATCH, AVAILABILITY_BATCH), results):
            if isinstance(result, BaseException):
                logger.error(f"ARI push failed: {result}")
                failed.append(name)
                errors.append(str(result))
            else:
                warning_groups.append(result.warnings)
        warnings = merge_warnings(*warning_groups)

        if failed:
            if self.drafts.key == key:
                self.drafts.dirty = True
                await self.drafts.persist()
            return SaveResult(
                status=PUSH_FAILED,
                warnings=warnings,
                skipped=batches.skipped,
                failed_batches=failed,
                error="; ".join(errors),
            )

        if warnings:
            logger.info(f"ARI push accepted with {len(warnings)} warning(s)")

        if self.grid_store.loaded_range == date_range:
            self.grid_store.apply_pushed(batches.rate_plan_values, batches.room_type_values)
        if self.drafts.key == key:
            await self.drafts.drop_pushed(pushed)
        elif key:
            await self.drafts.forget(key)

        reload_error = None
        if self.drafts.date_range is not None:
            try:
                await self.grid_store.load(self.catalog, self.drafts.date_range)
            except InventoryError as e:
                reload_error = str(e)

        return SaveResult(
            status=SAVED,
            warnings=warnings,
            skipped=batches.skipped,
            reload_error=reload_error,
            restrictions_sent=len(batches.restrictions),
            availability_sent=len(batches.availability),
        )
