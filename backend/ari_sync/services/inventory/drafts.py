"""Draft manager — locally staged edits layered over the ARI grid.

A draft belongs to one (tenant, date range) session. It is written to the
durable store whenever it is dirty and restored once when its range becomes
active. Persistence is best-effort and never blocks editing.
"""

import copy
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Protocol

from ari_sync.schemas.ari import PersistedDraft
from ari_sync.services.inventory.calendar import DateRange, as_date, dates_between
from ari_sync.services.inventory.catalog import ROOM_TYPE, EntityCatalog
from ari_sync.services.inventory.grid import (
    ARI_FIELDS,
    AVAILABILITY,
    COUNT_FIELDS,
    FLAG_FIELDS,
    RATE,
)

logger = logging.getLogger(__name__)

CLEAN = "clean"
DIRTY = "dirty"


class DraftStorage(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> bool: ...

    async def delete(self, key: str) -> bool: ...


@dataclass
class Draft:
    rates: dict[str, dict[date, Decimal]] = field(default_factory=dict)
    availability: dict[str, dict[date, int]] = field(default_factory=dict)
    restrictions: dict[str, dict[date, dict[str, Any]]] = field(default_factory=dict)
    selected_days: list[date] = field(default_factory=list)

    def has_values(self) -> bool:
        return any(self.rates.values()) or any(self.availability.values()) or any(
            self.restrictions.values()
        )


def _coerce(kind: str, name: str, value: Any) -> Any:
    """Validate a user value for a field, returning its stored form."""
    if name not in ARI_FIELDS:
        raise ValueError(f"Unknown ARI field: {name}")
    if kind == ROOM_TYPE and name != AVAILABILITY:
        raise ValueError(f"Room types only carry availability, not {name}")

    if name == RATE:
        if isinstance(value, bool):
            raise ValueError("rate must be a number")
        try:
            rate = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"rate must be a number, got {value!r}")
        if not rate.is_finite():
            raise ValueError(f"rate must be a finite number, got {value!r}")
        return rate

    if name in COUNT_FIELDS:
        if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
            raise ValueError(f"{name} must be a whole number")
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError(f"{name} must be a whole number")
        if isinstance(value, Decimal) and not value.is_finite():
            raise ValueError(f"{name} must be a whole number")
        if value != int(value):
            raise ValueError(f"{name} must be a whole number")
        if value < 0:
            raise ValueError(f"{name} must not be negative")
        return int(value)

    if name in FLAG_FIELDS and not isinstance(value, bool):
        raise ValueError(f"{name} must be true or false")
    return value


class DraftManager:
    """Tracks staged values for one tenant and date range."""

    def __init__(
        self,
        tenant_id: str,
        catalog: EntityCatalog,
        store: DraftStorage,
        reload: Callable[[], Awaitable[Any]] | None = None,
    ):
        self.tenant_id = tenant_id
        self.catalog = catalog
        self._store = store
        self._reload = reload
        self.draft = Draft()
        self.dirty = False
        self.date_range: DateRange | None = None

    @property
    def state(self) -> str:
        return DIRTY if self.dirty else CLEAN

    @property
    def key(self) -> str | None:
        return self.date_range.key(self.tenant_id) if self.date_range else None

    # ── Editing ──────────────────────────────────────────────

    def set(self, entity_id: str, day: date | datetime, name: str, value: Any) -> None:
        """Stage a value. The last write for a key wins."""
        kind = self.catalog.kind_of(entity_id)
        if kind is None:
            raise ValueError(f"Unknown entity: {entity_id}")
        day = as_date(day)
        if self.date_range is not None and day not in self.date_range:
            raise ValueError(f"{day} is outside the active date range")
        value = _coerce(kind, name, value)

        if kind == ROOM_TYPE:
            self.draft.availability.setdefault(entity_id, {})[day] = value
        elif name == RATE:
            self.draft.rates.setdefault(entity_id, {})[day] = value
        else:
            self.draft.restrictions.setdefault(entity_id, {}).setdefault(day, {})[name] = value
        self.dirty = True

    def set_range(
        self, entity_id: str, start: date | datetime, end: date | datetime, name: str, value: Any
    ) -> int:
        """Stage the same value on every day of an inclusive range."""
        days = dates_between(start, end)
        for day in days:
            self.set(entity_id, day, name, value)
        return len(days)

    def toggle_day(self, day: date | datetime) -> bool:
        """Add or remove a day from the selection. Returns True if now selected."""
        day = as_date(day)
        if self.date_range is not None and day not in self.date_range:
            raise ValueError(f"{day} is outside the active date range")
        if day in self.draft.selected_days:
            self.draft.selected_days.remove(day)
            return False
        self.draft.selected_days.append(day)
        self.draft.selected_days.sort()
        return True

    def clear_selection(self) -> None:
        self.draft.selected_days = []

    def apply_to_selected(self, entity_id: str, name: str, value: Any) -> int:
        for day in self.draft.selected_days:
            self.set(entity_id, day, name, value)
        return len(self.draft.selected_days)

    def staged(self, entity_id: str, day: date, name: str) -> Any:
        """Staged value for a cell, or None."""
        kind = self.catalog.kind_of(entity_id)
        if kind == ROOM_TYPE:
            if name != AVAILABILITY:
                return None
            return self.draft.availability.get(entity_id, {}).get(day)
        if name == RATE:
            return self.draft.rates.get(entity_id, {}).get(day)
        return self.draft.restrictions.get(entity_id, {}).get(day, {}).get(name)

    # ── Lifecycle ────────────────────────────────────────────

    async def reset(self) -> None:
        """Discard every staged value and reload the authoritative grid."""
        await self.clear()
        if self._reload is not None:
            await self._reload()

    async def clear(self) -> None:
        self.draft = Draft()
        self.dirty = False
        if self.key:
            await self.forget(self.key)

    async def forget(self, key: str) -> None:
        """Delete a persisted draft record, whatever range is active now."""
        try:
            await self._store.delete(key)
        except Exception as e:
            logger.warning(f"Could not drop persisted draft {key}: {e}")

    def staged_values(self) -> Draft:
        """Copy of the staged values, without the day selection."""
        return Draft(
            rates=copy.deepcopy(self.draft.rates),
            availability=copy.deepcopy(self.draft.availability),
            restrictions=copy.deepcopy(self.draft.restrictions),
        )

    async def drop_pushed(self, pushed: Draft) -> None:
        """Remove staged values that still equal what was pushed.

        Values staged or changed after ``pushed`` was taken survive and keep
        the draft dirty.
        """
        for plane_name in ("rates", "availability"):
            plane = getattr(self.draft, plane_name)
            for entity_id, by_date in getattr(pushed, plane_name).items():
                current = plane.get(entity_id, {})
                for day, value in by_date.items():
                    if day in current and current[day] == value:
                        del current[day]
                if entity_id in plane and not current:
                    del plane[entity_id]

        for entity_id, by_date in pushed.restrictions.items():
            current = self.draft.restrictions.get(entity_id, {})
            for day, values in by_date.items():
                staged = current.get(day, {})
                for name, value in values.items():
                    if name in staged and staged[name] == value:
                        del staged[name]
                if day in current and not staged:
                    del current[day]
            if entity_id in self.draft.restrictions and not current:
                del self.draft.restrictions[entity_id]

        if self.draft.has_values():
            self.dirty = True
            await self.persist()
        else:
            await self.clear()

    def to_record(self) -> PersistedDraft:
        return PersistedDraft(
            date_range_key=self.key or "",
            rates={
                k: {d.isoformat(): v for d, v in by_date.items()}
                for k, by_date in self.draft.rates.items()
            },
            availability={
                k: {d.isoformat(): v for d, v in by_date.items()}
                for k, by_date in self.draft.availability.items()
            },
            restrictions={
                k: {d.isoformat(): dict(v) for d, v in by_date.items()}
                for k, by_date in self.draft.restrictions.items()
            },
            selected_days=[d.isoformat() for d in self.draft.selected_days],
        )

    @staticmethod
    def from_record(record: PersistedDraft) -> Draft:
        return Draft(
            rates={
                k: {date.fromisoformat(d): v for d, v in by_date.items()}
                for k, by_date in record.rates.items()
            },
            availability={
                k: {date.fromisoformat(d): v for d, v in by_date.items()}
                for k, by_date in record.availability.items()
            },
            restrictions={
                k: {date.fromisoformat(d): dict(v) for d, v in by_date.items()}
                for k, by_date in record.restrictions.items()
            },
            selected_days=[date.fromisoformat(d) for d in record.selected_days],
        )

    async def persist(self) -> bool:
        """Write the draft to the durable store if it is dirty."""
        if not self.dirty or self.key is None:
            return False
        try:
            payload = self.to_record().model_dump_json()
            return await self._store.set(self.key, payload)
        except Exception as e:
            logger.warning(f"Draft persistence failed for {self.key}: {e}")
            return False

    async def restore(self, date_range: DateRange) -> bool:
        """Start a fresh draft for the range, picking up a persisted one if present."""
        self.date_range = date_range
        self.draft = Draft()
        self.dirty = False

        try:
            raw = await self._store.get(self.key)
        except Exception as e:
            logger.warning(f"Draft read failed for {self.key}: {e}")
            return False
        if raw is None:
            return False
        try:
            record = PersistedDraft.model_validate_json(raw)
            if record.date_range_key != self.key:
                logger.info(f"Ignoring persisted draft stored for {record.date_range_key}")
                return False
            self.draft = self.from_record(record)
        except Exception as e:
            logger.warning(f"Persisted draft for {self.key} is unreadable, ignoring: {e}")
            self.draft = Draft()
            return False

        self.dirty = self.draft.has_values()
        logger.info(f"Restored unsaved draft for {self.key}")
        return True
