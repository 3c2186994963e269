"""ARI grid store — last-known remote snapshot of rates, availability and restrictions.

The grid has two independent planes:

    rate_plan_ari            rate plan id -> date -> ARIRecord
    room_type_availability   room type id -> date -> int

A grid is never patched in place. Every successful load, and the optimistic
merge after a push, produces a new ``ARIGrid`` object.
"""

import logging
from dataclasses import dataclass, field, fields, replace
from datetime import date
from decimal import Decimal
from typing import Any, Protocol

from ari_sync.schemas.ari import ARISnapshot
from ari_sync.services.inventory.calendar import DateRange
from ari_sync.services.inventory.catalog import EntityCatalog
from ari_sync.services.inventory.errors import ConfigurationError, GridLoadError

logger = logging.getLogger(__name__)

RATE = "rate"
AVAILABILITY = "availability"
MIN_STAY = "min_stay"
MAX_STAY = "max_stay"
CLOSED_TO_ARRIVAL = "closed_to_arrival"
CLOSED_TO_DEPARTURE = "closed_to_departure"
STOP_SELL = "stop_sell"

COUNT_FIELDS = (AVAILABILITY, MIN_STAY, MAX_STAY)
FLAG_FIELDS = (CLOSED_TO_ARRIVAL, CLOSED_TO_DEPARTURE, STOP_SELL)
RESTRICTION_FIELDS = (AVAILABILITY, MIN_STAY, MAX_STAY) + FLAG_FIELDS
ARI_FIELDS = (RATE,) + RESTRICTION_FIELDS


@dataclass(frozen=True)
class ARIRecord:
    """Sparse ARI values for one rate plan on one date. None means inherit."""
    rate: Decimal | None = None
    availability: int | None = None
    min_stay: int | None = None
    max_stay: int | None = None
    closed_to_arrival: bool | None = None
    closed_to_departure: bool | None = None
    stop_sell: bool | None = None

    def get(self, name: str) -> Any:
        return getattr(self, name, None) if name in ARI_FIELDS else None

    def populated(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    def merged(self, values: dict[str, Any]) -> "ARIRecord":
        return replace(self, **{k: v for k, v in values.items() if k in ARI_FIELDS})

    def is_empty(self) -> bool:
        return not self.populated()


@dataclass
class ARIGrid:
    rate_plan_ari: dict[str, dict[date, ARIRecord]] = field(default_factory=dict)
    room_type_availability: dict[str, dict[date, int]] = field(default_factory=dict)

    def record(self, rate_plan_id: str, day: date) -> ARIRecord | None:
        return self.rate_plan_ari.get(rate_plan_id, {}).get(day)

    def get(self, entity_id: str, day: date, name: str) -> Any:
        """Stored value, or None for unknown entity, date or field."""
        record = self.record(entity_id, day)
        if record is not None:
            return record.get(name)
        if name == AVAILABILITY:
            return self.room_type_availability.get(entity_id, {}).get(day)
        return None


class ARISource(Protocol):
    async def fetch_ari(self, property_id: str, start: date, end: date) -> ARISnapshot: ...


def build_grid(snapshot: ARISnapshot, catalog: EntityCatalog, date_range: DateRange) -> ARIGrid:
    """Map a remote snapshot onto local entity ids, keeping only the requested window."""
    grid = ARIGrid()

    for external_id, by_date in snapshot.rate_plans.items():
        plan = catalog.rate_plan_by_external(external_id)
        if plan is None:
            continue
        plane: dict[date, ARIRecord] = {}
        for day_str, values in by_date.items():
            day = date.fromisoformat(day_str[:10])
            if day not in date_range:
                continue
            record = ARIRecord(**values.model_dump())
            if not record.is_empty():
                plane[day] = record
        if plane:
            grid.rate_plan_ari[plan.id] = plane

    for external_id, by_date in snapshot.room_types.items():
        room_type = catalog.room_type_by_external(external_id)
        if room_type is None:
            continue
        plane = {
            date.fromisoformat(day_str[:10]): value
            for day_str, value in by_date.items()
            if value is not None and date.fromisoformat(day_str[:10]) in date_range
        }
        if plane:
            grid.room_type_availability[room_type.id] = plane

    return grid


class GridStore:
    """Owns the current grid and replaces it wholesale on every load."""

    def __init__(self, source: ARISource, property_id: str | None):
        self._source = source
        self.property_id = property_id
        self._grid = ARIGrid()
        self._generation = 0
        self.loaded_range: DateRange | None = None

    @property
    def grid(self) -> ARIGrid:
        return self._grid

    def get(self, entity_id: str, day: date, name: str) -> Any:
        return self._grid.get(entity_id, day, name)

    async def load(self, catalog: EntityCatalog, date_range: DateRange) -> ARIGrid:
        """Fetch the snapshot for the window and swap it in.

        Responses from loads that were superseded by a newer ``load`` call are
        dropped. On failure the previous grid stays in place.
        """
        if not self.property_id:
            raise ConfigurationError("No channel manager property is mapped for this tenant")

        self._generation += 1
        generation = self._generation

        try:
            snapshot = await self._source.fetch_ari(
                self.property_id, date_range.start, date_range.end
            )
            grid = build_grid(snapshot, catalog, date_range)
        except Exception as e:
            if generation != self._generation:
                logger.info(f"Ignoring failure of superseded ARI load #{generation}: {e}")
                return self._grid
            logger.warning(
                f"ARI load failed for {self.property_id} "
                f"{date_range.start}..{date_range.end}: {e}"
            )
            raise GridLoadError(str(e)) from e

        if generation != self._generation:
            logger.info(
                f"Discarding stale ARI response #{generation} (latest is #{self._generation})"
            )
            return self._grid

        self._grid = grid
        self.loaded_range = date_range
        logger.info(
            f"ARI grid loaded: {len(grid.rate_plan_ari)} rate plans, "
            f"{len(grid.room_type_availability)} room types, "
            f"{date_range.start}..{date_range.end}"
        )
        return grid

    def apply_pushed(
        self,
        rate_plan_values: dict[str, dict[date, dict[str, Any]]],
        room_type_values: dict[str, dict[date, int]],
    ) -> ARIGrid:
        """Optimistically fold pushed values into a new grid."""
        rate_plan_ari = {k: dict(v) for k, v in self._grid.rate_plan_ari.items()}
        for plan_id, by_date in rate_plan_values.items():
            plane = rate_plan_ari.setdefault(plan_id, {})
            for day, values in by_date.items():
                plane[day] = plane.get(day, ARIRecord()).merged(values)

        room_type_availability = {
            k: dict(v) for k, v in self._grid.room_type_availability.items()
        }
        for room_type_id, by_date in room_type_values.items():
            room_type_availability.setdefault(room_type_id, {}).update(by_date)

        self._grid = ARIGrid(
            rate_plan_ari=rate_plan_ari,
            room_type_availability=room_type_availability,
        )
        return self._grid
