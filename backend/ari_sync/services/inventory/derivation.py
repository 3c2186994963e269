"""Derivation resolver — room-type availability when the grid has no explicit value."""

from datetime import date

from ari_sync.services.inventory.catalog import EntityCatalog
from ari_sync.services.inventory.grid import AVAILABILITY, ARIGrid


def rate_plan_fallback_availability(
    grid: ARIGrid, catalog: EntityCatalog, room_type_id: str, day: date
) -> int | None:
    """Availability of the first rate plan (catalog order) that has one for the day."""
    for plan in catalog.rate_plans_for(room_type_id):
        value = grid.get(plan.id, day, AVAILABILITY)
        if value is not None:
            return value
    return None


def room_type_availability(
    grid: ARIGrid, catalog: EntityCatalog, room_type_id: str, day: date
) -> int | None:
    """
    Resolve room-type availability for a day.

    1. An explicit room-type entry always wins.
    2. Otherwise the first rate plan by position with a value. Plans are never
       averaged or merged.
    3. Otherwise None.
    """
    explicit = grid.room_type_availability.get(room_type_id, {}).get(day)
    if explicit is not None:
        return explicit
    return rate_plan_fallback_availability(grid, catalog, room_type_id, day)
