"""Entity catalog — room types, rate plans and their grouping."""

from dataclasses import dataclass, field

ROOM_TYPE = "room_type"
RATE_PLAN = "rate_plan"


@dataclass
class RoomType:
    id: str
    title: str
    position: int | None = None
    external_id: str | None = None


@dataclass
class RatePlan:
    id: str
    title: str
    room_type_id: str
    position: int | None = None
    external_id: str | None = None


@dataclass
class RoomTypeGroup:
    """A room type with the rate plans that belong to it, in catalog order."""
    room_type: RoomType
    rate_plans: list[RatePlan] = field(default_factory=list)


def _position(entity) -> int:
    return entity.position if entity.position is not None else 0


def group(room_types: list[RoomType], rate_plans: list[RatePlan]) -> list[RoomTypeGroup]:
    """Group rate plans under their room type, ordered by position.

    Rate plans whose room type is not in ``room_types`` are left out.
    """
    plans_by_room: dict[str, list[RatePlan]] = {}
    for plan in sorted(rate_plans, key=_position):
        plans_by_room.setdefault(plan.room_type_id, []).append(plan)

    return [
        RoomTypeGroup(room_type=rt, rate_plans=plans_by_room.get(rt.id, []))
        for rt in sorted(room_types, key=_position)
    ]


class EntityCatalog:
    """Lookup over the sellable entities of one property."""

    def __init__(self, room_types: list[RoomType], rate_plans: list[RatePlan]):
        self.groups = group(room_types, rate_plans)
        self._room_types = {g.room_type.id: g.room_type for g in self.groups}
        self._rate_plans = {p.id: p for g in self.groups for p in g.rate_plans}
        self._plans_for = {g.room_type.id: g.rate_plans for g in self.groups}
        self._room_by_ext = {
            rt.external_id: rt for rt in self._room_types.values() if rt.external_id
        }
        self._plan_by_ext = {
            p.external_id: p for p in self._rate_plans.values() if p.external_id
        }

    @property
    def room_types(self) -> list[RoomType]:
        return [g.room_type for g in self.groups]

    @property
    def rate_plans(self) -> list[RatePlan]:
        return [p for g in self.groups for p in g.rate_plans]

    def room_type(self, entity_id: str) -> RoomType | None:
        return self._room_types.get(entity_id)

    def rate_plan(self, entity_id: str) -> RatePlan | None:
        return self._rate_plans.get(entity_id)

    def rate_plans_for(self, room_type_id: str) -> list[RatePlan]:
        return self._plans_for.get(room_type_id, [])

    def kind_of(self, entity_id: str) -> str | None:
        if entity_id in self._room_types:
            return ROOM_TYPE
        if entity_id in self._rate_plans:
            return RATE_PLAN
        return None

    def room_type_by_external(self, external_id: str) -> RoomType | None:
        return self._room_by_ext.get(external_id)

    def rate_plan_by_external(self, external_id: str) -> RatePlan | None:
        return self._plan_by_ext.get(external_id)
