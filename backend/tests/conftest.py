"""Shared fakes and fixtures for the inventory engine tests."""

from datetime import date

import pytest

from ari_sync.schemas.ari import ARISnapshot, PushResult
from ari_sync.services.inventory.calendar import DateRange
from ari_sync.services.inventory.catalog import EntityCatalog, RatePlan, RoomType
from ari_sync.services.inventory.session import InventorySession

TENANT = "store-42"
PROPERTY = "prop-9f1c"
WEEK = DateRange(date(2025, 6, 1), date(2025, 6, 7))


class FakeRedis:
    """Just enough of redis.asyncio.Redis for DraftStore."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}

    async def ping(self):
        return True

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0

    async def aclose(self):
        pass


class MemoryStore:
    """DraftStorage backed by a dict."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.fail = False

    async def get(self, key):
        if self.fail:
            raise OSError("storage unavailable")
        return self.data.get(key)

    async def set(self, key, value):
        if self.fail:
            raise OSError("quota exceeded")
        self.data[key] = value
        return True

    async def delete(self, key):
        self.data.pop(key, None)
        return True


class FakeChannelManager:
    """Records every call and returns canned responses."""

    def __init__(self, snapshot: ARISnapshot | None = None):
        self.snapshot = snapshot or ARISnapshot()
        self.fetch_calls: list[tuple] = []
        self.restriction_calls: list[list] = []
        self.availability_calls: list[list] = []
        self.restriction_result = PushResult()
        self.availability_result = PushResult()
        self.fetch_error: Exception | None = None
        self.restriction_error: Exception | None = None
        self.availability_error: Exception | None = None
        self.property_id: str | None = PROPERTY
        self.room_types: list[RoomType] = []
        self.rate_plans: list[RatePlan] = []

    @property
    def push_calls(self) -> int:
        return len(self.restriction_calls) + len(self.availability_calls)

    async def fetch_ari(self, property_id, start, end):
        self.fetch_calls.append((property_id, start, end))
        if self.fetch_error:
            raise self.fetch_error
        return self.snapshot

    async def push_restrictions(self, records):
        self.restriction_calls.append(list(records))
        if self.restriction_error:
            raise self.restriction_error
        return self.restriction_result

    async def push_availability(self, records):
        self.availability_calls.append(list(records))
        if self.availability_error:
            raise self.availability_error
        return self.availability_result

    async def get_property_id(self, tenant_id):
        return self.property_id

    async def get_room_types(self, property_id):
        return list(self.room_types)

    async def get_rate_plans(self, property_id):
        return list(self.rate_plans)


def make_room_types() -> list[RoomType]:
    return [
        RoomType(id="rt-suite", title="Suite", position=2, external_id=None),
        RoomType(id="rt-dbl", title="Deluxe Double", position=1, external_id="rt_1"),
    ]


def make_rate_plans() -> list[RatePlan]:
    return [
        RatePlan(id="rp-nr", title="Non-refundable", room_type_id="rt-dbl", position=2),
        RatePlan(id="rp-flex", title="Flexible", room_type_id="rt-dbl", position=1,
                 external_id="rp_1"),
        RatePlan(id="rp-suite", title="Suite BAR", room_type_id="rt-suite", position=1,
                 external_id="rp_3"),
    ]


def make_snapshot() -> ARISnapshot:
    return ARISnapshot.model_validate({
        "rate_plans": {
            "rp_1": {
                "2025-06-01": {"rate": "100.00", "availability": 5, "min_stay": 2},
                "2025-06-02": {"rate": "110.00", "availability": 4},
                "2025-07-01": {"rate": "999.00"},
            },
            "rp_3": {"2025-06-01": {"rate": "300.00", "stop_sell": True}},
            "rp_unknown": {"2025-06-01": {"rate": "1.00"}},
        },
        "room_types": {"rt_1": {"2025-06-02": 9, "2025-06-03": None}},
    })


@pytest.fixture
def catalog() -> EntityCatalog:
    return EntityCatalog(make_room_types(), make_rate_plans())


@pytest.fixture
def channel() -> FakeChannelManager:
    fake = FakeChannelManager(make_snapshot())
    fake.room_types = make_room_types()
    fake.rate_plans = make_rate_plans()
    return fake


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def session(catalog, channel, store) -> InventorySession:
    return InventorySession(
        tenant_id=TENANT,
        property_id=PROPERTY,
        catalog=catalog,
        source=channel,
        sink=channel,
        store=store,
        date_range=WEEK,
    )
