"""Inventory session wiring and the per-tenant session registry."""

from datetime import date
from decimal import Decimal

import httpx
import pytest

from ari_sync.services.inventory.calendar import DateRange
from ari_sync.services.inventory.drafts import CLEAN, DIRTY
from ari_sync.services.inventory.session import InventorySession
from ari_sync.services.session_registry import SessionRegistry

from conftest import PROPERTY, TENANT, WEEK, FakeChannelManager, MemoryStore, make_snapshot

JUNE_1 = date(2025, 6, 1)
JUNE_2 = date(2025, 6, 2)
JUNE_3 = date(2025, 6, 3)
NEXT_WEEK = DateRange(date(2025, 6, 8), date(2025, 6, 14))


class TestActivation:
    async def test_draft_restored_before_grid_load(self, catalog):
        events = []

        class LoggingStore(MemoryStore):
            async def get(self, key):
                events.append("restore")
                return await super().get(key)

        class LoggingChannel(FakeChannelManager):
            async def fetch_ari(self, property_id, start, end):
                events.append("load")
                return await super().fetch_ari(property_id, start, end)

        session = InventorySession(
            TENANT, PROPERTY, catalog, LoggingChannel(make_snapshot()), FakeChannelManager(),
            LoggingStore(), WEEK,
        )
        assert await session.activate(WEEK) is True
        assert events == ["restore", "load"]

    async def test_load_failure_is_captured(self, session, channel):
        channel.fetch_error = httpx.ConnectError("unreachable")

        assert await session.activate(WEEK) is False
        assert "unreachable" in session.load_error
        assert session.snapshot()["load_error"] == session.load_error

        channel.fetch_error = None
        assert await session.reload() is True
        assert session.load_error is None

    async def test_preset_starts_today(self, session, channel):
        await session.preset(3, today=date(2025, 6, 10))
        assert session.date_range == DateRange(date(2025, 6, 10), date(2025, 6, 12))
        assert channel.fetch_calls[-1] == (PROPERTY, date(2025, 6, 10), date(2025, 6, 12))


class TestRangeScopedDrafts:
    async def test_shift_switches_drafts(self, session, channel):
        await session.activate(WEEK)
        await session.set_value("rp-flex", JUNE_3, "rate", 150)

        await session.shift(1)
        assert session.date_range == NEXT_WEEK
        assert session.drafts.state == CLEAN
        assert channel.fetch_calls[-1] == (PROPERTY, NEXT_WEEK.start, NEXT_WEEK.end)

        await session.shift(-1)
        assert session.date_range == WEEK
        assert session.drafts.state == DIRTY
        assert session.value("rp-flex", JUNE_3, "rate") == Decimal("150")

    async def test_shift_rejects_other_directions(self, session):
        await session.activate(WEEK)
        with pytest.raises(ValueError):
            await session.shift(2)


class TestEffectiveValues:
    async def test_room_type_availability(self, session):
        await session.activate(WEEK)
        # explicit room-type value
        assert session.value("rt-dbl", JUNE_2, "availability") == 9
        # falls back to the first rate plan
        assert session.value("rt-dbl", JUNE_1, "availability") == 5
        assert session.value("rt-dbl", JUNE_3, "availability") is None
        assert session.value("rt-dbl", JUNE_1, "rate") is None

    async def test_staged_value_wins(self, session):
        await session.activate(WEEK)
        await session.set_value("rt-dbl", JUNE_1, "availability", 0)
        await session.set_value("rp-flex", JUNE_1, "min_stay", 4)

        assert session.value("rt-dbl", JUNE_1, "availability") == 0
        assert session.value("rp-flex", JUNE_1, "min_stay") == 4
        assert session.value("rp-flex", JUNE_1, "rate") == Decimal("100.00")

    async def test_apply_to_selected_days(self, session, store):
        await session.activate(WEEK)
        assert await session.toggle_day(JUNE_2) is True
        assert await session.toggle_day(date(2025, 6, 4)) is True
        assert session.drafts.state == CLEAN

        assert await session.apply_to_selected("rp-nr", "closed_to_arrival", True) == 2
        assert session.value("rp-nr", JUNE_2, "closed_to_arrival") is True
        assert session.value("rp-nr", JUNE_3, "closed_to_arrival") is None
        assert WEEK.key(TENANT) in store.data

    async def test_cleared_selection_stays_cleared_after_restore(self, session):
        await session.activate(WEEK)
        await session.set_value("rp-flex", JUNE_1, "rate", 120)
        await session.toggle_day(JUNE_2)
        await session.clear_selection()

        await session.activate(WEEK)

        assert session.drafts.draft.selected_days == []
        assert session.value("rp-flex", JUNE_1, "rate") == Decimal("120")

    async def test_set_range_stages_every_day(self, session):
        await session.activate(WEEK)
        assert await session.set_range("rp-suite", JUNE_1, JUNE_3, "max_stay", 7) == 3
        assert [session.value("rp-suite", d, "max_stay") for d in WEEK.days[:4]] == [7, 7, 7, None]


class TestDiscard:
    async def test_discard_drops_draft_and_reloads(self, session, channel, store):
        await session.activate(WEEK)
        await session.set_value("rp-flex", JUNE_1, "rate", 1)
        fetches = len(channel.fetch_calls)

        assert await session.discard() is True

        assert session.drafts.state == CLEAN
        assert store.data == {}
        assert len(channel.fetch_calls) == fetches + 1
        assert session.value("rp-flex", JUNE_1, "rate") == Decimal("100.00")


class TestSnapshot:
    async def test_groups_and_values(self, session):
        await session.activate(WEEK)
        await session.set_value("rp-nr", JUNE_1, "rate", 80)
        view = session.snapshot()

        assert view["start_date"] == "2025-06-01"
        assert len(view["dates"]) == 7
        assert view["state"] == DIRTY
        assert [g["room_type"]["id"] for g in view["groups"]] == ["rt-dbl", "rt-suite"]

        deluxe = view["groups"][0]
        assert deluxe["room_type"]["mapped"] is True
        assert deluxe["availability"]["2025-06-01"] == 5
        assert [p["id"] for p in deluxe["rate_plans"]] == ["rp-flex", "rp-nr"]
        assert deluxe["rate_plans"][1]["mapped"] is False
        assert deluxe["rate_plans"][1]["values"]["2025-06-01"]["rate"] == Decimal("80")


class TestSessionRegistry:
    async def test_open_builds_catalog_once(self, channel, store):
        registry = SessionRegistry(channel, store)
        assert registry.get(TENANT) is None

        session = await registry.open(TENANT, WEEK)

        assert session.property_id == PROPERTY
        assert [rt.id for rt in session.catalog.room_types] == ["rt-dbl", "rt-suite"]
        assert session.date_range == WEEK
        assert await registry.open(TENANT, NEXT_WEEK) is session
        assert session.date_range == NEXT_WEEK

        registry.close(TENANT)
        assert registry.get(TENANT) is None

    async def test_unmapped_tenant_gets_configuration_error(self, store):
        channel = FakeChannelManager()
        channel.property_id = None
        registry = SessionRegistry(channel, store)

        session = await registry.open(TENANT, WEEK)

        assert session.property_id is None
        assert session.catalog.room_types == []
        assert session.load_error is not None
        assert channel.fetch_calls == []
