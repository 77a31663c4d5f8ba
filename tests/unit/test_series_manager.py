"""Unit tests for series create, transition and delete."""

import datetime
import logging

import pytest

from bandcalendar.core.exceptions import EventNotFoundError, MissingOrganizationError, StoreError
from bandcalendar.domain.models import DeleteScope, Weekday
from bandcalendar.domain.series_manager import SeriesLifecycleManager
from bandcalendar.store.base import Table
from tests.factories import ANCHOR, ORG, OTHER_ORG, rehearsal_draft, rule

pytestmark = pytest.mark.unit

D = datetime.date


@pytest.fixture
def manager(store, cache):
    return SeriesLifecycleManager(store, cache)


def events(store):
    return sorted(store.all_records(Table.EVENTS), key=lambda r: r["date"])


def seed_event(store, event_id, date, **fields):
    record = {
        "id": event_id,
        "organization_id": ORG,
        "kind": "rehearsal",
        "name": None,
        "date": date.isoformat(),
        "start_time": "7:00 PM",
        "end_time": "9:00 PM",
        "location": "Studio A",
        "is_recurring": False,
        "parent_event_id": None,
    }
    record.update(fields)
    return store.seed(Table.EVENTS, record)


def seed_linked_series(store, dates):
    parent = seed_event(
        store,
        "parent",
        dates[0],
        is_recurring=True,
        recurrence_frequency="weekly",
        recurrence_days=[3],
    )
    for index, child_date in enumerate(dates[1:]):
        seed_event(
            store,
            f"child-{index}",
            child_date,
            is_recurring=True,
            recurrence_frequency="weekly",
            recurrence_days=[3],
            parent_event_id=parent["id"],
        )
    return parent


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_when_not_recurring_then_single_insert(self, manager, store):
        event = await manager.create(ORG, rehearsal_draft())

        assert len(store.calls_for("insert")) == 1
        assert event.date == ANCHOR
        assert event.is_standalone
        assert event.organization_id == ORG

    @pytest.mark.asyncio
    async def test_create_when_recurring_then_parent_first_and_children_linked(self, manager, store):
        draft = rehearsal_draft(
            is_recurring=True,
            recurrence=rule(Weekday.MONDAY, Weekday.WEDNESDAY, until=D(2026, 1, 20)),
        )

        parent = await manager.create(ORG, draft)

        inserts = store.calls_for("insert", Table.EVENTS)
        assert [c.args["fields"]["date"] for c in inserts] == [
            "2026-01-07",
            "2026-01-12",
            "2026-01-14",
            "2026-01-19",
        ]
        assert inserts[0].args["fields"]["parent_event_id"] is None
        assert parent.is_series_parent
        children = [r for r in events(store) if r["id"] != parent.id]
        assert len(children) == 3
        assert all(c["parent_event_id"] == parent.id for c in children)
        assert all(c["recurrence_days"] == [1, 3] for c in children)

    @pytest.mark.asyncio
    async def test_create_when_anchor_not_on_rule_day_then_parent_on_first_occurrence(
        self, manager
    ):
        draft = rehearsal_draft(
            is_recurring=True, recurrence=rule(Weekday.FRIDAY, until=D(2026, 1, 16))
        )

        parent = await manager.create(ORG, draft)

        assert parent.date == D(2026, 1, 9)

    @pytest.mark.asyncio
    async def test_create_when_org_missing_then_no_store_calls(self, manager, store):
        with pytest.raises(MissingOrganizationError):
            await manager.create("", rehearsal_draft())

        assert store.calls == []

    @pytest.mark.asyncio
    async def test_create_when_done_then_org_cache_invalidated(self, manager, cache):
        cache.put(ORG, ANCHOR, [])
        cache.put(OTHER_ORG, ANCHOR, [])

        await manager.create(ORG, rehearsal_draft())

        assert (ORG, ANCHOR) not in cache
        assert (OTHER_ORG, ANCHOR) in cache


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_when_standalone_becomes_recurring_then_three_children(
        self, manager, store
    ):
        seed_event(store, "e1", ANCHOR)
        draft = rehearsal_draft(
            is_recurring=True,
            recurrence=rule(Weekday.WEDNESDAY, until=ANCHOR + datetime.timedelta(weeks=3)),
        )

        parent = await manager.update(ORG, "e1", draft, was_recurring=False)

        children = [r for r in events(store) if r["parent_event_id"] == "e1"]
        assert len(children) == 3
        assert [c["date"] for c in children] == ["2026-01-14", "2026-01-21", "2026-01-28"]
        assert parent.id == "e1"
        assert parent.is_series_parent
        assert len(store.calls_for("update")) == 1

    @pytest.mark.asyncio
    async def test_update_when_recurring_becomes_standalone_then_children_deleted_first(
        self, manager, store
    ):
        seed_linked_series(store, [ANCHOR, D(2026, 1, 14), D(2026, 1, 21)])

        event = await manager.update(ORG, "parent", rehearsal_draft(), was_recurring=True)

        assert [c.method for c in store.calls] == ["select_one", "delete", "update"]
        assert [r["id"] for r in events(store)] == ["parent"]
        assert event.is_standalone
        assert event.recurrence_days is None

    @pytest.mark.asyncio
    async def test_update_when_plain_edit_then_only_this_record(self, manager, store):
        seed_linked_series(store, [ANCHOR, D(2026, 1, 14)])

        event = await manager.update(
            ORG, "child-0", rehearsal_draft(date=D(2026, 1, 14), location="Garage")
        )

        assert [c.method for c in store.calls] == ["select_one", "update"]
        assert event.location == "Garage"
        assert event.parent_event_id == "parent"
        assert store.all_records(Table.EVENTS)[0]["location"] == "Studio A"

    @pytest.mark.asyncio
    async def test_update_when_record_missing_then_not_found_and_cache_invalidated(
        self, manager, cache
    ):
        cache.put(ORG, ANCHOR, [])

        with pytest.raises(EventNotFoundError):
            await manager.update(ORG, "missing", rehearsal_draft())

        assert (ORG, ANCHOR) not in cache

    @pytest.mark.asyncio
    async def test_update_when_event_owned_by_other_org_then_not_found_and_untouched(
        self, manager, store
    ):
        seed_event(store, "theirs", ANCHOR, organization_id=OTHER_ORG, location="B place")

        with pytest.raises(EventNotFoundError):
            await manager.update(ORG, "theirs", rehearsal_draft(location="Garage"))

        stored = store.all_records(Table.EVENTS)[0]
        assert stored["organization_id"] == OTHER_ORG
        assert stored["location"] == "B place"
        assert store.calls_for("update") == []

    @pytest.mark.asyncio
    async def test_update_when_other_org_series_then_children_kept(self, manager, store):
        seed_linked_series(store, [ANCHOR, D(2026, 1, 14)])

        with pytest.raises(EventNotFoundError):
            await manager.update(OTHER_ORG, "parent", rehearsal_draft(), was_recurring=True)

        assert [r["id"] for r in events(store)] == ["parent", "child-0"]
        assert store.calls_for("delete") == []


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_when_this_only_then_exactly_one_record(self, manager, store):
        seed_linked_series(store, [ANCHOR, D(2026, 1, 14), D(2026, 1, 21)])

        removed = await manager.delete(ORG, "child-0", DeleteScope.THIS_ONLY)

        assert removed == 1
        assert [r["id"] for r in events(store)] == ["parent", "child-1"]

    @pytest.mark.asyncio
    async def test_delete_when_this_only_on_parent_then_children_orphaned(self, manager, store):
        seed_linked_series(store, [ANCHOR, D(2026, 1, 14)])

        await manager.delete(ORG, "parent", DeleteScope.THIS_ONLY)

        remaining = events(store)
        assert [r["id"] for r in remaining] == ["child-0"]
        assert remaining[0]["parent_event_id"] == "parent"

    @pytest.mark.asyncio
    async def test_delete_when_linked_series_from_parent_then_no_pattern_queries(
        self, manager, store
    ):
        seed_linked_series(store, [ANCHOR, D(2026, 1, 14), D(2026, 1, 21)])

        removed = await manager.delete(ORG, "parent", DeleteScope.ENTIRE_SERIES)

        assert removed == 3
        assert events(store) == []
        assert store.calls_for("select_many") == []

    @pytest.mark.asyncio
    async def test_delete_when_linked_series_from_child_then_children_before_parent(
        self, manager, store
    ):
        seed_linked_series(store, [ANCHOR, D(2026, 1, 14), D(2026, 1, 21)])

        removed = await manager.delete(ORG, "child-1", DeleteScope.ENTIRE_SERIES)

        deletes = store.calls_for("delete")
        assert deletes[0].args["filters"][0].field == "parent_event_id"
        assert deletes[1].args["filters"][0].value == "parent"
        assert removed == 3
        assert events(store) == []
        assert store.calls_for("select_many") == []

    @pytest.mark.asyncio
    async def test_delete_when_legacy_series_then_pattern_match_on_weekday(
        self, manager, store, fixed_today, caplog
    ):
        legacy = {"is_recurring": True, "recurrence_frequency": "weekly", "recurrence_days": [3]}
        seed_event(store, "past", D(2025, 12, 31), **legacy)
        seed_event(store, "target", ANCHOR, **legacy)
        seed_event(store, "next", D(2026, 1, 14), **legacy)
        seed_event(store, "thursday", D(2026, 1, 15), **legacy)
        seed_event(store, "other-room", D(2026, 1, 21), location="Garage", **legacy)
        seed_event(store, "other-band", D(2026, 1, 21), organization_id=OTHER_ORG, **legacy)

        with caplog.at_level(logging.WARNING):
            removed = await manager.delete(ORG, "target", DeleteScope.ENTIRE_SERIES)

        assert removed == 2
        assert {r["id"] for r in events(store)} == {"past", "thursday", "other-room", "other-band"}
        assert "Legacy series deletion" in caplog.text
        assert ORG in caplog.text

    @pytest.mark.asyncio
    async def test_delete_when_standalone_target_and_entire_series_then_only_target(
        self, manager, store, fixed_today, caplog
    ):
        legacy = {"is_recurring": True, "recurrence_frequency": "weekly", "recurrence_days": [3]}
        for index in range(4):
            seed_event(store, f"legacy-{index}", ANCHOR + datetime.timedelta(weeks=index), **legacy)
        seed_event(store, "standalone", D(2026, 1, 14))

        with caplog.at_level(logging.WARNING):
            removed = await manager.delete(ORG, "standalone", DeleteScope.ENTIRE_SERIES)

        assert removed == 1
        assert len(events(store)) == 4
        assert all(r["is_recurring"] for r in events(store))
        assert store.calls_for("select_many") == []
        assert "Legacy series deletion" not in caplog.text

    @pytest.mark.asyncio
    async def test_delete_when_legacy_target_in_past_then_target_still_deleted(
        self, manager, store, fixed_today
    ):
        legacy = {"is_recurring": True, "recurrence_frequency": "weekly", "recurrence_days": [3]}
        seed_event(store, "target", D(2025, 12, 31), **legacy)
        seed_event(store, "next", ANCHOR, **legacy)

        removed = await manager.delete(ORG, "target", DeleteScope.ENTIRE_SERIES)

        assert removed == 2
        assert events(store) == []

    @pytest.mark.asyncio
    async def test_delete_when_series_target_missing_then_not_found(self, manager, cache):
        cache.put(ORG, ANCHOR, [])

        with pytest.raises(EventNotFoundError):
            await manager.delete(ORG, "missing", DeleteScope.ENTIRE_SERIES)

        assert (ORG, ANCHOR) not in cache

    @pytest.mark.asyncio
    async def test_delete_when_store_fails_midway_then_partial_and_cache_invalidated(
        self, manager, store, cache, monkeypatch
    ):
        seed_linked_series(store, [ANCHOR, D(2026, 1, 14)])
        cache.put(ORG, ANCHOR, [])
        original_delete = store.delete
        calls = []

        async def failing_delete(table, filters):
            calls.append(filters)
            if len(calls) == 2:
                raise StoreError("connection lost")
            return await original_delete(table, filters)

        monkeypatch.setattr(store, "delete", failing_delete)

        with pytest.raises(StoreError, match="connection lost"):
            await manager.delete(ORG, "parent", DeleteScope.ENTIRE_SERIES)

        assert [r["id"] for r in events(store)] == ["parent"]
        assert (ORG, ANCHOR) not in cache
