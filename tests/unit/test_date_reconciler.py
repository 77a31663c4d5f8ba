"""Unit tests for candidate-date reconciliation."""

import datetime

import pytest

from bandcalendar.domain.date_reconciler import DateSetDiff, reconcile

pytestmark = [pytest.mark.unit, pytest.mark.fast]

D1 = datetime.date(2026, 3, 6)
D2 = datetime.date(2026, 3, 7)
D3 = datetime.date(2026, 3, 13)
D4 = datetime.date(2026, 3, 14)


def test_reconcile_when_one_kept_one_added_one_dropped_then_minimal_diff():
    diff = reconcile([D2, D3], {D1: "id1", D2: "id2"})

    assert diff == DateSetDiff(dates_to_create=[D3], record_ids_to_delete=["id1"])


def test_reconcile_when_sets_equal_then_empty():
    diff = reconcile([D1, D2], {D1: "id1", D2: "id2"})

    assert diff.is_empty


def test_reconcile_when_nothing_stored_then_create_all_sorted():
    diff = reconcile([D3, D1, D2], {})

    assert diff.dates_to_create == [D1, D2, D3]
    assert diff.record_ids_to_delete == []


def test_reconcile_when_desired_empty_then_delete_all_in_map_order():
    diff = reconcile([], {D2: "id2", D1: "id1"})

    assert diff.dates_to_create == []
    assert diff.record_ids_to_delete == ["id2", "id1"]


def test_reconcile_when_desired_has_duplicates_then_created_once():
    diff = reconcile([D4, D4, D3], {})

    assert diff.dates_to_create == [D3, D4]


def test_reconcile_when_any_input_then_outputs_disjoint_and_complete():
    existing = {D1: "id1", D2: "id2", D3: "id3"}
    desired = {D2, D4}

    diff = reconcile(desired, existing)

    deleted_dates = {d for d, record_id in existing.items() if record_id in diff.record_ids_to_delete}
    assert not deleted_dates & set(diff.dates_to_create)
    kept = set(existing) - deleted_dates
    assert kept | set(diff.dates_to_create) == desired
