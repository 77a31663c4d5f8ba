"""Candidate-date reconciliation for poll gigs.

Compares the dates the editor wants against the candidate-date records already
stored and reports what to create and what to delete. Nothing is mutated here.
"""

from __future__ import annotations

import datetime
from collections.abc import Iterable, Mapping
from typing import NamedTuple


class DateSetDiff(NamedTuple):
    """Store operations needed to make stored candidate dates match the desired set."""

    dates_to_create: list[datetime.date]
    record_ids_to_delete: list[str]

    @property
    def is_empty(self) -> bool:
        return not self.dates_to_create and not self.record_ids_to_delete


def reconcile(
    desired_dates: Iterable[datetime.date],
    existing: Mapping[datetime.date, str],
) -> DateSetDiff:
    """Diff desired candidate dates against existing date -> record id map.

    A date present in both is kept untouched, so the two outputs never
    overlap.

    Args:
        desired_dates: Dates the poll should offer (duplicates ignored)
        existing: Stored candidate dates keyed by date

    Returns:
        DateSetDiff with dates to create (ascending) and record ids to delete
        (in the existing map's order)
    """
    desired = set(desired_dates)
    dates_to_create = sorted(d for d in desired if d not in existing)
    record_ids_to_delete = [record_id for d, record_id in existing.items() if d not in desired]
    return DateSetDiff(dates_to_create, record_ids_to_delete)
