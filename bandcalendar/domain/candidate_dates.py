"""Persistence of candidate dates for poll gigs."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable

from ..store.base import EventStore, OrderBy, Table, eq, in_
from .date_reconciler import DateSetDiff, reconcile
from .models import CandidateDateOption, EventDraft, EventKind

logger = logging.getLogger(__name__)


class CandidateDateService:
    """Loads and applies candidate-date changes for one event at a time."""

    def __init__(self, store: EventStore):
        self.store = store

    async def list_options(self, event_id: str) -> list[CandidateDateOption]:
        records = await self.store.select_many(
            Table.CANDIDATE_DATES, [eq("event_id", event_id)], (OrderBy("date"),)
        )
        return [CandidateDateOption.model_validate(record) for record in records]

    async def load_existing(self, event_id: str) -> dict[datetime.date, str]:
        """Return the stored candidate dates of event_id as date -> record id."""
        return {option.date: option.id for option in await self.list_options(event_id)}

    async def create_dates(
        self, event_id: str, dates: Iterable[datetime.date]
    ) -> list[CandidateDateOption]:
        created = []
        for candidate in dates:
            record = await self.store.insert(
                Table.CANDIDATE_DATES, {"event_id": event_id, "date": candidate.isoformat()}
            )
            created.append(CandidateDateOption.model_validate(record))
        if created:
            logger.debug("Created %d candidate dates for event %s", len(created), event_id)
        return created

    async def apply(self, event_id: str, diff: DateSetDiff) -> DateSetDiff:
        """Create then delete the records named by diff."""
        await self.create_dates(event_id, diff.dates_to_create)
        if diff.record_ids_to_delete:
            await self.store.delete(Table.CANDIDATE_DATES, [in_("id", diff.record_ids_to_delete)])
            logger.debug(
                "Deleted %d candidate dates for event %s", len(diff.record_ids_to_delete), event_id
            )
        return diff

    async def sync(self, event_id: str, draft: EventDraft) -> DateSetDiff:
        """Make the stored candidate dates of event_id match draft.

        An event that is not a poll gig keeps no candidate dates at all, and the
        primary date is never stored as a candidate.
        """
        if draft.kind != EventKind.GIG or not draft.is_potential:
            removed = await self.store.delete(Table.CANDIDATE_DATES, [eq("event_id", event_id)])
            logger.debug("Event %s is not a poll; removed %d candidate dates", event_id, removed)
            return DateSetDiff([], [])

        existing = draft.existing_candidate_date_ids
        if existing is None:
            existing = await self.load_existing(event_id)

        desired = [d for d in draft.additional_dates if d != draft.date]
        diff = reconcile(desired, existing)
        if diff.is_empty:
            logger.debug("Candidate dates for event %s unchanged", event_id)
            return diff

        logger.info(
            "Syncing candidate dates for event %s: +%d -%d",
            event_id,
            len(diff.dates_to_create),
            len(diff.record_ids_to_delete),
        )
        return await self.apply(event_id, diff)
