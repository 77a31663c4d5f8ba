"""Stored availability responses, keyed by occurrence and member."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Optional

from ..store.base import EventStore, Table, eq, is_null
from .models import (
    PRIMARY_OCCURRENCE,
    AvailabilityResponse,
    ResponseState,
    ResponseSummary,
)

logger = logging.getLogger(__name__)

ResponseMap = dict[str, dict[str, ResponseState]]


def _candidate_date_id(occurrence_id: str) -> Optional[str]:
    return None if occurrence_id == PRIMARY_OCCURRENCE else occurrence_id


def summarize(
    responses: dict[str, ResponseState], member_ids: Optional[Iterable[str]] = None
) -> ResponseSummary:
    """Count answers for one occurrence over member_ids (all known members when None)."""
    members = list(responses) if member_ids is None else list(member_ids)
    summary = ResponseSummary(total_members=len(members))
    for member_id in members:
        state = responses.get(member_id, ResponseState.NOT_RESPONDED)
        if state == ResponseState.YES:
            summary.yes_count += 1
        elif state == ResponseState.NO:
            summary.no_count += 1
        else:
            summary.not_responded_count += 1
    return summary


class ResponseRepository:
    """Reads and upserts AvailabilityResponse records."""

    def __init__(self, store: EventStore):
        self.store = store

    async def fetch_responses(
        self,
        event_id: str,
        occurrence_ids: Sequence[str],
        member_ids: Iterable[str],
    ) -> ResponseMap:
        """Return {occurrence: {member: state}} with not-responded for absent rows.

        Rows for members outside member_ids are still included so nothing a
        member stored is hidden.
        """
        members = list(member_ids)
        result: ResponseMap = {
            occurrence_id: {member_id: ResponseState.NOT_RESPONDED for member_id in members}
            for occurrence_id in occurrence_ids
        }
        if not result:
            return result

        records = await self.store.select_many(
            Table.AVAILABILITY_RESPONSES, [eq("event_id", event_id)]
        )
        for record in records:
            response = AvailabilityResponse.model_validate(record)
            if response.occurrence_id in result:
                result[response.occurrence_id][response.member_id] = response.response

        logger.debug(
            "Loaded %d responses for event %s over %d occurrences",
            len(records),
            event_id,
            len(result),
        )
        return result

    async def upsert_response(
        self,
        event_id: str,
        occurrence_id: str,
        member_id: str,
        response: ResponseState,
    ) -> AvailabilityResponse:
        """Insert or update member_id's answer for one occurrence."""
        candidate_date_id = _candidate_date_id(occurrence_id)
        filters = [
            eq("event_id", event_id),
            eq("member_id", member_id),
            is_null("candidate_date_id")
            if candidate_date_id is None
            else eq("candidate_date_id", candidate_date_id),
        ]

        existing = await self.store.select_one(Table.AVAILABILITY_RESPONSES, filters)
        if existing is not None:
            record = await self.store.update(
                Table.AVAILABILITY_RESPONSES,
                existing["id"],
                {"response": ResponseState(response).value},
            )
        else:
            record = await self.store.insert(
                Table.AVAILABILITY_RESPONSES,
                {
                    "event_id": event_id,
                    "candidate_date_id": candidate_date_id,
                    "member_id": member_id,
                    "response": ResponseState(response).value,
                },
            )

        logger.debug(
            "Saved %s response of member %s for event %s occurrence %s",
            record["response"],
            member_id,
            event_id,
            occurrence_id,
        )
        return AvailabilityResponse.model_validate(record)

    async def fetch_summary(
        self, event_id: str, occurrence_id: str, member_ids: Iterable[str]
    ) -> ResponseSummary:
        members = list(member_ids)
        responses = await self.fetch_responses(event_id, [occurrence_id], members)
        return summarize(responses[occurrence_id], members)
