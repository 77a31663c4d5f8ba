"""Per-occurrence availability state for one event.

The aggregator holds every member's answer for the primary date and each
candidate date. Only the acting member edits it; has_changes() tells whether
those edits differ from what was last loaded or saved.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Sequence
from typing import Optional

from .models import PRIMARY_OCCURRENCE, AvailabilityClass, ResponseState, ResponseSummary
from .responses import ResponseMap, ResponseRepository, summarize

logger = logging.getLogger(__name__)

_CLASSIFICATION = {
    ResponseState.YES: AvailabilityClass.AVAILABLE,
    ResponseState.NO: AvailabilityClass.UNAVAILABLE,
    ResponseState.NOT_RESPONDED: AvailabilityClass.NOT_RESPONDED,
}


def classify(response: Optional[ResponseState]) -> AvailabilityClass:
    """Map a response to its presentation class; None means not responded."""
    if response is None:
        return AvailabilityClass.NOT_RESPONDED
    return _CLASSIFICATION[ResponseState(response)]


class AvailabilityAggregator:
    """In-memory response state with change detection for the acting member.

    Example:
        aggregator = AvailabilityAggregator(repo, event.id, member_ids, "m-1")
        await aggregator.load_responses(["primary", candidate.id])
        aggregator.set_response(candidate.id, "m-1", ResponseState.YES)
        if aggregator.has_changes():
            await aggregator.save()
    """

    def __init__(
        self,
        repository: Optional[ResponseRepository],
        event_id: str,
        member_ids: Iterable[str],
        acting_member_id: str,
    ):
        """Initialize aggregator.

        Args:
            repository: Response persistence (None for purely local use)
            event_id: Event whose occurrences are tracked
            member_ids: Members of the organization, supplied by the caller
            acting_member_id: Member whose edits are tracked and saved
        """
        self.repository = repository
        self.event_id = event_id
        self.member_ids = list(member_ids)
        self.acting_member_id = acting_member_id
        self._responses: ResponseMap = {}
        self._baseline: ResponseMap = {}

    @property
    def occurrence_ids(self) -> list[str]:
        return list(self._responses)

    @property
    def baseline(self) -> ResponseMap:
        return copy.deepcopy(self._baseline)

    def snapshot(self) -> ResponseMap:
        """Copy of the current state."""
        return copy.deepcopy(self._responses)

    def seed(self, responses: ResponseMap) -> ResponseMap:
        """Install responses as both current state and baseline.

        Every known member missing from an occurrence is filled in as not responded.
        """
        seeded: ResponseMap = {}
        for occurrence_id, by_member in responses.items():
            states = {member_id: ResponseState.NOT_RESPONDED for member_id in self.member_ids}
            states.update({m: ResponseState(r) for m, r in by_member.items()})
            seeded[occurrence_id] = states
        self._responses = seeded
        self._baseline = copy.deepcopy(seeded)
        return self.snapshot()

    async def load_responses(self, occurrence_ids: Sequence[str]) -> ResponseMap:
        """Read stored responses for occurrence_ids and reset the baseline."""
        if self.repository is None:
            responses: ResponseMap = {occurrence_id: {} for occurrence_id in occurrence_ids}
        else:
            responses = await self.repository.fetch_responses(
                self.event_id, occurrence_ids, self.member_ids
            )
        return self.seed(responses)

    def set_response(self, occurrence_id: str, member_id: str, response: ResponseState) -> None:
        self._responses.setdefault(occurrence_id, {})[member_id] = ResponseState(response)

    def get_response(self, occurrence_id: str, member_id: str) -> ResponseState:
        return self._responses.get(occurrence_id, {}).get(member_id, ResponseState.NOT_RESPONDED)

    def classify_member(self, occurrence_id: str, member_id: str) -> AvailabilityClass:
        return classify(self.get_response(occurrence_id, member_id))

    @staticmethod
    def classify(response: Optional[ResponseState]) -> AvailabilityClass:
        return classify(response)

    def has_changes(self, baseline: Optional[ResponseMap] = None) -> bool:
        """Whether the acting member's answers differ from baseline.

        Args:
            baseline: State to compare with (defaults to the last load or save)
        """
        baseline = self._baseline if baseline is None else baseline
        member_id = self.acting_member_id
        for occurrence_id in set(self._responses) | set(baseline):
            current = self._responses.get(occurrence_id, {}).get(
                member_id, ResponseState.NOT_RESPONDED
            )
            previous = baseline.get(occurrence_id, {}).get(member_id, ResponseState.NOT_RESPONDED)
            if current != previous:
                return True
        return False

    def changed_responses(self) -> list[tuple[str, ResponseState]]:
        """Acting member's (occurrence, answer) pairs to persist, primary first."""
        member_id = self.acting_member_id
        changes = []
        for occurrence_id in sorted(self._responses, key=lambda o: (o != PRIMARY_OCCURRENCE, o)):
            current = self.get_response(occurrence_id, member_id)
            previous = self._baseline.get(occurrence_id, {}).get(
                member_id, ResponseState.NOT_RESPONDED
            )
            if current != previous and current != ResponseState.NOT_RESPONDED:
                changes.append((occurrence_id, current))
        return changes

    def _stored_answers(self) -> dict[str, ResponseState]:
        member_id = self.acting_member_id
        return {
            occurrence_id: by_member[member_id]
            for occurrence_id, by_member in self._baseline.items()
            if by_member.get(member_id, ResponseState.NOT_RESPONDED) != ResponseState.NOT_RESPONDED
        }

    async def save(self) -> int:
        """Persist the acting member's changed answers and reset the baseline.

        Returns:
            Number of responses written
        """
        changes = self.changed_responses()
        if changes and self.repository is None:
            raise RuntimeError("AvailabilityAggregator has no repository to save to")

        for occurrence_id, response in changes:
            await self.repository.upsert_response(
                self.event_id, occurrence_id, self.acting_member_id, response
            )

        # A reset to not-responded is never written, so the stored answer stays the baseline
        baseline = self.snapshot()
        member_id = self.acting_member_id
        for occurrence_id, previous in self._stored_answers().items():
            if self.get_response(occurrence_id, member_id) == ResponseState.NOT_RESPONDED:
                baseline.setdefault(occurrence_id, {})[member_id] = previous
        self._baseline = baseline
        if changes:
            logger.info(
                "Saved %d availability responses for member %s on event %s",
                len(changes),
                self.acting_member_id,
                self.event_id,
            )
        return len(changes)

    def summarize(
        self, occurrence_id: str, required_member_ids: Iterable[str] = ()
    ) -> ResponseSummary:
        """Counts for one occurrence over the required members (all members when empty)."""
        required = list(required_member_ids)
        members = required or self.member_ids
        return summarize(self._responses.get(occurrence_id, {}), members)

    def best_occurrences(self, required_member_ids: Iterable[str] = ()) -> list[str]:
        """Occurrences ordered by most yes answers, then fewest no answers."""
        required = list(required_member_ids)
        summaries = {o: self.summarize(o, required) for o in self._responses}
        return sorted(
            summaries,
            key=lambda o: (-summaries[o].yes_count, summaries[o].no_count),
        )
