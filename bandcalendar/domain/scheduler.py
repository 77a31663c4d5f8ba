"""Entry point used by the event editor."""

from __future__ import annotations

import datetime
import logging
from typing import Any, Optional

from ..core.exceptions import EventValidationError, require_organization
from ..core.logging_config import operation_context
from ..store.base import EventStore
from .availability import AvailabilityAggregator
from .candidate_dates import CandidateDateService
from .event_cache import EventCache
from .events_repository import EventsRepository
from .models import DeleteScope, Event, EventDraft, EventKind
from .recurrence import RecurrenceExpander
from .responses import ResponseRepository
from .series_manager import SeriesLifecycleManager

logger = logging.getLogger(__name__)


class EventScheduler:
    """Validates drafts and wires series, candidate-date and response handling together."""

    def __init__(self, store: EventStore, settings: Any = None, cache: Optional[EventCache] = None):
        """Initialize scheduler.

        Args:
            store: Persistence shared by every component
            settings: Optional EngineSettings (cache TTL, expansion limits)
            cache: Event cache to share with other readers
        """
        self.store = store
        self.cache = cache if cache is not None else EventCache.from_settings(settings)
        self.series = SeriesLifecycleManager(store, self.cache, RecurrenceExpander(settings))
        self.candidate_dates = CandidateDateService(store)
        self.responses = ResponseRepository(store)
        self.events = EventsRepository(store, self.cache)

    @staticmethod
    def validate(draft: EventDraft) -> None:
        errors = draft.validation_errors()
        if errors:
            logger.info("Rejected event draft: %s", "; ".join(errors))
            raise EventValidationError(errors)

    async def create_event(self, organization_id: Optional[str], draft: EventDraft) -> Event:
        """Validate and create draft; poll gigs also get their candidate dates."""
        organization_id = require_organization(organization_id)
        self.validate(draft)

        with operation_context("create-event"):
            try:
                event = await self.series.create(organization_id, draft)
                if draft.is_multi_date:
                    await self.candidate_dates.create_dates(
                        event.id, sorted({d for d in draft.additional_dates if d != event.date})
                    )
                return event
            finally:
                self.cache.invalidate(organization_id)

    async def update_event(
        self,
        organization_id: Optional[str],
        event_id: str,
        draft: EventDraft,
        was_recurring: bool = False,
    ) -> Event:
        """Validate and apply an edited draft to event_id."""
        organization_id = require_organization(organization_id)
        self.validate(draft)

        with operation_context("update-event"):
            try:
                event = await self.series.update(organization_id, event_id, draft, was_recurring)
                if draft.kind == EventKind.GIG:
                    await self.candidate_dates.sync(event_id, draft)
                return event
            finally:
                self.cache.invalidate(organization_id)

    async def delete_event(
        self,
        organization_id: Optional[str],
        event_id: str,
        scope: DeleteScope = DeleteScope.THIS_ONLY,
    ) -> int:
        return await self.series.delete(organization_id, event_id, scope)

    async def load_draft(self, organization_id: Optional[str], event_id: str) -> EventDraft:
        """Rebuild the editor state of a stored event, candidate dates included."""
        event = await self.events.get_event(organization_id, event_id)
        options = await self.candidate_dates.list_options(event.id) if event.is_potential else []
        draft = EventDraft.from_event(event, options)
        if draft.recurrence is None and event.parent_event_id is not None:
            rule = await self.events.effective_rule(event)
            if rule is not None:
                draft = draft.model_copy(update={"is_recurring": True, "recurrence": rule})
        return draft

    def availability_for(
        self, event_id: str, member_ids: list[str], acting_member_id: str
    ) -> AvailabilityAggregator:
        return AvailabilityAggregator(self.responses, event_id, member_ids, acting_member_id)

    async def save_availability(self, aggregator: AvailabilityAggregator) -> int:
        """Persist the acting member's edited answers."""
        with operation_context("save-availability"):
            if not aggregator.has_changes():
                logger.debug("No availability changes for event %s", aggregator.event_id)
                return 0
            return await aggregator.save()

    async def fetch_events_for_month(
        self,
        organization_id: Optional[str],
        month: datetime.date,
        kind: Optional[EventKind] = None,
        force_refresh: bool = False,
    ) -> list[Event]:
        return await self.events.fetch_events_for_month(organization_id, month, kind, force_refresh)
