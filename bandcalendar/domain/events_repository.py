"""Read side for events: month fetches through the cache and series lookups."""

from __future__ import annotations

import datetime
import logging
from typing import Optional

from ..core.clock import month_bounds
from ..core.exceptions import EventNotFoundError, require_organization
from ..store.base import EventStore, OrderBy, Table, eq, gte, lte
from .event_cache import EventCache
from .models import Event, EventKind, RecurrenceRule
from .time_formatter import parse_time

logger = logging.getLogger(__name__)

_DATE_ORDER = (OrderBy("date"),)


def _chronological(event: Event) -> tuple[datetime.date, int]:
    # start_time is "h:mm AM/PM" text, which does not sort as text
    return event.date, parse_time(event.start_time).total_minutes


class EventsRepository:
    """Fetches events for the calendar views."""

    def __init__(self, store: EventStore, cache: Optional[EventCache] = None):
        self.store = store
        self.cache = cache if cache is not None else EventCache()

    async def fetch_events_for_month(
        self,
        organization_id: Optional[str],
        month: datetime.date,
        kind: Optional[EventKind] = None,
        force_refresh: bool = False,
    ) -> list[Event]:
        """Return the organization's events in the calendar month containing month.

        Args:
            organization_id: Owning organization
            month: Any date inside the month
            kind: Only return events of this kind
            force_refresh: Bypass (and then refill) the cache
        """
        organization_id = require_organization(organization_id)

        events = None if force_refresh else self.cache.get(organization_id, month)
        if events is None:
            first, last = month_bounds(month)
            records = await self.store.select_many(
                Table.EVENTS,
                [
                    eq("organization_id", organization_id),
                    gte("date", first.isoformat()),
                    lte("date", last.isoformat()),
                ],
                _DATE_ORDER,
            )
            events = sorted((Event.from_record(record) for record in records), key=_chronological)
            self.cache.put(organization_id, month, events)
            logger.debug(
                "Fetched %d events for %s %s from store", len(events), organization_id, first
            )

        if kind is not None:
            events = [event for event in events if event.kind == kind]
        return events

    async def get_event(self, organization_id: Optional[str], event_id: str) -> Event:
        organization_id = require_organization(organization_id)
        record = await self.store.select_one(
            Table.EVENTS, [eq("id", event_id), eq("organization_id", organization_id)]
        )
        if record is None:
            raise EventNotFoundError(event_id, organization_id)
        return Event.from_record(record)

    async def list_series_children(self, event_id: str) -> list[Event]:
        """Return the children referencing event_id, in date order."""
        records = await self.store.select_many(
            Table.EVENTS, [eq("parent_event_id", event_id)], _DATE_ORDER
        )
        return sorted((Event.from_record(record) for record in records), key=_chronological)

    async def effective_rule(self, event: Event) -> Optional[RecurrenceRule]:
        """Return the event's own recurrence rule, else the rule on its series parent."""
        rule = event.recurrence_rule
        if rule is not None or event.parent_event_id is None:
            return rule

        record = await self.store.select_one(Table.EVENTS, [eq("id", event.parent_event_id)])
        if record is None:
            logger.debug(
                "Parent %s of event %s no longer exists", event.parent_event_id, event.id
            )
            return None
        return Event.from_record(record).recurrence_rule
