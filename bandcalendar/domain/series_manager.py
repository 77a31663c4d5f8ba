"""Series lifecycle: create, transition and delete recurring events.

A series is a parent record carrying the recurrence rule plus one child record
per further occurrence, each child referencing the parent id. Multi-record
operations are sequences of independent store calls: the parent is inserted
before any child and children are deleted before their parent. Nothing is
rolled back on failure, but the organization's cached months are always
invalidated.
"""

from __future__ import annotations

import datetime
import logging
from typing import Any, Optional

from ..core import clock
from ..core.exceptions import EventNotFoundError, require_organization
from ..core.logging_config import operation_context
from ..store.base import EventStore, Table, eq, gte, in_
from .event_cache import EventCache
from .models import DeleteScope, Event, EventDraft, RecurrenceRule, Weekday
from .recurrence import RecurrenceExpander

logger = logging.getLogger(__name__)


class SeriesLifecycleManager:
    """Owns every change to series membership."""

    def __init__(
        self,
        store: EventStore,
        cache: EventCache,
        expander: Optional[RecurrenceExpander] = None,
    ):
        """Initialize series manager.

        Args:
            store: Persistence used for all event writes
            cache: Event cache invalidated after every operation
            expander: Recurrence expander (default settings when omitted)
        """
        self.store = store
        self.cache = cache
        self.expander = expander or RecurrenceExpander()

    async def _get_owned(self, organization_id: str, event_id: str) -> Event:
        record = await self.store.select_one(
            Table.EVENTS, [eq("id", event_id), eq("organization_id", organization_id)]
        )
        if record is None:
            raise EventNotFoundError(event_id, organization_id)
        return Event.from_record(record)

    def _base_fields(self, organization_id: str, draft: EventDraft) -> dict[str, Any]:
        fields = draft.to_event_fields()
        fields["organization_id"] = organization_id
        return fields

    async def _insert_children(
        self,
        base_fields: dict[str, Any],
        rule: RecurrenceRule,
        parent_id: str,
        dates: list[datetime.date],
    ) -> list[Event]:
        children = []
        for occurrence in dates:
            record = await self.store.insert(
                Table.EVENTS,
                {
                    **base_fields,
                    **rule.to_record_fields(),
                    "date": occurrence.isoformat(),
                    "parent_event_id": parent_id,
                },
            )
            children.append(Event.from_record(record))
        return children

    async def create(self, organization_id: Optional[str], draft: EventDraft) -> Event:
        """Create a standalone event or a whole series.

        Returns:
            The standalone event, or the series parent (its first occurrence)
        """
        organization_id = require_organization(organization_id)

        with operation_context("create-event"):
            try:
                base_fields = self._base_fields(organization_id, draft)
                rule = draft.effective_recurrence

                if rule is None:
                    record = await self.store.insert(
                        Table.EVENTS, {**base_fields, **RecurrenceRule.cleared_record_fields()}
                    )
                    event = Event.from_record(record)
                    logger.info("Created %s event %s on %s", event.kind.value, event.id, event.date)
                    return event

                dates = self.expander.expand(draft.date, rule)
                parent_record = await self.store.insert(
                    Table.EVENTS,
                    {
                        **base_fields,
                        **rule.to_record_fields(),
                        "date": dates[0].isoformat(),
                        "parent_event_id": None,
                    },
                )
                parent = Event.from_record(parent_record)
                children = await self._insert_children(base_fields, rule, parent.id, dates[1:])

                logger.info(
                    "Created series %s (%s) with %d children from %s",
                    parent.id,
                    rule.summary,
                    len(children),
                    dates[0],
                )
                return parent
            finally:
                self.cache.invalidate(organization_id)

    async def update(
        self,
        organization_id: Optional[str],
        event_id: str,
        draft: EventDraft,
        was_recurring: bool = False,
    ) -> Event:
        """Apply an edited draft to event_id, transitioning series membership if needed.

        Args:
            organization_id: Owning organization
            event_id: Record being edited
            draft: Edited state
            was_recurring: Whether the record was recurring when the editor loaded it
        """
        organization_id = require_organization(organization_id)

        with operation_context("update-event"):
            try:
                await self._get_owned(organization_id, event_id)
                base_fields = self._base_fields(organization_id, draft)
                rule = draft.effective_recurrence

                if rule is not None and not was_recurring:
                    return await self._make_recurring(event_id, draft, rule, base_fields)

                if was_recurring and rule is None:
                    return await self._make_standalone(organization_id, event_id, base_fields)

                fields = dict(base_fields)
                if rule is not None:
                    fields.update(rule.to_record_fields())
                record = await self.store.update(Table.EVENTS, event_id, fields)
                logger.info("Updated event %s", event_id)
                return Event.from_record(record)
            finally:
                self.cache.invalidate(organization_id)

    async def _make_recurring(
        self,
        event_id: str,
        draft: EventDraft,
        rule: RecurrenceRule,
        base_fields: dict[str, Any],
    ) -> Event:
        dates = self.expander.expand(draft.date, rule)
        record = await self.store.update(
            Table.EVENTS,
            event_id,
            {**base_fields, **rule.to_record_fields(), "parent_event_id": None},
        )
        parent = Event.from_record(record)
        child_dates = [d for d in dates if d != draft.date]
        children = await self._insert_children(base_fields, rule, parent.id, child_dates)
        logger.info(
            "Converted event %s to series (%s) with %d children",
            event_id,
            rule.summary,
            len(children),
        )
        return parent

    async def _make_standalone(
        self, organization_id: str, event_id: str, base_fields: dict[str, Any]
    ) -> Event:
        removed = await self.store.delete(
            Table.EVENTS,
            [eq("parent_event_id", event_id), eq("organization_id", organization_id)],
        )
        record = await self.store.update(
            Table.EVENTS, event_id, {**base_fields, **RecurrenceRule.cleared_record_fields()}
        )
        logger.info("Converted series %s to standalone event, removed %d children", event_id, removed)
        return Event.from_record(record)

    async def delete(
        self,
        organization_id: Optional[str],
        event_id: str,
        scope: DeleteScope = DeleteScope.THIS_ONLY,
    ) -> int:
        """Delete one occurrence or the whole series containing event_id.

        Returns:
            Number of event records removed
        """
        organization_id = require_organization(organization_id)
        scope = DeleteScope(scope)

        with operation_context("delete-event"):
            try:
                if scope == DeleteScope.THIS_ONLY:
                    removed = await self.store.delete(
                        Table.EVENTS, [eq("id", event_id), eq("organization_id", organization_id)]
                    )
                    logger.info("Deleted event %s (%d record)", event_id, removed)
                    return removed

                target = await self._get_owned(organization_id, event_id)

                if target.parent_event_id is not None:
                    return await self._delete_linked_series(target.parent_event_id, target.id)

                has_children = await self.store.select_one(
                    Table.EVENTS, [eq("parent_event_id", target.id)]
                )
                if has_children is not None:
                    return await self._delete_linked_series(target.id, target.id)

                # Attribute matching is only for unlinked records that are themselves recurring
                if not target.is_recurring:
                    removed = await self.store.delete(Table.EVENTS, [eq("id", target.id)])
                    logger.info(
                        "Event %s is not part of a series; deleted it alone (%d record)",
                        target.id,
                        removed,
                    )
                    return removed

                return await self._delete_legacy_series(organization_id, target)
            finally:
                self.cache.invalidate(organization_id)

    async def _delete_linked_series(self, parent_id: str, target_id: str) -> int:
        removed = await self.store.delete(Table.EVENTS, [eq("parent_event_id", parent_id)])
        removed += await self.store.delete(Table.EVENTS, [eq("id", parent_id)])
        if target_id != parent_id:
            removed += await self.store.delete(Table.EVENTS, [eq("id", target_id)])
        logger.info("Deleted series %s (%d records)", parent_id, removed)
        return removed

    async def _delete_legacy_series(self, organization_id: str, target: Event) -> int:
        """Legacy: delete an unlinked series by matching its attributes.

        Records written before parent/child linkage existed are found by time,
        location and weekday, from today onwards.
        """
        logger.warning(
            "Legacy series deletion for organization %s, event %s: "
            "no parent/child linkage, matching by attributes",
            organization_id,
            target.id,
        )

        candidates = await self.store.select_many(
            Table.EVENTS,
            [
                eq("organization_id", organization_id),
                eq("is_recurring", True),
                eq("start_time", target.start_time),
                eq("end_time", target.end_time),
                eq("location", target.location),
                gte("date", clock.today().isoformat()),
            ],
        )
        target_weekday = target.weekday
        matched_ids = [
            record["id"]
            for record in candidates
            if Weekday.from_date(Event.from_record(record).date) == target_weekday
        ]

        removed = 0
        if matched_ids:
            removed += await self.store.delete(Table.EVENTS, [in_("id", matched_ids)])
        if target.id not in matched_ids:
            removed += await self.store.delete(Table.EVENTS, [eq("id", target.id)])

        logger.warning(
            "Legacy series deletion for event %s matched %d records", target.id, len(matched_ids)
        )
        return removed
