"""bandcalendar - recurring-event scheduling and multi-date availability engine.

Expands recurrence rules into dated occurrences, manages recurring series,
keeps candidate dates of poll gigs in sync and tracks member availability.
"""

__version__ = "0.1.0"

from .core.exceptions import (
    EventNotFoundError,
    EventValidationError,
    MissingOrganizationError,
    SchedulingError,
    StoreError,
)
from .domain.availability import AvailabilityAggregator
from .domain.event_cache import EventCache
from .domain.models import (
    PRIMARY_OCCURRENCE,
    DeleteScope,
    Event,
    EventDraft,
    EventKind,
    RecurrenceFrequency,
    RecurrenceRule,
    ResponseState,
    Weekday,
)
from .domain.scheduler import EventScheduler

__all__ = [
    "PRIMARY_OCCURRENCE",
    "AvailabilityAggregator",
    "DeleteScope",
    "Event",
    "EventCache",
    "EventDraft",
    "EventKind",
    "EventNotFoundError",
    "EventScheduler",
    "EventValidationError",
    "MissingOrganizationError",
    "RecurrenceFrequency",
    "RecurrenceRule",
    "ResponseState",
    "SchedulingError",
    "StoreError",
    "Weekday",
    "__version__",
]
