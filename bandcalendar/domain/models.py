"""Data models for the scheduling engine."""

from __future__ import annotations

import datetime
from enum import Enum, IntEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .time_formatter import ParsedTime, duration_minutes, format_range, parse_time

# Occurrence id of an event's primary date. Candidate dates use their record id.
PRIMARY_OCCURRENCE = "primary"

DEFAULT_REHEARSAL_NAME = "Band Rehearsal"

_MONTH_ABBREVIATIONS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]


def format_short_date(value: datetime.date) -> str:
    """Format a date as "Jan 7, 2026"."""
    return f"{_MONTH_ABBREVIATIONS[value.month - 1]} {value.day}, {value.year}"


class EventKind(str, Enum):
    """Kinds of scheduled events."""

    REHEARSAL = "rehearsal"
    GIG = "gig"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class Weekday(IntEnum):
    """Days of the week, indexed from Sunday as stored in recurrence_days."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @property
    def short_name(self) -> str:
        return self.name[:3].capitalize()

    @classmethod
    def from_date(cls, value: datetime.date) -> "Weekday":
        # date.weekday() is Monday=0; shift so Sunday=0
        return cls((value.weekday() + 1) % 7)


class RecurrenceFrequency(str, Enum):
    """How often the selected weekdays repeat."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"  # approximated as every 4 weeks

    @property
    def week_interval(self) -> int:
        return _WEEK_INTERVALS[self]

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


_WEEK_INTERVALS = {
    RecurrenceFrequency.WEEKLY: 1,
    RecurrenceFrequency.BIWEEKLY: 2,
    RecurrenceFrequency.MONTHLY: 4,
}


class EventDuration(IntEnum):
    """Allowed event lengths in minutes, 15-minute steps from 30 minutes to 4 hours."""

    MIN_30 = 30
    MIN_45 = 45
    HOUR_1 = 60
    HOUR_1_15 = 75
    HOUR_1_30 = 90
    HOUR_1_45 = 105
    HOUR_2 = 120
    HOUR_2_15 = 135
    HOUR_2_30 = 150
    HOUR_2_45 = 165
    HOUR_3 = 180
    HOUR_3_15 = 195
    HOUR_3_30 = 210
    HOUR_3_45 = 225
    HOUR_4 = 240

    @property
    def label(self) -> str:
        hours, minutes = divmod(self.value, 60)
        if not hours:
            return f"{minutes}m"
        if not minutes:
            return f"{hours}h"
        return f"{hours}h {minutes}m"

    @classmethod
    def closest(cls, minutes: int) -> "EventDuration":
        """Return the allowed duration nearest to minutes (shorter wins ties)."""
        return min(cls, key=lambda d: (abs(d.value - minutes), d.value))


class ResponseState(str, Enum):
    """A member's answer for one occurrence."""

    YES = "yes"
    NO = "no"
    NOT_RESPONDED = "not_responded"


class AvailabilityClass(str, Enum):
    """Presentation classification of a ResponseState."""

    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    NOT_RESPONDED = "notResponded"


class DeleteScope(str, Enum):
    """How much of a series a delete removes."""

    THIS_ONLY = "this_only"
    ENTIRE_SERIES = "entire_series"


class RecurrenceRule(BaseModel):
    """Weekdays, frequency and optional end date of a recurring series."""

    weekdays: frozenset[Weekday] = Field(default_factory=frozenset, description="Days to repeat on")
    frequency: RecurrenceFrequency = Field(default=RecurrenceFrequency.WEEKLY)
    until: Optional[datetime.date] = Field(default=None, description="Last allowed date (inclusive)")

    model_config = ConfigDict(frozen=True)

    @property
    def sorted_weekdays(self) -> list[Weekday]:
        return sorted(self.weekdays)

    @property
    def summary(self) -> str:
        """Human-readable summary, e.g. "Weekly on Mon, Wed until Jan 20, 2026"."""
        if not self.weekdays:
            return ""
        day_names = ", ".join(day.short_name for day in self.sorted_weekdays)
        until_text = f" until {format_short_date(self.until)}" if self.until else ""
        return f"{self.frequency.display_name} on {day_names}{until_text}"

    def to_record_fields(self) -> dict[str, Any]:
        """Recurrence columns stored on each event of the series."""
        return {
            "is_recurring": True,
            "recurrence_frequency": self.frequency.value,
            "recurrence_days": [int(day) for day in self.sorted_weekdays],
            "recurrence_until": self.until.isoformat() if self.until else None,
        }

    @staticmethod
    def cleared_record_fields() -> dict[str, Any]:
        """Recurrence columns of an event that is not part of a series."""
        return {
            "is_recurring": False,
            "recurrence_frequency": None,
            "recurrence_days": None,
            "recurrence_until": None,
            "parent_event_id": None,
        }


class Event(BaseModel):
    """One scheduled rehearsal or gig occurrence."""

    id: str = Field(..., description="Record id")
    organization_id: str = Field(..., description="Owning organization (band)")
    kind: EventKind = Field(..., description="Rehearsal or gig")
    name: Optional[str] = Field(default=None, description="Event name (required for gigs)")

    date: datetime.date = Field(..., description="Occurrence date")
    start_time: str = Field(..., description="Wall-clock start, e.g. '7:00 PM'")
    end_time: str = Field(..., description="Wall-clock end, e.g. '9:00 PM'")
    location: str = Field(default="", description="Venue or city")
    notes: Optional[str] = Field(default=None)

    setlist_id: Optional[str] = Field(default=None)
    setlist_name: Optional[str] = Field(default=None)
    pay_cents: Optional[int] = Field(
        default=None, description="Gig pay in cents; None unspecified, 0 explicitly unpaid"
    )

    is_potential: bool = Field(default=False, description="Poll gig pending member availability")
    required_member_ids: list[str] = Field(
        default_factory=list, description="Members who must respond; empty means all"
    )

    is_recurring: bool = Field(default=False)
    recurrence_frequency: Optional[RecurrenceFrequency] = Field(default=None)
    recurrence_days: Optional[list[int]] = Field(default=None)
    recurrence_until: Optional[datetime.date] = Field(default=None)
    parent_event_id: Optional[str] = Field(default=None, description="Series parent, for children")

    created_at: Optional[str] = Field(default=None)
    updated_at: Optional[str] = Field(default=None)

    model_config = ConfigDict(extra="ignore")

    @field_validator("required_member_ids", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Event":
        return cls.model_validate(record)

    @property
    def recurrence_rule(self) -> Optional[RecurrenceRule]:
        """The rule stored on this record, if it carries one."""
        if not self.is_recurring or not self.recurrence_days:
            return None
        return RecurrenceRule(
            weekdays=frozenset(Weekday(day) for day in self.recurrence_days),
            frequency=self.recurrence_frequency or RecurrenceFrequency.WEEKLY,
            until=self.recurrence_until,
        )

    @property
    def is_series_child(self) -> bool:
        return self.parent_event_id is not None

    @property
    def is_series_parent(self) -> bool:
        return self.is_recurring and self.parent_event_id is None

    @property
    def is_standalone(self) -> bool:
        return not self.is_recurring and self.parent_event_id is None

    @property
    def is_part_of_series(self) -> bool:
        return self.is_recurring or self.parent_event_id is not None

    @property
    def weekday(self) -> Weekday:
        return Weekday.from_date(self.date)

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return DEFAULT_REHEARSAL_NAME if self.kind == EventKind.REHEARSAL else ""

    @property
    def time_range(self) -> str:
        return format_range(self.start_time, self.end_time)


class CandidateDateOption(BaseModel):
    """An additional proposed date for a poll gig."""

    id: str
    event_id: str
    date: datetime.date

    model_config = ConfigDict(frozen=True, extra="ignore")


class AvailabilityResponse(BaseModel):
    """One member's stored answer for one occurrence."""

    id: str
    event_id: str
    candidate_date_id: Optional[str] = Field(
        default=None, description="Candidate date record; None for the primary date"
    )
    member_id: str
    response: ResponseState
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def occurrence_id(self) -> str:
        return self.candidate_date_id or PRIMARY_OCCURRENCE


class ResponseSummary(BaseModel):
    """Response counts for one occurrence."""

    yes_count: int = 0
    no_count: int = 0
    not_responded_count: int = 0
    total_members: int = 0

    @property
    def is_unanimous_yes(self) -> bool:
        return self.total_members > 0 and self.yes_count == self.total_members


class EventDraft(BaseModel):
    """Desired state of an event as built by the event editor."""

    kind: EventKind
    date: datetime.date
    hour: int = Field(default=7, ge=1, le=12)
    minutes: int = Field(default=0, ge=0, le=59)
    is_pm: bool = True
    duration: EventDuration = EventDuration.HOUR_2
    location: str = ""
    notes: Optional[str] = None
    name: Optional[str] = None

    is_recurring: bool = False
    recurrence: Optional[RecurrenceRule] = None

    is_potential: bool = False
    selected_member_ids: frozenset[str] = Field(default_factory=frozenset)
    additional_dates: list[datetime.date] = Field(default_factory=list)
    existing_candidate_date_ids: Optional[dict[datetime.date, str]] = Field(
        default=None, description="date -> candidate record id, as loaded for editing"
    )

    setlist_id: Optional[str] = None
    setlist_name: Optional[str] = None
    pay_cents: Optional[int] = None

    parent_event_id: Optional[str] = None

    @property
    def start(self) -> ParsedTime:
        return ParsedTime(hour=self.hour, minutes=self.minutes, is_pm=self.is_pm)

    @property
    def end(self) -> ParsedTime:
        return ParsedTime.from_total_minutes(self.start.total_minutes + int(self.duration))

    @property
    def start_time_display(self) -> str:
        return self.start.format()

    @property
    def end_time_display(self) -> str:
        return self.end.format()

    @property
    def display_name(self) -> str:
        if self.kind == EventKind.GIG:
            return self.name or ""
        return self.name or DEFAULT_REHEARSAL_NAME

    @property
    def effective_recurrence(self) -> Optional[RecurrenceRule]:
        """The rule to expand, or None when the draft is not recurring."""
        return self.recurrence if self.is_recurring else None

    @property
    def is_multi_date(self) -> bool:
        return self.is_potential and bool(self.additional_dates)

    @property
    def all_dates(self) -> list[datetime.date]:
        return sorted({self.date, *self.additional_dates})

    def validation_errors(self) -> list[str]:
        """Return every human-readable problem with this draft (empty when valid)."""
        errors: list[str] = []

        if self.kind == EventKind.GIG and not (self.name or "").strip():
            errors.append("Gig name is required")

        if self.kind == EventKind.GIG and not self.location.strip():
            errors.append("City is required")

        if self.kind == EventKind.GIG and self.is_potential and not self.selected_member_ids:
            errors.append("Select at least one member for potential gig")

        if self.is_recurring:
            if self.recurrence is None or not self.recurrence.weekdays:
                errors.append("Select at least one day for recurring events")
            if self.recurrence is not None and self.recurrence.until is not None:
                if self.recurrence.until < self.date:
                    errors.append("End date must be after event date")

        return errors

    def to_event_fields(self) -> dict[str, Any]:
        """Record fields shared by every occurrence created from this draft."""
        is_gig = self.kind == EventKind.GIG
        return {
            "kind": self.kind.value,
            "name": self.display_name if is_gig else self.name,
            "date": self.date.isoformat(),
            "start_time": self.start_time_display,
            "end_time": self.end_time_display,
            "location": self.location,
            "notes": self.notes,
            "setlist_id": self.setlist_id,
            "setlist_name": self.setlist_name,
            "pay_cents": self.pay_cents if is_gig else None,
            "is_potential": self.is_potential if is_gig else False,
            "required_member_ids": sorted(self.selected_member_ids) if is_gig else [],
        }

    @classmethod
    def from_event(
        cls,
        event: Event,
        candidate_dates: Optional[list[CandidateDateOption]] = None,
    ) -> "EventDraft":
        """Rebuild the editor state for an existing event."""
        start = parse_time(event.start_time)
        duration = EventDuration.closest(duration_minutes(event.start_time, event.end_time))
        candidates = sorted(candidate_dates or [], key=lambda c: c.date)
        rule = event.recurrence_rule

        return cls(
            kind=event.kind,
            date=event.date,
            hour=start.hour,
            minutes=start.minutes,
            is_pm=start.is_pm,
            duration=duration,
            location=event.location,
            notes=event.notes,
            name=event.name,
            is_recurring=rule is not None,
            recurrence=rule,
            is_potential=event.is_potential,
            selected_member_ids=frozenset(event.required_member_ids),
            additional_dates=[c.date for c in candidates],
            existing_candidate_date_ids={c.date: c.id for c in candidates},
            setlist_id=event.setlist_id,
            setlist_name=event.setlist_name,
            pay_cents=event.pay_cents,
            parent_event_id=event.parent_event_id,
        )
