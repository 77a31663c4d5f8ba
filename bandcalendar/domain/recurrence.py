"""Recurrence expansion for recurring rehearsals and gigs.

A rule names weekdays and a week interval. Expansion walks Sunday-started weeks
from the week containing the anchor date, keeping requested weekdays that fall
between the anchor and the rule's until date. The walk is bounded by a hard cap
of week intervals, and an empty result falls back to the anchor date alone so
an event always has at least one occurrence.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Any, Optional

from dateutil.rrule import FR, MO, SA, SU, TH, TU, WE, WEEKLY, rrule

from .models import RecurrenceRule, Weekday

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 365
MAX_WEEK_ITERATIONS = 52

_DATEUTIL_WEEKDAYS = {
    Weekday.SUNDAY: SU,
    Weekday.MONDAY: MO,
    Weekday.TUESDAY: TU,
    Weekday.WEDNESDAY: WE,
    Weekday.THURSDAY: TH,
    Weekday.FRIDAY: FR,
    Weekday.SATURDAY: SA,
}


@dataclass
class RecurrenceExpanderConfig:
    """Configuration for recurrence expansion with explicit defaults."""

    default_horizon_days: int = DEFAULT_HORIZON_DAYS
    max_week_iterations: int = MAX_WEEK_ITERATIONS

    @classmethod
    def from_settings(cls, settings: Any) -> "RecurrenceExpanderConfig":
        """Extract expansion configuration from a settings object.

        Args:
            settings: Configuration object (e.g. EngineSettings) or None

        Returns:
            RecurrenceExpanderConfig with values from settings or defaults
        """
        return cls(
            default_horizon_days=getattr(settings, "default_horizon_days", DEFAULT_HORIZON_DAYS),
            max_week_iterations=getattr(settings, "max_week_iterations", MAX_WEEK_ITERATIONS),
        )


def start_of_week(value: datetime.date) -> datetime.date:
    """Return the Sunday starting the week that contains value."""
    return value - datetime.timedelta(days=int(Weekday.from_date(value)))


def resolve_until(
    anchor: datetime.date,
    rule: RecurrenceRule,
    default_horizon_days: int = DEFAULT_HORIZON_DAYS,
) -> datetime.date:
    """Return the rule's until date, or anchor + default_horizon_days when it has none."""
    if rule.until is not None:
        return rule.until
    return anchor + datetime.timedelta(days=default_horizon_days)


def expand(
    anchor: datetime.date,
    rule: Optional[RecurrenceRule],
    default_horizon_days: int = DEFAULT_HORIZON_DAYS,
    max_week_iterations: int = MAX_WEEK_ITERATIONS,
) -> list[datetime.date]:
    """Expand a recurrence rule into sorted, distinct occurrence dates.

    Args:
        anchor: The event's own date; no occurrence precedes it
        rule: Recurrence rule, or None for a single occurrence
        default_horizon_days: Horizon used when the rule has no until date
        max_week_iterations: Maximum number of week intervals walked

    Returns:
        Ascending list of dates, never empty ([anchor] when nothing matches)
    """
    if rule is None or not rule.weekdays:
        return [anchor]

    until = resolve_until(anchor, rule, default_horizon_days)
    if until < anchor:
        logger.debug("Recurrence until %s precedes anchor %s; using anchor only", until, anchor)
        return [anchor]

    interval = rule.frequency.week_interval
    week_start = start_of_week(anchor)

    # Last day of the final week the walk is allowed to visit
    cap_end = week_start + datetime.timedelta(days=7 * interval * (max_week_iterations - 1) + 6)
    window_end = min(until, cap_end)

    occurrences = rrule(
        WEEKLY,
        dtstart=datetime.datetime.combine(week_start, datetime.time()),
        interval=interval,
        wkst=SU,
        byweekday=[_DATEUTIL_WEEKDAYS[day] for day in rule.sorted_weekdays],
        until=datetime.datetime.combine(window_end, datetime.time()),
    )

    dates = sorted({occurrence.date() for occurrence in occurrences if occurrence.date() >= anchor})

    if not dates:
        logger.debug("Recurrence %r produced no dates from %s; using anchor only", rule.summary, anchor)
        return [anchor]

    if window_end < until:
        logger.debug(
            "Recurrence expansion capped at %d week intervals (stopped at %s, until %s)",
            max_week_iterations,
            window_end,
            until,
        )

    logger.debug("Expanded %r from %s into %d dates", rule.summary, anchor, len(dates))
    return dates


class RecurrenceExpander:
    """Expands recurrence rules using configured horizon and iteration cap."""

    def __init__(self, settings: Any = None):
        """Initialize expander.

        Args:
            settings: Optional settings object with expansion fields
        """
        self.config = RecurrenceExpanderConfig.from_settings(settings)

    def expand(
        self,
        anchor: datetime.date,
        rule: Optional[RecurrenceRule],
        horizon_days: Optional[int] = None,
    ) -> list[datetime.date]:
        """Expand rule from anchor.

        Args:
            anchor: The event's own date
            rule: Recurrence rule or None
            horizon_days: Shorter horizon for bounded contexts (defaults to config)
        """
        return expand(
            anchor,
            rule,
            default_horizon_days=horizon_days or self.config.default_horizon_days,
            max_week_iterations=self.config.max_week_iterations,
        )
