"""Wall-clock time string helpers.

Event times are stored as 12-hour display strings ("7:30 PM"). Parsing also
accepts 24-hour strings ("19:30") so records written by other clients load.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

_AM_PM_RE = re.compile(r"(\d{1,2}):(\d{2})\s*(AM|PM)", re.IGNORECASE)
_H24_RE = re.compile(r"(\d{1,2}):(\d{2})")

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class ParsedTime:
    """A wall-clock time split into 12-hour parts."""

    hour: int  # 1-12
    minutes: int  # 0-59
    is_pm: bool

    @property
    def hour24(self) -> int:
        if self.is_pm and self.hour != 12:
            return self.hour + 12
        if not self.is_pm and self.hour == 12:
            return 0
        return self.hour

    @property
    def total_minutes(self) -> int:
        return self.hour24 * 60 + self.minutes

    def format(self) -> str:
        return f"{self.hour}:{self.minutes:02d} {'PM' if self.is_pm else 'AM'}"

    def format24(self) -> str:
        return f"{self.hour24:02d}:{self.minutes:02d}"

    @classmethod
    def from_total_minutes(cls, total: int) -> "ParsedTime":
        """Build from minutes after midnight, wrapping past midnight."""
        total %= MINUTES_PER_DAY
        hour24, minutes = divmod(total, 60)
        hour12 = hour24 % 12 or 12
        return cls(hour=hour12, minutes=minutes, is_pm=hour24 >= 12)


DEFAULT_TIME = ParsedTime(hour=7, minutes=0, is_pm=True)


def parse_time(time_str: Optional[str]) -> ParsedTime:
    """Parse "7:30 PM" or "19:30" into a ParsedTime.

    Unparseable or empty input yields 7:00 PM, the editor's default start time.
    """
    if not time_str or not time_str.strip():
        return DEFAULT_TIME

    normalized = time_str.strip()

    match = _AM_PM_RE.search(normalized)
    if match:
        return ParsedTime(
            hour=int(match.group(1)),
            minutes=int(match.group(2)),
            is_pm=match.group(3).upper() == "PM",
        )

    match = _H24_RE.search(normalized)
    if match:
        hour24 = int(match.group(1))
        minutes = int(match.group(2))
        return ParsedTime.from_total_minutes(hour24 * 60 + minutes)

    logger.debug("Failed to parse time %r, using default %s", time_str, DEFAULT_TIME.format())
    return DEFAULT_TIME


def duration_minutes(start_time: Optional[str], end_time: Optional[str]) -> int:
    """Minutes from start to end, treating an earlier end as past midnight."""
    start = parse_time(start_time).total_minutes
    end = parse_time(end_time).total_minutes
    if end < start:
        end += MINUTES_PER_DAY
    return end - start


def format_range(start_time: Optional[str], end_time: Optional[str]) -> str:
    """Format "6:00 PM - 9:00 PM" from two stored time strings."""
    return f"{parse_time(start_time).format()} - {parse_time(end_time).format()}"
