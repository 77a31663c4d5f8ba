"""Wall-clock helpers with a test override.

All engine dates are local wall-clock dates; no timezone conversion happens here.
"""

from __future__ import annotations

import datetime
import logging
import os

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

TEST_DATE_ENV = "BANDCAL_TEST_DATE"


def today() -> datetime.date:
    """Return today's local date.

    Can be overridden for testing via the BANDCAL_TEST_DATE environment variable
    (ISO 8601 date or datetime, e.g. "2026-01-07").
    """
    test_date = os.environ.get(TEST_DATE_ENV)
    if test_date:
        try:
            return date_parser.isoparse(test_date).date()
        except ValueError as e:
            logger.warning("Failed to parse %s=%r: %s", TEST_DATE_ENV, test_date, e)

    return datetime.date.today()


def now_iso() -> str:
    """Return the current local time as an ISO 8601 string (record timestamps)."""
    return datetime.datetime.now().isoformat()


def month_bounds(month: datetime.date) -> tuple[datetime.date, datetime.date]:
    """Return the first and last day of the calendar month containing month."""
    first = month.replace(day=1)
    if first.month == 12:
        next_first = first.replace(year=first.year + 1, month=1)
    else:
        next_first = first.replace(month=first.month + 1)
    return first, next_first - datetime.timedelta(days=1)
