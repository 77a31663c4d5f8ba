"""Month-keyed event cache with a fixed time-to-live.

Entries are keyed by (organization id, "YYYY-MM"). Any mutation for an
organization must call invalidate() so the next read re-fetches from the store.
"""

from __future__ import annotations

import datetime
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .models import Event

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0

MonthKey = Union[datetime.date, str]


def month_key(month: MonthKey) -> str:
    """Normalize a date/datetime or "YYYY-MM" string to "YYYY-MM"."""
    if isinstance(month, datetime.date):
        return f"{month.year:04d}-{month.month:02d}"
    text = str(month).strip()
    parsed = datetime.datetime.strptime(text[:7], "%Y-%m")
    return f"{parsed.year:04d}-{parsed.month:02d}"


@dataclass
class CacheEntry:
    """Cached events for one organization and month."""

    events: list[Event]
    stored_at: float = field(default_factory=time.monotonic)


class EventCache:
    """Read-through cache of fetched events.

    Example:
        cache = EventCache(ttl_seconds=300)

        events = cache.get("band-1", date(2026, 1, 1))
        if events is None:
            events = await fetch()
            cache.put("band-1", date(2026, 1, 1), events)

        # After any create/update/delete for band-1
        cache.invalidate("band-1")
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize event cache.

        Args:
            ttl_seconds: Age after which an entry is treated as a miss
            clock: Monotonic time source (seconds)
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[str, str], CacheEntry] = {}
        self.stats = {
            "hits": 0,
            "misses": 0,
            "expirations": 0,
            "invalidations": 0,
        }

    @classmethod
    def from_settings(cls, settings: Any) -> "EventCache":
        return cls(ttl_seconds=getattr(settings, "cache_ttl_seconds", DEFAULT_TTL_SECONDS))

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.stored_at >= self.ttl_seconds

    def get(self, organization_id: str, month: MonthKey) -> Optional[list[Event]]:
        """Return cached events, or None on a miss or an expired entry."""
        key = (organization_id, month_key(month))
        entry = self._entries.get(key)

        if entry is not None and not self._is_expired(entry):
            self.stats["hits"] += 1
            logger.debug("Cache hit for events: %s:%s", *key)
            return list(entry.events)

        if entry is not None:
            del self._entries[key]
            self.stats["expirations"] += 1
            logger.debug("Cache entry expired: %s:%s", *key)

        self.stats["misses"] += 1
        return None

    def put(self, organization_id: str, month: MonthKey, events: list[Event]) -> None:
        """Store events for organization and month, replacing any previous entry."""
        key = (organization_id, month_key(month))
        self._entries[key] = CacheEntry(events=list(events), stored_at=self._clock())
        logger.debug("Cached %d events for %s:%s", len(events), *key)

    def invalidate(self, organization_id: str) -> int:
        """Remove every entry belonging to organization_id, whatever the month.

        Returns:
            Number of entries removed
        """
        keys = [key for key in self._entries if key[0] == organization_id]
        for key in keys:
            del self._entries[key]
        self.stats["invalidations"] += 1
        logger.debug("Invalidated %d cache entries for organization %s", len(keys), organization_id)
        return len(keys)

    def clear(self) -> None:
        """Remove every entry (e.g. on logout)."""
        self._entries.clear()
        logger.debug("Cleared event cache")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        organization_id, month = key
        return (organization_id, month_key(month)) in self._entries

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        total_requests = self.stats["hits"] + self.stats["misses"]
        hit_rate = (self.stats["hits"] / total_requests * 100) if total_requests > 0 else 0.0

        return {
            **self.stats,
            "hit_rate": round(hit_rate, 2),
            "current_size": len(self._entries),
            "ttl_seconds": self.ttl_seconds,
        }
