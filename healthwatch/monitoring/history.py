"""
Health History Store for healthwatch.

Bounded, thread-safe record of past probe outcomes:
- FIFO ring of at most 1000 entries (oldest evicted first)
- Time-window queries, most recent first
- Age-based cleanup
- Summary statistics

Usage:
    store = HistoryStore()
    store.append(HistoryEntry("postgres", HealthStatus.HEALTHY, utcnow()))
    recent = store.query(timedelta(hours=24))
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Any, Callable, Deque, Dict, List, Optional

from healthwatch.core.status import HealthStatus, utcnow
from healthwatch.infrastructure.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CAPACITY = 1000


@dataclass(eq=False)
class HistoryEntry:
    """One recorded outcome of one component."""
    component_name: str
    status: HealthStatus
    timestamp: datetime = field(default_factory=utcnow)
    duration_ms: float = 0.0
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Naive timestamps are taken as UTC so window comparisons never mix kinds
        if self.timestamp.tzinfo is None:
            self.timestamp = self.timestamp.replace(tzinfo=timezone.utc)


@dataclass
class HistoryStats:
    """Statistics over the stored history."""
    total_entries: int
    oldest_entry: Optional[datetime]
    newest_entry: Optional[datetime]
    components_count: int
    average_entry_age_minutes: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_entries": self.total_entries,
            "oldest_entry": self.oldest_entry.isoformat() if self.oldest_entry else None,
            "newest_entry": self.newest_entry.isoformat() if self.newest_entry else None,
            "components_count": self.components_count,
            "average_entry_age_minutes": round(self.average_entry_age_minutes, 2),
        }


class HistoryStore:
    """
    In-memory health history.

    Every read and write holds one lock, so the monitor loop (writer) and
    analysis/API calls (readers) never see a partial update.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], datetime] = utcnow,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._clock = clock
        self._entries: Deque[HistoryEntry] = deque()
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def append(self, entry: HistoryEntry) -> None:
        """Add an entry, evicting the oldest once capacity is exceeded."""
        if entry is None:
            raise ValueError("entry is required")

        evicted = 0
        with self._lock:
            self._entries.append(entry)
            while len(self._entries) > self.capacity:
                self._entries.popleft()
                evicted += 1

        if evicted:
            logger.debug("History entries evicted", count=evicted)

    def query(self, period: timedelta) -> List[HistoryEntry]:
        """Entries with timestamp >= now - period, most recent first."""
        cutoff = self._clock() - period
        with self._lock:
            result = [e for e in self._entries if e.timestamp >= cutoff]

        result.sort(key=lambda e: e.timestamp, reverse=True)
        return result

    def cleanup(self, max_age: timedelta) -> int:
        """Remove entries older than max_age. Returns the number removed."""
        cutoff = self._clock() - max_age
        with self._lock:
            kept = [e for e in self._entries if e.timestamp >= cutoff]
            removed = len(self._entries) - len(kept)
            if removed:
                self._entries = deque(kept)

        if removed:
            logger.info(
                "Old history entries removed",
                count=removed,
                max_age_hours=max_age.total_seconds() / 3600,
            )
        return removed

    def stats(self) -> HistoryStats:
        now = self._clock()
        with self._lock:
            if not self._entries:
                return HistoryStats(0, None, None, 0, 0.0)

            timestamps = [e.timestamp for e in self._entries]
            ages = [(now - ts).total_seconds() / 60 for ts in timestamps]
            return HistoryStats(
                total_entries=len(self._entries),
                oldest_entry=min(timestamps),
                newest_entry=max(timestamps),
                components_count=len({e.component_name for e in self._entries}),
                average_entry_age_minutes=sum(ages) / len(ages),
            )
