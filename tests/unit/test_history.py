"""Tests for the bounded health history store."""

import threading
import pytest
from datetime import datetime, timedelta, timezone

from healthwatch.core.status import HealthStatus
from healthwatch.monitoring.history import HistoryEntry, HistoryStore

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def entry(component: str = "db", minutes_ago: float = 0, status=HealthStatus.HEALTHY) -> HistoryEntry:
    return HistoryEntry(component, status, NOW - timedelta(minutes=minutes_ago))


@pytest.fixture
def store():
    return HistoryStore(clock=lambda: NOW)


class TestAppend:

    def test_append_and_len(self, store):
        store.append(entry())
        store.append(entry("cache"))
        assert len(store) == 2

    def test_none_rejected(self, store):
        with pytest.raises(ValueError):
            store.append(None)

    def test_capacity_evicts_oldest(self):
        store = HistoryStore(clock=lambda: NOW)
        for i in range(1001):
            store.append(HistoryEntry(f"c{i}", HealthStatus.HEALTHY, NOW - timedelta(seconds=1001 - i)))

        assert len(store) == 1000
        components = {e.component_name for e in store.query(timedelta(days=1))}
        assert "c0" not in components
        assert "c1000" in components

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            HistoryStore(capacity=0)

    def test_naive_timestamp_is_utc(self, store):
        naive = (NOW - timedelta(minutes=5)).replace(tzinfo=None)
        store.append(entry("aware", minutes_ago=10))
        store.append(HistoryEntry("naive", HealthStatus.UNHEALTHY, naive))

        result = store.query(timedelta(hours=1))

        assert [e.component_name for e in result] == ["naive", "aware"]
        assert result[0].timestamp == NOW - timedelta(minutes=5)
        assert store.stats().average_entry_age_minutes == pytest.approx(7.5)

    def test_concurrent_appends(self):
        store = HistoryStore(capacity=500, clock=lambda: NOW)

        def writer():
            for _ in range(200):
                store.append(entry())

        threads = [threading.Thread(target=writer) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store) == 500


class TestQuery:

    def test_window_and_order(self, store):
        store.append(entry("a", minutes_ago=30))
        store.append(entry("b", minutes_ago=5))
        store.append(entry("c", minutes_ago=120))

        result = store.query(timedelta(hours=1))

        assert [e.component_name for e in result] == ["b", "a"]

    def test_boundary_is_inclusive(self, store):
        store.append(entry("a", minutes_ago=60))
        assert len(store.query(timedelta(hours=1))) == 1

    def test_empty(self, store):
        assert store.query(timedelta(hours=24)) == []


class TestCleanup:

    def test_removes_old_entries(self, store):
        store.append(entry("old", minutes_ago=60 * 24 * 8))
        store.append(entry("new", minutes_ago=10))

        removed = store.cleanup(timedelta(days=7))

        assert removed == 1
        assert [e.component_name for e in store.query(timedelta(days=30))] == ["new"]

    def test_entry_exactly_max_age_is_kept(self, store):
        store.append(entry("edge", minutes_ago=60 * 24 * 7))

        assert store.cleanup(timedelta(days=7)) == 0
        assert len(store) == 1

    def test_survivors_keep_insertion_order(self, store):
        store.append(entry("a", minutes_ago=10))
        store.append(entry("old", minutes_ago=60 * 24 * 8))
        store.append(entry("b", minutes_ago=30))
        store.append(entry("c", minutes_ago=20))

        store.cleanup(timedelta(days=7))

        assert [e.component_name for e in store._entries] == ["a", "b", "c"]

    def test_nothing_to_remove(self, store):
        store.append(entry())
        assert store.cleanup(timedelta(days=7)) == 0
        assert len(store) == 1


class TestStats:

    def test_empty_stats(self, store):
        stats = store.stats()
        assert stats.total_entries == 0
        assert stats.oldest_entry is None
        assert stats.newest_entry is None
        assert stats.components_count == 0
        assert stats.average_entry_age_minutes == 0.0

    def test_stats(self, store):
        store.append(entry("db", minutes_ago=10))
        store.append(entry("db", minutes_ago=20))
        store.append(entry("cache", minutes_ago=30))

        stats = store.stats()

        assert stats.total_entries == 3
        assert stats.oldest_entry == NOW - timedelta(minutes=30)
        assert stats.newest_entry == NOW - timedelta(minutes=10)
        assert stats.components_count == 2
        assert stats.average_entry_age_minutes == pytest.approx(20.0)
        assert stats.to_dict()["average_entry_age_minutes"] == 20.0
