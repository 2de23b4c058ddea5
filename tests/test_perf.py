"""
Workshop - Performance Collector Tests
"""

from datetime import datetime, timedelta, timezone

import pytest

from workshop.core.perf import Collector, EntryKind, TimingEntry, percentile

T0 = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


def entry(path, ms, at=T0, kind=EntryKind.REQUEST, status_code=200):
    return TimingEntry(path=path, status_code=status_code, duration_ms=ms, timestamp=at, kind=kind)


def test_percentile_interpolates():
    values = [10.0, 20.0, 30.0, 40.0, 50.0]
    assert percentile(values, 50) == 30.0
    assert percentile(values, 0) == 10.0
    assert percentile(values, 100) == 50.0
    assert percentile(values, 95) == pytest.approx(48.0)
    assert percentile([], 50) == 0.0


def test_ring_overwrites_oldest():
    collector = Collector(size=3)
    for i in range(5):
        collector.record(entry(f"GET /p{i}", float(i)))

    snap = collector.snapshot(T0 - timedelta(minutes=1))
    assert collector.total_recorded == 5
    assert snap.total_requests == 5
    assert sorted(s.path for s in snap.slowest_paths) == ["GET /p2", "GET /p3", "GET /p4"]


def test_non_positive_size_uses_default():
    assert Collector(size=0).size == 10000


def test_snapshot_aggregates_paths_and_queries():
    collector = Collector(size=100)
    for ms in (10.0, 30.0):
        collector.record(entry("GET /members", ms))
    collector.record(entry("GET /schedule", 5.0))
    collector.record(entry("store.ListMembers", 12.0, kind=EntryKind.QUERY, status_code=0))

    snap = collector.snapshot(T0, top_n=10)

    assert [s.path for s in snap.slowest_paths] == ["GET /members", "GET /schedule"]
    members = snap.slowest_paths[0]
    assert members.count == 2
    assert members.avg_ms == 20.0
    assert members.max_ms == 30.0
    assert [q.path for q in snap.slowest_queries] == ["store.ListMembers"]
    # percentiles cover requests only
    assert snap.request_p50_ms == 10.0


def test_snapshot_filters_by_since():
    collector = Collector(size=100)
    collector.record(entry("GET /old", 900.0, at=T0 - timedelta(hours=2)))
    collector.record(entry("GET /new", 15.0, at=T0))

    snap = collector.snapshot(T0 - timedelta(hours=1))

    assert [s.path for s in snap.slowest_paths] == ["GET /new"]
    assert snap.request_p99_ms == 15.0


def test_snapshot_top_n():
    collector = Collector(size=100)
    for i in range(20):
        collector.record(entry(f"GET /p{i}", float(i)))

    snap = collector.snapshot(T0, top_n=3)
    assert [s.path for s in snap.slowest_paths] == ["GET /p19", "GET /p18", "GET /p17"]


def test_empty_snapshot():
    snap = Collector(size=10).snapshot(T0)
    assert snap.total_requests == 0
    assert snap.request_p50_ms == 0.0
    assert snap.slowest_paths == []
