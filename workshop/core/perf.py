"""
Performance Collector for Workshop.

Fixed-size ring buffer of timing entries. Writes are O(1) under a short
lock; when full, the oldest entry is overwritten. Aggregation (percentiles,
slowest paths) happens only when a snapshot is read.
"""

import math
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

DEFAULT_RING_SIZE = 10000


class EntryKind(str, Enum):
    """QUERY entries come from the embedding app's storage layer; requests from TimingMiddleware."""
    REQUEST = "request"
    QUERY = "query"


@dataclass
class TimingEntry:
    """One completed request (or store query)."""
    path: str                   # "GET /members" or "store.Method"
    status_code: int            # 0 for queries
    duration_ms: float
    timestamp: datetime         # request start
    kind: EntryKind = EntryKind.REQUEST


@dataclass
class PathStat:
    path: str
    avg_ms: float = 0.0
    max_ms: float = 0.0
    count: int = 0
    total_ms: float = 0.0


@dataclass
class Snapshot:
    total_requests: int = 0
    request_p50_ms: float = 0.0
    request_p95_ms: float = 0.0
    request_p99_ms: float = 0.0
    slowest_paths: list[PathStat] = field(default_factory=list)
    slowest_queries: list[PathStat] = field(default_factory=list)


class Collector:
    """Ring buffer of TimingEntry records."""

    def __init__(self, size: int = DEFAULT_RING_SIZE):
        if size <= 0:
            size = DEFAULT_RING_SIZE
        self.size = size
        self._entries: list[Optional[TimingEntry]] = [None] * size
        self._pos = 0
        self._count = 0
        self._lock = threading.Lock()

    def record(self, entry: TimingEntry) -> None:
        with self._lock:
            self._entries[self._pos] = entry
            self._pos = (self._pos + 1) % self.size
            self._count += 1

    @property
    def total_recorded(self) -> int:
        """Entries ever recorded, including overwritten ones."""
        with self._lock:
            return self._count

    def snapshot(self, since: datetime, top_n: int = 10) -> Snapshot:
        """Aggregate entries with timestamp >= since. Sorts, so keep it off hot paths."""
        with self._lock:
            buf = list(self._entries)
            total = self._count

        request_durations: list[float] = []
        request_stats: dict[str, PathStat] = {}
        query_stats: dict[str, PathStat] = {}

        for entry in buf:
            if entry is None or entry.timestamp < since:
                continue
            if entry.kind == EntryKind.REQUEST:
                request_durations.append(entry.duration_ms)
                stats = request_stats
            else:
                stats = query_stats
            stat = stats.get(entry.path)
            if stat is None:
                stat = stats[entry.path] = PathStat(path=entry.path)
            stat.count += 1
            stat.total_ms += entry.duration_ms
            stat.max_ms = max(stat.max_ms, entry.duration_ms)

        for stat in (*request_stats.values(), *query_stats.values()):
            stat.avg_ms = stat.total_ms / stat.count

        snap = Snapshot(
            total_requests=total,
            slowest_paths=_top_by_avg(request_stats, top_n),
            slowest_queries=_top_by_avg(query_stats, top_n),
        )
        if request_durations:
            request_durations.sort()
            snap.request_p50_ms = percentile(request_durations, 50)
            snap.request_p95_ms = percentile(request_durations, 95)
            snap.request_p99_ms = percentile(request_durations, 99)
        return snap


def percentile(sorted_values: list[float], p: float) -> float:
    """p-th percentile of an ascending list, linearly interpolated."""
    if not sorted_values:
        return 0.0
    idx = (p / 100) * (len(sorted_values) - 1)
    lower = math.floor(idx)
    upper = math.ceil(idx)
    if lower == upper:
        return sorted_values[lower]
    frac = idx - lower
    return sorted_values[lower] * (1 - frac) + sorted_values[upper] * frac


def _top_by_avg(stats: dict[str, PathStat], n: int) -> list[PathStat]:
    ranked = sorted(stats.values(), key=lambda s: s.avg_ms, reverse=True)
    return ranked[:n]
