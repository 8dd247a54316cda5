"""
Sift - Performance Monitor
===========================
Named wall-clock timers for the ingestion and retrieval stages.

Usage:
    monitor = PerformanceMonitor()
    with monitor.measure("chunking", documents=3):
        ...
    monitor.get_metrics()["chunking"]["duration_ms"]
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

MetricEntry = dict[str, Any]


class PerformanceMonitor:
    """Thread-safe collection of named timers."""

    __slots__ = ("_entries", "_lock")

    def __init__(self) -> None:
        self._entries: dict[str, MetricEntry] = {}
        self._lock = threading.Lock()

    def start_timer(self, operation: str) -> None:
        with self._lock:
            self._entries[operation] = {"start": time.perf_counter()}

    def end_timer(self, operation: str, **metadata: Any) -> float | None:
        """Stop *operation* and return its duration in ms (``None`` if never started)."""
        with self._lock:
            entry = self._entries.get(operation)
            if entry is None:
                return None
            duration_ms = (time.perf_counter() - entry["start"]) * 1000
            entry["duration_ms"] = duration_ms
            entry["metadata"] = metadata
            return duration_ms

    @contextmanager
    def measure(self, operation: str, **metadata: Any) -> Iterator[None]:
        self.start_timer(operation)
        try:
            yield
        finally:
            self.end_timer(operation, **metadata)

    def get_metrics(self) -> dict[str, MetricEntry]:
        """Completed timers only: ``{op: {duration_ms, duration_seconds, **metadata}}``."""
        with self._lock:
            results: dict[str, MetricEntry] = {}
            for operation, entry in self._entries.items():
                if "duration_ms" not in entry:
                    continue
                results[operation] = {
                    "duration_ms": round(entry["duration_ms"], 1),
                    "duration_seconds": round(entry["duration_ms"] / 1000, 2),
                    **entry["metadata"],
                }
            return results

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()
