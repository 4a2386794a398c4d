"""
PerformanceMonitor - named timing spans for population runs.

A monitor is created once per run and passed to the orchestrator and batch
writer. Spans are keyed by name:

    monitor = PerformanceMonitor()
    monitor.start("loadUsers", "Create 5000 users")
    ...
    result = monitor.stop("loadUsers", "Create 5000 users")

    # or, always closing the span even on failure
    monitor.measure("loadUsers", "Create 5000 users", load_users, conn)

    for line in monitor.report_lines():
        print(line)

Starting a name that is already active overwrites the pending start, and a
later stop overwrites any earlier result for that name. Start/stop for
different names may come from different threads; each name has its own
lock. Concurrent start/stop on the same name is the caller's problem.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (upper bound in ms, marker) for start/stop log lines
SPEED_MARKERS = [
    (50, "fast"),
    (200, "ok"),
    (1000, "slow"),
]


@dataclass(frozen=True)
class SpanResult:
    """One completed span."""

    name: str
    duration_ms: int
    timestamp: datetime
    description: str = ""

    def __str__(self) -> str:
        return (
            f"[{self.timestamp.isoformat()}] {self.name}: "
            f"{self.duration_ms} ms - {self.description}"
        )


def speed_marker(duration_ms: int) -> str:
    for upper, marker in SPEED_MARKERS:
        if duration_ms < upper:
            return marker
    return "very slow"


def format_duration(milliseconds: int) -> str:
    """Format a duration as 'N ms', 'N.NN s' or 'N min N s'."""
    if milliseconds < 1000:
        return f"{milliseconds} ms"
    if milliseconds < 60_000:
        return f"{milliseconds / 1000:.2f} s"
    minutes = milliseconds // 60_000
    seconds = (milliseconds % 60_000) // 1000
    return f"{minutes} min {seconds} s"


class PerformanceMonitor:
    """
    Registry of named timing spans.

    Attributes:
        clock: Monotonic clock returning seconds (injectable for tests)
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter) -> None:
        self.clock = clock
        self._starts: dict[str, float] = {}
        self._results: dict[str, SpanResult] = {}
        self._name_locks: dict[str, threading.Lock] = {}
        # Guards creation of per-name locks only
        self._registry_lock = threading.Lock()

    def _lock_for(self, name: str) -> threading.Lock:
        lock = self._name_locks.get(name)
        if lock is None:
            with self._registry_lock:
                lock = self._name_locks.setdefault(name, threading.Lock())
        return lock

    def start(self, name: str, description: str = "") -> None:
        """Record the current time under `name` (last start wins)."""
        with self._lock_for(name):
            self._starts[name] = self.clock()
        logger.info("START: %s - %s", name, description)

    def stop(self, name: str, description: str = "") -> SpanResult | None:
        """
        Close the span `name` and store its result.

        Returns:
            SpanResult, or None if `name` was never started
        """
        end = self.clock()
        with self._lock_for(name):
            began = self._starts.pop(name, None)
            if began is None:
                result = None
            else:
                result = SpanResult(
                    name=name,
                    duration_ms=int(round((end - began) * 1000)),
                    timestamp=datetime.now(timezone.utc),
                    description=description,
                )
                self._results[name] = result

        if result is None:
            logger.warning("Span '%s' was stopped without being started", name)
            return None

        logger.info(
            "DONE (%s): %s - %d ms - %s",
            speed_marker(result.duration_ms),
            name,
            result.duration_ms,
            description,
        )
        return result

    def measure(
        self,
        name: str,
        description: str,
        operation: Callable[..., T],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """
        Run `operation` inside a span.

        The span is closed exactly once whether or not the operation
        raises. On failure the stop description carries the error and the
        original exception propagates unchanged.
        """
        self.start(name, description)
        try:
            value = operation(*args, **kwargs)
        except BaseException as e:
            self.stop(name, f"ERROR: {e}")
            raise
        self.stop(name, description)
        return value

    @contextmanager
    def span(self, name: str, description: str = "") -> Iterator[None]:
        """Context-manager form of measure()."""
        self.start(name, description)
        try:
            yield
        except BaseException as e:
            self.stop(name, f"ERROR: {e}")
            raise
        self.stop(name, description)

    def get(self, name: str) -> SpanResult | None:
        return self._results.get(name)

    def is_active(self, name: str) -> bool:
        return name in self._starts

    def results(self) -> dict[str, SpanResult]:
        """Return a copy of all recorded results."""
        return dict(self._results)

    def clear(self) -> None:
        """Drop all results and pending starts."""
        with self._registry_lock:
            self._results.clear()
            self._starts.clear()

    def summary(self) -> list[SpanResult]:
        """Recorded results, slowest first."""
        return sorted(self._results.values(), key=lambda r: r.duration_ms, reverse=True)

    def report_lines(self) -> list[str]:
        lines = ["=== PERFORMANCE SUMMARY ==="]
        lines.extend(
            f"  {r.name:<28} {format_duration(r.duration_ms):>12}  {r.description}"
            for r in self.summary()
        )
        lines.append("=== END OF SUMMARY ===")
        return lines
