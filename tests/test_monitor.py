"""
Tests for PerformanceMonitor spans.
"""

import logging
import threading

import pytest

from massload.monitor import PerformanceMonitor, format_duration, speed_marker


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monitor(clock):
    return PerformanceMonitor(clock=clock)


class TestStartStop:
    """Basic span lifecycle."""

    def test_duration(self, monitor, clock):
        clock.now = 1.0
        monitor.start("loadUsers", "Create users")
        clock.now = 1.25
        result = monitor.stop("loadUsers", "Create users")
        assert result.duration_ms == 250
        assert result.description == "Create users"
        assert monitor.get("loadUsers") == result
        assert not monitor.is_active("loadUsers")

    def test_stop_without_start(self, monitor, caplog):
        with caplog.at_level(logging.WARNING, logger="massload.monitor"):
            assert monitor.stop("never") is None
        assert "never" in caplog.text
        assert monitor.get("never") is None

    def test_last_start_wins(self, monitor, clock):
        monitor.start("phase")
        clock.now = 1.0
        monitor.start("phase")
        clock.now = 1.5
        assert monitor.stop("phase").duration_ms == 500

    def test_later_stop_overwrites_result(self, monitor, clock):
        monitor.start("phase")
        clock.now = 0.1
        monitor.stop("phase", "first")
        monitor.start("phase")
        clock.now = 0.4
        monitor.stop("phase", "second")
        result = monitor.get("phase")
        assert result.description == "second"
        assert result.duration_ms == 300
        assert len(monitor.results()) == 1

    def test_double_stop_keeps_first_result(self, monitor, clock):
        monitor.start("phase")
        clock.now = 0.2
        first = monitor.stop("phase")
        assert monitor.stop("phase") is None
        assert monitor.get("phase") == first

    def test_str(self, monitor, clock):
        monitor.start("q")
        clock.now = 0.012
        text = str(monitor.stop("q", "select"))
        assert "q: 12 ms - select" in text


class TestMeasure:
    """measure() and span() always close the span."""

    def test_returns_value(self, monitor, clock):
        def operation(a, b=0):
            clock.now += 0.05
            return a + b

        assert monitor.measure("add", "sum", operation, 2, b=3) == 5
        assert monitor.get("add").duration_ms == 50

    def test_error_recorded_and_reraised(self, monitor):
        def boom():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            monitor.measure("fails", "will fail", boom)
        result = monitor.get("fails")
        assert result.description == "ERROR: boom"
        assert not monitor.is_active("fails")

    def test_span_context_manager(self, monitor, clock):
        with monitor.span("block", "a block"):
            clock.now = 2.0
        assert monitor.get("block").duration_ms == 2000

    def test_span_error(self, monitor):
        with pytest.raises(KeyError):
            with monitor.span("block"):
                raise KeyError("missing")
        assert monitor.get("block").description.startswith("ERROR:")


class TestReport:
    """Summaries and formatting."""

    def test_summary_sorted_slowest_first(self, monitor, clock):
        for name, seconds in [("a", 0.1), ("b", 0.5), ("c", 0.3)]:
            clock.now = 0.0
            monitor.start(name)
            clock.now = seconds
            monitor.stop(name)
        assert [r.name for r in monitor.summary()] == ["b", "c", "a"]

    def test_report_lines(self, monitor, clock):
        monitor.start("populate.users")
        clock.now = 1.5
        monitor.stop("populate.users", "Create 5000 users")
        lines = monitor.report_lines()
        assert lines[0] == "=== PERFORMANCE SUMMARY ==="
        assert "populate.users" in lines[1]
        assert "1.50 s" in lines[1]
        assert lines[-1] == "=== END OF SUMMARY ==="

    def test_clear(self, monitor):
        monitor.start("x")
        monitor.stop("x")
        monitor.start("y")
        monitor.clear()
        assert monitor.results() == {}
        assert not monitor.is_active("y")

    @pytest.mark.parametrize(
        "ms,expected",
        [
            (0, "0 ms"),
            (999, "999 ms"),
            (1500, "1.50 s"),
            (59_999, "60.00 s"),
            (125_000, "2 min 5 s"),
        ],
    )
    def test_format_duration(self, ms, expected):
        assert format_duration(ms) == expected

    def test_speed_marker(self):
        assert speed_marker(10) == "fast"
        assert speed_marker(100) == "ok"
        assert speed_marker(500) == "slow"
        assert speed_marker(5000) == "very slow"


class TestConcurrency:
    """Different names can be timed from different threads."""

    def test_distinct_names_in_threads(self):
        monitor = PerformanceMonitor()
        barrier = threading.Barrier(8)

        def worker(n):
            barrier.wait()
            name = f"worker.{n}"
            monitor.start(name)
            monitor.stop(name, f"thread {n}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        results = monitor.results()
        assert sorted(results) == sorted(f"worker.{n}" for n in range(8))
        assert all(r.duration_ms >= 0 for r in results.values())
