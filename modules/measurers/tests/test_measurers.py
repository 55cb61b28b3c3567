"""Tests for modules/measurers/core.py — measurement strategies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from domain.benchmark import SkipScenario
from domain.errors import BenchmarkLoadError, ConfigurationError, UserCodeError
from domain.models import MeasurementType
from modules.measurers.core import (
    DebugMeasurer,
    InstancesAllocationMeasurer,
    MemoryAllocationMeasurer,
    TimeMeasurer,
    create_measurer,
)

if TYPE_CHECKING:
    from collections.abc import Callable

MS = 1_000_000


class ClockedBenchmark:
    """Each repetition of ``time_op`` moves the fake clock forward."""

    def __init__(self, clock: Any = None, nanos_per_rep: int = MS) -> None:
        self.clock = clock
        self.nanos_per_rep = nanos_per_rep
        self.events: list[str] = []
        self.reps_seen: list[int] = []

    def set_up(self) -> None:
        self.events.append("set_up")

    def tear_down(self) -> None:
        self.events.append("tear_down")

    def time_op(self, reps: int) -> None:
        self.reps_seen.append(reps)
        if self.clock is not None:
            self.clock.advance(reps * self.nanos_per_rep)


class FailingBenchmark(ClockedBenchmark):
    def time_op(self, reps: int) -> None:
        self.events.append("time_op")
        msg = "boom"
        raise ValueError(msg)


class VetoingBenchmark(ClockedBenchmark):
    def set_up(self) -> None:
        raise SkipScenario("length too large")


def _factory(instance: ClockedBenchmark) -> Callable[[], ClockedBenchmark]:
    return lambda: instance


# ---------------------------------------------------------------------------
# TimeMeasurer
# ---------------------------------------------------------------------------


def test_warmup_doubles_reps_and_discards_samples(fake_clock: Any) -> None:
    """Warmup grows reps 1, 2, 4, 8, 16; only run-window calls are recorded."""
    bench = ClockedBenchmark(fake_clock)
    measurer = TimeMeasurer(warmup_millis=50, run_millis=40, clock=fake_clock)

    result = measurer.measure(_factory(bench), "op")

    assert bench.reps_seen[:5] == [1, 2, 4, 8, 16]
    assert len(result.measurements) == 3
    assert all(m.weight == 16 for m in result.measurements)
    assert all(m.normalized == pytest.approx(MS) for m in result.measurements)
    assert {m.unit for m in result.measurements} == {"ns"}
    assert {m.description for m in result.measurements} == {"runtime"}


def test_run_window_keeps_doubling_short_calls(fake_clock: Any) -> None:
    bench = ClockedBenchmark(fake_clock)
    measurer = TimeMeasurer(warmup_millis=0, run_millis=30, clock=fake_clock)

    result = measurer.measure(_factory(bench), "op")

    assert [m.weight for m in result.measurements] == [1, 2, 4, 8, 16]
    assert all(m.normalized == pytest.approx(MS) for m in result.measurements)


def test_at_least_one_measurement(fake_clock: Any) -> None:
    bench = ClockedBenchmark(fake_clock)
    measurer = TimeMeasurer(warmup_millis=0, run_millis=0, clock=fake_clock)

    result = measurer.measure(_factory(bench), "op")

    assert len(result.measurements) == 1


def test_set_up_before_and_tear_down_after(fake_clock: Any) -> None:
    bench = ClockedBenchmark(fake_clock)
    TimeMeasurer(0, 0, clock=fake_clock).measure(_factory(bench), "op")
    assert bench.events == ["set_up", "tear_down"]


def test_phase_changes_are_logged(fake_clock: Any) -> None:
    log: list[str] = []
    bench = ClockedBenchmark(fake_clock)
    TimeMeasurer(0, 0, clock=fake_clock, log=log.append).measure(_factory(bench), "op")
    assert log[0] == "Warmup starting."
    assert log[1] == "Measurement phase starting."
    assert log[2].startswith("Measured 1 reps in")


def test_method_error_wrapped_and_torn_down(fake_clock: Any) -> None:
    bench = FailingBenchmark(fake_clock)
    with pytest.raises(UserCodeError) as excinfo:
        TimeMeasurer(0, 0, clock=fake_clock).measure(_factory(bench), "op")
    assert isinstance(excinfo.value.cause, ValueError)
    assert excinfo.value.where == "time_op"
    assert "ValueError: boom" in str(excinfo.value)
    assert bench.events == ["set_up", "time_op", "tear_down"]


def test_constructor_error_wrapped(fake_clock: Any) -> None:
    def factory() -> ClockedBenchmark:
        msg = "no such fixture"
        raise RuntimeError(msg)

    with pytest.raises(UserCodeError, match="benchmark construction"):
        TimeMeasurer(0, 0, clock=fake_clock).measure(factory, "op")


def test_skip_passes_through_unwrapped(fake_clock: Any) -> None:
    with pytest.raises(SkipScenario, match="too large"):
        TimeMeasurer(0, 0, clock=fake_clock).measure(_factory(VetoingBenchmark()), "op")


def test_missing_method_is_a_load_error(fake_clock: Any) -> None:
    with pytest.raises(BenchmarkLoadError, match="time_nope"):
        TimeMeasurer(0, 0, clock=fake_clock).measure(_factory(ClockedBenchmark()), "nope")


# ---------------------------------------------------------------------------
# Allocation measurers
# ---------------------------------------------------------------------------


def test_instances_measurer_counts_blocks(fake_tracker: Any) -> None:
    bench = ClockedBenchmark()
    result = InstancesAllocationMeasurer(fake_tracker).measure(_factory(bench), "op")

    assert [m.value for m in result.measurements] == [3.0] * 5
    assert {m.unit for m in result.measurements} == {"instances"}
    assert {m.description for m in result.measurements} == {"objects retained"}
    assert {m.weight for m in result.measurements} == {1.0}
    # One untracked warm-up call, then five tracked ones
    assert bench.reps_seen == [1] * 6
    assert fake_tracker.starts == fake_tracker.stops == 5


def test_memory_measurer_counts_bytes(fake_tracker: Any) -> None:
    result = MemoryAllocationMeasurer(fake_tracker).measure(_factory(ClockedBenchmark()), "op")
    assert [m.value for m in result.measurements] == [120.0] * 5
    assert {m.unit for m in result.measurements} == {"B"}
    assert {m.description for m in result.measurements} == {"peak bytes allocated"}


def test_tracker_stopped_when_method_raises(fake_tracker: Any) -> None:
    calls = {"n": 0}

    class SecondCallFails(ClockedBenchmark):
        def time_op(self, reps: int) -> None:
            calls["n"] += 1
            if calls["n"] == 2:
                msg = "tracked call failed"
                raise ValueError(msg)

    with pytest.raises(UserCodeError):
        MemoryAllocationMeasurer(fake_tracker).measure(_factory(SecondCallFails()), "op")
    assert fake_tracker.starts == fake_tracker.stops == 1


# ---------------------------------------------------------------------------
# DebugMeasurer
# ---------------------------------------------------------------------------


def test_debug_runs_once_and_measures_nothing() -> None:
    bench = ClockedBenchmark()
    result = DebugMeasurer(debug_reps=250).measure(_factory(bench), "op")
    assert bench.reps_seen == [250]
    assert result.measurements == ()
    assert bench.events == ["set_up", "tear_down"]


# ---------------------------------------------------------------------------
# Strategy choice
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("measurement_type", "expected"),
    [
        (MeasurementType.TIME, TimeMeasurer),
        (MeasurementType.DEBUG, DebugMeasurer),
        (MeasurementType.INSTANCE, InstancesAllocationMeasurer),
        (MeasurementType.MEMORY, MemoryAllocationMeasurer),
    ],
)
def test_create_measurer_picks_strategy(
    measurement_type: MeasurementType, expected: type, options: Any, fake_tracker: Any
) -> None:
    assert isinstance(create_measurer(measurement_type, options, fake_tracker), expected)


def test_allocation_measurer_needs_tracker(options: Any) -> None:
    with pytest.raises(ConfigurationError, match="allocation tracker"):
        create_measurer(MeasurementType.MEMORY, options)
