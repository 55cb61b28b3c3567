"""Measurer strategies — turn benchmark method calls into measurements.

Every strategy runs inside the worker process and exposes a single
``measure(benchmark_factory, method_name)`` capability. Which strategy runs is
decided once, at configuration time, by ``create_measurer``.

Errors raised by the benchmark's constructor, ``set_up``, timed method or
``tear_down`` are wrapped in ``UserCodeError``. ``SkipScenario`` passes
through unchanged so the worker can report the scenario as skipped.

This module depends only on domain/ types and has zero external imports beyond stdlib.
"""

from __future__ import annotations

import contextlib
import logging
import time
from typing import TYPE_CHECKING, Any, ClassVar

from domain.benchmark import SkipScenario
from domain.errors import BenchmarkLoadError, ConfigurationError, UserCodeError
from domain.models import Measurement, MeasurementSet, MeasurementType

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from domain.models import RunOptions
    from domain.ports import AllocationTrackerPort, BenchmarkPort, MeasurerPort

logger = logging.getLogger("microbench.measurers")

TIMED_METHOD_PREFIX = "time_"

# A single timed call must last at least this long for clock resolution
# to be negligible.
MIN_TIMING_NANOS = 10_000_000

DEFAULT_ALLOCATION_INVOCATIONS = 5


def _no_log(message: str) -> None:
    """Default event log: discard."""


# ---------------------------------------------------------------------------
# Benchmark invocation helpers
# ---------------------------------------------------------------------------


def _call(where: str, fn: Callable[..., Any], *args: Any) -> Any:
    """Call user code, wrapping anything it raises except a skip request."""
    try:
        return fn(*args)
    except (SkipScenario, UserCodeError, ConfigurationError):
        raise
    except Exception as exc:
        raise UserCodeError(where, exc) from exc


@contextlib.contextmanager
def _configured(benchmark_factory: Callable[[], BenchmarkPort]) -> Iterator[BenchmarkPort]:
    """Build and set up a benchmark, tearing it down however the block exits."""
    benchmark: BenchmarkPort = _call("benchmark construction", benchmark_factory)
    _call("set_up", benchmark.set_up)
    try:
        yield benchmark
    finally:
        _call("tear_down", benchmark.tear_down)


def timed_method(benchmark: BenchmarkPort, method_name: str) -> Callable[[int], Any]:
    """Look up ``time_<method_name>`` on a benchmark instance."""
    method = getattr(benchmark, TIMED_METHOD_PREFIX + method_name, None)
    if not callable(method):
        msg = f"{type(benchmark).__name__} has no method {TIMED_METHOD_PREFIX}{method_name}"
        raise BenchmarkLoadError(msg)
    return method


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class TimeMeasurer:
    """Measures wall-clock time per repetition within fixed time windows.

    During the warmup window the repetition count doubles until one call
    lasts at least ``MIN_TIMING_NANOS``; warmup timings are discarded. The
    run window then records every timed call as one measurement weighted
    by its repetition count, still doubling while calls are too short.
    The number of measurements depends on how many calls fit in the window.
    """

    def __init__(
        self,
        warmup_millis: int,
        run_millis: int,
        clock: Callable[[], int] = time.perf_counter_ns,
        log: Callable[[str], None] = _no_log,
    ) -> None:
        self._warmup_nanos = warmup_millis * 1_000_000
        self._run_nanos = run_millis * 1_000_000
        self._clock = clock
        self._log = log

    def measure(
        self,
        benchmark_factory: Callable[[], BenchmarkPort],
        method_name: str,
    ) -> MeasurementSet:
        with _configured(benchmark_factory) as benchmark:
            method = timed_method(benchmark, method_name)
            where = TIMED_METHOD_PREFIX + method_name

            self._log("Warmup starting.")
            reps = self._warm_up(method, where)
            self._log("Measurement phase starting.")
            measurements = self._run(method, where, reps)
        return MeasurementSet(measurements=tuple(measurements))

    def _time(self, method: Callable[[int], Any], where: str, reps: int) -> int:
        start = self._clock()
        _call(where, method, reps)
        return self._clock() - start

    def _warm_up(self, method: Callable[[int], Any], where: str) -> int:
        reps = 1
        deadline = self._clock() + self._warmup_nanos
        while self._clock() < deadline:
            if self._time(method, where, reps) < MIN_TIMING_NANOS:
                reps *= 2
        return reps

    def _run(self, method: Callable[[int], Any], where: str, reps: int) -> list[Measurement]:
        measurements: list[Measurement] = []
        deadline = self._clock() + self._run_nanos
        while not measurements or self._clock() < deadline:
            elapsed = self._time(method, where, reps)
            measurements.append(
                Measurement(value=float(elapsed), weight=float(reps), unit="ns", description="runtime")
            )
            self._log(f"Measured {reps} reps in {elapsed} ns.")
            if elapsed < MIN_TIMING_NANOS:
                reps *= 2
        return measurements


class _AllocationMeasurer:
    """Shared loop for the allocation count and allocation size measurers."""

    unit: ClassVar[str] = ""
    description: ClassVar[str] = ""

    def __init__(
        self,
        tracker: AllocationTrackerPort,
        invocations: int = DEFAULT_ALLOCATION_INVOCATIONS,
        log: Callable[[str], None] = _no_log,
    ) -> None:
        self._tracker = tracker
        self._invocations = invocations
        self._log = log

    def _pick(self, allocations: tuple[int, int]) -> int:
        raise NotImplementedError

    def measure(
        self,
        benchmark_factory: Callable[[], BenchmarkPort],
        method_name: str,
    ) -> MeasurementSet:
        measurements: list[Measurement] = []
        with _configured(benchmark_factory) as benchmark:
            method = timed_method(benchmark, method_name)
            where = TIMED_METHOD_PREFIX + method_name

            # First call fills caches and interns constants; not representative.
            _call(where, method, 1)
            self._log("Measurement phase starting.")
            for _ in range(self._invocations):
                self._tracker.start()
                try:
                    _call(where, method, 1)
                finally:
                    allocations = self._tracker.stop()
                value = self._pick(allocations)
                measurements.append(
                    Measurement(
                        value=float(value),
                        weight=1.0,
                        unit=self.unit,
                        description=self.description,
                    )
                )
                self._log(f"Measured {value} {self.unit}.")
        return MeasurementSet(measurements=tuple(measurements))


class InstancesAllocationMeasurer(_AllocationMeasurer):
    """Counts objects still alive after each invocation."""

    unit = "instances"
    description = "objects retained"

    def _pick(self, allocations: tuple[int, int]) -> int:
        return allocations[0]


class MemoryAllocationMeasurer(_AllocationMeasurer):
    """Peak bytes allocated during each invocation."""

    unit = "B"
    description = "peak bytes allocated"

    def _pick(self, allocations: tuple[int, int]) -> int:
        return allocations[1]


class DebugMeasurer:
    """Runs the method once with a fixed repetition count and measures nothing.

    Meant for attaching a debugger or profiler to the worker.
    """

    def __init__(self, debug_reps: int, log: Callable[[str], None] = _no_log) -> None:
        self._debug_reps = debug_reps
        self._log = log

    def measure(
        self,
        benchmark_factory: Callable[[], BenchmarkPort],
        method_name: str,
    ) -> MeasurementSet:
        with _configured(benchmark_factory) as benchmark:
            method = timed_method(benchmark, method_name)
            self._log(f"Running {self._debug_reps} reps without measurement.")
            _call(TIMED_METHOD_PREFIX + method_name, method, self._debug_reps)
        return MeasurementSet()


def create_measurer(
    measurement_type: MeasurementType,
    options: RunOptions,
    tracker: AllocationTrackerPort | None = None,
    log: Callable[[str], None] = _no_log,
) -> MeasurerPort:
    """Choose the measurement strategy for an instrument.

    Raises:
        ConfigurationError: for an allocation instrument without a tracker,
            or an unrecognised measurement type.
    """
    logger.debug("Creating measurer for %s", measurement_type.value)
    if measurement_type is MeasurementType.TIME:
        return TimeMeasurer(options.warmup_millis, options.run_millis, log=log)
    if measurement_type is MeasurementType.DEBUG:
        return DebugMeasurer(options.debug_reps, log=log)
    if measurement_type in (MeasurementType.INSTANCE, MeasurementType.MEMORY):
        if tracker is None:
            msg = f"Measurement type '{measurement_type.value}' needs an allocation tracker"
            raise ConfigurationError(msg)
        if measurement_type is MeasurementType.INSTANCE:
            return InstancesAllocationMeasurer(tracker, log=log)
        return MemoryAllocationMeasurer(tracker, log=log)
    msg = f"Unrecognized measurement type: {measurement_type!r}"
    raise ConfigurationError(msg)
