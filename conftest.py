"""Shared pytest fixtures and test factories for microbench.

Provides:
- Fake port implementations (launcher, worker process, allocation tracker,
  benchmark loader, clock, file system)
- Factory functions for the domain models with sensible defaults
- Pytest fixtures wrapping the most commonly used fakes
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from domain.errors import WorkerLaunchError
from domain.models import (
    Instrument,
    Measurement,
    MeasurementSet,
    MeasurementType,
    Result,
    RunOptions,
    Scenario,
    Vm,
)
from modules.protocol.core import FAILURE_MARKER, format_marker_line

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence


# ── Fake Port Implementations ─────────────────────────────────────────────


class FakeWorkerProcess:
    """WorkerProcessPort that replays canned output and an exit code.

    ``lines_read`` counts how many lines the caller actually consumed.
    """

    def __init__(self, lines: Sequence[str], exit_code: int = 0) -> None:
        self._lines = list(lines)
        self._exit_code = exit_code
        self.lines_read = 0
        self.waited = False

    def lines(self) -> Iterator[str]:
        for line in self._lines:
            self.lines_read += 1
            yield line

    def wait(self) -> int:
        self.waited = True
        return self._exit_code


class FakeLauncher:
    """WorkerLauncherPort whose workers are produced by a callback.

    The callback receives ``(scenario, instrument, marker, call_number)`` and
    returns a FakeWorkerProcess, or raises WorkerLaunchError. Every launch is
    recorded in ``launches``.
    """

    def __init__(
        self,
        respond: Callable[[Scenario, Instrument, str, int], FakeWorkerProcess] | None = None,
    ) -> None:
        self._respond = respond or (
            lambda scenario, instrument, marker, n: _make_worker_success(marker)
        )
        self.launches: list[tuple[Scenario, Instrument, str]] = []
        self.processes: list[FakeWorkerProcess] = []

    def launch(
        self,
        scenario: Scenario,
        instrument: Instrument,
        options: RunOptions,
        marker: str,
    ) -> FakeWorkerProcess:
        self.launches.append((scenario, instrument, marker))
        process = self._respond(scenario, instrument, marker, len(self.launches))
        self.processes.append(process)
        return process


class FailingLauncher:
    """WorkerLauncherPort that can never start a worker."""

    def launch(
        self,
        scenario: Scenario,
        instrument: Instrument,
        options: RunOptions,
        marker: str,
    ) -> FakeWorkerProcess:
        msg = "Cannot start worker with /no/such/python: not found"
        raise WorkerLaunchError(msg)


class FakeTracker:
    """AllocationTrackerPort returning a fixed (retained, peak bytes) per tracked call."""

    def __init__(self, count: int = 3, size: int = 120) -> None:
        self._count = count
        self._size = size
        self.starts = 0
        self.stops = 0

    def start(self) -> None:
        self.starts += 1

    def stop(self) -> tuple[int, int]:
        self.stops += 1
        return self._count, self._size


class FakeClock:
    """Nanosecond clock that advances by *step* on every read.

    ``advance`` lets fake benchmark methods simulate elapsed time.
    """

    def __init__(self, step: int = 0) -> None:
        self.now = 0
        self._step = step

    def __call__(self) -> int:
        self.now += self._step
        return self.now

    def advance(self, nanos: int) -> None:
        self.now += nanos


class FakeLoader:
    """BenchmarkLoaderPort over an in-memory registry of classes.

    Parameter values are set on instances unconverted.
    """

    def __init__(self, classes: dict[str, type] | None = None) -> None:
        self._classes = dict(classes or {})
        self.created: list[object] = []

    def load(self, class_name: str) -> type:
        from domain.errors import BenchmarkLoadError

        if class_name not in self._classes:
            msg = f"Cannot import benchmark '{class_name}'"
            raise BenchmarkLoadError(msg)
        return self._classes[class_name]

    def method_names(self, benchmark_class: type) -> list[str]:
        return [name[len("time_") :] for name in vars(benchmark_class) if name.startswith("time_")]

    def declared_parameters(self, benchmark_class: type) -> dict[str, tuple[str, ...]]:
        return {k: tuple(v) for k, v in getattr(benchmark_class, "params", {}).items()}

    def create(self, benchmark_class: type, user_parameters: dict[str, str]) -> object:
        instance = benchmark_class()
        for name, value in user_parameters.items():
            setattr(instance, name, value)
        self.created.append(instance)
        return instance


class InMemoryFileSystem:
    """Stateful in-memory FileSystemPort."""

    def __init__(self) -> None:
        self._files: dict[str, str] = {}

    def read_file(self, path: str) -> str:
        if path not in self._files:
            msg = f"File not found: {path}"
            raise FileNotFoundError(msg)
        return self._files[path]

    def write_file(self, path: str, content: str) -> None:
        self._files[path] = content

    def file_exists(self, path: str) -> bool:
        return path in self._files


# ── Worker Output Factories ───────────────────────────────────────────────


def _make_measurement_set(
    values: Sequence[float] = (100.0, 200.0, 300.0),
    weight: float = 1.0,
    unit: str = "ns",
    description: str = "runtime",
    out_chars: int = 0,
    err_chars: int = 0,
) -> MeasurementSet:
    return MeasurementSet(
        measurements=tuple(
            Measurement(value=v, weight=weight, unit=unit, description=description)
            for v in values
        ),
        out_char_count=out_chars,
        err_char_count=err_chars,
    )


def _make_worker_success(
    marker: str,
    measurement_set: MeasurementSet | None = None,
    before: Sequence[str] = ("starting scenario",),
    after: Sequence[str] = (),
) -> FakeWorkerProcess:
    """A worker that prints some text, one marker line, and exits 0."""
    line = format_marker_line(marker, measurement_set or _make_measurement_set())
    return FakeWorkerProcess([*before, line, *after], exit_code=0)


def _make_worker_user_failure(message: str = "time_join raised ValueError: boom") -> FakeWorkerProcess:
    """A worker whose benchmark code raised."""
    return FakeWorkerProcess(
        ["starting scenario", "Traceback (most recent call last):", FAILURE_MARKER + message],
        exit_code=1,
    )


# ── Domain Model Factories ────────────────────────────────────────────────


def _make_scenario(
    local_name: str = "scenario-0",
    benchmark_class: str = "bench:Concat",
    method: str = "join",
    vm_local_name: str = "vm-0",
    user_parameters: dict[str, str] | None = None,
    vm_arguments: dict[str, str] | None = None,
) -> Scenario:
    return Scenario(
        local_name=local_name,
        benchmark_class=benchmark_class,
        benchmark_method_name=method,
        vm_local_name=vm_local_name,
        user_parameters=dict(user_parameters or {}),
        vm_arguments=dict(vm_arguments or {}),
    )


def _make_vm(local_name: str = "vm-0", name: str = "python", executable: str = "python3") -> Vm:
    return Vm(local_name=local_name, name=name, executable=executable)


def _make_result(
    scenario_local_name: str = "scenario-0",
    values: Sequence[float] = (100.0,),
    instrument_local_name: str = "time",
    unit: str = "ns",
    description: str = "runtime",
    messages: Sequence[str] = (),
    trial: int = 1,
) -> Result:
    return Result(
        local_name=f"{scenario_local_name}/{instrument_local_name}/trial-{trial}",
        scenario_local_name=scenario_local_name,
        instrument_local_name=instrument_local_name,
        measurements=tuple(
            Measurement(value=v, weight=1.0, unit=unit, description=description) for v in values
        ),
        messages=tuple(messages),
    )


def _make_options(**overrides: object) -> RunOptions:
    """RunOptions with short windows suitable for tests."""
    fields: dict[str, object] = {
        "benchmark_class": "bench:Concat",
        "warmup_millis": 10,
        "run_millis": 10,
    }
    fields.update(overrides)
    return RunOptions(**fields)  # type: ignore[arg-type]


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest.fixture
def time_instrument() -> Instrument:
    return Instrument.of(MeasurementType.TIME)


@pytest.fixture
def fake_launcher() -> FakeLauncher:
    """Launcher whose every worker succeeds."""
    return FakeLauncher()


@pytest.fixture
def launcher_factory() -> type[FakeLauncher]:
    """FakeLauncher class, for tests that script worker responses."""
    return FakeLauncher


@pytest.fixture
def failing_launcher() -> FailingLauncher:
    return FailingLauncher()


@pytest.fixture
def fake_tracker() -> FakeTracker:
    return FakeTracker()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def loader_factory() -> type[FakeLoader]:
    """FakeLoader class; call it with a ``{"module:Class": cls}`` registry."""
    return FakeLoader


@pytest.fixture
def in_memory_fs() -> InMemoryFileSystem:
    return InMemoryFileSystem()


@pytest.fixture
def options() -> RunOptions:
    return _make_options()


@pytest.fixture
def make_options() -> Callable[..., RunOptions]:
    return _make_options


@pytest.fixture
def make_scenario() -> Callable[..., Scenario]:
    return _make_scenario


@pytest.fixture
def make_vm() -> Callable[..., Vm]:
    return _make_vm


@pytest.fixture
def make_result() -> Callable[..., Result]:
    return _make_result


@pytest.fixture
def make_measurement_set() -> Callable[..., MeasurementSet]:
    return _make_measurement_set


@pytest.fixture
def worker_process() -> type[FakeWorkerProcess]:
    """FakeWorkerProcess class, for hand-written worker output."""
    return FakeWorkerProcess


@pytest.fixture
def worker_success() -> Callable[..., FakeWorkerProcess]:
    return _make_worker_success


@pytest.fixture
def worker_user_failure() -> Callable[..., FakeWorkerProcess]:
    return _make_worker_user_failure
