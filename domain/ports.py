"""Port interfaces for microbench.

All ports are defined as typing.Protocol — structural subtyping means any class
with matching method signatures satisfies the Protocol without inheritance.

This module has ZERO external imports — only stdlib and typing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from domain.models import (
        Instrument,
        MeasurementSet,
        RunOptions,
        Scenario,
    )


class BenchmarkPort(Protocol):
    """A configured benchmark instance, ready to be measured."""

    def set_up(self) -> None:
        """Prepare state before the timed method runs."""
        ...

    def tear_down(self) -> None:
        """Release state after the timed method ran."""
        ...


class MeasurerPort(Protocol):
    """One measurement strategy, run entirely inside the worker process."""

    def measure(
        self,
        benchmark_factory: Callable[[], BenchmarkPort],
        method_name: str,
    ) -> MeasurementSet:
        """Measure *method_name* on fresh instances from *benchmark_factory*."""
        ...


class AllocationTrackerPort(Protocol):
    """Observes allocations made between ``start`` and ``stop``."""

    def start(self) -> None:
        """Begin tracking."""
        ...

    def stop(self) -> tuple[int, int]:
        """Stop tracking and return ``(retained_objects, peak_bytes)``."""
        ...


class BenchmarkLoaderPort(Protocol):
    """Finds a benchmark class and builds configured instances of it."""

    def load(self, class_name: str) -> type:
        """Import and return the benchmark class named ``module:Class``."""
        ...

    def method_names(self, benchmark_class: type) -> list[str]:
        """Return the timed method names (without the ``time_`` prefix)."""
        ...

    def declared_parameters(self, benchmark_class: type) -> dict[str, tuple[str, ...]]:
        """Return the parameter values the class declares for itself."""
        ...

    def create(self, benchmark_class: type, user_parameters: dict[str, str]) -> BenchmarkPort:
        """Instantiate the class with its parameters set."""
        ...


class WorkerProcessPort(Protocol):
    """A running worker whose combined output can be read line by line."""

    def lines(self) -> Iterator[str]:
        """Yield output lines (without line endings) until the process closes its output."""
        ...

    def wait(self) -> int:
        """Wait for the process to exit and return its exit code."""
        ...


class WorkerLauncherPort(Protocol):
    """Starts one worker process for one scenario and instrument."""

    def launch(
        self,
        scenario: Scenario,
        instrument: Instrument,
        options: RunOptions,
        marker: str,
    ) -> WorkerProcessPort:
        """Start the worker. Raises WorkerLaunchError if it cannot be started."""
        ...


class FileSystemPort(Protocol):
    """Abstraction over the file operations result persistence needs."""

    def read_file(self, path: str) -> str:
        """Read and return the contents of a file."""
        ...

    def write_file(self, path: str, content: str) -> None:
        """Write content to a file, creating parent directories as needed."""
        ...

    def file_exists(self, path: str) -> bool:
        """Return True if the file exists."""
        ...
