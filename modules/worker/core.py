"""Worker runner — measures exactly one scenario inside a child process.

The orchestrator starts ``python -m kernel.worker`` with the arguments built
by ``build_worker_args``. The worker rebuilds the one scenario those
arguments describe, measures it while counting everything the benchmark
writes to stdout/stderr, and prints a single marker line with the result.

Exit status and output contract:

- success: one ``<marker><json>`` line, exit 0
- scenario vetoed by ``SkipScenario``: no marker line, exit 0
- benchmark code raised: traceback, one ``FAILURE_MARKER`` line, exit 1
- bad arguments: error message, exit 1

This module depends only on domain/ types and has zero external imports beyond stdlib.
"""

from __future__ import annotations

import argparse
import contextlib
import logging
import sys
import traceback
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TextIO

from domain.benchmark import SkipScenario
from domain.errors import ConfigurationError, InvalidOptionError, ScenarioCountError, UserCodeError
from domain.models import MeasurementType, RunOptions
from modules.measurers.core import create_measurer
from modules.protocol.core import FAILURE_MARKER, format_marker_line
from modules.scenarios.core import build_scenarios, default_vm

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

    from domain.models import Instrument, MeasurementSet, Scenario
    from domain.ports import (
        AllocationTrackerPort,
        BenchmarkLoaderPort,
        BenchmarkPort,
        MeasurerPort,
    )

logger = logging.getLogger("microbench.worker")


# ---------------------------------------------------------------------------
# Output counting
# ---------------------------------------------------------------------------


class CountingWriter:
    """Text stream wrapper that counts the characters written through it."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self.count = 0

    def write(self, text: str) -> int:
        self.count += len(text)
        return self._stream.write(text)

    def writelines(self, lines: Sequence[str]) -> None:
        for line in lines:
            self.write(line)

    def flush(self) -> None:
        self._stream.flush()

    def __getattr__(self, name: str) -> Any:
        return getattr(self._stream, name)


class CountingStreams:
    """Scope in which ``sys.stdout`` and ``sys.stderr`` are counted.

    The original streams are restored when the block exits, however it exits::

        with CountingStreams() as counts:
            run_benchmark()
        counts.out_chars, counts.err_chars
    """

    def __init__(self) -> None:
        self._stack = contextlib.ExitStack()
        self._out: CountingWriter | None = None
        self._err: CountingWriter | None = None

    @property
    def out_chars(self) -> int:
        return self._out.count if self._out is not None else 0

    @property
    def err_chars(self) -> int:
        return self._err.count if self._err is not None else 0

    def __enter__(self) -> CountingStreams:
        self._out = CountingWriter(sys.stdout)
        self._err = CountingWriter(sys.stderr)
        self._stack.enter_context(contextlib.redirect_stdout(self._out))  # type: ignore[arg-type]
        self._stack.enter_context(contextlib.redirect_stderr(self._err))  # type: ignore[arg-type]
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._stack.close()


def run_scenario(
    benchmark_factory: Callable[[], BenchmarkPort],
    method_name: str,
    measurer: MeasurerPort,
) -> MeasurementSet:
    """Measure one scenario and attach the benchmark's output volume."""
    with CountingStreams() as counts:
        measurement_set = measurer.measure(benchmark_factory, method_name)
    return measurement_set.plus_char_counts(counts.out_chars, counts.err_chars)


# ---------------------------------------------------------------------------
# Worker arguments
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkerRequest:
    """What one worker invocation was asked to do."""

    benchmark_class: str
    methods: tuple[str, ...]
    measurement_type: MeasurementType
    marker: str
    warmup_millis: int
    run_millis: int
    debug_reps: int
    user_parameters: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: dict[str, tuple[str, ...]]()
    )

    def to_options(self) -> RunOptions:
        """The subset of run options a measurer needs."""
        return RunOptions(
            benchmark_class=self.benchmark_class,
            warmup_millis=self.warmup_millis,
            run_millis=self.run_millis,
            debug_reps=self.debug_reps,
            marker=self.marker,
        )


def build_worker_args(
    scenario: Scenario,
    instrument: Instrument,
    options: RunOptions,
    marker: str,
) -> list[str]:
    """Arguments that select exactly *scenario* in a worker."""
    args = [
        "--benchmark",
        scenario.benchmark_class,
        "--method",
        scenario.benchmark_method_name,
        "--instrument",
        instrument.measurement_type.value,
        "--marker",
        marker,
        "--warmup-millis",
        str(options.warmup_millis),
        "--run-millis",
        str(options.run_millis),
        "--debug-reps",
        str(options.debug_reps),
    ]
    for name, value in scenario.user_parameters.items():
        args.extend(["-D", f"{name}={value}"])
    return args


class _ArgumentParser(argparse.ArgumentParser):
    """Raises instead of exiting so the worker controls its exit status."""

    def error(self, message: str) -> Any:
        raise InvalidOptionError(message)


def parse_worker_args(argv: Sequence[str]) -> WorkerRequest:
    """Parse a worker command line.

    Raises:
        InvalidOptionError: for missing or malformed arguments.
    """
    parser = _ArgumentParser(prog="python -m kernel.worker", add_help=False)
    parser.add_argument("--benchmark", required=True)
    parser.add_argument("--method", action="append", default=[])
    parser.add_argument(
        "--instrument",
        choices=[t.value for t in MeasurementType],
        default=MeasurementType.TIME.value,
    )
    parser.add_argument("--marker", required=True)
    parser.add_argument("--warmup-millis", type=int, default=3000)
    parser.add_argument("--run-millis", type=int, default=1000)
    parser.add_argument("--debug-reps", type=int, default=1000)
    parser.add_argument("-D", dest="params", action="append", default=[])
    ns = parser.parse_args(list(argv))

    params: dict[str, list[str]] = {}
    for item in ns.params:
        name, sep, value = item.partition("=")
        if not sep or not name:
            msg = f"Expected -D name=value, got '{item}'"
            raise InvalidOptionError(msg)
        params.setdefault(name, []).append(value)

    return WorkerRequest(
        benchmark_class=ns.benchmark,
        methods=tuple(ns.method),
        measurement_type=MeasurementType(ns.instrument),
        marker=ns.marker,
        warmup_millis=ns.warmup_millis,
        run_millis=ns.run_millis,
        debug_reps=ns.debug_reps,
        user_parameters={k: tuple(v) for k, v in params.items()},
    )


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class WorkerRunner:
    """Runs one scenario and reports it on the real stdout.

    The event log and the marker line go to the streams captured at
    construction, so they are never counted as benchmark output.
    """

    def __init__(
        self,
        loader: BenchmarkLoaderPort,
        tracker: AllocationTrackerPort | None = None,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ) -> None:
        self._loader = loader
        self._tracker = tracker
        self._out = out if out is not None else sys.stdout
        self._err = err if err is not None else sys.stderr

    def _print(self, line: str) -> None:
        self._out.write(line + "\n")
        self._out.flush()

    def _print_record(self, line: str) -> None:
        # Benchmark output may have left a line open on either merged stream.
        self._out.write("\n" + line + "\n")
        self._out.flush()

    def _select(self, request: WorkerRequest) -> Scenario:
        scenarios = build_scenarios(
            request.benchmark_class,
            request.methods,
            request.user_parameters,
            {},
            [default_vm()],
        )
        if len(scenarios) != 1:
            raise ScenarioCountError(len(scenarios))
        return scenarios[0]

    def run(self, argv: Sequence[str]) -> int:
        """Run the scenario *argv* selects and return the exit status."""
        description = "scenario"
        try:
            request = parse_worker_args(argv)
            scenario = self._select(request)
            description = scenario.describe()
            benchmark_class = self._loader.load(request.benchmark_class)
            measurer = create_measurer(
                request.measurement_type, request.to_options(), self._tracker, log=self._print
            )

            def factory() -> BenchmarkPort:
                return self._loader.create(benchmark_class, scenario.user_parameters)

            self._print(f"starting {description}")
            measurement_set = run_scenario(factory, scenario.benchmark_method_name, measurer)
        except SkipScenario as exc:
            reason = f": {exc}" if str(exc) else ""
            self._print(f"skipping {description}{reason}")
            return 0
        except UserCodeError as exc:
            traceback.print_exception(exc.cause, file=self._err)
            self._err.flush()
            self._print_record(FAILURE_MARKER + str(exc))
            return 1
        except ConfigurationError as exc:
            logger.error("Worker configuration error: %s", exc)
            self._err.write(f"error: {exc}\n")
            self._err.flush()
            return 1

        self._print_record(format_marker_line(request.marker, measurement_set))
        return 0
