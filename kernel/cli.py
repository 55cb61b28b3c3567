#!/usr/bin/env python3
"""
microbench CLI -- Stable entry point for the benchmark orchestrator.

Pipeline step dispatch is handled by wiring.py; this file only turns the
command line (and the optional ``.microbenchrc.yaml``) into RunOptions,
configures logging and the console, and turns the outcome into an exit code.

Usage:
  microbench module:Class [-D name=v1,v2 ...] [-J name=flag1,flag2 ...]
             [--vm python3.11,python3.12] [-b method1,method2] [--trials N]
             [--instrument time|instance|memory|debug] [--measure-memory]
             [--warmup-millis N] [--run-millis N] [--print-score]
             [--time-unit ns|us|ms|s] [-o results/] [-n] [-v]
  microbench --report-from results/run.json [--time-unit ms] [--print-score]
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from domain.errors import ConfigurationError, InvalidOptionError, MicrobenchError
from domain.models import MeasurementType, RunOptions
from kernel.config import (
    DEFAULT_DEBUG_REPS,
    DEFAULT_DELIMITER,
    DEFAULT_MARKER,
    DEFAULT_RUN_MILLIS,
    DEFAULT_TRIALS,
    DEFAULT_WARMUP_MILLIS,
    LOG_FILE,
    LOG_FORMAT,
    RC_FILE,
    load_rc,
)
from kernel.console import BACKENDS, configure, console
from modules.report.core import TIME_UNITS

if TYPE_CHECKING:
    from collections.abc import Sequence

    from domain.models import RunOutcome
    from wiring import RunPlan

logger = logging.getLogger("microbench")


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="microbench",
        description="microbench -- run micro-benchmarks in isolated worker processes",
    )
    parser.add_argument("benchmark", nargs="?", default=None, help="Benchmark class as module:Class")
    parser.add_argument(
        "-D",
        dest="params",
        action="append",
        default=[],
        metavar="NAME=V1,V2",
        help="Values for a benchmark parameter (repeatable)",
    )
    parser.add_argument(
        "-J",
        dest="vm_args",
        action="append",
        default=[],
        metavar="NAME=FLAGS1,FLAGS2",
        help="Alternative interpreter flags, compared as a parameter (repeatable)",
    )
    parser.add_argument("--vm", default=None, help="Interpreter binaries to compare")
    parser.add_argument(
        "-b",
        "--benchmark-methods",
        dest="methods",
        default=None,
        help="Run only these timed methods (names without the time_ prefix)",
    )
    parser.add_argument("-t", "--trials", type=int, default=None, help="Trials per scenario")
    parser.add_argument("--warmup-millis", type=int, default=None, help="Warmup window per worker")
    parser.add_argument("--run-millis", type=int, default=None, help="Measurement window per worker")
    parser.add_argument(
        "-i",
        "--instrument",
        choices=[t.value for t in MeasurementType],
        default=None,
        help="What to measure (default: time)",
    )
    parser.add_argument(
        "--measure-memory",
        action="store_true",
        default=None,
        help="Also record retained objects and peak bytes per call",
    )
    parser.add_argument(
        "-n", "--dry-run", action="store_true", default=None, help="Plan scenarios without running"
    )
    parser.add_argument(
        "--debug-reps", type=int, default=None, help="Repetitions for the debug instrument"
    )
    parser.add_argument("--marker", default=None, help="Prefix of the worker's result line")
    parser.add_argument(
        "-d", "--delimiter", default=None, help="Separator for multi-valued options (default: ,)"
    )
    parser.add_argument(
        "-s", "--print-score", action="store_true", default=None, help="Print a run score"
    )
    parser.add_argument(
        "--time-unit", choices=list(TIME_UNITS), default=None, help="Unit for runtime reports"
    )
    parser.add_argument(
        "--worker-timeout",
        type=float,
        default=None,
        help="Kill a worker after this many seconds",
    )
    parser.add_argument(
        "-o", "--output", default=None, help="Save results to this .json file or directory"
    )
    parser.add_argument(
        "--report-from",
        default=None,
        metavar="FILE",
        help="Print the reports of a run saved with --output instead of running",
    )
    parser.add_argument(
        "-c", "--config", default=None, help=f"Options file (default: {RC_FILE})"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", default=None, help="Show worker output and debug logs"
    )
    parser.add_argument("--console", choices=BACKENDS, default=None)
    return parser


def _pick(args: argparse.Namespace, rc: dict[str, Any], name: str, default: Any) -> Any:
    """Command-line value, else the rc-file value, else the built-in default."""
    value = getattr(args, name, None)
    if value is not None:
        return value
    return rc.get(name, default)


def parse_assignments(items: Sequence[str], delimiter: str, flag: str) -> dict[str, tuple[str, ...]]:
    """Parse repeated ``NAME=V1<delim>V2`` options into an ordered mapping.

    Raises:
        InvalidOptionError: an item has no ``=`` or a name is given twice.
    """
    result: dict[str, tuple[str, ...]] = {}
    for item in items:
        name, sep, values = item.partition("=")
        name = name.strip()
        if not sep or not name:
            msg = f"Expected {flag} NAME=VALUES, got '{item}'"
            raise InvalidOptionError(msg)
        if name in result:
            msg = f"{flag} {name} given more than once"
            raise InvalidOptionError(msg)
        result[name] = tuple(values.split(delimiter))
    return result


def _split(value: str | list[str] | None, delimiter: str) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, list):
        return tuple(str(v) for v in value)
    return tuple(v for v in value.split(delimiter) if v)


def build_options(args: argparse.Namespace, rc: dict[str, Any]) -> RunOptions:
    """Merge command line and rc-file values into RunOptions.

    Raises:
        InvalidOptionError: a value is out of range or malformed.
    """
    if not args.benchmark and not args.report_from:
        msg = "A benchmark class (module:Class) is required unless --report-from is given"
        raise InvalidOptionError(msg)

    delimiter = _pick(args, rc, "delimiter", DEFAULT_DELIMITER)
    if not delimiter:
        msg = "Delimiter must not be empty"
        raise InvalidOptionError(msg)

    trials = _pick(args, rc, "trials", DEFAULT_TRIALS)
    warmup_millis = _pick(args, rc, "warmup_millis", DEFAULT_WARMUP_MILLIS)
    run_millis = _pick(args, rc, "run_millis", DEFAULT_RUN_MILLIS)
    debug_reps = _pick(args, rc, "debug_reps", DEFAULT_DEBUG_REPS)
    worker_timeout = _pick(args, rc, "worker_timeout", None)
    time_unit = _pick(args, rc, "time_unit", None)
    marker = _pick(args, rc, "marker", DEFAULT_MARKER)

    if trials < 1:
        msg = f"--trials must be at least 1, got {trials}"
        raise InvalidOptionError(msg)
    if warmup_millis < 0:
        msg = f"--warmup-millis must not be negative, got {warmup_millis}"
        raise InvalidOptionError(msg)
    if run_millis < 0:
        msg = f"--run-millis must not be negative, got {run_millis}"
        raise InvalidOptionError(msg)
    if debug_reps < 1:
        msg = f"--debug-reps must be at least 1, got {debug_reps}"
        raise InvalidOptionError(msg)
    if worker_timeout is not None and worker_timeout <= 0:
        msg = f"--worker-timeout must be positive, got {worker_timeout}"
        raise InvalidOptionError(msg)
    if time_unit is not None and time_unit not in TIME_UNITS:
        msg = f"Unknown time unit '{time_unit}' (choose from {', '.join(TIME_UNITS)})"
        raise InvalidOptionError(msg)
    if not marker or not marker.strip():
        msg = "Marker must not be blank"
        raise InvalidOptionError(msg)

    instruments = [MeasurementType(args.instrument or MeasurementType.TIME.value)]
    if _pick(args, rc, "measure_memory", False):
        for extra in (MeasurementType.INSTANCE, MeasurementType.MEMORY):
            if extra not in instruments:
                instruments.append(extra)

    return RunOptions(
        benchmark_class=args.benchmark or "",
        benchmark_methods=_split(args.methods, delimiter),
        vms=_split(_pick(args, rc, "vm", None), delimiter),
        user_parameters=parse_assignments(args.params, delimiter, "-D"),
        vm_arguments=parse_assignments(args.vm_args, delimiter, "-J"),
        trials=trials,
        instruments=tuple(instruments),
        warmup_millis=warmup_millis,
        run_millis=run_millis,
        debug_reps=debug_reps,
        marker=marker,
        dry_run=bool(args.dry_run),
        print_score=bool(_pick(args, rc, "print_score", False)),
        time_unit=time_unit,
        verbose=bool(args.verbose),
        worker_timeout=worker_timeout,
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def configure_logging(verbose: bool) -> None:
    """File-based audit log; with *verbose*, debug records also go to stderr."""
    LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
    handler: logging.Handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handlers = [handler]
    if verbose:
        echo = logging.StreamHandler(sys.stderr)
        echo.setFormatter(logging.Formatter("%(name)s %(levelname)s %(message)s"))
        handlers.append(echo)

    root = logging.getLogger("microbench")
    for old in root.handlers[:]:
        root.removeHandler(old)
        old.close()
    for new in handlers:
        root.addHandler(new)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)


# ---------------------------------------------------------------------------
# Run command
# ---------------------------------------------------------------------------


def _show_plan(outcome: RunOutcome) -> None:
    vm_names = {vm.local_name: vm.name for vm in outcome.vms}
    rows = [
        [
            s.local_name,
            s.benchmark_method_name,
            vm_names.get(s.vm_local_name, s.vm_local_name),
            " ".join(f"{k}={v}" for k, v in {**s.user_parameters, **s.vm_arguments}.items()),
        ]
        for s in outcome.scenarios
    ]
    console.table(["Scenario", "Method", "VM", "Parameters"], rows, title="Dry Run")
    instruments = ", ".join(i.local_name for i in outcome.instruments)
    console.info(f"{len(rows)} scenarios x {instruments}; nothing was run.")
    if outcome.skipped:
        console.info(f"{len(outcome.skipped)} scenarios vetoed by the benchmark")


def _settings(options: RunOptions, plan: RunPlan) -> dict[str, str]:
    return {
        "Scenarios": str(len(plan.scenarios)),
        "VMs": ", ".join(vm.name for vm in plan.vms),
        "Instruments": ", ".join(i.local_name for i in plan.instruments),
        "Trials": str(options.trials),
        "Warmup": f"{options.warmup_millis} ms",
        "Run": f"{options.run_millis} ms",
    }


def _show_failures(outcome: RunOutcome) -> None:
    descriptions = {s.local_name: s.describe() for s in outcome.scenarios}
    for failure in outcome.failures:
        where = descriptions.get(failure.scenario_local_name, failure.scenario_local_name)
        console.error(
            f"{where} [{failure.instrument_local_name}, trial {failure.trial}] "
            f"{failure.kind.value}: {failure.message}"
        )


def _show_output(line: str) -> None:
    if line.strip():
        console.step_detail(line)


def cmd_run(options: RunOptions, output: str | None = None) -> int:
    """Run the benchmark described by *options* and print its reports."""
    import wiring

    started = time.monotonic()
    timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
    console.run_header(options.benchmark_class, timestamp)

    plan = wiring.plan_run(options)
    logger.info(
        "Run %s: %d scenarios, %d instruments, %d trials",
        options.benchmark_class,
        len(plan.scenarios),
        len(plan.instruments),
        options.trials,
    )
    console.kv(_settings(options, plan), title="Run settings")
    on_output = _show_output if options.verbose else None
    outcome = wiring.execute(plan, options, on_output=on_output, on_progress=console.step)

    if options.dry_run:
        _show_plan(outcome)
        return 0

    for text in wiring.render(outcome, options):
        console.report(text)
    _show_failures(outcome)
    if outcome.skipped:
        console.warning(f"{len(outcome.skipped)} scenarios skipped by the benchmark")
    if output:
        run_id = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
        path = wiring.save_results(outcome, output, run_id)
        console.success(f"Results saved to {path}")

    console.run_result(
        outcome.succeeded,
        time.monotonic() - started,
        len(outcome.results),
        len(outcome.failures),
        len(outcome.skipped),
    )
    return 0 if outcome.succeeded else 1


# ---------------------------------------------------------------------------
# Report command
# ---------------------------------------------------------------------------


def cmd_report(path: str, options: RunOptions) -> int:
    """Re-render the reports of a run saved with ``--output``."""
    import wiring

    outcome = wiring.load_results(path)
    for text in wiring.render(outcome, options):
        console.report(text)
    _show_failures(outcome)
    if outcome.skipped:
        console.warning(f"{len(outcome.skipped)} scenarios skipped by the benchmark")
    return 0 if outcome.succeeded else 1


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # -- Console configuration ----------------------------------------------
    configure(backend=args.console or "auto")

    try:
        rc = load_rc(Path(args.config)) if args.config else load_rc()
        if args.console is None and "console" in rc:
            if rc["console"] not in BACKENDS:
                msg = f"Unknown console backend '{rc['console']}'"
                raise InvalidOptionError(msg)
            configure(backend=rc["console"])
        options = build_options(args, rc)
    except ConfigurationError as exc:
        parser.print_usage(sys.stderr)
        console.error(str(exc))
        return 1

    # -- Logging configuration (file-based audit log) -----------------------
    configure_logging(options.verbose)

    # Benchmark modules are imported relative to the working directory
    cwd = os.getcwd()
    if cwd not in sys.path:
        sys.path.insert(0, cwd)

    try:
        if args.report_from:
            return cmd_report(args.report_from, options)
        return cmd_run(options, args.output)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        console.error(str(exc))
        return 1
    except MicrobenchError as exc:
        logger.exception("Run failed")
        console.error(str(exc))
        return 1
    except KeyboardInterrupt:
        console.warning("Interrupted.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
