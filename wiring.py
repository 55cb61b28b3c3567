"""
wiring.py — Composition root for a benchmark run.

Maps each pipeline step to its module implementation and plugs in the
adapters: the importlib benchmark loader, the subprocess worker launcher
and the local filesystem for saved results.

Pipeline::

    plan_run      load class, resolve methods and parameters, build scenarios
    execute       run every trial in a worker (or just plan it, for a dry run)
    render        one text report per instrument
    save_results  persist the outcome as JSON
    load_results  read a saved outcome back for re-rendering
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from adapters.benchmark_loader import ImportlibBenchmarkLoader
from adapters.local_fs import LocalFileSystem
from adapters.subprocess_launcher import SubprocessLauncher
from domain.errors import InvalidOptionError
from domain.models import Instrument
from kernel.config import ROOT
from modules.orchestrator.core import Orchestrator
from modules.report.core import render_outcome
from modules.results.core import ResultStore
from modules.scenarios.core import (
    build_scenarios,
    build_vms,
    check_disjoint,
    resolve_parameters,
    select_methods,
    select_scenarios,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from domain.models import RunOptions, RunOutcome, Scenario, Vm
    from domain.ports import BenchmarkLoaderPort, WorkerLauncherPort

logger = logging.getLogger("microbench.wiring")


@dataclass(frozen=True)
class RunPlan:
    """Everything a run will execute, decided before any worker starts."""

    scenarios: tuple[Scenario, ...]
    skipped: tuple[Scenario, ...]
    vms: tuple[Vm, ...]
    instruments: tuple[Instrument, ...]


# ---------------------------------------------------------------------------
# Pipeline steps
# ---------------------------------------------------------------------------


def plan_run(options: RunOptions, loader: BenchmarkLoaderPort | None = None) -> RunPlan:
    """Build the scenario matrix for *options* and apply the class's veto hook.

    Raises:
        ConfigurationError: the class cannot be loaded, or the options do not
            describe at least one scenario.
    """
    loader = loader if loader is not None else ImportlibBenchmarkLoader()
    benchmark_class = loader.load(options.benchmark_class)

    methods = select_methods(loader.method_names(benchmark_class), options.benchmark_methods)
    check_disjoint(options.user_parameters, options.vm_arguments)
    user_parameters = resolve_parameters(
        loader.declared_parameters(benchmark_class), options.user_parameters
    )
    vms = build_vms(options.vms)
    scenarios = build_scenarios(
        options.benchmark_class, methods, user_parameters, options.vm_arguments, vms
    )

    should_skip = getattr(benchmark_class, "should_skip", None)
    skip: Callable[[Scenario], bool] | None = None
    if callable(should_skip):

        def skip(scenario: Scenario) -> bool:
            return bool(should_skip(dict(scenario.user_parameters)))

    kept, skipped = select_scenarios(scenarios, skip)
    logger.info(
        "Planned %d scenarios (%d skipped) for %s",
        len(kept),
        len(skipped),
        options.benchmark_class,
    )
    return RunPlan(
        scenarios=tuple(kept),
        skipped=tuple(skipped),
        vms=tuple(vms),
        instruments=tuple(Instrument.of(t) for t in options.instruments),
    )


def build_launcher(plan: RunPlan, options: RunOptions, cwd: Path | None = None) -> SubprocessLauncher:
    """The subprocess launcher workers for *plan* are started with."""
    return SubprocessLauncher(
        plan.vms,
        project_root=ROOT,
        cwd=cwd if cwd is not None else Path.cwd(),
        timeout=options.worker_timeout,
    )


def execute(
    plan: RunPlan,
    options: RunOptions,
    launcher: WorkerLauncherPort | None = None,
    on_output: Callable[[str], None] | None = None,
    on_progress: Callable[[int, int, str], None] | None = None,
) -> RunOutcome:
    """Run every planned trial, or only describe the plan for a dry run."""
    if launcher is None:
        launcher = build_launcher(plan, options)
    orchestrator = Orchestrator(
        launcher, options.marker, on_output=on_output, on_progress=on_progress
    )
    if options.dry_run:
        return orchestrator.dry_run(plan.scenarios, plan.vms, plan.instruments, plan.skipped)
    return orchestrator.run(plan.scenarios, plan.vms, plan.instruments, options, plan.skipped)


def render(outcome: RunOutcome, options: RunOptions) -> list[str]:
    """Report text for each instrument that produced data."""
    return render_outcome(outcome, print_score=options.print_score, time_unit=options.time_unit)


def save_results(
    outcome: RunOutcome,
    target: str,
    run_id: str,
    base_dir: Path | None = None,
) -> str:
    """Persist *outcome* as JSON under *target* (a ``.json`` file or a directory)."""
    fs = LocalFileSystem(str(base_dir if base_dir is not None else Path.cwd()))
    path = ResultStore(fs).save(outcome, target, run_id)
    logger.info("Saved results to %s", path)
    return path


def load_results(path: str, base_dir: Path | None = None) -> RunOutcome:
    """Read a run written by :func:`save_results`.

    Raises:
        InvalidOptionError: *path* is missing or does not hold a saved run.
    """
    fs = LocalFileSystem(str(base_dir if base_dir is not None else Path.cwd()))
    try:
        outcome = ResultStore(fs).load(path)
    except (FileNotFoundError, ValueError) as exc:
        msg = str(exc)
        raise InvalidOptionError(msg) from exc
    logger.info("Loaded %d results from %s", len(outcome.results), path)
    return outcome
