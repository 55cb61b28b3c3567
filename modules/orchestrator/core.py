"""Orchestrator module — runs every scenario trial in its own worker process.

For each instrument, scenario and trial the orchestrator launches a worker
through a WorkerLauncherPort, scans the worker's output for the marker line,
decodes the MeasurementSet it carries and turns it into a Result. Failures
are recorded per trial and never stop the rest of the matrix.

This module depends only on domain/ types and has zero external imports beyond stdlib.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from domain.errors import MalformedWorkerOutputError, WorkerLaunchError
from domain.models import FailureKind, Result, RunOutcome, TrialFailure
from modules.protocol.core import decode_measurement_set, salted_marker, scan_output

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from domain.models import Instrument, RunOptions, Scenario, Vm
    from domain.ports import WorkerLauncherPort

logger = logging.getLogger("microbench.orchestrator")


def char_count_messages(out_chars: int, err_chars: int) -> tuple[str, ...]:
    """Messages noting that the benchmark wrote output while being measured."""
    messages: list[str] = []
    if out_chars:
        messages.append(f"benchmark wrote {out_chars} characters to stdout")
    if err_chars:
        messages.append(f"benchmark wrote {err_chars} characters to stderr")
    return tuple(messages)


class Orchestrator:
    """Drives worker processes sequentially and collects their results.

    Constructor-injected WorkerLauncherPort starts the processes; the
    orchestrator only reads their output and exit status.
    """

    def __init__(
        self,
        launcher: WorkerLauncherPort,
        marker: str,
        on_output: Callable[[str], None] | None = None,
        on_progress: Callable[[int, int, str], None] | None = None,
        salt: str | None = None,
    ) -> None:
        self._launcher = launcher
        self._marker = salted_marker(marker, salt)
        self._on_output = on_output
        self._on_progress = on_progress

    @property
    def marker(self) -> str:
        """The salted marker workers are told to print."""
        return self._marker

    def dry_run(
        self,
        scenarios: Sequence[Scenario],
        vms: Sequence[Vm],
        instruments: Sequence[Instrument],
        skipped: Sequence[Scenario] = (),
    ) -> RunOutcome:
        """Return the planned run without launching anything."""
        return RunOutcome(
            scenarios=tuple(scenarios),
            vms=tuple(vms),
            instruments=tuple(instruments),
            skipped=tuple(s.local_name for s in skipped),
        )

    def run(
        self,
        scenarios: Sequence[Scenario],
        vms: Sequence[Vm],
        instruments: Sequence[Instrument],
        options: RunOptions,
        skipped: Sequence[Scenario] = (),
    ) -> RunOutcome:
        """Run ``options.trials`` trials of every scenario under every instrument."""
        results: list[Result] = []
        failures: list[TrialFailure] = []
        skipped_names = [s.local_name for s in skipped]

        total = len(instruments) * len(scenarios) * options.trials
        done = 0
        for instrument in instruments:
            for scenario in scenarios:
                for trial in range(1, options.trials + 1):
                    done += 1
                    if self._on_progress is not None:
                        self._on_progress(
                            done,
                            total,
                            f"{instrument.local_name} {scenario.describe()} (trial {trial})",
                        )
                    outcome = self._run_trial(scenario, instrument, options, trial)
                    if isinstance(outcome, Result):
                        results.append(outcome)
                        continue
                    if outcome is None:
                        # Vetoed inside the worker: later trials would be vetoed too.
                        if scenario.local_name not in skipped_names:
                            skipped_names.append(scenario.local_name)
                        done += options.trials - trial
                        break
                    failures.append(outcome)
                    logger.error(
                        "%s failed (%s, exit=%s): %s",
                        scenario.local_name,
                        outcome.kind.value,
                        outcome.exit_code,
                        outcome.message,
                    )
                    done += options.trials - trial
                    break

        return RunOutcome(
            scenarios=tuple(scenarios),
            vms=tuple(vms),
            instruments=tuple(instruments),
            results=tuple(results),
            failures=tuple(failures),
            skipped=tuple(skipped_names),
        )

    def _run_trial(
        self,
        scenario: Scenario,
        instrument: Instrument,
        options: RunOptions,
        trial: int,
    ) -> Result | TrialFailure | None:
        """Run one worker. Returns a Result, a TrialFailure, or None when skipped."""

        def fail(kind: FailureKind, message: str, exit_code: int | None = None) -> TrialFailure:
            return TrialFailure(
                scenario_local_name=scenario.local_name,
                instrument_local_name=instrument.local_name,
                trial=trial,
                kind=kind,
                message=message,
                exit_code=exit_code,
            )

        logger.debug("Launching %s trial %d (%s)", scenario.local_name, trial, instrument.local_name)
        try:
            process = self._launcher.launch(scenario, instrument, options, self._marker)
            scan = scan_output(process.lines(), self._marker, self._on_output)
            exit_code = process.wait()
        except WorkerLaunchError as exc:
            return fail(FailureKind.LAUNCH, str(exc))

        logger.debug(
            "%s trial %d exited %d after %d lines",
            scenario.local_name,
            trial,
            exit_code,
            scan.line_count,
        )

        if scan.payload is None:
            if exit_code == 0:
                logger.info("%s produced no measurement; treating as skipped", scenario.local_name)
                return None
            if scan.failure_message is not None:
                return fail(FailureKind.USER_CODE, scan.failure_message, exit_code)
            return fail(
                FailureKind.NO_MEASUREMENT,
                f"worker for {scenario.describe()} exited with status {exit_code} "
                "without reporting a measurement",
                exit_code,
            )

        if exit_code != 0:
            return fail(
                FailureKind.EXIT_STATUS,
                f"worker for {scenario.describe()} reported a measurement "
                f"but exited with status {exit_code}",
                exit_code,
            )

        try:
            measurement_set = decode_measurement_set(scan.payload)
        except MalformedWorkerOutputError as exc:
            return fail(FailureKind.MALFORMED_OUTPUT, str(exc), exit_code)

        return Result(
            local_name=f"{scenario.local_name}/{instrument.local_name}/trial-{trial}",
            scenario_local_name=scenario.local_name,
            instrument_local_name=instrument.local_name,
            measurements=measurement_set.measurements,
            messages=char_count_messages(
                measurement_set.out_char_count, measurement_set.err_char_count
            ),
        )
