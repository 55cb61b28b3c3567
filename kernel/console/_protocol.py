"""kernel.console._protocol -- ConsoleProtocol definition.

Pure standard-library typing.Protocol for the microbench terminal output system.
No external dependencies allowed in this file.
"""

from __future__ import annotations

from typing import Protocol


class ConsoleProtocol(Protocol):
    """microbench terminal output protocol.

    Output is split over two streams so ``microbench ... > report.txt``
    keeps only results:

    **Results** (stdout) -- reports and the dry-run plan::

        console.report(text)
        console.table(["Scenario", "VM"], [["scenario-0", "python"]], title="Dry Run")

    **Status** (stderr) -- messages, settings and progress::

        console.info("Found 4 scenarios")
        console.warning("2 scenarios skipped by the benchmark")
        console.kv({"Trials": "3", "Instruments": "time"})
        console.step(1, 6, "time Concat.join length=10 (trial 1)")
        console.run_result(True, 12.5, 6, 0, 0)
    """

    # -- Status messages (stderr) -------------------------------------------

    def info(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def kv(self, data: dict[str, str], *, title: str = "") -> None:
        """Key-value pairs, keys right-aligned."""
        ...

    # -- Results (stdout) ---------------------------------------------------

    def table(self, headers: list[str], rows: list[list[str]], *, title: str = "") -> None:
        """A table with *headers* and *rows*."""
        ...

    def report(self, text: str) -> None:
        """Print a pre-formatted report verbatim (no markup, no wrapping)."""
        ...

    # -- Run lifecycle (stderr) ---------------------------------------------

    def run_header(self, benchmark: str, timestamp: str) -> None:
        """Banner at the start of a benchmark run."""
        ...

    def step(self, current: int, total: int, description: str) -> None:
        """Progress line ``[current/total] description`` for one trial."""
        ...

    def step_detail(self, message: str) -> None:
        """A worker output line, indented under the current step."""
        ...

    def run_result(
        self,
        success: bool,
        elapsed: float,
        results: int,
        failures: int,
        skipped: int,
    ) -> None:
        """End-of-run summary line."""
        ...
