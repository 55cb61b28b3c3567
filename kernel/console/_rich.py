"""kernel.console._rich -- Rich-based terminal backend.

Status and progress are styled on stderr; reports go to stdout untouched,
because their columns are already laid out by modules/report.
"""

from __future__ import annotations

from rich import box
from rich.console import Console
from rich.rule import Rule
from rich.table import Table
from rich.theme import Theme

_THEME = Theme(
    {
        "info": "blue",
        "success": "bold green",
        "warning": "bold yellow",
        "error": "bold red",
        "step.num": "bold cyan",
        "dim": "dim",
    }
)


class RichBackend:
    """ConsoleProtocol implementation backed by Rich."""

    def __init__(self) -> None:
        self._err = Console(theme=_THEME, highlight=False, stderr=True)
        self._out = Console(theme=_THEME, highlight=False)

    # -- Status messages (stderr) -------------------------------------------

    def info(self, message: str) -> None:
        self._err.print(f"  {message}", style="info", markup=False)

    def success(self, message: str) -> None:
        self._err.print(f"  ✓ {message}", style="success", markup=False)

    def warning(self, message: str) -> None:
        self._err.print(f"  ⚠ {message}", style="warning", markup=False)

    def error(self, message: str) -> None:
        self._err.print(f"  ✗ {message}", style="error", markup=False)

    def kv(self, data: dict[str, str], *, title: str = "") -> None:
        t = Table(title=title or None, box=None, show_header=False, pad_edge=True)
        t.add_column("Key", style="bold", justify="right")
        t.add_column("Value")
        for key, value in data.items():
            t.add_row(key, value)
        self._err.print(t)

    # -- Results (stdout) ---------------------------------------------------

    def table(self, headers: list[str], rows: list[list[str]], *, title: str = "") -> None:
        t = Table(title=title or None, box=box.SIMPLE, show_edge=False, pad_edge=True)
        for header in headers:
            t.add_column(header)
        for row in rows:
            t.add_row(*row)
        self._out.print(t)

    def report(self, text: str) -> None:
        self._out.out()
        self._out.out(text, highlight=False)

    # -- Run lifecycle (stderr) ---------------------------------------------

    def run_header(self, benchmark: str, timestamp: str) -> None:
        self._err.print()
        self._err.print(Rule(f" {benchmark} ", style="bold", align="left"))
        self._err.print(f"  [dim]{timestamp} UTC[/]")

    def step(self, current: int, total: int, description: str) -> None:
        self._err.print(f"  [step.num]\\[{current}/{total}][/] ", end="")
        self._err.print(description, markup=False)

    def step_detail(self, message: str) -> None:
        self._err.print(f"    {message}", style="dim", markup=False)

    def run_result(
        self,
        success: bool,
        elapsed: float,
        results: int,
        failures: int,
        skipped: int,
    ) -> None:
        icon = "✓" if success else "✗"
        word = "passed" if success else "failed"
        self._err.print()
        self._err.print(
            Rule(
                f" {icon} Run {word} in {elapsed:.1f}s · {results} results "
                f"· {failures} failures · {skipped} skipped ",
                style="green" if success else "red",
            ),
        )
