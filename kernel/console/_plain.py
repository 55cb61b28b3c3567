"""kernel.console._plain -- Plain-text fallback backend.

print()-based output with no external dependencies. Used when Rich is not
installed, stderr is not a TTY, or ``NO_COLOR`` is set.
"""

from __future__ import annotations

import sys


def _status(text: str) -> None:
    # sys.stderr is looked up per call so redirection after import still applies
    print(text, file=sys.stderr, flush=True)


class PlainBackend:
    """ConsoleProtocol implementation using only built-in print()."""

    # -- Status messages (stderr) -------------------------------------------

    def info(self, message: str) -> None:
        _status(f"  {message}")

    def success(self, message: str) -> None:
        _status(f"  [ok] {message}")

    def warning(self, message: str) -> None:
        _status(f"  [warn] {message}")

    def error(self, message: str) -> None:
        _status(f"  [error] {message}")

    def kv(self, data: dict[str, str], *, title: str = "") -> None:
        if title:
            _status(f"\n  {title}:")
        if not data:
            return
        width = max(len(k) for k in data)
        for key, value in data.items():
            _status(f"  {key.rjust(width)}: {value}")

    # -- Results (stdout) ---------------------------------------------------

    def table(self, headers: list[str], rows: list[list[str]], *, title: str = "") -> None:
        if title:
            print(f"\n  {title}:")
        if not headers:
            return

        widths = [
            max([len(header)] + [len(str(row[i])) for row in rows if i < len(row)])
            for i, header in enumerate(headers)
        ]
        print("  " + "  ".join(h.ljust(w) for h, w in zip(headers, widths, strict=True)))
        print("  " + "  ".join("-" * w for w in widths))
        for row in rows:
            cells = [
                (str(row[i]) if i < len(row) else "").ljust(width)
                for i, width in enumerate(widths)
            ]
            print("  " + "  ".join(cells))

    def report(self, text: str) -> None:
        print()
        print(text, flush=True)

    # -- Run lifecycle (stderr) ---------------------------------------------

    def run_header(self, benchmark: str, timestamp: str) -> None:
        rule = "=" * 60
        _status(f"\n{rule}\n  {benchmark}  -  {timestamp} UTC\n{rule}")

    def step(self, current: int, total: int, description: str) -> None:
        _status(f"  [{current}/{total}] {description}")

    def step_detail(self, message: str) -> None:
        _status(f"    {message}")

    def run_result(
        self,
        success: bool,
        elapsed: float,
        results: int,
        failures: int,
        skipped: int,
    ) -> None:
        word = "passed" if success else "failed"
        _status(
            f"\n== Run {word} in {elapsed:.1f}s: "
            f"{results} results, {failures} failures, {skipped} skipped =="
        )
