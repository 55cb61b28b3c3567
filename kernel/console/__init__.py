"""kernel.console -- microbench terminal output system.

Usage (any file)::

    from kernel.console import console

    console.step(1, 6, "time Concat.join length=10 (trial 1)")
    console.report(text)

Configuration (once, in ``cli.py:main()``)::

    from kernel.console import configure

    configure(backend="auto")  # "rich" | "plain" | "auto"
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

from kernel.console._plain import PlainBackend

if TYPE_CHECKING:
    from kernel.console._protocol import ConsoleProtocol

BACKENDS = ("auto", "rich", "plain")

# Plain until configure() runs, so importing never requires Rich
_backend: ConsoleProtocol = PlainBackend()


def wants_color() -> bool:
    """True when status output goes to a terminal and ``NO_COLOR`` is unset."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return sys.stderr.isatty()


def configure(*, backend: str = "auto") -> None:
    """Select the console backend.

    Args:
        backend: ``"rich"`` always uses Rich, ``"plain"`` always uses
            plain text, and ``"auto"`` uses Rich when ``wants_color()``.

    Raises:
        ValueError: for an unknown backend name.
    """
    global _backend  # noqa: PLW0603

    if backend not in BACKENDS:
        msg = f"Unknown console backend '{backend}' (choose from {', '.join(BACKENDS)})"
        raise ValueError(msg)
    if backend == "plain" or (backend == "auto" and not wants_color()):
        _backend = PlainBackend()
        return

    from kernel.console._rich import RichBackend

    _backend = RichBackend()


def get_console() -> ConsoleProtocol:
    """Return the current backend instance."""
    return _backend


class _ConsoleProxy:
    """Delegates to whatever backend ``configure()`` last selected."""

    def __getattr__(self, name: str) -> object:
        return getattr(_backend, name)


console: ConsoleProtocol = _ConsoleProxy()  # type: ignore[assignment]
