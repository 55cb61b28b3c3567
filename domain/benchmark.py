"""Base class for user benchmarks.

A benchmark is a class whose timed methods are named ``time_<name>`` and take
a single ``reps`` argument: the number of times to repeat the operation under
test::

    class ConcatBenchmark(Benchmark):
        params = {"length": ("10", "1000")}

        length: int

        def set_up(self) -> None:
            self.words = ["x"] * self.length

        def time_join(self, reps: int) -> int:
            total = 0
            for _ in range(reps):
                total += len("".join(self.words))
            return total

Parameter values travel as strings. When the class annotates a parameter
as ``int``, ``float`` or ``bool`` the value is converted before ``set_up``.

This module has ZERO imports from outside the Python standard library.
"""

from __future__ import annotations

from typing import ClassVar


class SkipScenario(Exception):  # noqa: N818
    """Raised from ``set_up`` to veto the current parameter combination.

    A skipped scenario is not a failure: it simply produces no result.
    """


class Benchmark:
    """Base class providing no-op lifecycle hooks."""

    params: ClassVar[dict[str, tuple[str, ...]]] = {}

    def set_up(self) -> None:
        """Called on a fresh instance before the timed method."""

    def tear_down(self) -> None:
        """Called after the timed method, even when it raised."""

    @classmethod
    def should_skip(cls, parameters: dict[str, str]) -> bool:
        """Return True to veto a parameter combination before any worker starts."""
        return False
