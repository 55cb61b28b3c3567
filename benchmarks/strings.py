"""String building benchmarks.

Run from the repository root::

    microbench benchmarks.strings:Concat -D length=10,1000 --print-score
"""

from __future__ import annotations

import io

from domain.benchmark import Benchmark


class Concat(Benchmark):
    """Three ways of joining ``length`` short words into one string."""

    params = {"length": ("10", "100", "1000")}

    length: int

    def set_up(self) -> None:
        self.words = [str(i % 10) for i in range(self.length)]

    def time_join(self, reps: int) -> int:
        total = 0
        for _ in range(reps):
            total += len("".join(self.words))
        return total

    def time_plus(self, reps: int) -> int:
        total = 0
        for _ in range(reps):
            text = ""
            for word in self.words:
                text += word
            total += len(text)
        return total

    def time_string_io(self, reps: int) -> int:
        total = 0
        for _ in range(reps):
            buffer = io.StringIO()
            for word in self.words:
                buffer.write(word)
            total += len(buffer.getvalue())
        return total


class Format(Benchmark):
    """f-strings against ``%`` and ``str.format``, with and without a float."""

    params = {"with_float": ("false", "true")}

    with_float: bool

    def set_up(self) -> None:
        self.value = 3.25 if self.with_float else 3

    def time_fstring(self, reps: int) -> int:
        total = 0
        for i in range(reps):
            total += len(f"item {i}: {self.value}")
        return total

    def time_percent(self, reps: int) -> int:
        total = 0
        for i in range(reps):
            total += len("item %s: %s" % (i, self.value))  # noqa: UP031
        return total

    def time_format(self, reps: int) -> int:
        total = 0
        for i in range(reps):
            total += len("item {}: {}".format(i, self.value))  # noqa: UP032
        return total
