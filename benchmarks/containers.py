"""Container lookup benchmarks.

``should_skip`` drops the combinations that would only measure an empty
container::

    microbench benchmarks.containers:Membership --measure-memory
"""

from __future__ import annotations

from domain.benchmark import Benchmark, SkipScenario


class Membership(Benchmark):
    """``in`` on a list, a tuple and a set holding ``size`` integers."""

    params = {"size": ("0", "10", "1000"), "container": ("list", "tuple", "set")}

    size: int
    container: str

    @classmethod
    def should_skip(cls, parameters: dict[str, str]) -> bool:
        return parameters["size"] == "0" and parameters["container"] != "list"

    def set_up(self) -> None:
        kinds = {"list": list, "tuple": tuple, "set": set}
        if self.container not in kinds:
            msg = f"unknown container '{self.container}'"
            raise SkipScenario(msg)
        self.items = kinds[self.container](range(self.size))
        self.needle = self.size // 2

    def time_hit(self, reps: int) -> int:
        found = 0
        for _ in range(reps):
            if self.needle in self.items:
                found += 1
        return found

    def time_miss(self, reps: int) -> int:
        found = 0
        for _ in range(reps):
            if -1 in self.items:
                found += 1
        return found

    def tear_down(self) -> None:
        del self.items
