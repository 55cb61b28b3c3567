"""The bundled demo benchmarks plan and run through the real loader."""

from __future__ import annotations

import pytest

import wiring
from adapters.benchmark_loader import ImportlibBenchmarkLoader
from domain.models import RunOptions
from modules.measurers.core import timed_method

DEMOS = ["benchmarks.strings:Concat", "benchmarks.strings:Format", "benchmarks.containers:Membership"]


@pytest.mark.parametrize("class_name", DEMOS)
def test_every_scenario_runs(class_name: str) -> None:
    loader = ImportlibBenchmarkLoader()
    plan = wiring.plan_run(RunOptions(benchmark_class=class_name), loader)
    benchmark_class = loader.load(class_name)

    assert plan.scenarios
    for scenario in plan.scenarios:
        benchmark = loader.create(benchmark_class, scenario.user_parameters)
        benchmark.set_up()
        try:
            timed_method(benchmark, scenario.benchmark_method_name)(3)
        finally:
            benchmark.tear_down()


def test_membership_skips_empty_immutable_containers() -> None:
    plan = wiring.plan_run(
        RunOptions(benchmark_class="benchmarks.containers:Membership"), ImportlibBenchmarkLoader()
    )
    skipped = {(s.user_parameters["size"], s.user_parameters["container"]) for s in plan.skipped}
    assert skipped == {("0", "tuple"), ("0", "set")}
    assert len(plan.scenarios) == 2 * 9 - 4
