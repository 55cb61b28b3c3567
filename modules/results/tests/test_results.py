"""Tests for modules/results/core.py — saved run outcomes."""

from __future__ import annotations

import json
from typing import Any

import pytest

from domain.models import FailureKind, Instrument, MeasurementType, RunOutcome, TrialFailure
from modules.results.core import ResultStore, default_file_name


@pytest.fixture
def outcome(make_scenario: Any, make_vm: Any, make_result: Any) -> RunOutcome:
    return RunOutcome(
        scenarios=(
            make_scenario("scenario-0", user_parameters={"length": "10"}),
            make_scenario("scenario-1", user_parameters={"length": "1000"}, vm_arguments={"opt": "-O"}),
        ),
        vms=(make_vm(),),
        instruments=(Instrument.of(MeasurementType.TIME),),
        results=(make_result("scenario-0", (1.0, 2.0), messages=["benchmark wrote 3 characters to stdout"]),),
        failures=(
            TrialFailure(
                scenario_local_name="scenario-1",
                instrument_local_name="time",
                trial=1,
                kind=FailureKind.USER_CODE,
                message="time_join raised ValueError: boom",
                exit_code=1,
            ),
        ),
        skipped=("scenario-2",),
    )


def test_save_to_directory_names_file_after_benchmark(in_memory_fs: Any, outcome: RunOutcome) -> None:
    path = ResultStore(in_memory_fs).save(outcome, "results/", "20260227T120000Z")

    assert path == "results/bench.Concat.20260227T120000Z.json"
    data = json.loads(in_memory_fs.read_file(path))
    assert data["run_id"] == "20260227T120000Z"
    assert data["version"] == 1


def test_save_to_explicit_json_file(in_memory_fs: Any, outcome: RunOutcome) -> None:
    path = ResultStore(in_memory_fs).save(outcome, "out/run.json", "r1")
    assert path == "out/run.json"


def test_enums_stored_as_strings(in_memory_fs: Any, outcome: RunOutcome) -> None:
    path = ResultStore(in_memory_fs).save(outcome, "run.json", "r1")
    data = json.loads(in_memory_fs.read_file(path))
    assert data["instruments"][0]["measurement_type"] == "time"
    assert data["failures"][0]["kind"] == "user_code"


def test_saved_outcome_loads_back_equal(in_memory_fs: Any, outcome: RunOutcome) -> None:
    store = ResultStore(in_memory_fs)
    path = store.save(outcome, "run.json", "r1")
    assert store.load(path) == outcome


def test_load_missing_file(in_memory_fs: Any) -> None:
    with pytest.raises(FileNotFoundError):
        ResultStore(in_memory_fs).load("nope.json")


def test_load_rejects_other_json(in_memory_fs: Any) -> None:
    in_memory_fs.write_file("other.json", '{"version": 99}')
    with pytest.raises(ValueError, match="version"):
        ResultStore(in_memory_fs).load("other.json")


def test_load_rejects_invalid_json(in_memory_fs: Any) -> None:
    in_memory_fs.write_file("bad.json", "{")
    with pytest.raises(ValueError, match="not valid JSON"):
        ResultStore(in_memory_fs).load("bad.json")


def test_default_file_name_without_scenarios() -> None:
    empty = RunOutcome(scenarios=(), vms=(), instruments=())
    assert default_file_name(empty, "r1") == "run.r1.json"
