"""Results module — persists run outcomes as structured JSON files.

A saved file holds every scenario, VM, instrument, per-trial result and
failure of one run, so a report can be rebuilt from it later without
re-running the benchmark.

This module depends only on domain/ types and has zero external imports beyond stdlib.
"""

from __future__ import annotations

import dataclasses
import json
from enum import Enum
from typing import TYPE_CHECKING, Any

from domain.models import (
    FailureKind,
    Instrument,
    Measurement,
    MeasurementType,
    Result,
    RunOutcome,
    Scenario,
    TrialFailure,
    Vm,
)

if TYPE_CHECKING:
    from domain.ports import FileSystemPort

FORMAT_VERSION = 1


class _EnumEncoder(json.JSONEncoder):
    """JSON encoder that serializes Enum values as their .value strings."""

    def default(self, o: object) -> Any:
        if isinstance(o, Enum):
            return o.value
        return super().default(o)


def outcome_to_dict(outcome: RunOutcome, run_id: str) -> dict[str, object]:
    """Convert a RunOutcome to a JSON-serializable dict."""
    data: dict[str, object] = {"version": FORMAT_VERSION, "run_id": run_id}
    data.update(dataclasses.asdict(outcome))
    return data


def outcome_from_dict(data: dict[str, Any]) -> RunOutcome:
    """Reconstruct a RunOutcome from a deserialized JSON dict.

    Raises:
        ValueError: the data is not a saved run in a format this version reads.
    """
    if data.get("version") != FORMAT_VERSION:
        msg = f"Unsupported results format version: {data.get('version')!r}"
        raise ValueError(msg)
    try:
        return RunOutcome(
            scenarios=tuple(Scenario(**s) for s in data["scenarios"]),
            vms=tuple(Vm(**v) for v in data["vms"]),
            instruments=tuple(
                Instrument(i["local_name"], MeasurementType(i["measurement_type"]))
                for i in data["instruments"]
            ),
            results=tuple(
                Result(
                    local_name=r["local_name"],
                    scenario_local_name=r["scenario_local_name"],
                    instrument_local_name=r["instrument_local_name"],
                    measurements=tuple(Measurement(**m) for m in r["measurements"]),
                    messages=tuple(r["messages"]),
                )
                for r in data["results"]
            ),
            failures=tuple(
                TrialFailure(**{**f, "kind": FailureKind(f["kind"])}) for f in data["failures"]
            ),
            skipped=tuple(data["skipped"]),
        )
    except (KeyError, TypeError) as exc:
        msg = f"Malformed results file: {exc}"
        raise ValueError(msg) from exc


def default_file_name(outcome: RunOutcome, run_id: str) -> str:
    """``<module>.<Class>.<run_id>.json`` for the benchmark that was run."""
    benchmark = outcome.scenarios[0].benchmark_class if outcome.scenarios else "run"
    return f"{benchmark.replace(':', '.')}.{run_id}.json"


class ResultStore:
    """Saves and loads run outcomes.

    Constructor-injected FileSystemPort handles all file I/O.
    This class contains only serialization, deserialization, and path logic.
    """

    def __init__(self, fs: FileSystemPort) -> None:
        self._fs = fs

    def save(self, outcome: RunOutcome, target: str, run_id: str) -> str:
        """Write *outcome* to *target* and return the path written.

        A *target* ending in ``.json`` names the file itself; anything else is
        a directory that receives a file named after the benchmark and run.
        """
        path = target
        if not target.endswith(".json"):
            path = f"{target.rstrip('/')}/{default_file_name(outcome, run_id)}"

        content = (
            json.dumps(outcome_to_dict(outcome, run_id), indent=2, ensure_ascii=False, cls=_EnumEncoder)
            + "\n"
        )
        self._fs.write_file(path, content)
        return path

    def load(self, path: str) -> RunOutcome:
        """Read a saved outcome.

        Raises:
            FileNotFoundError: no such file.
            ValueError: the file is not a saved run.
        """
        if not self._fs.file_exists(path):
            msg = f"No results file at {path}"
            raise FileNotFoundError(msg)
        try:
            data = json.loads(self._fs.read_file(path))
        except json.JSONDecodeError as exc:
            msg = f"{path} is not valid JSON: {exc}"
            raise ValueError(msg) from exc
        if not isinstance(data, dict):
            msg = f"{path} does not hold a saved run"
            raise ValueError(msg)
        return outcome_from_dict(data)
