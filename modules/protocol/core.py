"""Wire protocol between the worker and the orchestrator.

A worker's output is ordinary diagnostic text except for exactly one line
that starts with the marker and carries a JSON-encoded ``MeasurementSet``::

    <marker>{"measurements": [{"value": 1.0, "weight": 1.0, "unit": "ns",
             "description": "runtime"}], "outCharCount": 0, "errCharCount": 0}

Lines are classified one at a time with no state carried between them.
The scanner stops interpreting after the first data line but keeps reading
so the worker never blocks on a full pipe.

This module depends only on domain/ types and has zero external imports beyond stdlib.
"""

from __future__ import annotations

import json
import logging
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from domain.errors import MalformedWorkerOutputError
from domain.models import Measurement, MeasurementSet

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger = logging.getLogger("microbench.protocol")

# Printed by a worker whose benchmark code raised, instead of a data line.
FAILURE_MARKER = "[microbench] scenario failed: "


class LineKind(Enum):
    """What a single output line carries."""

    DATA = "data"
    FAILURE = "failure"
    PASSTHROUGH = "passthrough"


@dataclass(frozen=True)
class ScanResult:
    """What the scanner found in one worker's output."""

    payload: str | None
    failure_message: str | None
    line_count: int

    @property
    def found_marker(self) -> bool:
        """True when a data line was seen."""
        return self.payload is not None


# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------


def salted_marker(marker: str, salt: str | None = None) -> str:
    """Make a per-run marker that benchmark output will not produce by accident."""
    if salt is None:
        salt = secrets.token_hex(4)
    return f"{marker}{salt}/"


def format_marker_line(marker: str, measurement_set: MeasurementSet) -> str:
    """The single line a worker prints to report its measurements."""
    return marker + encode_measurement_set(measurement_set)


def classify(line: str, marker: str) -> LineKind:
    """Classify one output line."""
    if line.startswith(marker):
        return LineKind.DATA
    if line.startswith(FAILURE_MARKER):
        return LineKind.FAILURE
    return LineKind.PASSTHROUGH


# ---------------------------------------------------------------------------
# MeasurementSet JSON codec
# ---------------------------------------------------------------------------


def encode_measurement_set(measurement_set: MeasurementSet) -> str:
    """Encode a MeasurementSet as compact single-line JSON."""
    data = {
        "measurements": [
            {
                "value": m.value,
                "weight": m.weight,
                "unit": m.unit,
                "description": m.description,
            }
            for m in measurement_set.measurements
        ],
        "outCharCount": measurement_set.out_char_count,
        "errCharCount": measurement_set.err_char_count,
    }
    return json.dumps(data, separators=(",", ":"))


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _decode_measurement(payload: str, item: Any) -> Measurement:
    if not isinstance(item, dict):
        raise MalformedWorkerOutputError(payload, "measurement is not an object")
    value = item.get("value")
    weight = item.get("weight")
    unit = item.get("unit")
    description = item.get("description")
    if not (_is_number(value) and _is_number(weight)):
        raise MalformedWorkerOutputError(payload, "measurement value/weight must be numbers")
    if not (isinstance(unit, str) and isinstance(description, str)):
        raise MalformedWorkerOutputError(payload, "measurement unit/description must be strings")
    try:
        return Measurement(
            value=float(value), weight=float(weight), unit=unit, description=description
        )
    except ValueError as exc:
        raise MalformedWorkerOutputError(payload, str(exc)) from exc


def decode_measurement_set(payload: str) -> MeasurementSet:
    """Decode the JSON carried by a marker line.

    Raises:
        MalformedWorkerOutputError: if the payload is not valid JSON or does
            not have the MeasurementSet shape.
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedWorkerOutputError(payload, f"invalid JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise MalformedWorkerOutputError(payload, "payload is not an object")
    items = data.get("measurements")
    if not isinstance(items, list):
        raise MalformedWorkerOutputError(payload, "'measurements' must be a list")
    out_chars = data.get("outCharCount", 0)
    err_chars = data.get("errCharCount", 0)
    if not all(isinstance(c, int) and not isinstance(c, bool) for c in (out_chars, err_chars)):
        raise MalformedWorkerOutputError(payload, "char counts must be integers")
    return MeasurementSet(
        measurements=tuple(_decode_measurement(payload, item) for item in items),
        out_char_count=out_chars,
        err_char_count=err_chars,
    )


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------


def scan_output(
    lines: Iterable[str],
    marker: str,
    on_output: Callable[[str], None] | None = None,
) -> ScanResult:
    """Read every line, returning the first data line's payload.

    Every non-data line, and any data line after the first, is handed to
    *on_output* as pass-through text. The iterable is always exhausted.
    """
    payload: str | None = None
    failure: str | None = None
    count = 0
    for line in lines:
        count += 1
        kind = classify(line, marker) if payload is None else LineKind.PASSTHROUGH
        if kind is LineKind.DATA:
            payload = line[len(marker) :]
            continue
        if kind is LineKind.FAILURE and failure is None:
            failure = line[len(FAILURE_MARKER) :]
        if payload is not None and line.startswith(marker):
            logger.warning("Ignoring extra marker line after the first")
        if on_output is not None:
            on_output(line)
    return ScanResult(payload=payload, failure_message=failure, line_count=count)
