"""Tests for modules/protocol/core.py — marker lines and output scanning."""

from __future__ import annotations

import json
from typing import Any

import pytest

from domain.errors import MalformedWorkerOutputError
from domain.models import Measurement, MeasurementSet
from modules.protocol.core import (
    FAILURE_MARKER,
    LineKind,
    classify,
    decode_measurement_set,
    encode_measurement_set,
    format_marker_line,
    salted_marker,
    scan_output,
)

MARKER = "//ZxJ/abcd1234/"


# ── Markers ───────────────────────────────────────────────────────────────


def test_salted_marker_appends_salt() -> None:
    assert salted_marker("//ZxJ/", "abcd1234") == MARKER


def test_salted_marker_is_random_per_call() -> None:
    first = salted_marker("//ZxJ/")
    second = salted_marker("//ZxJ/")
    assert first.startswith("//ZxJ/")
    assert first.endswith("/")
    assert len(first) == len("//ZxJ/") + 8 + 1
    assert first != second


def test_classify_lines() -> None:
    assert classify(MARKER + "{}", MARKER) is LineKind.DATA
    assert classify(FAILURE_MARKER + "oops", MARKER) is LineKind.FAILURE
    assert classify("hello", MARKER) is LineKind.PASSTHROUGH
    # The unsalted prefix alone is ordinary output
    assert classify("//ZxJ/{}", MARKER) is LineKind.PASSTHROUGH


# ── Codec ─────────────────────────────────────────────────────────────────


def test_encoded_set_is_one_compact_json_line(make_measurement_set: Any) -> None:
    text = encode_measurement_set(make_measurement_set(values=(1.0,), out_chars=120))
    assert "\n" not in text
    assert json.loads(text) == {
        "measurements": [{"value": 1.0, "weight": 1.0, "unit": "ns", "description": "runtime"}],
        "outCharCount": 120,
        "errCharCount": 0,
    }


def test_round_trip_three_measurements_with_char_counts() -> None:
    original = MeasurementSet(
        measurements=(
            Measurement(100.0, 1.0, "ns", "runtime"),
            Measurement(400.0, 2.0, "ns", "runtime"),
            Measurement(1200.0, 4.0, "ns", "runtime"),
        ),
        out_char_count=120,
        err_char_count=0,
    )
    line = format_marker_line(MARKER, original)

    scan = scan_output([line], MARKER)
    assert scan.payload is not None
    decoded = decode_measurement_set(scan.payload)

    assert decoded == original
    assert (decoded.out_char_count, decoded.err_char_count) == (120, 0)


@pytest.mark.parametrize(
    ("payload", "reason"),
    [
        ("not json", "invalid JSON"),
        ("[1, 2]", "not an object"),
        ('{"measurements": 3}', "must be a list"),
        ('{"measurements": [5]}', "not an object"),
        ('{"measurements": [{"value": "x", "weight": 1, "unit": "ns", "description": "d"}]}', "numbers"),
        ('{"measurements": [{"value": 1, "weight": 1, "unit": 2, "description": "d"}]}', "strings"),
        ('{"measurements": [{"value": 1, "weight": 0, "unit": "ns", "description": "d"}]}', "weight"),
        ('{"measurements": [], "outCharCount": "many"}', "char counts"),
    ],
)
def test_malformed_payloads_rejected(payload: str, reason: str) -> None:
    with pytest.raises(MalformedWorkerOutputError, match=reason) as excinfo:
        decode_measurement_set(payload)
    assert excinfo.value.payload == payload


def test_missing_char_counts_default_to_zero() -> None:
    decoded = decode_measurement_set('{"measurements": []}')
    assert decoded == MeasurementSet()


# ── Scanning ──────────────────────────────────────────────────────────────


def test_scan_drains_every_line_after_marker() -> None:
    consumed: list[str] = []

    def lines() -> Any:
        for line in ["starting", MARKER + '{"measurements": []}', "late 1", "late 2"]:
            consumed.append(line)
            yield line

    passthrough: list[str] = []
    scan = scan_output(lines(), MARKER, passthrough.append)

    assert len(consumed) == 4
    assert scan.line_count == 4
    assert scan.payload == '{"measurements": []}'
    assert passthrough == ["starting", "late 1", "late 2"]


def test_first_marker_line_wins() -> None:
    passthrough: list[str] = []
    scan = scan_output(
        [MARKER + '{"measurements": []}', MARKER + '{"measurements": [1]}'],
        MARKER,
        passthrough.append,
    )
    assert scan.payload == '{"measurements": []}'
    assert passthrough == [MARKER + '{"measurements": [1]}']


def test_scan_without_marker() -> None:
    scan = scan_output(["a", "b"], MARKER)
    assert scan.payload is None
    assert not scan.found_marker
    assert scan.failure_message is None


def test_scan_records_failure_line() -> None:
    scan = scan_output(["Traceback", FAILURE_MARKER + "time_op raised ValueError: x"], MARKER)
    assert scan.payload is None
    assert scan.failure_message == "time_op raised ValueError: x"
