"""Tests for the TracemallocTracker adapter."""

from __future__ import annotations

import tracemalloc

import pytest

from adapters.tracemalloc_tracker import TracemallocTracker


def test_retained_objects_are_counted() -> None:
    tracker = TracemallocTracker()
    tracker.start()
    kept = [object() for _ in range(1000)]
    count, size = tracker.stop()

    assert len(kept) == 1000
    assert count >= 1000
    assert size >= 1000 * 16


def test_freed_temporaries_still_count_towards_peak_bytes() -> None:
    tracker = TracemallocTracker()
    tracker.start()
    for _ in range(100):
        batch = [object() for _ in range(1000)]
        del batch
    count, size = tracker.stop()

    assert size >= 1000 * 16
    assert count < 1000


def test_tracing_stopped_if_tracker_started_it() -> None:
    assert not tracemalloc.is_tracing()
    tracker = TracemallocTracker()
    tracker.start()
    assert tracemalloc.is_tracing()
    tracker.stop()
    assert not tracemalloc.is_tracing()


def test_existing_tracing_left_running() -> None:
    tracemalloc.start()
    try:
        tracker = TracemallocTracker()
        tracker.start()
        tracker.stop()
        assert tracemalloc.is_tracing()
    finally:
        tracemalloc.stop()


def test_stop_without_start() -> None:
    with pytest.raises(RuntimeError, match="before start"):
        TracemallocTracker().stop()
