"""Adapter: TracemallocTracker implements AllocationTrackerPort.

tracemalloc exposes no running total of allocations, so the tracker reports
the two quantities it can observe honestly around one invocation:

- the number of blocks still alive at the end of the call (snapshot diff);
- the peak growth of traced memory during the call, which includes
  temporaries that were freed before it returned.
"""

from __future__ import annotations

import logging
import tracemalloc

logger = logging.getLogger("microbench.adapters")


class TracemallocTracker:
    """Concrete AllocationTrackerPort backed by the stdlib tracemalloc module."""

    def __init__(self) -> None:
        self._before: tracemalloc.Snapshot | None = None
        self._baseline = 0
        self._started_tracing = False

    def start(self) -> None:
        if not tracemalloc.is_tracing():
            tracemalloc.start()
            self._started_tracing = True
        tracemalloc.clear_traces()
        self._before = tracemalloc.take_snapshot()
        tracemalloc.reset_peak()
        self._baseline = tracemalloc.get_traced_memory()[0]

    def stop(self) -> tuple[int, int]:
        if self._before is None:
            msg = "stop() called before start()"
            raise RuntimeError(msg)
        peak = tracemalloc.get_traced_memory()[1]
        after = tracemalloc.take_snapshot()
        before, self._before = self._before, None
        if self._started_tracing:
            tracemalloc.stop()
            self._started_tracing = False

        retained = sum(
            stat.count_diff for stat in after.compare_to(before, "lineno") if stat.count_diff > 0
        )
        peak_bytes = max(peak - self._baseline, 0)
        logger.debug("Tracked %d retained blocks, %d peak bytes", retained, peak_bytes)
        return retained, peak_bytes
