"""
kernel/worker.py -- Child-process entry point: ``python -m kernel.worker``.

Started by the subprocess launcher once per scenario trial. Measures exactly
one scenario and reports it on stdout; see modules/worker/core.py for the
output and exit status contract.
"""

from __future__ import annotations

import sys

from adapters.benchmark_loader import ImportlibBenchmarkLoader
from adapters.tracemalloc_tracker import TracemallocTracker
from modules.worker.core import WorkerRunner


def main() -> None:
    runner = WorkerRunner(ImportlibBenchmarkLoader(), TracemallocTracker())
    sys.exit(runner.run(sys.argv[1:]))


if __name__ == "__main__":
    main()
