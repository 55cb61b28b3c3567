"""Error taxonomy for microbench.

Lower layers raise these; only the kernel entry points (``kernel/cli.py``
and ``kernel/worker.py``) turn them into console output and exit codes.

This module has ZERO imports from outside the Python standard library.
"""

from __future__ import annotations


class MicrobenchError(Exception):
    """Base class for every error microbench raises on purpose."""


# ---------------------------------------------------------------------------
# User configuration errors
# ---------------------------------------------------------------------------


class ConfigurationError(MicrobenchError):
    """The requested run is invalid; nothing was measured."""


class DuplicateParameterError(ConfigurationError):
    """A name was given both as a user parameter and a VM argument."""

    def __init__(self, names: list[str]) -> None:
        self.names = sorted(names)
        super().__init__(
            "Parameter names used for both benchmark parameters and VM arguments: "
            + ", ".join(self.names)
        )


class NoScenariosError(ConfigurationError):
    """The scenario matrix came out empty."""


class InvalidOptionError(ConfigurationError):
    """An option has an unusable value or conflicts with another option."""


class BenchmarkLoadError(ConfigurationError):
    """The benchmark class could not be imported or has no timed methods."""


class ScenarioCountError(ConfigurationError):
    """A worker was asked to run something other than exactly one scenario."""

    def __init__(self, count: int) -> None:
        self.count = count
        super().__init__(
            f"Invalid arguments to worker: expected exactly one scenario but got {count}"
        )


# ---------------------------------------------------------------------------
# User benchmark code errors
# ---------------------------------------------------------------------------


class UserCodeError(MicrobenchError):
    """Benchmark set-up, invocation or tear-down raised."""

    def __init__(self, where: str, cause: BaseException) -> None:
        self.where = where
        self.cause = cause
        super().__init__(f"{where} raised {type(cause).__name__}: {cause}")


# ---------------------------------------------------------------------------
# Worker communication errors
# ---------------------------------------------------------------------------


class WorkerCommunicationError(MicrobenchError):
    """The parent could not get a measurement out of a worker."""


class MalformedWorkerOutputError(WorkerCommunicationError):
    """A marker line was found but its payload does not decode."""

    def __init__(self, payload: str, reason: str) -> None:
        self.payload = payload
        self.reason = reason
        shown = payload if len(payload) <= 200 else payload[:200] + "..."
        super().__init__(f"Malformed worker output ({reason}): {shown}")


class WorkerLaunchError(WorkerCommunicationError):
    """The worker process could not be started or did not finish in time."""


# ---------------------------------------------------------------------------
# Programming errors
# ---------------------------------------------------------------------------


class InvariantViolation(MicrobenchError):
    """Scenario bookkeeping is inconsistent. Indicates a bug, never user error."""
