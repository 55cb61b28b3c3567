"""Core data types for microbench.

All types are frozen dataclasses with complete type annotations.
This module has ZERO imports from outside the Python standard library.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from domain.errors import InvariantViolation


class MeasurementType(Enum):
    """Category of measurement taken by an instrument."""

    TIME = "time"
    INSTANCE = "instance"
    MEMORY = "memory"
    DEBUG = "debug"


class FailureKind(Enum):
    """Why a single trial of a scenario produced no result."""

    USER_CODE = "user_code"
    NO_MEASUREMENT = "no_measurement"
    MALFORMED_OUTPUT = "malformed_output"
    EXIT_STATUS = "exit_status"
    LAUNCH = "launch"


# ---------------------------------------------------------------------------
# Measurements
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Measurement:
    """A raw sample taken during one trial.

    ``value`` was accumulated over ``weight`` repetitions, so the
    per-repetition sample is ``value / weight``.
    """

    value: float
    weight: float
    unit: str
    description: str

    def __post_init__(self) -> None:
        if not self.weight > 0:
            msg = f"Measurement weight must be positive, got {self.weight}"
            raise ValueError(msg)

    @property
    def normalized(self) -> float:
        """Per-repetition value."""
        return self.value / self.weight


@dataclass(frozen=True)
class MeasurementSet:
    """Measurements from one worker run plus the benchmark's output volume."""

    measurements: tuple[Measurement, ...] = ()
    out_char_count: int = 0
    err_char_count: int = 0

    def plus_char_counts(self, out_chars: int, err_chars: int) -> MeasurementSet:
        """Return a copy with the given character counts added."""
        return MeasurementSet(
            measurements=self.measurements,
            out_char_count=self.out_char_count + out_chars,
            err_char_count=self.err_char_count + err_chars,
        )


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Vm:
    """An interpreter binary scenarios can run on."""

    local_name: str
    name: str
    executable: str


@dataclass(frozen=True)
class Scenario:
    """One concrete combination of method, VM, user parameters and VM arguments."""

    local_name: str
    benchmark_class: str
    benchmark_method_name: str
    vm_local_name: str
    user_parameters: dict[str, str] = field(default_factory=lambda: dict[str, str]())
    vm_arguments: dict[str, str] = field(default_factory=lambda: dict[str, str]())

    def __hash__(self) -> int:
        return hash(self.local_name)

    def describe(self) -> str:
        """Human-readable one-liner used in worker and failure messages."""
        parts = [f"{self.benchmark_class}.{self.benchmark_method_name}"]
        parts.extend(f"{k}={v}" for k, v in self.user_parameters.items())
        parts.extend(f"{k}={v}" for k, v in self.vm_arguments.items())
        return " ".join(parts)


@dataclass(frozen=True)
class Instrument:
    """The kind of measurement taken for every scenario."""

    local_name: str
    measurement_type: MeasurementType

    @classmethod
    def of(cls, measurement_type: MeasurementType) -> Instrument:
        """Instrument whose local name is the measurement type's value."""
        return cls(local_name=measurement_type.value, measurement_type=measurement_type)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Result:
    """Measurements and messages for one scenario under one instrument."""

    local_name: str
    scenario_local_name: str
    instrument_local_name: str
    measurements: tuple[Measurement, ...] = ()
    messages: tuple[str, ...] = ()

    def combine(self, other: Result) -> Result:
        """Concatenate another trial's measurements onto this result.

        Raises:
            InvariantViolation: if the two results belong to different
                scenarios or instruments.
        """
        if other.scenario_local_name != self.scenario_local_name:
            msg = (
                f"Cannot combine results of scenario '{self.scenario_local_name}' "
                f"with '{other.scenario_local_name}'"
            )
            raise InvariantViolation(msg)
        if other.instrument_local_name != self.instrument_local_name:
            msg = (
                f"Cannot combine results of instrument '{self.instrument_local_name}' "
                f"with '{other.instrument_local_name}'"
            )
            raise InvariantViolation(msg)
        return Result(
            local_name=self.local_name,
            scenario_local_name=self.scenario_local_name,
            instrument_local_name=self.instrument_local_name,
            measurements=self.measurements + other.measurements,
            messages=self.messages + other.messages,
        )


@dataclass(frozen=True)
class ProcessedResult:
    """Summary statistics of one scenario's combined measurements."""

    values: tuple[float, ...]
    min: float
    max: float
    median: float
    mean: float
    unit: str
    description: str


@dataclass(frozen=True)
class Axis:
    """A scenario variable and the distinct values it took, in first-seen order."""

    name: str
    values: tuple[str, ...]
    variance: float = 0.0

    @property
    def is_singleton(self) -> bool:
        """True when only one value was observed."""
        return len(self.values) == 1

    def index(self, value: str) -> int:
        """Position of *value* among the observed values."""
        return self.values.index(value)


# ---------------------------------------------------------------------------
# Run configuration and outcome
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RunOptions:
    """Resolved options for one orchestrator invocation."""

    benchmark_class: str
    benchmark_methods: tuple[str, ...] = ()
    vms: tuple[str, ...] = ()
    user_parameters: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: dict[str, tuple[str, ...]]()
    )
    vm_arguments: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: dict[str, tuple[str, ...]]()
    )
    trials: int = 1
    instruments: tuple[MeasurementType, ...] = (MeasurementType.TIME,)
    warmup_millis: int = 3000
    run_millis: int = 1000
    debug_reps: int = 1000
    marker: str = "//ZxJ/"
    dry_run: bool = False
    print_score: bool = False
    time_unit: str | None = None
    verbose: bool = False
    worker_timeout: float | None = None


@dataclass(frozen=True)
class TrialFailure:
    """A trial that produced no usable measurement."""

    scenario_local_name: str
    instrument_local_name: str
    trial: int
    kind: FailureKind
    message: str
    exit_code: int | None = None


@dataclass(frozen=True)
class RunOutcome:
    """Everything the orchestrator learned about a run."""

    scenarios: tuple[Scenario, ...]
    vms: tuple[Vm, ...]
    instruments: tuple[Instrument, ...]
    results: tuple[Result, ...] = ()
    failures: tuple[TrialFailure, ...] = ()
    skipped: tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        """True when no trial failed."""
        return not self.failures
