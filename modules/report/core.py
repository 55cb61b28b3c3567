"""Report module — ranks scenario measurements and renders them as a text table.

Results are grouped per scenario, reduced to summary statistics, and laid
out along the scenario variables (axes) that actually vary. Axes that
explain more of the spread between medians come first, both as columns and
as sort keys. Sample output::

    Results for time:
    length benchmark         ns runtime
        10      join    412.118 =
        10    concat    301.402 =
      1000      join  30144.377 ==============================
      1000    concat  25011.950 =========================

    vm: python

This module depends only on domain/ types and has zero external imports beyond stdlib.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from domain.models import Axis, ProcessedResult

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from domain.models import Instrument, Result, RunOutcome, Scenario, Vm

MAX_PARAM_WIDTH = 30
BAR_GRAPH_WIDTH = 30

UNITS_FOR_SCORE_100 = 1
UNITS_FOR_SCORE_10 = 1_000_000_000

# Time units a report can be shown in, as multiples of a nanosecond.
TIME_UNITS: dict[str, float] = {"ns": 1.0, "us": 1e3, "ms": 1e6, "s": 1e9}


class LinearTranslation:
    """Maps one linear scale onto another through two anchor points."""

    def __init__(self, in1: float, out1: float, in2: float, out2: float) -> None:
        if in1 == in2:
            msg = "Anchor inputs must differ"
            raise ValueError(msg)
        self._slope = (out2 - out1) / (in2 - in1)
        self._intercept = out1 - self._slope * in1

    def translate(self, value: float) -> float:
        return self._slope * value + self._intercept


_SCORE_TRANSLATION = LinearTranslation(
    math.log(UNITS_FOR_SCORE_10), 10, math.log(UNITS_FOR_SCORE_100), 100
)


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


def compute_median(values: Sequence[float]) -> float:
    """Median; the mean of the two middle values for even-length input."""
    if not values:
        msg = "median of empty sequence"
        raise ValueError(msg)
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 1:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def compute_mean(values: Sequence[float]) -> float:
    if not values:
        msg = "mean of empty sequence"
        raise ValueError(msg)
    return sum(values) / len(values)


def combine_results(results: Iterable[Result], instrument_local_name: str) -> dict[str, Result]:
    """Merge the per-trial results of each scenario for one instrument.

    Results without measurements (debug runs) are left out.
    """
    combined: dict[str, Result] = {}
    for result in results:
        if result.instrument_local_name != instrument_local_name or not result.measurements:
            continue
        existing = combined.get(result.scenario_local_name)
        combined[result.scenario_local_name] = (
            result if existing is None else existing.combine(result)
        )
    return combined


def process_result(result: Result, time_unit: str | None = None) -> ProcessedResult:
    """Summary statistics of a combined result.

    When *time_unit* is given and the result is in nanoseconds, values are
    converted to that unit.
    """
    if not result.measurements:
        msg = f"Result {result.local_name} has no measurements"
        raise ValueError(msg)
    first = result.measurements[0]
    unit = first.unit
    scale = 1.0
    if time_unit is not None and unit == "ns" and time_unit in TIME_UNITS:
        scale = TIME_UNITS[time_unit]
        unit = time_unit
    values = tuple(m.normalized / scale for m in result.measurements)
    return ProcessedResult(
        values=values,
        min=min(values),
        max=max(values),
        median=compute_median(values),
        mean=compute_mean(values),
        unit=unit,
        description=first.description,
    )


# ---------------------------------------------------------------------------
# Axes
# ---------------------------------------------------------------------------


def scenario_variables(scenario: Scenario, vm_names: Mapping[str, str]) -> dict[str, str]:
    """All variables of a scenario, in axis declaration order."""
    variables = {
        "benchmark": scenario.benchmark_method_name,
        "vm": vm_names.get(scenario.vm_local_name, scenario.vm_local_name),
    }
    variables.update(scenario.user_parameters)
    variables.update(scenario.vm_arguments)
    return variables


def build_axes(
    variables: Mapping[str, Mapping[str, str]],
    medians: Mapping[str, float],
) -> list[Axis]:
    """One axis per variable, with its influence on the medians as variance.

    *variables* maps displayed scenario names (in declaration order) to their
    variables; values keep first-seen order. The variance is taken over the
    per-value sums of medians: an axis whose values all sum alike explains
    none of the spread.
    """
    observed: dict[str, list[str]] = {}
    for scenario_vars in variables.values():
        for name, value in scenario_vars.items():
            values = observed.setdefault(name, [])
            if value not in values:
                values.append(value)

    total = sum(medians[name] for name in variables)
    axes: list[Axis] = []
    for name, values in observed.items():
        sums = [0.0] * len(values)
        for scenario_name, scenario_vars in variables.items():
            sums[values.index(scenario_vars[name])] += medians[scenario_name]
        mean = total / len(sums)
        variance = sum((s - mean) ** 2 for s in sums) / len(sums)
        axes.append(Axis(name=name, values=tuple(values), variance=variance))
    return axes


def sort_axes(axes: Iterable[Axis]) -> list[Axis]:
    """Most influential axis first; ties keep declaration order."""
    return sorted(axes, key=lambda axis: -axis.variance)


def sort_scenarios(
    variables: Mapping[str, Mapping[str, str]],
    axes: Sequence[Axis],
) -> list[str]:
    """Order scenario names by their value positions along *axes*, in order."""

    def key(scenario_name: str) -> tuple[int, ...]:
        scenario_vars = variables[scenario_name]
        return tuple(axis.index(scenario_vars[axis.name]) for axis in axes)

    return sorted(variables, key=key)


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _round(value: float) -> int:
    """Round half away from zero."""
    return int(math.floor(abs(value) + 0.5)) * (1 if value >= 0 else -1)


def truncate(text: str, max_length: int) -> str:
    """Shorten *text* to *max_length*, marking the cut with a trailing ``+``."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 1] + "+"


def bar_graph(
    value: float,
    min_value: float,
    max_value: float,
    width: int = BAR_GRAPH_WIDTH,
) -> str:
    """A bar proportional to *value* within the displayed range.

    With no negative values the bar runs from the left edge and is at
    least one character long. Otherwise the bars diverge from a ``0``
    column placed proportionally between the minimum and maximum::

        ========0
           =====0
                0========
    """
    if min_value >= 0:
        if max_value <= 0:
            return "="
        length = _round(value / max_value * width)
        return "=" * min(width, max(1, length))

    span = max_value - min_value
    zero_index = width if span <= 0 else _round(-min_value * width / span)
    if value < 0:
        length = min(zero_index, _round(value / min_value * zero_index))
        return " " * (zero_index - length) + "=" * length + "0"
    positive_room = width - zero_index
    length = 0 if max_value <= 0 else _round(value / max_value * positive_room)
    return " " * zero_index + "0" + "=" * min(positive_room, length)


def score(medians: Iterable[float]) -> float | None:
    """Aggregate score of a run: higher is faster.

    The arithmetic mean of the log medians (the log of their geometric mean)
    is mapped so that 1 unit scores 100 and 1e9 units score 10. Returns
    None when any median is not positive.
    """
    values = list(medians)
    if not values or any(v <= 0 for v in values):
        return None
    mean_log = sum(math.log(v) for v in values) / len(values)
    return _SCORE_TRANSLATION.translate(mean_log)


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


def render_report(
    instrument: Instrument,
    scenarios: Sequence[Scenario],
    vms: Sequence[Vm],
    results: Iterable[Result],
    print_score: bool = False,
    time_unit: str | None = None,
) -> str:
    """Render the table for one instrument. Returns "" when it has no data."""
    combined = combine_results(results, instrument.local_name)
    if not combined:
        return ""
    processed = {name: process_result(r, time_unit) for name, r in combined.items()}

    vm_names = {vm.local_name: vm.name for vm in vms}
    variables = {
        s.local_name: scenario_variables(s, vm_names)
        for s in scenarios
        if s.local_name in processed
    }
    medians = {name: p.median for name, p in processed.items()}
    axes = sort_axes(build_axes(variables, medians))
    rows = sort_scenarios(variables, axes)

    shown_axes = [a for a in axes if not a.is_singleton]
    widths = {
        a.name: min(max(len(a.name), *(len(v) for v in a.values)), MAX_PARAM_WIDTH)
        for a in shown_axes
    }
    first = processed[rows[0]]
    measurement_width = max(10, len(first.unit))
    show_graphs = len(rows) > 1
    min_value = min(medians[name] for name in rows)
    max_value = max(medians[name] for name in rows)

    lines = [f"Results for {instrument.local_name}:"]
    header = "".join(f"{a.name:>{widths[a.name]}} " for a in shown_axes)
    header += f"{first.unit:>{measurement_width}}"
    if show_graphs:
        header += f" {first.description}"
    lines.append(header)

    for name in rows:
        row = "".join(
            f"{truncate(variables[name][a.name], widths[a.name]):>{widths[a.name]}} "
            for a in shown_axes
        )
        row += f"{medians[name]:{measurement_width}.3f}"
        if show_graphs:
            row += " " + bar_graph(medians[name], min_value, max_value)
        lines.append(row)

    if print_score:
        run_score = score(medians[name] for name in rows)
        if run_score is not None:
            lines.extend(["", f"Score: {run_score:.3f}"])

    lines.append("")
    lines.extend(f"{a.name}: {a.values[0]}" for a in axes if a.is_singleton)

    notes = _messages(combined, scenarios)
    if notes:
        lines.append("")
        lines.extend(notes)
    return "\n".join(lines)


def _messages(combined: Mapping[str, Result], scenarios: Sequence[Scenario]) -> list[str]:
    """Distinct per-scenario messages, in scenario order."""
    notes: list[str] = []
    for scenario in scenarios:
        result = combined.get(scenario.local_name)
        if result is None:
            continue
        for message in dict.fromkeys(result.messages):
            notes.append(f"{scenario.describe()}: {message}")
    return notes


def render_outcome(
    outcome: RunOutcome,
    print_score: bool = False,
    time_unit: str | None = None,
) -> list[str]:
    """One rendered report per instrument that produced data."""
    reports: list[str] = []
    for instrument in outcome.instruments:
        text = render_report(
            instrument,
            outcome.scenarios,
            outcome.vms,
            outcome.results,
            print_score=print_score,
            time_unit=time_unit,
        )
        if text:
            reports.append(text)
    return reports
