"""Scenario matrix builder — expands parameter choices into concrete scenarios.

Takes the benchmark's method names, the user parameter and VM argument value
lists, and the VM binaries, and produces their full cross product as
``Scenario`` descriptors with stable ``scenario-<n>`` local names.

This module depends only on domain/ types and has zero external imports beyond stdlib.
"""

from __future__ import annotations

import itertools
import logging
import sys
from typing import TYPE_CHECKING

from domain.errors import ConfigurationError, DuplicateParameterError, NoScenariosError
from domain.models import Scenario, Vm

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

logger = logging.getLogger("microbench.scenarios")

DEFAULT_VM_NAME = "python"

# Report axes every scenario already has.
RESERVED_NAMES = ("benchmark", "vm")


def default_vm() -> Vm:
    """The interpreter running this process."""
    return Vm(local_name="vm-0", name=DEFAULT_VM_NAME, executable=sys.executable)


def build_vms(binaries: Sequence[str]) -> list[Vm]:
    """Return one Vm per binary, or just the default VM when none are given."""
    if not binaries:
        return [default_vm()]
    return [
        Vm(local_name=f"vm-{index}", name=binary, executable=binary)
        for index, binary in enumerate(binaries)
    ]


def check_disjoint(
    user_parameters: Mapping[str, Sequence[str]],
    vm_arguments: Mapping[str, Sequence[str]],
) -> None:
    """Reject report axis names, and names used both as a user parameter and a VM argument."""
    reserved = sorted(set(RESERVED_NAMES) & (set(user_parameters) | set(vm_arguments)))
    if reserved:
        msg = f"Parameter names reserved for report axes: {', '.join(reserved)}"
        raise ConfigurationError(msg)
    duplicates = set(user_parameters) & set(vm_arguments)
    if duplicates:
        raise DuplicateParameterError(list(duplicates))


def resolve_parameters(
    declared: Mapping[str, Sequence[str]],
    overrides: Mapping[str, Sequence[str]],
) -> dict[str, tuple[str, ...]]:
    """Merge the class's declared parameter values with command-line overrides.

    An override replaces the declared value list. Declaration order is kept,
    so it also decides the order values appear in the report.

    Raises:
        ConfigurationError: if an override names an undeclared parameter.
    """
    unknown = sorted(set(overrides) - set(declared))
    if unknown:
        msg = f"Unknown benchmark parameters: {', '.join(unknown)}"
        raise ConfigurationError(msg)
    return {
        name: tuple(overrides.get(name, values))
        for name, values in declared.items()
    }


def select_methods(available: Sequence[str], requested: Sequence[str]) -> list[str]:
    """The timed methods to run: all of them, or the requested ones in request order.

    Raises:
        ConfigurationError: if a requested method does not exist.
    """
    if not requested:
        return list(available)
    missing = [name for name in requested if name not in available]
    if missing:
        msg = f"No such benchmark methods: {', '.join(missing)} (available: {', '.join(available)})"
        raise ConfigurationError(msg)
    return list(dict.fromkeys(requested))


def _combinations(choices: Mapping[str, Sequence[str]]) -> list[dict[str, str]]:
    """Cross product of a name → values mapping, first name varying slowest."""
    names = list(choices)
    for name in names:
        if not choices[name]:
            msg = f"Parameter '{name}' has no values"
            raise NoScenariosError(msg)
    return [
        dict(zip(names, values, strict=True))
        for values in itertools.product(*(choices[n] for n in names))
    ]


def build_scenarios(
    benchmark_class: str,
    method_names: Sequence[str],
    user_parameters: Mapping[str, Sequence[str]],
    vm_arguments: Mapping[str, Sequence[str]],
    vms: Sequence[Vm],
) -> list[Scenario]:
    """Expand the full cross product of methods, VMs, parameters and VM arguments.

    Produces ``len(methods) x len(vms) x user combinations x VM argument
    combinations`` scenarios. Local names come from the cross-product index,
    so the same inputs always give the same names.

    Raises:
        DuplicateParameterError: if user parameter and VM argument names overlap.
        NoScenariosError: if any dimension is empty.
    """
    check_disjoint(user_parameters, vm_arguments)
    if not method_names:
        msg = f"No benchmark methods to run in {benchmark_class}"
        raise NoScenariosError(msg)
    if not vms:
        msg = "No VMs to run on"
        raise NoScenariosError(msg)

    user_combos = _combinations(user_parameters)
    vm_combos = _combinations(vm_arguments)

    scenarios: list[Scenario] = []
    for method, vm, user, vm_args in itertools.product(
        method_names, vms, user_combos, vm_combos
    ):
        scenarios.append(
            Scenario(
                local_name=f"scenario-{len(scenarios)}",
                benchmark_class=benchmark_class,
                benchmark_method_name=method,
                vm_local_name=vm.local_name,
                user_parameters=user,
                vm_arguments=vm_args,
            )
        )
    logger.debug("Built %d scenarios for %s", len(scenarios), benchmark_class)
    return scenarios


def select_scenarios(
    scenarios: Sequence[Scenario],
    skip: Callable[[Scenario], bool] | None = None,
) -> tuple[list[Scenario], list[Scenario]]:
    """Apply the benchmark's veto hook once per scenario.

    Returns:
        ``(kept, skipped)``. Skipped scenarios are not failures.
    """
    if skip is None:
        return list(scenarios), []
    kept: list[Scenario] = []
    skipped: list[Scenario] = []
    for scenario in scenarios:
        if skip(scenario):
            logger.info("Skipping %s (%s)", scenario.local_name, scenario.describe())
            skipped.append(scenario)
        else:
            kept.append(scenario)
    return kept, skipped
