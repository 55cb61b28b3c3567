"""Adapter: ImportlibBenchmarkLoader implements BenchmarkLoaderPort.

Benchmark classes are named ``package.module:ClassName``. Timed methods are
the ``time_<name>`` methods of the class, in definition order (base classes
first). Parameter values are converted according to the class annotations
for ``int``, ``float`` and ``bool``; anything else stays a string.
"""

from __future__ import annotations

import importlib
import inspect
import logging
from typing import TYPE_CHECKING, Any

from domain.errors import BenchmarkLoadError, InvalidOptionError
from modules.measurers.core import TIMED_METHOD_PREFIX

if TYPE_CHECKING:
    from collections.abc import Callable

    from domain.ports import BenchmarkPort

logger = logging.getLogger("microbench.adapters")

_TRUE = {"true", "yes", "1", "on"}
_FALSE = {"false", "no", "0", "off"}


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    msg = f"not a boolean: '{value}'"
    raise ValueError(msg)


_CONVERTERS: dict[object, Callable[[str], Any]] = {
    int: int,
    float: float,
    bool: _parse_bool,
    "int": int,
    "float": float,
    "bool": _parse_bool,
}


class ImportlibBenchmarkLoader:
    """Concrete BenchmarkLoaderPort using importlib."""

    def load(self, class_name: str) -> type:
        module_name, sep, attr = class_name.partition(":")
        if not sep or not module_name or not attr:
            msg = f"Benchmark must be given as module:Class, got '{class_name}'"
            raise BenchmarkLoadError(msg)
        try:
            module = importlib.import_module(module_name)
        except ImportError as exc:
            msg = f"Cannot import benchmark module '{module_name}': {exc}"
            raise BenchmarkLoadError(msg) from exc
        benchmark_class = getattr(module, attr, None)
        if not isinstance(benchmark_class, type):
            msg = f"Module '{module_name}' has no class '{attr}'"
            raise BenchmarkLoadError(msg)
        logger.debug("Loaded benchmark class %s", class_name)
        return benchmark_class

    def method_names(self, benchmark_class: type) -> list[str]:
        names: list[str] = []
        for klass in reversed(benchmark_class.__mro__):
            for attr, value in vars(klass).items():
                if not attr.startswith(TIMED_METHOD_PREFIX) or not callable(value):
                    continue
                name = attr[len(TIMED_METHOD_PREFIX) :]
                if name and name not in names:
                    names.append(name)
        return names

    def declared_parameters(self, benchmark_class: type) -> dict[str, tuple[str, ...]]:
        declared = getattr(benchmark_class, "params", None) or {}
        if not isinstance(declared, dict):
            msg = f"{benchmark_class.__name__}.params must be a dict of name -> values"
            raise BenchmarkLoadError(msg)
        return {str(name): tuple(str(v) for v in values) for name, values in declared.items()}

    def _annotations(self, benchmark_class: type) -> dict[str, object]:
        annotations: dict[str, object] = {}
        for klass in reversed(benchmark_class.__mro__):
            annotations.update(inspect.get_annotations(klass))
        return annotations

    def create(self, benchmark_class: type, user_parameters: dict[str, str]) -> BenchmarkPort:
        annotations = self._annotations(benchmark_class)
        instance = benchmark_class()
        for name, raw in user_parameters.items():
            converter = _CONVERTERS.get(annotations.get(name), str)
            try:
                value = converter(raw)
            except ValueError as exc:
                msg = f"Bad value for parameter '{name}': {exc}"
                raise InvalidOptionError(msg) from exc
            setattr(instance, name, value)
        benchmark: BenchmarkPort = instance
        return benchmark
