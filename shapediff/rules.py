"""Comparison rules: the comparator contract and the rule registry."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .exceptions import RuleError
from .models import DifferenceCollector
from .paths import normalize_path

logger = logging.getLogger(__name__)


class Comparator(ABC):
    """
    A pluggable equality rule for one field.

    A comparator alone decides equality for the path it is applied to and
    alone records differences for it; default dispatch does not also run.
    It must handle the None/None and None/value combinations itself.
    """

    name: str = ""

    @abstractmethod
    def compare(
        self,
        reference: Any,
        candidate: Any,
        path: str,
        differences: DifferenceCollector
    ) -> bool:
        """
        Compare two values.

        Args:
            reference: Value from the reference graph (expected)
            candidate: Value from the candidate graph (actual)
            path: The field path for difference reporting
            differences: Sink to record differences into

        Returns:
            True if the values are considered equal
        """

    def describe(self) -> str:
        return self.name or type(self).__name__


class FunctionComparator(Comparator):
    """Adapts a plain function with the comparator signature."""

    def __init__(self, func: Callable[[Any, Any, str, DifferenceCollector], bool]):
        self.func = func
        self.name = getattr(func, "__name__", "function")

    def compare(self, reference, candidate, path, differences) -> bool:
        return bool(self.func(reference, candidate, path, differences))


class ComparatorSpec:
    """
    A comparator described by its factory and constructor arguments.

    Construction is deferred until the comparator is first needed, so a
    broken configuration surfaces as a RuleError at comparison time and can
    be handled by the walker's fallback policy.
    """

    def __init__(self, factory: Callable[..., Any], *args, **kwargs):
        self.factory = factory
        self.args = args
        self.kwargs = kwargs

    def build(self) -> Comparator:
        try:
            built = self.factory(*self.args, **self.kwargs)
        except Exception as e:
            raise RuleError(self.describe(), f"cannot construct comparator: {e}") from e
        return as_comparator(built)

    def describe(self) -> str:
        return getattr(self.factory, "__name__", repr(self.factory))

    def __repr__(self) -> str:
        return f"ComparatorSpec({self.describe()}, args={self.args!r}, kwargs={self.kwargs!r})"


def as_comparator(value: Any) -> Comparator:
    """Coerce a comparator instance or a plain function to a Comparator."""
    if isinstance(value, Comparator):
        return value
    if callable(getattr(value, "compare", None)):
        return value
    if callable(value):
        return FunctionComparator(value)
    raise RuleError(repr(value), "not a comparator")


@dataclass(frozen=True)
class ComparisonRule:
    """A (type selector, optional field-name selector, comparator) triple."""
    type: type
    comparator: Any
    field: Optional[str] = None


class RuleRegistry:
    """
    Resolves the override comparator for a (type, field) pair.

    Precedence: exact type and field match, then a field-agnostic match on
    the type. Registration is a configuration step performed before any
    comparison runs.
    """

    def __init__(self):
        self._exact: dict[tuple[type, str], Any] = {}
        self._type_wide: dict[type, Any] = {}
        self._by_path: dict[str, Any] = {}

    def add(self, type_: type, comparator: Any, field: Optional[str] = None) -> ComparisonRule:
        if not isinstance(type_, type):
            raise RuleError(repr(type_), "type selector must be a class")
        if not isinstance(comparator, ComparatorSpec):
            comparator = as_comparator(comparator)

        if field:
            self._exact[(type_, field)] = comparator
        else:
            self._type_wide[type_] = comparator
        logger.debug("Registered rule for %s.%s", type_.__name__, field or "*")
        return ComparisonRule(type=type_, comparator=comparator, field=field)

    def add_path(self, path: str, comparator: Any):
        """Register a comparator for a schema-shape path (no indices)."""
        normalized = normalize_path(path).strip(".")
        if not normalized:
            raise RuleError(path, "rule path cannot be empty")
        if not isinstance(comparator, ComparatorSpec):
            comparator = as_comparator(comparator)
        self._by_path[normalized.lower()] = comparator

    def resolve(self, type_: Optional[type], field: str) -> Optional[Any]:
        if type_ is None:
            return None
        comparator = self._exact.get((type_, field))
        if comparator is not None:
            return comparator
        return self._type_wide.get(type_)

    def resolve_path(self, normalized_path: str) -> Optional[Any]:
        if not self._by_path:
            return None
        return self._by_path.get(normalized_path.lower())

    @property
    def rules(self) -> list[ComparisonRule]:
        result = [ComparisonRule(t, c, f) for (t, f), c in self._exact.items()]
        result.extend(ComparisonRule(t, c) for t, c in self._type_wide.items())
        return result

    def __len__(self) -> int:
        return len(self._exact) + len(self._type_wide) + len(self._by_path)
