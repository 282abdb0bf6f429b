"""Data models for ShapeDiff engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator, Optional
from uuid import UUID

from .exceptions import RuleError


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARNING"
    ERROR = "ERROR"


class DifferenceKind(Enum):
    VALUE_MISMATCH = "VALUE_MISMATCH"
    MISSING_IN_REFERENCE = "MISSING_IN_REFERENCE"
    MISSING_IN_CANDIDATE = "MISSING_IN_CANDIDATE"
    COUNT_MISMATCH = "COUNT_MISMATCH"
    DEPTH_EXCEEDED = "DEPTH_EXCEEDED"
    CUSTOM_RULE_FAILED = "CUSTOM_RULE_FAILED"


class ArrayMode(Enum):
    POSITIONAL = "positional"
    KEYED = "keyed"


class _Missing:
    """Marker for the absent side of a difference."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "<missing>"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def to_jsonable(value: Any) -> Any:
    """Render a compared value in a JSON-safe form for reports."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if value is MISSING:
        return repr(MISSING)
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID, timedelta)):
        return str(value)
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    return repr(value)


@dataclass(frozen=True)
class Difference:
    """A single deviation between corresponding paths of the two graphs.

    ``expected`` always holds the reference side and ``actual`` the candidate
    side.
    """
    path: str
    expected: Any
    actual: Any
    kind: DifferenceKind
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "kind": self.kind.value,
            "expected": to_jsonable(self.expected),
            "actual": to_jsonable(self.actual),
            "message": self.message,
        }

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.path}: expected={self.expected!r}, actual={self.actual!r}"


class DifferenceCollector:
    """Append-only sink shared by the walker and custom comparators."""

    def __init__(self):
        self._items: list[Difference] = []

    def add(
        self,
        path: str,
        expected: Any,
        actual: Any,
        kind: DifferenceKind = DifferenceKind.VALUE_MISMATCH,
        message: str = ""
    ) -> Difference:
        difference = Difference(
            path=path,
            expected=expected,
            actual=actual,
            kind=kind,
            message=message
        )
        self._items.append(difference)
        return difference

    def snapshot(self) -> list[Difference]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Difference]:
        return iter(self._items)


@dataclass(frozen=True)
class CollectionStrategy:
    """How the elements of one collection field are paired up."""
    mode: ArrayMode = ArrayMode.POSITIONAL
    key: Optional[str] = None

    def __post_init__(self):
        if self.mode == ArrayMode.KEYED and not self.key:
            raise RuleError("keyed", "identity-keyed reconciliation needs a key field name")

    @classmethod
    def positional(cls) -> 'CollectionStrategy':
        return cls()

    @classmethod
    def keyed(cls, key: str) -> 'CollectionStrategy':
        return cls(mode=ArrayMode.KEYED, key=key)


POSITIONAL = CollectionStrategy()


@dataclass
class FieldDescriptor:
    """Static per-field comparison settings for one owner type."""
    comparator: Any = None
    strategy: Optional[CollectionStrategy] = None
    excluded: bool = False


@dataclass
class EngineConfig:
    """Global configuration for the comparison engine."""
    max_depth: int = 300
    trace_rule_application: bool = False
    identity_fields: tuple[str, ...] = ("_uuid", "_id", "id", "guid", "uuid", "name")
    timeout_seconds: int = 30
    log_level: LogLevel = LogLevel.INFO


@dataclass
class TraceEntry:
    """Trace entry for rule application (when trace_rule_application=true)."""
    path: str
    rule: str
    action: str
    details: Optional[dict] = None

    def to_dict(self) -> dict:
        result = {
            "path": self.path,
            "rule": self.rule,
            "action": self.action,
        }
        if self.details:
            result["details"] = self.details
        return result


@dataclass
class CompareResult:
    """Verdict and accumulated differences of one comparison."""
    is_match: bool
    differences: list[Difference] = field(default_factory=list)
    trace: list[TraceEntry] = field(default_factory=list)

    def __iter__(self):
        # Allows ``equal, differences = engine.compare(a, b)``
        yield self.is_match
        yield self.differences

    def of_kind(self, kind: DifferenceKind) -> list[Difference]:
        return [d for d in self.differences if d.kind == kind]

    def to_dict(self) -> dict:
        result = {
            "is_match": self.is_match,
            "differences_count": len(self.differences),
            "differences": [d.to_dict() for d in self.differences],
        }
        if self.trace:
            result["trace"] = [t.to_dict() for t in self.trace]
        return result
