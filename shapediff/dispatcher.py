"""Value classification and leaf equality for ShapeDiff engine."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping, Set
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from .shapes import ShapeCache


class ValueKind(Enum):
    NULL = "null"
    MAP = "map"
    SEQUENCE = "sequence"
    TEXT = "text"
    TEMPORAL = "temporal"
    DURATION = "duration"
    SCALAR = "scalar"
    OBJECT = "object"


SCALAR_TYPES = (bool, int, float, complex, Decimal, UUID, bytes, bytearray)
TEMPORAL_TYPES = (datetime, date, time)


def is_sequence(value: Any) -> bool:
    """Lists, tuples and sets; strings and byte strings are not sequences."""
    return isinstance(value, (list, tuple, Set)) and not isinstance(value, (str, bytes, bytearray))


def is_numeric(value: Any) -> bool:
    """Check if a value is numeric (int, float or Decimal, never bool)."""
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def classify(value: Any) -> ValueKind:
    if value is None:
        return ValueKind.NULL
    if isinstance(value, Mapping):
        return ValueKind.MAP
    if is_sequence(value):
        return ValueKind.SEQUENCE
    if isinstance(value, (Enum, str)):
        return ValueKind.TEXT
    if isinstance(value, TEMPORAL_TYPES):
        return ValueKind.TEMPORAL
    if isinstance(value, timedelta):
        return ValueKind.DURATION
    if isinstance(value, SCALAR_TYPES):
        return ValueKind.SCALAR
    return ValueKind.OBJECT


def text_of(value: Any) -> str:
    """Text form used when either side is an enum or a string."""
    if isinstance(value, Enum):
        return value.name
    return str(value)


def temporal_equal(reference: Any, candidate: Any) -> bool:
    """Exact instant equality; a date never equals a datetime."""
    if isinstance(reference, datetime) != isinstance(candidate, datetime):
        return False
    if isinstance(reference, time) != isinstance(candidate, time):
        return False
    try:
        return reference == candidate
    except TypeError:
        # Naive and aware times cannot be ordered against each other
        return False


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # repr keeps the shortest round-tripping form, so 0.1 widens to 0.1
        return Decimal(repr(value))
    return Decimal(value)


def numbers_equal(reference: Any, candidate: Any) -> bool:
    """Compare two numbers, widening mixed representations to Decimal."""
    if type(reference) is type(candidate):
        return reference == candidate
    try:
        return _to_decimal(reference) == _to_decimal(candidate)
    except (InvalidOperation, ValueError, TypeError):
        return False


def leaf_equal(reference: Any, candidate: Any) -> bool:
    """Equality for leaf values as used by field-mapping style comparators."""
    if reference is None or candidate is None:
        return reference is None and candidate is None
    if isinstance(reference, (Enum, str)) or isinstance(candidate, (Enum, str)):
        return text_of(reference) == text_of(candidate)
    if isinstance(reference, TEMPORAL_TYPES) and isinstance(candidate, TEMPORAL_TYPES):
        return temporal_equal(reference, candidate)
    if is_numeric(reference) and is_numeric(candidate):
        return numbers_equal(reference, candidate)
    return reference == candidate


def is_default_value(value: Any) -> bool:
    """
    Check if a value is the zero value of its type.

    None, 0, 0.0, False, "", the nil UUID and datetime.min count as default.
    """
    if value is None:
        return True
    if isinstance(value, Enum):
        return False
    if isinstance(value, (bool, int, float, complex, Decimal)):
        return value == 0
    if isinstance(value, (str, bytes, bytearray)):
        return len(value) == 0
    if isinstance(value, UUID):
        return value.int == 0
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) == datetime.min
    if isinstance(value, date):
        return value == date.min
    if isinstance(value, timedelta):
        return value == timedelta(0)
    return False


def is_empty_value(value: Any) -> bool:
    """Default scalars plus empty mappings and collections."""
    if is_default_value(value):
        return True
    if isinstance(value, Mapping) or is_sequence(value):
        return len(value) == 0
    return False


def is_shaped(value: Any, shapes: ShapeCache) -> bool:
    """Whether a value exposes named fields the walker can descend into."""
    if classify(value) != ValueKind.OBJECT:
        return False
    return len(shapes.shape_for(value)) > 0


def is_value_object(value: Any, shapes: ShapeCache) -> bool:
    """Shapeless objects and frozen dataclasses compare with ``==``."""
    owner = type(value)
    if dataclasses.is_dataclass(owner):
        return owner.__dataclass_params__.frozen
    return not is_shaped(value, shapes)


def read_field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a named field from an object or a mapping."""
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def read_path(obj: Any, dotted: str) -> Optional[Any]:
    """Follow a dotted field path; any missing link yields None."""
    current = obj
    for part in dotted.split("."):
        if current is None:
            return None
        current = read_field(current, part)
    return current
