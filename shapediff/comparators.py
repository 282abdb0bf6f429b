"""Built-in comparators for fields that need more than default equality."""

from __future__ import annotations

import dataclasses
import json
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from .dispatcher import is_sequence, leaf_equal, read_path
from .models import MISSING, DifferenceKind
from .rules import Comparator
from .utils import parse_duration


def parse_datetime(value: Any) -> datetime:
    """
    Parse a datetime from a datetime, date or ISO 8601 string.

    Args:
        value: The value to parse

    Returns:
        Parsed datetime object
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    text = str(value).strip()
    formats = [
        '%Y-%m-%dT%H:%M:%S.%fZ',
        '%Y-%m-%dT%H:%M:%SZ',
        '%Y-%m-%dT%H:%M:%S.%f',
        '%Y-%m-%dT%H:%M:%S',
        '%Y-%m-%d %H:%M:%S',
        '%Y-%m-%d',
    ]
    for f in formats:
        try:
            return datetime.strptime(text, f)
        except ValueError:
            continue

    # Try fromisoformat as fallback (handles offsets)
    try:
        return datetime.fromisoformat(text.replace('Z', '+00:00'))
    except ValueError:
        pass

    raise ValueError(f"Cannot parse datetime '{value}' as ISO8601")


def _null_check(reference, candidate, path, differences) -> Optional[bool]:
    """Shared None handling; returns None when both sides hold a value."""
    if reference is None and candidate is None:
        return True
    if reference is None or candidate is None:
        differences.add(path, reference, candidate, DifferenceKind.VALUE_MISMATCH)
        return False
    return None


class DateOnlyComparator(Comparator):
    """Compares date/time values ignoring the time of day."""

    name = "date_only"

    def compare(self, reference, candidate, path, differences) -> bool:
        verdict = _null_check(reference, candidate, path, differences)
        if verdict is not None:
            return verdict

        try:
            ref_day = parse_datetime(reference).date()
            cand_day = parse_datetime(candidate).date()
        except ValueError as e:
            differences.add(path, reference, candidate, DifferenceKind.VALUE_MISMATCH, str(e))
            return False

        if ref_day != cand_day:
            differences.add(path, ref_day, cand_day, DifferenceKind.VALUE_MISMATCH,
                            f"Dates differ: {ref_day} != {cand_day}")
            return False
        return True


class DecimalToleranceComparator(Comparator):
    """Compares numeric values with an absolute tolerance."""

    name = "decimal_tolerance"

    def __init__(self, tolerance: float | str | Decimal = "0.01"):
        self.tolerance = Decimal(str(tolerance))
        if self.tolerance < 0:
            raise ValueError(f"Tolerance must not be negative: {tolerance}")

    def compare(self, reference, candidate, path, differences) -> bool:
        verdict = _null_check(reference, candidate, path, differences)
        if verdict is not None:
            return verdict

        try:
            ref_dec = Decimal(str(reference))
            cand_dec = Decimal(str(candidate))
        except (InvalidOperation, ValueError) as e:
            differences.add(path, reference, candidate, DifferenceKind.VALUE_MISMATCH,
                            f"Cannot convert to number: {e}")
            return False

        diff = abs(ref_dec - cand_dec)
        if diff > self.tolerance:
            differences.add(path, ref_dec, cand_dec, DifferenceKind.VALUE_MISMATCH,
                            f"Value difference ({diff}) exceeds tolerance ({self.tolerance})")
            return False
        return True


class CaseInsensitiveComparator(Comparator):
    """Compares the text form of both values ignoring case."""

    name = "case_insensitive"

    def __init__(self, trim_whitespace: bool = False):
        self.trim_whitespace = trim_whitespace

    def _text(self, value: Any) -> str:
        text = value.name if isinstance(value, Enum) else str(value)
        if self.trim_whitespace:
            text = text.strip()
        return text.casefold()

    def compare(self, reference, candidate, path, differences) -> bool:
        verdict = _null_check(reference, candidate, path, differences)
        if verdict is not None:
            return verdict

        if self._text(reference) != self._text(candidate):
            differences.add(path, reference, candidate, DifferenceKind.VALUE_MISMATCH,
                            f"Values differ: '{reference}' != '{candidate}'")
            return False
        return True


class UnorderedCollectionComparator(Comparator):
    """Compares two collections as multisets of leaf-equal items."""

    name = "unordered"

    def compare(self, reference, candidate, path, differences) -> bool:
        verdict = _null_check(reference, candidate, path, differences)
        if verdict is not None:
            return verdict

        if not (is_sequence(reference) and is_sequence(candidate)):
            differences.add(path, reference, candidate, DifferenceKind.VALUE_MISMATCH,
                            "Both values must be collections")
            return False

        ref_items = list(reference)
        remaining = list(candidate)
        if len(ref_items) != len(remaining):
            differences.add(path, len(ref_items), len(remaining), DifferenceKind.COUNT_MISMATCH,
                            f"Collection length mismatch: {len(ref_items)} vs {len(remaining)}")
            return False

        for item in ref_items:
            for i, other in enumerate(remaining):
                if leaf_equal(item, other):
                    del remaining[i]
                    break
            else:
                differences.add(path, item, MISSING, DifferenceKind.VALUE_MISMATCH,
                                f"Item {item!r} not found in candidate")
                return False
        return True


class AlwaysEqualComparator(Comparator):
    """Treats any two values as equal."""

    name = "always_equal"

    def compare(self, reference, candidate, path, differences) -> bool:
        return True


class IgnoreNullComparator(Comparator):
    """Only compares when both sides hold a value."""

    name = "ignore_null"

    def compare(self, reference, candidate, path, differences) -> bool:
        if reference is None or candidate is None:
            return True

        if not leaf_equal(reference, candidate):
            differences.add(path, reference, candidate, DifferenceKind.VALUE_MISMATCH)
            return False
        return True


class DateTimeToleranceComparator(Comparator):
    """Compares date/time values allowing a tolerance window."""

    name = "datetime_tolerance"

    def __init__(self, tolerance: str | float | timedelta = 0):
        if isinstance(tolerance, timedelta):
            self.tolerance = tolerance
        elif isinstance(tolerance, str):
            self.tolerance = parse_duration(tolerance)
        else:
            self.tolerance = timedelta(seconds=float(tolerance))

    def compare(self, reference, candidate, path, differences) -> bool:
        verdict = _null_check(reference, candidate, path, differences)
        if verdict is not None:
            return verdict

        try:
            ref_dt = parse_datetime(reference)
            cand_dt = parse_datetime(candidate)
            diff = abs(ref_dt - cand_dt)
        except (ValueError, TypeError) as e:
            differences.add(path, reference, candidate, DifferenceKind.VALUE_MISMATCH,
                            f"Cannot compare datetimes: {e}")
            return False

        if diff > self.tolerance:
            differences.add(path, ref_dt, cand_dt, DifferenceKind.VALUE_MISMATCH,
                            f"Time difference ({diff.total_seconds()}s) exceeds tolerance "
                            f"({self.tolerance.total_seconds()}s)")
            return False
        return True


def _json_default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    if hasattr(value, "__dict__"):
        return vars(value)
    return str(value)


class SerializedEqualityComparator(Comparator):
    """Serializes both values to canonical JSON and compares the text."""

    name = "serialized"

    @staticmethod
    def serialize(value: Any) -> str:
        return json.dumps(value, default=_json_default, sort_keys=True, separators=(",", ":"))

    def compare(self, reference, candidate, path, differences) -> bool:
        verdict = _null_check(reference, candidate, path, differences)
        if verdict is not None:
            return verdict

        ref_json = self.serialize(reference)
        cand_json = self.serialize(candidate)
        if ref_json != cand_json:
            differences.add(path, ref_json, cand_json, DifferenceKind.VALUE_MISMATCH)
            return False
        return True


class FieldMappingComparator(Comparator):
    """
    Compares renamed sub-fields of two differently shaped objects.

    The mapping pairs a dotted path on the reference value with a dotted path
    on the candidate value, e.g. {"AfterDiscount.Total": "AfterDiscount.AfterTax"}.
    Differences are reported under the reference path. When an intermediate
    object exists on one side only, a single mismatch is reported for it.
    """

    name = "field_mapping"

    def __init__(self, mapping: dict[str, str]):
        if not mapping:
            raise ValueError("Field mapping cannot be empty")
        self.mapping = dict(mapping)

    def compare(self, reference, candidate, path, differences) -> bool:
        verdict = _null_check(reference, candidate, path, differences)
        if verdict is not None:
            return verdict

        is_equal = True
        reported: set[str] = set()
        for ref_path, cand_path in self.mapping.items():
            gap = self._presence_gap(reference, candidate, ref_path, cand_path)
            if gap is not None:
                if gap not in reported:
                    reported.add(gap)
                    ref_side, cand_side = self._presence(reference, candidate, gap, ref_path, cand_path)
                    differences.add(f"{path}.{gap}", ref_side, cand_side, DifferenceKind.VALUE_MISMATCH,
                                    "Present on one side only")
                is_equal = False
                continue

            ref_value = read_path(reference, ref_path)
            cand_value = read_path(candidate, cand_path)
            if not leaf_equal(ref_value, cand_value):
                differences.add(f"{path}.{ref_path}", ref_value, cand_value, DifferenceKind.VALUE_MISMATCH)
                is_equal = False
        return is_equal

    @staticmethod
    def _parents(dotted: str) -> list[str]:
        parts = dotted.split(".")
        return [".".join(parts[:i]) for i in range(1, len(parts))]

    def _presence_gap(self, reference, candidate, ref_path, cand_path) -> Optional[str]:
        """First intermediate reference path whose object exists on one side only."""
        for ref_parent, cand_parent in zip(self._parents(ref_path), self._parents(cand_path)):
            ref_present = read_path(reference, ref_parent) is not None
            cand_present = read_path(candidate, cand_parent) is not None
            if ref_present != cand_present:
                return ref_parent
            if not ref_present:
                return None
        return None

    def _presence(self, reference, candidate, gap, ref_path, cand_path) -> tuple[str, str]:
        depth = gap.count(".") + 1
        cand_gap = ".".join(cand_path.split(".")[:depth])
        ref_side = "<exists>" if read_path(reference, gap) is not None else "<missing>"
        cand_side = "<exists>" if read_path(candidate, cand_gap) is not None else "<missing>"
        return ref_side, cand_side


# Names usable from YAML profiles
CATALOGUE: dict[str, type] = {
    cls.name: cls
    for cls in (
        DateOnlyComparator,
        DecimalToleranceComparator,
        CaseInsensitiveComparator,
        UnorderedCollectionComparator,
        AlwaysEqualComparator,
        IgnoreNullComparator,
        DateTimeToleranceComparator,
        SerializedEqualityComparator,
        FieldMappingComparator,
    )
}
