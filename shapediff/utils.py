"""Utility functions for ShapeDiff engine."""

from __future__ import annotations

import builtins
import datetime as _dt
import decimal
import importlib
import re
import uuid
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

# Type names accepted in profiles without a module prefix
_KNOWN_TYPES: dict[str, type] = {
    "datetime": _dt.datetime,
    "date": _dt.date,
    "time": _dt.time,
    "timedelta": _dt.timedelta,
    "Decimal": decimal.Decimal,
    "UUID": uuid.UUID,
}


def parse_duration(duration_str: str) -> timedelta:
    """
    Parse a duration string like '5s', '1m', '1h', '1d' into a timedelta.

    Args:
        duration_str: Duration string (e.g., '5s', '1m', '2h', '1d')

    Returns:
        timedelta object
    """
    if not duration_str:
        return timedelta(0)

    pattern = r'^(\d+(?:\.\d+)?)\s*(ms|[smhd])$'
    match = re.match(pattern, duration_str.strip().lower())

    if not match:
        raise ValueError(f"Invalid duration format: {duration_str}")

    value = float(match.group(1))
    unit = match.group(2)

    if unit == 'ms':
        return timedelta(milliseconds=value)
    elif unit == 's':
        return timedelta(seconds=value)
    elif unit == 'm':
        return timedelta(minutes=value)
    elif unit == 'h':
        return timedelta(hours=value)
    elif unit == 'd':
        return timedelta(days=value)

    raise ValueError(f"Unknown duration unit: {unit}")


def import_object(reference: str) -> Any:
    """
    Resolve a type name or a ``module:attribute`` import string.

    Bare names are looked up among common value types and builtins.
    """
    reference = reference.strip()
    if ":" not in reference:
        if reference in _KNOWN_TYPES:
            return _KNOWN_TYPES[reference]
        found = getattr(builtins, reference, None)
        if isinstance(found, type):
            return found
        raise ValueError(f"Unknown type name '{reference}' (use 'module:Class')")

    module_name, _, attr_path = reference.partition(":")
    module = importlib.import_module(module_name)
    obj: Any = module
    for part in attr_path.split("."):
        obj = getattr(obj, part)
    return obj


def load_yaml_file(path: str | Path) -> Any:
    """Load a YAML or JSON document (JSON is valid YAML)."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        content = f.read()

    try:
        return yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse {path}: {e}")
