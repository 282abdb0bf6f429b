"""Field path construction and the path exclusion filter."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable

logger = logging.getLogger(__name__)

_ANNOTATION_RE = re.compile(r"\[[^\]]*\]")
_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_BRACKETS = str.maketrans("[]", "()")


def label_text(value: Any) -> str:
    """Text of an annotation with square brackets swapped for parentheses."""
    return str(value).translate(_BRACKETS)


def build_path(parent_path: str, key: str | int) -> str:
    """Build a dot path from parent path and key."""
    if isinstance(key, int) and not isinstance(key, bool):
        return f"{parent_path}[{key}]"
    if _IDENTIFIER_RE.match(str(key)):
        return f"{parent_path}.{key}" if parent_path else str(key)
    # Keys that are not plain names stay bracketed
    return f"{parent_path}['{label_text(key)}']"


def annotate_path(parent_path: str, label: Any) -> str:
    """Append a positional or identity annotation, e.g. ``Items[uuid=42]``."""
    return f"{parent_path}[{label_text(label)}]"


def normalize_path(path: str) -> str:
    """
    Strip every bracketed annotation from a path.

    "Result.Properties[0].Periods[uuid=7]" becomes "Result.Properties.Periods".
    """
    if not path:
        return ""
    return _ANNOTATION_RE.sub("", path)


class ExclusionFilter:
    """
    Decides whether a traversal path lies inside an excluded subtree.

    Exclusion prefixes are written in schema-shape form (no indices). A prefix
    matches itself and every deeper path under it, compared
    case-insensitively on ``.`` boundaries.
    """

    def __init__(self, prefixes: Iterable[str] = ()):
        self._prefixes: list[str] = []
        for prefix in prefixes:
            self.add(prefix)

    def add(self, prefix: str):
        cleaned = normalize_path(prefix.strip()).strip(".")
        if not cleaned:
            raise ValueError("Exclusion path cannot be empty")
        lowered = cleaned.lower()
        if lowered not in self._prefixes:
            self._prefixes.append(lowered)

    @property
    def prefixes(self) -> list[str]:
        return list(self._prefixes)

    def is_excluded(self, path: str) -> bool:
        if not self._prefixes or not path:
            return False

        normalized = normalize_path(path).lower()
        for prefix in self._prefixes:
            if normalized == prefix or normalized.startswith(prefix + "."):
                logger.debug("Path %s excluded by %s", path, prefix)
                return True
        return False

    def __len__(self) -> int:
        return len(self._prefixes)
