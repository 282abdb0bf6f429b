"""Collection reconciliation: pairing up elements before recursing into them."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Set
from typing import TYPE_CHECKING, Any, Hashable, Optional

from .dispatcher import ValueKind, classify, is_default_value, leaf_equal, read_field, text_of
from .models import MISSING, ArrayMode, CollectionStrategy, DifferenceKind
from .paths import annotate_path, build_path

if TYPE_CHECKING:
    from .differ import Differ

logger = logging.getLogger(__name__)


def key_path(parent_path: str, key: Any) -> str:
    """Path of a mapping entry: names join with dots, other keys are bracketed."""
    if isinstance(key, (str, int)) and not isinstance(key, bool):
        return build_path(parent_path, key)
    return annotate_path(parent_path, text_of(key))


class CollectionReconciler:
    """
    Matches the elements of two collections and recurses into each pair.

    Positional mode pairs element i with element i. Identity-keyed mode pairs
    elements by the value of a key field. Sets are matched by membership and
    mappings are always matched by key.
    """

    def __init__(self, session: 'Differ'):
        self.session = session

    @property
    def differences(self):
        return self.session.differences

    def sequences(
        self,
        reference: Any,
        candidate: Any,
        path: str,
        depth: int,
        strategy: Optional[CollectionStrategy] = None
    ) -> bool:
        ref_items = list(reference)
        cand_items = list(candidate)

        if strategy is not None and strategy.mode == ArrayMode.KEYED:
            self.session.trace(path, "collection", "keyed", {"key": strategy.key})
            return self.keyed(ref_items, cand_items, path, depth, strategy.key)

        if isinstance(reference, Set) or isinstance(candidate, Set):
            self.session.trace(path, "collection", "membership")
            return self.members(ref_items, cand_items, path)

        key = strategy.key if strategy is not None else None
        return self.positional(ref_items, cand_items, path, depth, key)

    def positional(
        self,
        ref_items: list,
        cand_items: list,
        path: str,
        depth: int,
        label_key: Optional[str] = None
    ) -> bool:
        """Compare index by index; a length mismatch stops element comparison."""
        if len(ref_items) != len(cand_items):
            self.differences.add(
                path, len(ref_items), len(cand_items), DifferenceKind.COUNT_MISMATCH,
                f"Collection length mismatch: {len(ref_items)} vs {len(cand_items)}"
            )
            return False

        all_match = True
        for i, (ref_item, cand_item) in enumerate(zip(ref_items, cand_items)):
            label = self.element_label(ref_item, cand_item, i, label_key)
            item_path = annotate_path(path, label)
            if not self.session.dispatch(ref_item, cand_item, item_path, depth + 1):
                all_match = False
        return all_match

    def members(self, ref_items: list, cand_items: list, path: str) -> bool:
        """Match set members by equality; iteration order is irrelevant."""
        remaining = list(cand_items)
        all_match = True
        for item in ref_items:
            for i, other in enumerate(remaining):
                if leaf_equal(item, other):
                    del remaining[i]
                    break
            else:
                self.differences.add(
                    annotate_path(path, text_of(item)), item, MISSING,
                    DifferenceKind.MISSING_IN_CANDIDATE
                )
                all_match = False

        for item in remaining:
            self.differences.add(
                annotate_path(path, text_of(item)), MISSING, item,
                DifferenceKind.MISSING_IN_REFERENCE
            )
            all_match = False
        return all_match

    def keyed(
        self,
        ref_items: list,
        cand_items: list,
        path: str,
        depth: int,
        key: str
    ) -> bool:
        """Match elements by the value of ``key`` regardless of position."""
        all_match = True

        # The raw length check is kept in keyed mode as well; it is reported
        # alongside the key-level differences, never instead of them.
        if len(ref_items) != len(cand_items):
            self.differences.add(
                path, len(ref_items), len(cand_items), DifferenceKind.COUNT_MISMATCH,
                f"Collection length mismatch: {len(ref_items)} vs {len(cand_items)}"
            )
            all_match = False

        lookup: dict[Hashable, Any] = {}
        cand_keyless = 0
        for item in cand_items:
            identity = self.key_of(item, key)
            if identity is None:
                cand_keyless += 1
                continue
            if identity in lookup:
                logger.debug("Duplicate key %s=%r in candidate at %s", key, identity, path)
            lookup[identity] = item

        ref_keyless = 0
        for item in ref_items:
            if item is None:
                ref_keyless += 1
                continue

            identity = self.key_of(item, key)
            if identity is None:
                ref_keyless += 1
                self.differences.add(
                    path, item, None, DifferenceKind.VALUE_MISMATCH,
                    f"Item missing {key}"
                )
                all_match = False
                continue

            item_path = annotate_path(path, f"{key}={text_of(identity)}")
            if identity not in lookup:
                self.differences.add(item_path, item, MISSING, DifferenceKind.MISSING_IN_CANDIDATE)
                all_match = False
                continue

            if not self.session.dispatch(item, lookup.pop(identity), item_path, depth + 1):
                all_match = False

        for identity, item in lookup.items():
            item_path = annotate_path(path, f"{key}={text_of(identity)}")
            self.differences.add(item_path, MISSING, item, DifferenceKind.MISSING_IN_REFERENCE)
            all_match = False

        if ref_keyless != cand_keyless:
            self.differences.add(
                annotate_path(path, "keyless"), ref_keyless, cand_keyless,
                DifferenceKind.COUNT_MISMATCH,
                f"Items without a usable {key}: {ref_keyless} vs {cand_keyless}"
            )
            all_match = False

        return all_match

    def mappings(self, reference: Mapping, candidate: Mapping, path: str, depth: int) -> bool:
        """Match entries by key; a count mismatch does not hide key-level detail."""
        all_match = True

        if len(reference) != len(candidate):
            self.differences.add(
                path, len(reference), len(candidate), DifferenceKind.COUNT_MISMATCH,
                f"Entry count mismatch: {len(reference)} vs {len(candidate)}"
            )
            all_match = False

        for key, ref_value in reference.items():
            entry_path = key_path(path, key)
            if self.session.is_excluded(entry_path):
                continue

            if key not in candidate:
                self.differences.add(entry_path, ref_value, MISSING, DifferenceKind.MISSING_IN_CANDIDATE)
                all_match = False
                continue

            cand_value = candidate[key]
            comparator = self.session.entry_comparator(key, ref_value, cand_value, entry_path)
            if comparator is not None:
                if not self.session.apply_comparator(comparator, ref_value, cand_value, entry_path):
                    all_match = False
                continue

            if not self.session.dispatch(ref_value, cand_value, entry_path, depth + 1):
                all_match = False

        for key, cand_value in candidate.items():
            if key in reference:
                continue
            entry_path = key_path(path, key)
            if self.session.is_excluded(entry_path):
                continue
            self.differences.add(entry_path, MISSING, cand_value, DifferenceKind.MISSING_IN_REFERENCE)
            all_match = False

        return all_match

    @staticmethod
    def key_of(item: Any, key: str) -> Optional[Hashable]:
        """The usable identity of an element, or None."""
        if item is None:
            return None
        identity = read_field(item, key)
        if identity is None:
            return None
        try:
            hash(identity)
        except TypeError:
            return None
        return identity

    def element_label(
        self,
        ref_item: Any,
        cand_item: Any,
        index: int,
        label_key: Optional[str] = None
    ) -> str:
        """
        Readable annotation for a positionally matched element.

        Prefers the configured key field, then a field marked as identity on
        the element type, then a conventional identity field with a
        non-default value; falls back to the index. Matching stays positional
        whatever label is chosen.
        """
        item = ref_item if ref_item is not None else cand_item
        kind = classify(item)
        if kind not in (ValueKind.OBJECT, ValueKind.MAP):
            return str(index)

        if label_key:
            value = read_field(item, label_key)
            if _usable_label(value):
                return f"{label_key}={text_of(value)}"

        if kind == ValueKind.OBJECT:
            shape = self.session.shapes.shape_for(item)
            names = [f.name for f in shape]
            if shape.identity_field:
                value = getattr(item, shape.identity_field, None)
                if value is not None:
                    return f"{shape.identity_field}={text_of(value)}"
        else:
            names = [k for k in item.keys() if isinstance(k, str)]

        by_lower = {}
        for name in names:
            by_lower.setdefault(name.lower(), name)

        for candidate_name in self.session.config.identity_fields:
            name = by_lower.get(candidate_name.lower())
            if name is None:
                continue
            value = read_field(item, name)
            if _usable_label(value):
                return f"{name}={text_of(value)}"

        return str(index)


def _usable_label(value: Any) -> bool:
    if value is None:
        return False
    if classify(value) in (ValueKind.MAP, ValueKind.SEQUENCE, ValueKind.OBJECT):
        return False
    return not is_default_value(value)
