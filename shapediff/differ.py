"""The graph walker: one comparison session over two object graphs."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .dispatcher import (
    ValueKind,
    classify,
    is_empty_value,
    is_numeric,
    is_shaped,
    is_value_object,
    numbers_equal,
    temporal_equal,
    text_of,
)
from .exceptions import RuleError
from .models import (
    MISSING,
    CollectionStrategy,
    DifferenceCollector,
    DifferenceKind,
    EngineConfig,
    TraceEntry,
)
from .paths import build_path, normalize_path
from .profile import ComparisonProfile
from .reconciler import CollectionReconciler
from .rules import ComparatorSpec
from .shapes import FieldShape, ShapeCache

logger = logging.getLogger(__name__)


class Differ:
    """
    Walks a reference and a candidate graph in lockstep.

    A Differ holds the mutable state of exactly one comparison: the
    difference sink, the trace and the comparators built for this run. It
    is created per ``compare`` call and thrown away afterwards.

    Handles:
    - Field-by-field walking of differently typed objects
    - Exclusion of whole subtrees by path prefix
    - Custom comparators that replace default equality for a field
    - Positional, identity-keyed and mapping reconciliation
    - A depth guard against runaway or cyclic graphs
    """

    def __init__(
        self,
        profile: ComparisonProfile,
        config: EngineConfig,
        shapes: ShapeCache
    ):
        self.profile = profile
        self.config = config
        self.shapes = shapes

        self.differences = DifferenceCollector()
        self.traces: list[TraceEntry] = []
        self._built: dict[int, Any] = {}
        self._reconciler = CollectionReconciler(self)

    def run(self, reference: Any, candidate: Any) -> bool:
        self.dispatch(reference, candidate, "", 0)
        return len(self.differences) == 0

    # Graph walking

    def walk(self, reference: Any, candidate: Any, path: str, depth: int) -> bool:
        """Compare two complex objects field by field."""
        if not self._enter(path, depth):
            return False

        before = len(self.differences)
        ref_type = type(reference)
        cand_type = type(candidate)
        ref_shape = self.shapes.shape_for(reference)
        cand_shape = self.shapes.shape_for(candidate)

        for ref_field in ref_shape:
            field_path = build_path(path, ref_field.name)
            if self.is_excluded(field_path):
                continue

            descriptor = self.profile.descriptor(ref_type, ref_field.name)
            if ref_field.skip or (descriptor is not None and descriptor.excluded):
                self.trace(field_path, "skip-validation", "skipped")
                continue

            cand_field = cand_shape.get(ref_field.name)
            ref_value = getattr(reference, ref_field.name, None)
            if cand_field is None:
                self.differences.add(
                    field_path, ref_value, MISSING, DifferenceKind.MISSING_IN_CANDIDATE,
                    f"Field '{ref_field.name}' does not exist on {cand_type.__name__}"
                )
                continue

            cand_value = getattr(candidate, cand_field.name, None)
            comparator = self._comparator_for(
                ref_type, ref_field.name, ref_field, field_path, ref_value, cand_value
            )
            if comparator is not None:
                self.apply_comparator(comparator, ref_value, cand_value, field_path)
                continue

            strategy = self._strategy_for(ref_field, cand_field, descriptor)
            self.dispatch(
                ref_value, cand_value, field_path, depth + 1,
                fields=(ref_field, cand_field),
                strategy=strategy
            )

        # Fields only the candidate declares
        for cand_field in cand_shape:
            if cand_field.name in ref_shape or cand_field.skip:
                continue
            field_path = build_path(path, cand_field.name)
            if self.is_excluded(field_path):
                continue
            descriptor = self.profile.descriptor(cand_type, cand_field.name)
            if descriptor is not None and descriptor.excluded:
                continue

            cand_value = getattr(candidate, cand_field.name, None)
            if is_empty_value(cand_value):
                continue
            self.differences.add(
                field_path, MISSING, cand_value, DifferenceKind.MISSING_IN_REFERENCE,
                f"Field '{cand_field.name}' does not exist on {ref_type.__name__}"
            )

        return len(self.differences) == before

    def dispatch(
        self,
        reference: Any,
        candidate: Any,
        path: str,
        depth: int,
        fields: Optional[tuple[FieldShape, FieldShape]] = None,
        strategy: Optional[CollectionStrategy] = None
    ) -> bool:
        """Route a pair of values to the equality rule for their kind."""
        ref_kind = classify(reference)
        cand_kind = classify(candidate)

        if ref_kind == ValueKind.NULL and cand_kind == ValueKind.NULL:
            return True
        if ValueKind.NULL in (ref_kind, cand_kind):
            return self._mismatch(path, reference, candidate)

        if ValueKind.MAP in (ref_kind, cand_kind):
            if ref_kind != cand_kind:
                return self._mismatch(path, reference, candidate, "Only one side is a mapping")
            if not self._enter(path, depth + 1):
                return False
            return self._reconciler.mappings(reference, candidate, path, depth + 1)

        if ValueKind.SEQUENCE in (ref_kind, cand_kind):
            if ref_kind != cand_kind:
                return self._mismatch(path, reference, candidate, "Only one side is a collection")
            if not self._enter(path, depth + 1):
                return False
            if strategy is None:
                strategy = self.profile.strategy_for_path(path)
            return self._reconciler.sequences(reference, candidate, path, depth + 1, strategy)

        # Enum and string values compare by text in any combination
        if ValueKind.TEXT in (ref_kind, cand_kind):
            return self._expect(text_of(reference) == text_of(candidate), path, reference, candidate)

        if ValueKind.TEMPORAL in (ref_kind, cand_kind):
            same = ref_kind == cand_kind and temporal_equal(reference, candidate)
            return self._expect(same, path, reference, candidate)

        if ValueKind.DURATION in (ref_kind, cand_kind):
            same = ref_kind == cand_kind and reference == candidate
            return self._expect(same, path, reference, candidate)

        if fields is not None and self._declared_optional(fields, reference, candidate):
            ref_type = fields[0].declared_class or type(reference)
            cand_type = fields[1].declared_class or type(candidate)
            if ref_type is not cand_type:
                return self._mismatch(
                    path, reference, candidate,
                    f"Underlying types differ: {ref_type.__name__} vs {cand_type.__name__}"
                )
            return self._expect(reference == candidate, path, reference, candidate)

        if ValueKind.SCALAR in (ref_kind, cand_kind):
            if type(reference) is type(candidate):
                return self._expect(reference == candidate, path, reference, candidate)
            if is_numeric(reference) and is_numeric(candidate):
                return self._expect(numbers_equal(reference, candidate), path, reference, candidate)
            return self._mismatch(
                path, reference, candidate,
                f"Type mismatch: {type(reference).__name__} vs {type(candidate).__name__}"
            )

        if type(reference) is type(candidate) and is_value_object(reference, self.shapes):
            return self._expect(reference == candidate, path, reference, candidate)
        if not is_shaped(reference, self.shapes) and not is_shaped(candidate, self.shapes):
            return self._expect(reference == candidate, path, reference, candidate)

        return self.walk(reference, candidate, path, depth + 1)

    def is_excluded(self, path: str) -> bool:
        if self.profile.exclusions.is_excluded(path):
            self.trace(path, "exclusion", "excluded")
            return True
        return False

    # Rule resolution

    def entry_comparator(self, key: Any, reference: Any, candidate: Any, path: str) -> Optional[Any]:
        """Comparator for a mapping entry: path rules, then rules on the value type."""
        return self._comparator_for(None, str(key), None, path, reference, candidate)

    def _comparator_for(
        self,
        owner: Optional[type],
        name: str,
        shape: Optional[FieldShape],
        path: str,
        ref_value: Any,
        cand_value: Any
    ) -> Optional[Any]:
        descriptor = self.profile.descriptor(owner, name) if owner is not None else None
        if descriptor is not None and descriptor.comparator is not None:
            found, source = descriptor.comparator, "descriptor"
        elif shape is not None and shape.comparator is not None:
            found, source = shape.comparator, "field-marker"
        else:
            found = self.profile.rules.resolve_path(normalize_path(path))
            source = "path-rule"
            if found is None:
                field_type = shape.declared_class if shape is not None else None
                if field_type is None:
                    sample = ref_value if ref_value is not None else cand_value
                    field_type = type(sample) if sample is not None else None
                found = self.profile.rules.resolve(field_type, name)
                source = "type-rule"

        if found is None:
            return None
        return self._build(found, path, source)

    def _build(self, comparator: Any, path: str, source: str) -> Optional[Any]:
        if not isinstance(comparator, ComparatorSpec):
            return comparator

        key = id(comparator)
        if key not in self._built:
            try:
                self._built[key] = comparator.build()
            except RuleError as e:
                # Construction failures fall back to default dispatch
                logger.warning("%s; comparing %s with default rules", e, path)
                self._built[key] = None
        built = self._built[key]
        if built is None:
            self.trace(path, source, "fallback", {"comparator": comparator.describe()})
        return built

    def apply_comparator(self, comparator: Any, reference: Any, candidate: Any, path: str) -> bool:
        """Run a custom comparator; it alone decides equality for ``path``."""
        name = comparator.describe() if hasattr(comparator, "describe") else type(comparator).__name__
        self.trace(path, name, "custom-rule")
        try:
            return bool(comparator.compare(reference, candidate, path, self.differences))
        except Exception as e:
            logger.exception("Comparator %s failed at %s", name, path)
            self.differences.add(
                path, reference, candidate, DifferenceKind.CUSTOM_RULE_FAILED,
                f"{name} raised {type(e).__name__}: {e}"
            )
            return False

    def _strategy_for(
        self,
        ref_field: FieldShape,
        cand_field: FieldShape,
        descriptor
    ) -> Optional[CollectionStrategy]:
        if descriptor is not None and descriptor.strategy is not None:
            return descriptor.strategy
        key = ref_field.identity_key or cand_field.identity_key
        if key:
            return CollectionStrategy.keyed(key)
        return None

    def _declared_optional(self, fields, reference: Any, candidate: Any) -> bool:
        ref_field, cand_field = fields
        if not (ref_field.is_optional or cand_field.is_optional):
            return False
        # Only leaf values are unwrapped; objects are walked as usual
        return not (is_shaped(reference, self.shapes) or is_shaped(candidate, self.shapes))

    # Bookkeeping

    def _enter(self, path: str, depth: int) -> bool:
        if depth > self.config.max_depth:
            logger.debug("Depth limit %d exceeded at %s", self.config.max_depth, path or "<root>")
            self.differences.add(
                path, self.config.max_depth, depth, DifferenceKind.DEPTH_EXCEEDED,
                f"MaxDepth>{self.config.max_depth}"
            )
            return False
        return True

    def _expect(self, same: bool, path: str, reference: Any, candidate: Any) -> bool:
        if same:
            return True
        return self._mismatch(path, reference, candidate)

    def _mismatch(self, path: str, reference: Any, candidate: Any, message: str = "") -> bool:
        self.differences.add(path, reference, candidate, DifferenceKind.VALUE_MISMATCH, message)
        return False

    def trace(self, path: str, rule: str, action: str, details: dict = None):
        """Add a trace entry if tracing is enabled."""
        if self.config.trace_rule_application:
            self.traces.append(TraceEntry(
                path=path,
                rule=rule,
                action=action,
                details=details
            ))
