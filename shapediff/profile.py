"""Comparison profiles: the static configuration applied to every comparison.

A profile can be assembled in code::

    profile = (ComparisonProfile()
               .exclude("Result.Properties.Periods.CacheSetName")
               .add_rule(RefPrice, FieldMappingComparator({...}), field="Price")
               .describe(RefSet, "Products", strategy=CollectionStrategy.keyed("uuid")))

or loaded from YAML::

    exclusions:
      - Result.Properties.Periods.IsFromCache
    collections:
      Result.Properties.Periods.Sets: uuid
    rules:
      - path: Result.Properties.Price.Total
        comparator: decimal_tolerance
        params: {tolerance: 0.01}
      - type: datetime
        comparator: date_only
    reference_root: $.result
    candidate_root: $.data.result
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from jsonpath_ng import parse as jsonpath_parse
from jsonpath_ng.exceptions import JsonPathLexerError, JsonPathParserError

from .comparators import CATALOGUE
from .exceptions import ProfileError, RuleError
from .models import CollectionStrategy, FieldDescriptor
from .paths import ExclusionFilter, normalize_path
from .rules import ComparatorSpec, RuleRegistry, as_comparator
from .utils import import_object, load_yaml_file

logger = logging.getLogger(__name__)


class ComparisonProfile:
    """Exclusions, rules, field descriptors and collection strategies."""

    def __init__(self):
        self.exclusions = ExclusionFilter()
        self.rules = RuleRegistry()
        self.descriptors: dict[tuple[type, str], FieldDescriptor] = {}
        self.path_strategies: dict[str, CollectionStrategy] = {}
        self.reference_root: Optional[str] = None
        self.candidate_root: Optional[str] = None

    # Builder API

    def exclude(self, *paths: str) -> 'ComparisonProfile':
        for path in paths:
            try:
                self.exclusions.add(path)
            except ValueError as e:
                raise ProfileError(str(e), {"path": path})
        return self

    def add_rule(self, type_: type, comparator: Any, field: Optional[str] = None) -> 'ComparisonProfile':
        self.rules.add(type_, comparator, field)
        return self

    def add_path_rule(self, path: str, comparator: Any) -> 'ComparisonProfile':
        self.rules.add_path(path, comparator)
        return self

    def describe(
        self,
        owner: type,
        field: str,
        comparator: Any = None,
        strategy: Optional[CollectionStrategy] = None,
        excluded: bool = False
    ) -> 'ComparisonProfile':
        """Declare how one field of one owner type is compared."""
        if comparator is not None and not isinstance(comparator, ComparatorSpec):
            comparator = as_comparator(comparator)
        self.descriptors[(owner, field)] = FieldDescriptor(
            comparator=comparator,
            strategy=strategy,
            excluded=excluded
        )
        return self

    def key_collection(self, path: str, key: str) -> 'ComparisonProfile':
        """Reconcile the collection at a schema-shape path by an identity key."""
        normalized = normalize_path(path).strip(".")
        if not normalized:
            raise ProfileError("Collection path cannot be empty", {"key": key})
        try:
            self.path_strategies[normalized.lower()] = CollectionStrategy.keyed(key)
        except RuleError as e:
            raise ProfileError(str(e), {"path": path})
        return self

    # Lookups used by the walker

    def descriptor(self, owner: type, field: str) -> Optional[FieldDescriptor]:
        if not self.descriptors:
            return None
        return self.descriptors.get((owner, field))

    def strategy_for_path(self, path: str) -> Optional[CollectionStrategy]:
        if not self.path_strategies:
            return None
        return self.path_strategies.get(normalize_path(path).lower())

    # Loading

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'ComparisonProfile':
        """Build a profile from its YAML/JSON form."""
        profile = cls()
        if data is None:
            return profile
        if not isinstance(data, dict):
            raise ProfileError(
                "Profile must be an object",
                {"type": type(data).__name__}
            )

        exclusions = data.get("exclusions", []) or []
        if not isinstance(exclusions, list):
            raise ProfileError("'exclusions' must be a list")
        profile.exclude(*[str(p) for p in exclusions])

        collections = data.get("collections", {}) or {}
        if not isinstance(collections, dict):
            raise ProfileError("'collections' must map paths to key field names")
        for path, key in collections.items():
            profile.key_collection(str(path), str(key))

        for index, rule in enumerate(data.get("rules", []) or []):
            cls._load_rule(profile, rule, index)

        profile.reference_root = cls._check_jsonpath(data.get("reference_root"), "reference_root")
        profile.candidate_root = cls._check_jsonpath(data.get("candidate_root"), "candidate_root")

        logger.debug(
            "Loaded profile: %d exclusions, %d rules, %d keyed collections",
            len(profile.exclusions), len(profile.rules), len(profile.path_strategies)
        )
        return profile

    @classmethod
    def from_yaml(cls, path: str | Path) -> 'ComparisonProfile':
        try:
            data = load_yaml_file(path)
        except ValueError as e:
            raise ProfileError(str(e), {"path": str(path)})
        return cls.from_dict(data)

    @staticmethod
    def _load_rule(profile: 'ComparisonProfile', rule: Any, index: int):
        if not isinstance(rule, dict):
            raise ProfileError(f"Rule #{index} must be an object")

        name = rule.get("comparator")
        factory = CATALOGUE.get(name)
        if factory is None:
            raise ProfileError(
                f"Rule #{index}: unknown comparator '{name}'",
                {"known": sorted(CATALOGUE)}
            )
        params = rule.get("params", {}) or {}
        if not isinstance(params, dict):
            raise ProfileError(f"Rule #{index}: 'params' must be an object")
        spec = ComparatorSpec(factory, **params)

        if "path" in rule:
            profile.add_path_rule(str(rule["path"]), spec)
        elif "type" in rule:
            try:
                type_ = import_object(str(rule["type"]))
            except (ImportError, AttributeError, ValueError) as e:
                raise ProfileError(f"Rule #{index}: cannot resolve type: {e}")
            try:
                profile.add_rule(type_, spec, rule.get("field"))
            except RuleError as e:
                raise ProfileError(f"Rule #{index}: {e}")
        else:
            raise ProfileError(f"Rule #{index} needs a 'path' or a 'type' selector")

    @staticmethod
    def _check_jsonpath(expression: Any, name: str) -> Optional[str]:
        if expression is None:
            return None
        try:
            jsonpath_parse(str(expression))
        except (JsonPathLexerError, JsonPathParserError) as e:
            raise ProfileError(f"Invalid JSONPath for '{name}': {e}", {"expression": expression})
        return str(expression)
