"""Type-shape introspection and its shared cache.

A type's shape (its ordered field list plus the comparison markers declared
on those fields) is a pure function of the type, so it is discovered once and
kept for the lifetime of the cache.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import typing
from dataclasses import dataclass
from types import UnionType
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Metadata keys understood on dataclass fields
SKIP_KEY = "shapediff.skip"
COMPARATOR_KEY = "shapediff.comparator"
IDENTITY_KEY_KEY = "shapediff.identity_key"
IDENTITY_KEY = "shapediff.identity"


def compare_field(
    *,
    skip: bool = False,
    comparator: Any = None,
    identity_key: Optional[str] = None,
    identity: bool = False,
    **kwargs
):
    """
    ``dataclasses.field`` carrying comparison markers.

    Args:
        skip: Leave this field out of validation entirely
        comparator: Comparator (or ComparatorSpec) that alone decides equality
        identity_key: Reconcile this collection by the named element field
        identity: Use this field's value to label collection elements in paths
        **kwargs: Passed through to ``dataclasses.field``

    Fields of a frozen dataclass are never visited: the whole value compares
    with ``==``, so markers, exclusions and rules on its inner fields have no
    effect and a difference inside it is reported on the parent path. Use a
    regular dataclass where inner fields need their own treatment.
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    if skip:
        metadata[SKIP_KEY] = True
    if comparator is not None:
        metadata[COMPARATOR_KEY] = comparator
    if identity_key:
        metadata[IDENTITY_KEY_KEY] = identity_key
    if identity:
        metadata[IDENTITY_KEY] = True
    return dataclasses.field(metadata=metadata, **kwargs)


def unwrap_optional(hint: Any) -> tuple[bool, Any]:
    """Return (is_optional, inner) for ``Optional[X]`` / ``X | None`` hints."""
    if hint is None:
        return False, None
    args = typing.get_args(hint)
    if typing.get_origin(hint) in (typing.Union, UnionType) and type(None) in args:
        remaining = [a for a in args if a is not type(None)]
        if len(remaining) == 1:
            return True, remaining[0]
        return True, None
    return False, hint


@dataclass(frozen=True)
class FieldShape:
    name: str
    declared: Any = None
    skip: bool = False
    comparator: Any = None
    identity_key: Optional[str] = None
    identity: bool = False

    @property
    def declared_class(self) -> Optional[type]:
        """The declared class with any Optional wrapper removed."""
        _, inner = unwrap_optional(self.declared)
        if inner is Any:
            return None
        origin = typing.get_origin(inner)
        if origin is not None:
            inner = origin
        return inner if isinstance(inner, type) else None

    @property
    def is_optional(self) -> bool:
        return unwrap_optional(self.declared)[0]


class TypeShape:
    """Ordered field list of one type."""

    def __init__(self, owner: type, fields: list[FieldShape]):
        self.owner = owner
        self.fields = tuple(fields)
        self._by_name = {f.name: f for f in self.fields}
        self.identity_field = next((f.name for f in self.fields if f.identity), None)

    def get(self, name: str) -> Optional[FieldShape]:
        return self._by_name.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self.fields)

    def __iter__(self):
        return iter(self.fields)


def _resolve_hints(owner: type) -> dict:
    try:
        return typing.get_type_hints(owner)
    except (NameError, TypeError, AttributeError) as e:
        # Forward references to names that are not importable from the module
        logger.debug("Cannot resolve annotations of %s: %s", owner.__name__, e)
        return {}


def discover_shape(owner: type) -> TypeShape:
    """Build the shape of a type without consulting any cache."""
    hints = _resolve_hints(owner)

    if dataclasses.is_dataclass(owner):
        fields = []
        for f in dataclasses.fields(owner):
            meta = f.metadata or {}
            fields.append(FieldShape(
                name=f.name,
                declared=hints.get(f.name),
                skip=bool(meta.get(SKIP_KEY, False)),
                comparator=meta.get(COMPARATOR_KEY),
                identity_key=meta.get(IDENTITY_KEY_KEY),
                identity=bool(meta.get(IDENTITY_KEY, False)),
            ))
        return TypeShape(owner, fields)

    # Plain annotated classes: walk the MRO so base attributes come first
    names: list[str] = []
    for klass in reversed(owner.__mro__):
        for name in getattr(klass, "__annotations__", {}):
            if name.startswith("__") or name in names:
                continue
            names.append(name)

    if not names:
        names = _slot_names(owner)

    fields = []
    for name in names:
        hint = hints.get(name)
        if typing.get_origin(hint) is typing.ClassVar:
            continue
        fields.append(FieldShape(name=name, declared=hint))
    return TypeShape(owner, fields)


def _slot_names(owner: type) -> list[str]:
    names: list[str] = []
    for klass in reversed(owner.__mro__):
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if name.startswith("_") or name in names:
                continue
            names.append(name)
    return names


def instance_shape(value: Any) -> TypeShape:
    """Shape from the public attributes one instance carries in its ``__dict__``."""
    fields = [FieldShape(name=name) for name in vars(value) if not name.startswith("_")]
    return TypeShape(type(value), fields)


class ShapeCache:
    """
    Lock-guarded, lazily populated, never invalidated map of type -> shape.

    One instance may be shared by any number of engines running on any
    number of threads.
    """

    def __init__(self):
        self._shapes: dict[type, TypeShape] = {}
        self._lock = threading.Lock()

    def shape_of(self, owner: type) -> TypeShape:
        shape = self._shapes.get(owner)
        if shape is not None:
            return shape

        with self._lock:
            shape = self._shapes.get(owner)
            if shape is None:
                shape = discover_shape(owner)
                self._shapes[owner] = shape
                logger.debug("Cached shape of %s with %d fields", owner.__name__, len(shape))
        return shape

    def shape_for(self, value: Any) -> TypeShape:
        """
        Shape used to walk ``value``.

        Types that declare no fields at all are described by the instance
        attributes of the value itself; those shapes are never cached.
        """
        shape = self.shape_of(type(value))
        if len(shape) or isinstance(value, type) or not hasattr(value, "__dict__"):
            return shape
        return instance_shape(value)

    def __len__(self) -> int:
        return len(self._shapes)

    def __contains__(self, owner: type) -> bool:
        return owner in self._shapes
