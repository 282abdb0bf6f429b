"""
ShapeDiff - Object Graph Comparison Engine

Verifies that the object graph produced by a reference implementation and the
one produced by a candidate implementation are semantically equivalent, even
when the two are built from different types, and reports every deviation as
a typed difference.
"""

from .engine import ShapeDiffEngine, compare
from .models import (
    EngineConfig,
    CompareResult,
    Difference,
    DifferenceCollector,
    DifferenceKind,
    ArrayMode,
    CollectionStrategy,
    FieldDescriptor,
    TraceEntry,
    LogLevel,
    MISSING,
)
from .exceptions import (
    ShapeDiffError,
    ProfileError,
    RuleError,
    DatasetError,
)
from .rules import (
    Comparator,
    ComparatorSpec,
    ComparisonRule,
    RuleRegistry,
)
from .comparators import (
    DateOnlyComparator,
    DecimalToleranceComparator,
    CaseInsensitiveComparator,
    UnorderedCollectionComparator,
    AlwaysEqualComparator,
    IgnoreNullComparator,
    DateTimeToleranceComparator,
    SerializedEqualityComparator,
    FieldMappingComparator,
    CATALOGUE,
)
from .paths import ExclusionFilter
from .profile import ComparisonProfile
from .shapes import ShapeCache, compare_field
from .batch import (
    BatchRunner,
    ScenarioResult,
    BatchReport,
    run_comparisons,
)

__version__ = "1.0.0"
__all__ = [
    # Engine
    "ShapeDiffEngine",
    "compare",
    "EngineConfig",
    "ShapeCache",
    # Results
    "CompareResult",
    "Difference",
    "DifferenceCollector",
    "DifferenceKind",
    "TraceEntry",
    "LogLevel",
    "MISSING",
    # Configuration
    "ComparisonProfile",
    "ArrayMode",
    "CollectionStrategy",
    "FieldDescriptor",
    "ExclusionFilter",
    "compare_field",
    # Rules
    "Comparator",
    "ComparatorSpec",
    "ComparisonRule",
    "RuleRegistry",
    "DateOnlyComparator",
    "DecimalToleranceComparator",
    "CaseInsensitiveComparator",
    "UnorderedCollectionComparator",
    "AlwaysEqualComparator",
    "IgnoreNullComparator",
    "DateTimeToleranceComparator",
    "SerializedEqualityComparator",
    "FieldMappingComparator",
    "CATALOGUE",
    # Errors
    "ShapeDiffError",
    "ProfileError",
    "RuleError",
    "DatasetError",
    # Batch Runner
    "BatchRunner",
    "ScenarioResult",
    "BatchReport",
    "run_comparisons",
]
