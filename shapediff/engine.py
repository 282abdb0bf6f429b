"""Main comparison engine for ShapeDiff."""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from .differ import Differ
from .models import CompareResult, EngineConfig
from .profile import ComparisonProfile
from .shapes import ShapeCache

logger = logging.getLogger(__name__)


class ShapeDiffEngine:
    """
    Compares a reference object graph against a candidate object graph.

    The engine holds only static configuration: the profile, the engine
    config and the type-shape cache. Every ``compare`` call opens its own
    walker session, so one engine may serve concurrent calls.
    """

    VERSION = "1.0.0"

    def __init__(
        self,
        profile: Optional[ComparisonProfile] = None,
        config: Optional[EngineConfig] = None,
        shape_cache: Optional[ShapeCache] = None
    ):
        """
        Initialize the engine.

        Args:
            profile: Exclusions, rules and collection strategies (empty if not provided)
            config: Engine configuration (uses defaults if not provided)
            shape_cache: Type-shape cache to share with other engines
        """
        self.profile = profile or ComparisonProfile()
        self.config = config or EngineConfig()
        self.shapes = shape_cache if shape_cache is not None else ShapeCache()

    def compare(self, reference: Any, candidate: Any) -> CompareResult:
        """
        Compare two object graphs.

        Args:
            reference: The graph produced by the reference implementation
            candidate: The graph produced by the implementation under test

        Returns:
            CompareResult with the verdict and every difference found
        """
        start_time = time.time()

        differ = Differ(self.profile, self.config, self.shapes)
        is_match = differ.run(reference, candidate)

        logger.debug(
            "Compared %s with %s in %d ms: %d differences",
            type(reference).__name__, type(candidate).__name__,
            int((time.time() - start_time) * 1000), len(differ.differences)
        )

        return CompareResult(
            is_match=is_match,
            differences=differ.differences.snapshot(),
            trace=differ.traces if self.config.trace_rule_application else []
        )


def compare(
    reference: Any,
    candidate: Any,
    profile: Optional[ComparisonProfile] = None,
    config: Optional[EngineConfig] = None
) -> CompareResult:
    """Compare two graphs with a throwaway engine."""
    return ShapeDiffEngine(profile, config).compare(reference, candidate)
