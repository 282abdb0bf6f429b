"""Batch runner for ShapeDiff comparison datasets."""

from __future__ import annotations

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from jsonpath_ng import parse as jsonpath_parse

from .engine import ShapeDiffEngine
from .exceptions import DatasetError, ShapeDiffError
from .models import EngineConfig
from .profile import ComparisonProfile
from .shapes import ShapeCache

logger = logging.getLogger(__name__)


@dataclass
class ScenarioResult:
    """Result of a single comparison dataset."""
    name: str
    dataset_path: str
    passed: bool
    is_match: Optional[bool] = None
    expected_match: bool = True
    differences: list[dict] = field(default_factory=list)
    error: Optional[str] = None
    duration_ms: int = 0

    @property
    def errored(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict:
        result = {
            "name": self.name,
            "dataset_path": self.dataset_path,
            "passed": self.passed,
            "expected_match": self.expected_match,
            "duration_ms": self.duration_ms,
        }
        if self.error is not None:
            result["error"] = self.error
        else:
            result["is_match"] = self.is_match
            result["differences_count"] = len(self.differences)
            result["differences"] = self.differences
        return result


@dataclass
class BatchReport:
    """Aggregate report across all datasets of one run."""
    total: int = 0
    passed: int = 0
    failed: int = 0
    errors: int = 0
    scenarios: list[ScenarioResult] = field(default_factory=list)
    breakdown: dict[str, list[str]] = field(default_factory=dict)
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')

    @property
    def pass_rate(self) -> str:
        return f"{(self.passed / self.total * 100):.1f}%" if self.total > 0 else "0.0%"

    def add(self, result: ScenarioResult):
        self.scenarios.append(result)
        self.total += 1
        if result.errored:
            self.errors += 1
        elif result.passed:
            self.passed += 1
        else:
            self.failed += 1

        # Datasets grouped by the kinds of difference they produced
        for kind in sorted({d["kind"] for d in result.differences}):
            self.breakdown.setdefault(kind, []).append(result.name)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "summary": {
                "total_scenarios": self.total,
                "passed": self.passed,
                "failed": self.failed,
                "errors": self.errors,
                "pass_rate": self.pass_rate
            },
            "breakdown": self.breakdown,
            "scenarios": [s.to_dict() for s in self.scenarios]
        }

    def print_summary(self):
        print(f"\nComparison Results: {self.passed}/{self.total} passed ({self.pass_rate})")
        if self.failed > 0:
            print(f"  Failed: {self.failed}")
        if self.errors > 0:
            print(f"  Errors: {self.errors}")

        if self.breakdown:
            print("\nDifferences by kind:")
            for kind, names in sorted(self.breakdown.items()):
                print(f"  {kind}: {len(names)} datasets")


class BatchRunner:
    """
    Runs many independent comparisons from a folder of JSON datasets.

    Each dataset file holds ``name``, ``reference``, ``candidate`` and an
    optional ``expected_match`` (default true). Every dataset gets its own
    engine; all engines share one type-shape cache.
    """

    def __init__(
        self,
        profile: Optional[ComparisonProfile] = None,
        engine_config: Optional[EngineConfig] = None,
        workers: int = 1,
        shape_cache: Optional[ShapeCache] = None
    ):
        self.profile = profile or ComparisonProfile()
        self.engine_config = engine_config or EngineConfig()
        self.workers = max(1, workers)
        self.shapes = shape_cache if shape_cache is not None else ShapeCache()

        self._reference_root = self._compile(self.profile.reference_root)
        self._candidate_root = self._compile(self.profile.candidate_root)

    @staticmethod
    def _compile(expression: Optional[str]):
        return jsonpath_parse(expression) if expression else None

    def _select(self, payload: Any, compiled, side: str, dataset_path: str) -> Any:
        """Narrow a payload to its configured JSONPath root."""
        if compiled is None:
            return payload
        matches = compiled.find(payload)
        if not matches:
            raise DatasetError(dataset_path, f"{side} root '{compiled}' matched nothing")
        return matches[0].value

    @staticmethod
    def load_dataset(dataset_file: str | Path) -> dict:
        dataset_file = Path(dataset_file)
        try:
            with open(dataset_file, encoding='utf-8') as f:
                dataset = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise DatasetError(str(dataset_file), str(e))

        if not isinstance(dataset, dict):
            raise DatasetError(str(dataset_file), "dataset must be a JSON object")
        for required in ("reference", "candidate"):
            if required not in dataset:
                raise DatasetError(str(dataset_file), f"missing '{required}'")
        return dataset

    def run_dataset(self, dataset: dict, name: str, dataset_path: str) -> ScenarioResult:
        """Run a single comparison dataset."""
        start_time = time.time()
        expected = bool(dataset.get("expected_match", True))

        try:
            reference = self._select(dataset.get("reference"), self._reference_root, "reference", dataset_path)
            candidate = self._select(dataset.get("candidate"), self._candidate_root, "candidate", dataset_path)

            engine = ShapeDiffEngine(self.profile, self.engine_config, self.shapes)
            result = engine.compare(reference, candidate)
        except ShapeDiffError as e:
            logger.warning("Dataset %s could not be compared: %s", name, e)
            return ScenarioResult(
                name=name,
                dataset_path=dataset_path,
                passed=False,
                expected_match=expected,
                error=str(e),
                duration_ms=int((time.time() - start_time) * 1000)
            )
        except Exception as e:
            logger.exception("Unexpected failure comparing dataset %s", name)
            return ScenarioResult(
                name=name,
                dataset_path=dataset_path,
                passed=False,
                expected_match=expected,
                error=f"{type(e).__name__}: {e}",
                duration_ms=int((time.time() - start_time) * 1000)
            )

        return ScenarioResult(
            name=name,
            dataset_path=dataset_path,
            passed=result.is_match == expected,
            is_match=result.is_match,
            expected_match=expected,
            differences=[d.to_dict() for d in result.differences],
            duration_ms=int((time.time() - start_time) * 1000)
        )

    def _run_file(self, dataset_file: Path) -> ScenarioResult:
        try:
            dataset = self.load_dataset(dataset_file)
        except DatasetError as e:
            logger.warning("%s", e)
            return ScenarioResult(
                name=dataset_file.stem,
                dataset_path=str(dataset_file),
                passed=False,
                error=str(e)
            )
        name = str(dataset.get("name", dataset_file.stem))
        return self.run_dataset(dataset, name, str(dataset_file))

    def _timed_out(self, dataset_file: Path) -> ScenarioResult:
        return ScenarioResult(
            name=dataset_file.stem,
            dataset_path=str(dataset_file),
            passed=False,
            error=f"Not finished within {self.engine_config.timeout_seconds}s"
        )

    def run_folder(self, folder: str | Path, print_report: bool = True) -> BatchReport:
        """Run all dataset files in a folder."""
        folder_path = Path(folder)
        if not folder_path.is_dir():
            raise FileNotFoundError(f"Dataset folder not found: {folder_path}")

        files = sorted(folder_path.glob("*.json"))
        logger.info("Running %d datasets from %s with %d workers", len(files), folder_path, self.workers)

        if self.workers == 1:
            results = self._run_sequential(files)
        else:
            results = self._run_parallel(files)

        report = BatchReport()
        for result in results:
            report.add(result)
            if print_report:
                status = "ERROR" if result.errored else ("PASS" if result.passed else "FAIL")
                print(f"{status}: {result.name}")

        logger.info("Finished: %d passed, %d failed, %d errors", report.passed, report.failed, report.errors)
        if print_report:
            report.print_summary()
        return report

    def _run_sequential(self, files: list[Path]) -> list[ScenarioResult]:
        deadline = time.monotonic() + self.engine_config.timeout_seconds
        results = []
        for dataset_file in files:
            if time.monotonic() > deadline:
                logger.warning("Deadline reached before %s", dataset_file.name)
                results.append(self._timed_out(dataset_file))
                continue
            results.append(self._run_file(dataset_file))
        return results

    def _run_parallel(self, files: list[Path]) -> list[ScenarioResult]:
        executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="shapediff")
        try:
            futures = [executor.submit(self._run_file, f) for f in files]
            wait(futures, timeout=self.engine_config.timeout_seconds)

            results = []
            for dataset_file, future in zip(files, futures):
                if future.done():
                    results.append(future.result())
                else:
                    future.cancel()
                    logger.warning("Dataset %s did not finish before the deadline", dataset_file.name)
                    results.append(self._timed_out(dataset_file))
            return results
        finally:
            # Comparisons cannot be interrupted; abandon the ones still running
            executor.shutdown(wait=False, cancel_futures=True)


def run_comparisons(
    profile_path: Optional[str | Path],
    folder: str | Path,
    engine_config: Optional[EngineConfig] = None,
    workers: int = 1,
    print_report: bool = True
) -> BatchReport:
    """Load a YAML profile and run every dataset in a folder against it."""
    profile = ComparisonProfile.from_yaml(profile_path) if profile_path else ComparisonProfile()
    runner = BatchRunner(profile, engine_config, workers)
    return runner.run_folder(folder, print_report)
