"""Run content and structure evaluation over many paths on a worker pool."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from sloc_guard.baseline import Baseline, BaselineComparator, RatchetOutcome
from sloc_guard.content import ContentEvaluator, FileMetrics, MetricsProvider
from sloc_guard.globs import normalize_path
from sloc_guard.rules import RuleIndex
from sloc_guard.rules.base import Status
from sloc_guard.structure import DirStats, StructureEvaluator
from sloc_guard.verdict import CONTENT, PathError, Verdict

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 8


class ProgressCounter:
    """Thread-safe count of evaluated paths for progress display."""

    def __init__(self, callback: Callable[[int], None] | None = None) -> None:
        self._lock = threading.Lock()
        self._value = 0
        self._callback = callback

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def increment(self) -> None:
        with self._lock:
            self._value += 1
            value = self._value
        if self._callback is not None:
            self._callback(value)


@dataclass(slots=True)
class CheckRun:
    """Everything one evaluation pass produced."""

    verdicts: list[Verdict] = field(default_factory=list)
    errors: list[PathError] = field(default_factory=list)
    ratchet: RatchetOutcome = field(default_factory=RatchetOutcome)

    def count(self, status: Status) -> int:
        return sum(1 for verdict in self.verdicts if verdict.status is status)

    def has_failures(self, *, warnings_as_errors: bool = False) -> bool:
        if self.count(Status.FAILED):
            return True
        return warnings_as_errors and self.count(Status.WARNING) > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {status.value: self.count(status) for status in Status},
            "verdicts": [verdict.to_dict() for verdict in self.verdicts],
            "errors": [error.to_dict() for error in self.errors],
            "ratchet": self.ratchet.to_dict(),
        }


def run_checks(
    index: RuleIndex,
    *,
    files: Sequence[str] = (),
    dirs: Mapping[str, DirStats] | None = None,
    metrics: MetricsProvider | None = None,
    baseline: Baseline | None = None,
    workers: int = DEFAULT_WORKERS,
    progress: ProgressCounter | None = None,
) -> CheckRun:
    """Evaluate every file and directory; per-path I/O errors never abort the run."""
    if files and metrics is None:
        raise ValueError("a metrics provider is required to evaluate files")
    content = ContentEvaluator(index, baseline)
    structure = StructureEvaluator(index, baseline)
    run = CheckRun()

    def check_file(path: str) -> Verdict | PathError | None:
        if not content.in_scope(path):
            return None
        try:
            observed = metrics.metrics(path)
        except OSError as exc:
            logger.debug("Could not read %s: %s", path, exc)
            return PathError(path=path, target=CONTENT, message=str(exc))
        finally:
            if progress is not None:
                progress.increment()
        return content.evaluate(path, observed)

    def check_dir(item: tuple[str, DirStats]) -> Verdict:
        path, stats = item
        verdict = structure.evaluate(path, stats)
        if progress is not None:
            progress.increment()
        return verdict

    with ThreadPoolExecutor(max_workers=max(workers, 1)) as pool:
        results = list(pool.map(check_file, files))
        results.extend(pool.map(check_dir, (dirs or {}).items()))

    for result in results:
        if isinstance(result, PathError):
            run.errors.append(result)
        elif result is not None:
            run.verdicts.append(result)
    run.verdicts.sort(key=lambda verdict: (verdict.path, verdict.target))
    run.errors.sort(key=lambda error: error.path)
    run.ratchet = BaselineComparator(baseline).ratchet(run.verdicts)
    logger.debug("Evaluated %d verdicts (%d errors)", len(run.verdicts), len(run.errors))
    return run


class StaticMetrics:
    """MetricsProvider over pre-computed metrics, e.g. from an observations file."""

    def __init__(self, metrics: Mapping[str, FileMetrics]) -> None:
        self._metrics = dict(metrics)

    def metrics(self, path: str) -> FileMetrics:
        try:
            return self._metrics[path]
        except KeyError:
            raise FileNotFoundError(f"no metrics recorded for {path}") from None


@dataclass(slots=True)
class Observations:
    """File metrics and directory stats produced by an external scanner."""

    files: dict[str, FileMetrics] = field(default_factory=dict)
    dirs: dict[str, DirStats] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Any) -> Observations:
        """Parse `{"files": {path: metrics}, "dirs": {path: stats}}`."""
        if not isinstance(payload, dict):
            raise ValueError("observations must be a JSON object")
        files: dict[str, FileMetrics] = {}
        for path, raw in _as_mapping(payload.get("files"), "files").items():
            item = _as_mapping(raw, f"files.{path}")
            files[normalize_path(path)] = FileMetrics(
                total=_as_count(item, "total", path),
                code=_as_count(item, "code", path),
                comment=_as_count(item, "comment", path),
                blank=_as_count(item, "blank", path),
                hash=str(item.get("hash", "")),
            )
        dirs: dict[str, DirStats] = {}
        for path, raw in _as_mapping(payload.get("dirs"), "dirs").items():
            item = _as_mapping(raw, f"dirs.{path}")
            names = tuple(str(name) for name in item.get("files", []))
            subdirs = tuple(str(name) for name in item.get("dirs", []))
            dirs[normalize_path(path)] = DirStats(
                file_count=int(item.get("file_count", len(names))),
                dir_count=int(item.get("dir_count", len(subdirs))),
                depth=int(item.get("depth", 0)),
                files=names,
                dirs=subdirs,
            )
        return cls(files=files, dirs=dirs)


def _as_mapping(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"observations.{field_name} must be an object")
    return value


def _as_count(item: dict[str, Any], key: str, path: str) -> int:
    value = item.get(key, 0)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"observations for {path}: {key} must be a non-negative integer")
    return value
