"""Per-file line limit evaluation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath
from typing import Protocol

from sloc_guard.baseline import Baseline, BaselineComparator
from sloc_guard.globs import normalize_path
from sloc_guard.rules import RuleIndex
from sloc_guard.rules.base import Status, classify
from sloc_guard.rules.content import ContentLimits
from sloc_guard.verdict import CONTENT, RuleProvenance, Verdict, Violation


@dataclass(frozen=True, slots=True)
class FileMetrics:
    """Line breakdown and content hash supplied by the external line counter."""

    total: int
    code: int
    comment: int
    blank: int
    hash: str

    def effective_lines(self, *, skip_comments: bool, skip_blank: bool) -> int:
        lines = self.total
        if skip_comments:
            lines -= self.comment
        if skip_blank:
            lines -= self.blank
        return max(lines, 0)


class MetricsProvider(Protocol):
    """Source of FileMetrics; may raise OSError for unreadable files."""

    def metrics(self, path: str) -> FileMetrics:
        """Return metrics for `path`."""


class ContentEvaluator:
    """Evaluate files against the effective content rule for their path."""

    def __init__(self, index: RuleIndex, baseline: Baseline | None = None) -> None:
        self.index = index
        self.comparator = BaselineComparator(baseline)

    def in_scope(self, path: str | PurePath) -> bool:
        """A file is checked if its extension is listed or any active rule matches it."""
        return self.index.content_skip_reason(normalize_path(path)) is None

    def limits(self, path: str | PurePath) -> ContentLimits:
        return self.index.content_limits(normalize_path(path))

    def evaluate(self, path: str | PurePath, metrics: FileMetrics) -> Verdict | None:
        """Return the verdict for `path`, or None when content checks do not apply."""
        normalized = normalize_path(path)
        if not self.in_scope(normalized):
            return None
        limits = self.limits(normalized)
        observed = metrics.effective_lines(
            skip_comments=limits.skip_comments, skip_blank=limits.skip_blank
        )
        status = classify(observed, limits.max_lines, limits.warn_at)
        violations = []
        if status is not Status.PASSED:
            violations.append(
                Violation(
                    kind="line_count",
                    status=status,
                    observed=observed,
                    limit=limits.max_lines,
                    subject=normalized,
                    detail=_line_detail(status, observed, limits),
                )
            )
        verdict = Verdict(
            path=normalized,
            target=CONTENT,
            status=status,
            observed=observed,
            limit=limits.max_lines,
            warn_at=limits.warn_at,
            provenance=_provenance(limits),
            violations=violations,
            content_hash=metrics.hash,
        )
        return self.comparator.grandfather(verdict)


def _provenance(limits: ContentLimits) -> RuleProvenance:
    rule = limits.rule
    if rule is None:
        return RuleProvenance.default()
    return RuleProvenance(
        source="content.rules", index=rule.index, pattern=rule.pattern, reason=rule.reason
    )


def _line_detail(status: Status, observed: int, limits: ContentLimits) -> str:
    if status is Status.FAILED:
        return f"{observed} lines exceeds limit of {limits.max_lines}"
    return f"{observed} lines reaches warning threshold {limits.warn_at} (limit {limits.max_lines})"
