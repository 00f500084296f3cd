"""Verdict model shared by the content and structure evaluators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sloc_guard.rules.base import Status

CONTENT = "content"
STRUCTURE = "structure"

VIOLATION_KINDS = {
    "line_count",
    "file_count",
    "dir_count",
    "max_depth",
    "disallowed_file",
    "disallowed_directory",
    "denied_file",
    "denied_directory",
    "naming_convention",
    "missing_sibling",
    "group_incomplete",
}

# Baseline entries for structure use these short names.
BASELINE_KINDS = {"file_count": "files", "dir_count": "dirs"}

_STATUS_RANK = {
    Status.PASSED: 0,
    Status.WARNING: 1,
    Status.GRANDFATHERED: 2,
    Status.FAILED: 3,
}


def worst_status(statuses: list[Status]) -> Status:
    """Failed outranks grandfathered, which outranks warning, which outranks passed."""
    return max(statuses, key=_STATUS_RANK.__getitem__, default=Status.PASSED)


@dataclass(frozen=True, slots=True)
class RuleProvenance:
    """Which rule produced the effective limits, or `default` when none matched."""

    source: str
    index: int | None = None
    pattern: str | None = None
    reason: str | None = None

    @classmethod
    def default(cls) -> RuleProvenance:
        return cls(source="default")

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "index": self.index,
            "pattern": self.pattern,
            "reason": self.reason,
        }


@dataclass(slots=True)
class Violation:
    """One failed or warning check inside a verdict."""

    kind: str
    status: Status
    observed: int
    limit: int
    subject: str | None = None
    detail: str | None = None
    grandfathered: bool = False

    @property
    def effective_status(self) -> Status:
        return Status.GRANDFATHERED if self.grandfathered else self.status

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "status": self.effective_status.value,
            "observed": self.observed,
            "limit": self.limit,
            "subject": self.subject,
            "detail": self.detail,
        }


@dataclass(slots=True)
class Verdict:
    """Evaluation result for one file (content) or one directory (structure)."""

    path: str
    target: str
    status: Status
    observed: int
    limit: int | None
    warn_at: int | None
    provenance: RuleProvenance
    violations: list[Violation] = field(default_factory=list)
    content_hash: str | None = None

    @property
    def is_failure(self) -> bool:
        return self.status is Status.FAILED

    @property
    def is_passing(self) -> bool:
        """Warnings and grandfathered verdicts still pass the check."""
        return self.status is not Status.FAILED

    def refresh_status(self) -> None:
        """Recompute the status after violations were grandfathered."""
        self.status = worst_status([item.effective_status for item in self.violations])

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "target": self.target,
            "status": self.status.value,
            "observed": self.observed,
            "limit": self.limit,
            "warn_at": self.warn_at,
            "rule": self.provenance.to_dict(),
            "violations": [item.to_dict() for item in self.violations],
            "hash": self.content_hash,
        }


@dataclass(frozen=True, slots=True)
class PathError:
    """A path that could not be evaluated; reported beside the verdicts."""

    path: str
    target: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "target": self.target, "error": self.message}
