"""Explain which rule governs a path and why."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any

from sloc_guard.globs import normalize_path
from sloc_guard.rules import RuleIndex
from sloc_guard.rules.base import RuleCandidate
from sloc_guard.verdict import CONTENT, STRUCTURE


@dataclass(slots=True)
class Explanation:
    """The matcher trail for one path plus the effective values it produced."""

    path: str
    target: str
    candidates: list[RuleCandidate] = field(default_factory=list)
    selected: int | None = None
    effective: dict[str, Any] = field(default_factory=dict)
    excluded_by: str | None = None

    @property
    def checked(self) -> bool:
        return self.excluded_by is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "target": self.target,
            "candidates": [candidate.to_dict() for candidate in self.candidates],
            "selected": self.selected,
            "effective": dict(self.effective),
            "excluded_by": self.excluded_by,
            "checked": self.checked,
        }


def explain_content(index: RuleIndex, path: str | PurePath) -> Explanation:
    normalized = normalize_path(path)
    skip_reason = index.content_skip_reason(normalized)
    trail = index.content_trail(normalized)
    effective = {} if skip_reason is not None else index.content_limits(normalized).to_dict()
    return Explanation(
        path=normalized,
        target=CONTENT,
        candidates=trail.candidates,
        selected=trail.selected.index if trail.selected is not None else None,
        effective=effective,
        excluded_by=skip_reason,
    )


def explain_structure(index: RuleIndex, path: str | PurePath) -> Explanation:
    normalized = normalize_path(path)
    trail = index.structure_trail(normalized)
    limits = index.structure_limits(normalized)
    return Explanation(
        path=normalized,
        target=STRUCTURE,
        candidates=trail.candidates,
        selected=trail.selected.index if trail.selected is not None else None,
        effective=limits.to_dict(),
    )
