"""Generic last-match-wins rule matching shared by content and structure checks."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import PurePath
from typing import Any, Generic, Protocol, TypeVar

from sloc_guard.config import DEFAULT_WARN_THRESHOLD, UNLIMITED
from sloc_guard.globs import GlobPattern, normalize_path


class Status(str, Enum):
    """Outcome of comparing an observation against its effective limit."""

    PASSED = "passed"
    WARNING = "warning"
    FAILED = "failed"
    GRANDFATHERED = "grandfathered"


class MatchStatus(str, Enum):
    """How a single rule related to a path during matching."""

    MATCHED = "matched"
    SUPERSEDED = "superseded"
    NO_MATCH = "no_match"
    EXPIRED = "expired"


class MatchableRule(Protocol):
    """Anything with a compiled scope, a declaration index and an optional expiry."""

    index: int
    glob: GlobPattern
    reason: str | None
    expires: date | None


RuleT = TypeVar("RuleT", bound=MatchableRule)


@dataclass(frozen=True, slots=True)
class RuleCandidate:
    """One row of the explain trail."""

    index: int
    pattern: str
    status: MatchStatus
    reason: str | None = None
    expires: date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "pattern": self.pattern,
            "status": self.status.value,
            "reason": self.reason,
            "expires": self.expires.isoformat() if self.expires else None,
        }


@dataclass(slots=True)
class MatchTrail(Generic[RuleT]):
    """Every rule considered for a path, in declaration order."""

    path: str
    candidates: list[RuleCandidate] = field(default_factory=list)
    selected: RuleT | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "candidates": [candidate.to_dict() for candidate in self.candidates],
            "selected": self.selected.index if self.selected is not None else None,
        }


class RuleMatcher(Generic[RuleT]):
    """Select the last declared, unexpired rule whose scope matches a path."""

    def __init__(self, rules: Sequence[RuleT], *, today: date) -> None:
        self.rules = tuple(rules)
        self.today = today

    def is_expired(self, rule: RuleT) -> bool:
        return rule.expires is not None and rule.expires < self.today

    def match(self, path: str | PurePath) -> RuleT | None:
        normalized = normalize_path(path)
        for rule in reversed(self.rules):
            if rule.glob.regex.fullmatch(normalized) is not None and not self.is_expired(rule):
                return rule
        return None

    def trail(self, path: str | PurePath) -> MatchTrail[RuleT]:
        """Record the status of every rule; `selected` always equals `match(path)`."""
        normalized = normalize_path(path)
        trail: MatchTrail[RuleT] = MatchTrail(path=normalized)
        statuses: list[MatchStatus] = []
        for rule in self.rules:
            if rule.glob.regex.fullmatch(normalized) is None:
                statuses.append(MatchStatus.NO_MATCH)
            elif self.is_expired(rule):
                statuses.append(MatchStatus.EXPIRED)
            else:
                statuses.append(MatchStatus.SUPERSEDED)
                trail.selected = rule
        for rule, status in zip(self.rules, statuses):
            if trail.selected is rule:
                status = MatchStatus.MATCHED
            trail.candidates.append(
                RuleCandidate(
                    index=rule.index,
                    pattern=rule.glob.pattern,
                    status=status,
                    reason=rule.reason,
                    expires=rule.expires,
                )
            )
        return trail


def resolve_warn_at(
    limit: int | None,
    levels: Sequence[tuple[int | None, float | None]],
    default_threshold: float | None = DEFAULT_WARN_THRESHOLD,
) -> int | None:
    """Return the warn boundary for `limit` from the most specific level that sets one.

    `levels` are `(absolute, percentage)` pairs, most specific first. Within a
    level the absolute value wins. An absolute value that is not below the limit
    cannot warn before failing, so it is skipped in favour of the next setting.
    """
    if limit is None or limit <= 0:
        return None
    for absolute, percentage in levels:
        if absolute is not None and absolute < limit:
            return absolute
        if percentage is not None:
            return threshold_to_count(limit, percentage)
    if default_threshold is None:
        return None
    return threshold_to_count(limit, default_threshold)


def threshold_to_count(limit: int, threshold: float) -> int:
    # Rounding first keeps 0.8 * 500 at exactly 400 instead of 400.00000000000006.
    return math.ceil(round(limit * threshold, 9))


def classify(observed: int, limit: int | None, warn_at: int | None) -> Status:
    """Compare one observation with a resolved limit; unset or -1 never fails."""
    if limit is None or limit == UNLIMITED:
        return Status.PASSED
    if observed > limit:
        return Status.FAILED
    if warn_at is not None and observed >= warn_at:
        return Status.WARNING
    return Status.PASSED
