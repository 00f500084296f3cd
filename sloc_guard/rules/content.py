"""Compiled content rules and per-path limit resolution."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from sloc_guard.config import ContentRule, ContentSpec
from sloc_guard.globs import GlobPattern, compile_glob
from sloc_guard.rules.base import RuleMatcher, resolve_warn_at


@dataclass(frozen=True, slots=True)
class CompiledContentRule:
    """A ContentRule with its scope compiled and its declaration index kept."""

    index: int
    glob: GlobPattern
    max_lines: int | None
    warn_threshold: float | None
    warn_at: int | None
    skip_comments: bool | None
    skip_blank: bool | None
    reason: str | None
    expires: date | None

    @classmethod
    def from_rule(cls, index: int, rule: ContentRule) -> CompiledContentRule:
        return cls(
            index=index,
            glob=compile_glob(rule.pattern),
            max_lines=rule.max_lines,
            warn_threshold=rule.warn_threshold,
            warn_at=rule.warn_at,
            skip_comments=rule.skip_comments,
            skip_blank=rule.skip_blank,
            reason=rule.reason,
            expires=rule.expires,
        )

    @property
    def pattern(self) -> str:
        return self.glob.pattern


@dataclass(frozen=True, slots=True)
class ContentLimits:
    """Effective content settings for one file."""

    max_lines: int
    warn_at: int | None
    skip_comments: bool
    skip_blank: bool
    rule: CompiledContentRule | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_lines": self.max_lines,
            "warn_at": self.warn_at,
            "skip_comments": self.skip_comments,
            "skip_blank": self.skip_blank,
            "rule_index": self.rule.index if self.rule else None,
        }


def resolve_content_limits(
    spec: ContentSpec, rule: CompiledContentRule | None
) -> ContentLimits:
    """Overlay the matched rule on the content defaults."""
    if rule is None:
        max_lines = spec.max_lines
        return ContentLimits(
            max_lines=max_lines,
            warn_at=resolve_warn_at(max_lines, [(spec.warn_at, spec.warn_threshold)]),
            skip_comments=spec.skip_comments,
            skip_blank=spec.skip_blank,
        )
    max_lines = rule.max_lines if rule.max_lines is not None else spec.max_lines
    return ContentLimits(
        max_lines=max_lines,
        warn_at=resolve_warn_at(
            max_lines,
            [(rule.warn_at, rule.warn_threshold), (spec.warn_at, spec.warn_threshold)],
        ),
        skip_comments=spec.skip_comments if rule.skip_comments is None else rule.skip_comments,
        skip_blank=spec.skip_blank if rule.skip_blank is None else rule.skip_blank,
        rule=rule,
    )


ContentMatcher = RuleMatcher[CompiledContentRule]
