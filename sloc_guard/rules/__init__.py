"""Rules package."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from sloc_guard.config import Configuration
from sloc_guard.globs import GlobPattern, compile_globs, first_match
from sloc_guard.rules.base import MatchTrail, RuleMatcher
from sloc_guard.rules.content import (
    CompiledContentRule,
    ContentLimits,
    resolve_content_limits,
)
from sloc_guard.rules.structure import (
    CompiledEntryPolicy,
    CompiledStructureRule,
    StructureLimits,
    resolve_structure_limits,
)


@dataclass(frozen=True, slots=True)
class RuleIndex:
    """Compiled, declaration-ordered rules for one Configuration.

    Built once per run and shared read-only by every evaluator.
    """

    config: Configuration
    today: date
    content: RuleMatcher[CompiledContentRule]
    structure: RuleMatcher[CompiledStructureRule]
    extensions: frozenset[str]
    content_exclude: tuple[GlobPattern, ...]
    count_exclude: tuple[GlobPattern, ...]
    structure_policy: CompiledEntryPolicy | None
    structure_naming: re.Pattern[str] | None

    def content_skip_reason(self, path: str) -> str | None:
        """Why content checks skip `path`, or None when they apply.

        Returns the matching exclude pattern, or "extension" when the extension
        is not listed and no active rule claims the file.
        """
        excluded = first_match(self.content_exclude, path)
        if excluded is not None:
            return excluded.pattern
        _, dot, extension = path.rpartition("/")[2].rpartition(".")
        if dot and extension.lower() in self.extensions:
            return None
        if self.content.match(path) is not None:
            return None
        return "extension"

    def content_limits(self, path: str) -> ContentLimits:
        return resolve_content_limits(self.config.content, self.content.match(path))

    def content_trail(self, path: str) -> MatchTrail[CompiledContentRule]:
        return self.content.trail(path)

    def structure_limits(self, path: str) -> StructureLimits:
        return resolve_structure_limits(
            self.config.structure,
            self.structure.match(path),
            spec_policy=self.structure_policy,
            spec_naming=self.structure_naming,
        )

    def structure_trail(self, path: str) -> MatchTrail[CompiledStructureRule]:
        return self.structure.trail(path)


def build_rule_index(config: Configuration, today: date | None = None) -> RuleIndex:
    """Compile every scope, policy and naming pattern in `config`."""
    today = today if today is not None else date.today()
    content_rules = [
        CompiledContentRule.from_rule(index, rule)
        for index, rule in enumerate(config.content.rules)
    ]
    structure_rules = [
        CompiledStructureRule.from_rule(index, rule)
        for index, rule in enumerate(config.structure.rules)
    ]
    structure = config.structure
    return RuleIndex(
        config=config,
        today=today,
        content=RuleMatcher(content_rules, today=today),
        structure=RuleMatcher(structure_rules, today=today),
        extensions=frozenset(ext.lower().lstrip(".") for ext in config.content.extensions),
        content_exclude=compile_globs(config.content.exclude),
        count_exclude=compile_globs(structure.count_exclude),
        structure_policy=(
            CompiledEntryPolicy.from_policy(structure.entry_policy)
            if structure.entry_policy
            else None
        ),
        structure_naming=(
            re.compile(structure.file_naming_pattern) if structure.file_naming_pattern else None
        ),
    )

