"""Compiled structure rules: scopes, entry policies, naming and sibling checks."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sloc_guard.config import (
    DirectedSibling,
    EntryPolicy,
    GroupSibling,
    SiblingRule,
    StructureRule,
    StructureSpec,
)
from sloc_guard.globs import GlobPattern, base_depth, compile_glob, compile_globs
from sloc_guard.rules.base import RuleMatcher, resolve_warn_at

STEM_PLACEHOLDER = "{stem}"


@dataclass(frozen=True, slots=True)
class EntryMatch:
    """Why an entry name was rejected by an entry policy."""

    kind: str
    matched: str | None


@dataclass(frozen=True, slots=True)
class CompiledEntryPolicy:
    """Allow or deny lists with their globs compiled.

    Patterns ending in `/` only apply to directories. Names are tested both on
    their own and as `<dir>/<name>` so `*.bak` and `**/vendor` both work.
    """

    mode: str
    extensions: tuple[str, ...]
    file_patterns: tuple[GlobPattern, ...]
    dir_patterns: tuple[GlobPattern, ...]

    @classmethod
    def from_policy(cls, policy: EntryPolicy) -> CompiledEntryPolicy:
        file_patterns = [pattern for pattern in policy.patterns if not pattern.endswith("/")]
        dir_patterns = [pattern.rstrip("/") for pattern in policy.patterns if pattern.endswith("/")]
        return cls(
            mode=policy.mode,
            extensions=tuple(ext.lower() for ext in policy.extensions),
            file_patterns=compile_globs(file_patterns + list(policy.files)),
            dir_patterns=compile_globs(dir_patterns + [d.rstrip("/") for d in policy.dirs]),
        )

    def check_file(self, name: str, dir_path: str) -> EntryMatch | None:
        extension = _extension(name)
        if self.mode == "deny":
            if extension and extension in self.extensions:
                return EntryMatch("denied_file", extension)
            hit = _first_entry_match(self.file_patterns, name, dir_path)
            return EntryMatch("denied_file", hit.pattern) if hit else None

        if not (self.extensions or self.file_patterns):
            return None
        if extension and extension in self.extensions:
            return None
        if _first_entry_match(self.file_patterns, name, dir_path):
            return None
        return EntryMatch("disallowed_file", None)

    def check_dir(self, name: str, dir_path: str) -> EntryMatch | None:
        hit = _first_entry_match(self.dir_patterns, name, dir_path)
        if self.mode == "deny":
            return EntryMatch("denied_directory", hit.pattern) if hit else None
        if not self.dir_patterns or hit:
            return None
        return EntryMatch("disallowed_directory", None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "extensions": list(self.extensions),
            "file_patterns": [glob.pattern for glob in self.file_patterns],
            "dir_patterns": [glob.pattern for glob in self.dir_patterns],
        }


@dataclass(frozen=True, slots=True)
class CompiledSibling:
    """A directed or group sibling requirement ready for matching."""

    kind: str
    templates: tuple[str, ...]
    severity: str
    match: GlobPattern | None = None
    template_regexes: tuple[re.Pattern[str], ...] = ()

    @classmethod
    def from_rule(cls, rule: SiblingRule) -> CompiledSibling:
        if isinstance(rule, DirectedSibling):
            return cls(
                kind="directed",
                templates=rule.require,
                severity=rule.severity,
                match=compile_glob(rule.match),
                template_regexes=tuple(_stem_regex(template) for template in rule.require),
            )
        if isinstance(rule, GroupSibling):
            return cls(
                kind="group",
                templates=rule.group,
                severity=rule.severity,
                template_regexes=tuple(_stem_regex(template) for template in rule.group),
            )
        raise TypeError(f"Unsupported sibling rule: {rule!r}")

    def stem_of(self, name: str) -> str | None:
        """Return the shortest stem that any template extracts from `name`."""
        stems = [
            found.group("stem")
            for regex in self.template_regexes
            if (found := regex.fullmatch(name)) is not None
        ]
        return min(stems, key=len) if stems else None

    def expand(self, stem: str) -> tuple[str, ...]:
        return tuple(template.replace(STEM_PLACEHOLDER, stem) for template in self.templates)


@dataclass(frozen=True, slots=True)
class CompiledStructureRule:
    """A StructureRule with its scope, policies and siblings compiled."""

    index: int
    glob: GlobPattern
    max_files: int | None
    max_dirs: int | None
    max_depth: int | None
    relative_depth: bool
    base_depth: int
    warn_threshold: float | None
    warn_files_at: int | None
    warn_dirs_at: int | None
    warn_files_threshold: float | None
    warn_dirs_threshold: float | None
    entry_policy: CompiledEntryPolicy | None
    naming: re.Pattern[str] | None
    siblings: tuple[CompiledSibling, ...]
    reason: str | None
    expires: date | None

    @classmethod
    def from_rule(cls, index: int, rule: StructureRule) -> CompiledStructureRule:
        return cls(
            index=index,
            glob=compile_glob(rule.scope),
            max_files=rule.max_files,
            max_dirs=rule.max_dirs,
            max_depth=rule.max_depth,
            relative_depth=rule.relative_depth,
            base_depth=base_depth(rule.scope),
            warn_threshold=rule.warn_threshold,
            warn_files_at=rule.warn_files_at,
            warn_dirs_at=rule.warn_dirs_at,
            warn_files_threshold=rule.warn_files_threshold,
            warn_dirs_threshold=rule.warn_dirs_threshold,
            entry_policy=(
                CompiledEntryPolicy.from_policy(rule.entry_policy) if rule.entry_policy else None
            ),
            naming=re.compile(rule.file_naming_pattern) if rule.file_naming_pattern else None,
            siblings=tuple(CompiledSibling.from_rule(sibling) for sibling in rule.siblings),
            reason=rule.reason,
            expires=rule.expires,
        )

    @property
    def pattern(self) -> str:
        return self.glob.pattern


@dataclass(frozen=True, slots=True)
class StructureLimits:
    """Effective structure settings for one directory."""

    max_files: int | None
    max_dirs: int | None
    max_depth: int | None
    warn_files_at: int | None
    warn_dirs_at: int | None
    warn_depth_at: int | None
    relative_depth: bool = False
    base_depth: int = 0
    entry_policy: CompiledEntryPolicy | None = None
    naming: re.Pattern[str] | None = None
    siblings: tuple[CompiledSibling, ...] = field(default_factory=tuple)
    rule: CompiledStructureRule | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_files": self.max_files,
            "max_dirs": self.max_dirs,
            "max_depth": self.max_depth,
            "warn_files_at": self.warn_files_at,
            "warn_dirs_at": self.warn_dirs_at,
            "warn_depth_at": self.warn_depth_at,
            "relative_depth": self.relative_depth,
            "base_depth": self.base_depth,
            "entries": self.entry_policy.to_dict() if self.entry_policy else None,
            "file_naming_pattern": self.naming.pattern if self.naming else None,
            "siblings": len(self.siblings),
            "rule_index": self.rule.index if self.rule else None,
        }


def resolve_structure_limits(
    spec: StructureSpec,
    rule: CompiledStructureRule | None,
    *,
    spec_policy: CompiledEntryPolicy | None = None,
    spec_naming: re.Pattern[str] | None = None,
) -> StructureLimits:
    """Overlay the matched rule on the structure defaults.

    Files and directories resolve their warn boundaries independently: a
    dimension-specific setting beats the shared `warn_threshold` at the same
    scope, and the rule scope beats the structure defaults.
    """
    spec_files = (spec.warn_files_at, spec.warn_files_threshold)
    spec_dirs = (spec.warn_dirs_at, spec.warn_dirs_threshold)
    spec_shared = (None, spec.warn_threshold)
    if rule is None:
        return StructureLimits(
            max_files=spec.max_files,
            max_dirs=spec.max_dirs,
            max_depth=spec.max_depth,
            warn_files_at=resolve_warn_at(spec.max_files, [spec_files, spec_shared]),
            warn_dirs_at=resolve_warn_at(spec.max_dirs, [spec_dirs, spec_shared]),
            warn_depth_at=resolve_warn_at(spec.max_depth, [spec_shared], None),
            entry_policy=spec_policy,
            naming=spec_naming,
        )

    max_files = rule.max_files if rule.max_files is not None else spec.max_files
    max_dirs = rule.max_dirs if rule.max_dirs is not None else spec.max_dirs
    max_depth = rule.max_depth if rule.max_depth is not None else spec.max_depth
    rule_shared = (None, rule.warn_threshold)
    return StructureLimits(
        max_files=max_files,
        max_dirs=max_dirs,
        max_depth=max_depth,
        warn_files_at=resolve_warn_at(
            max_files,
            [(rule.warn_files_at, rule.warn_files_threshold), rule_shared, spec_files, spec_shared],
        ),
        warn_dirs_at=resolve_warn_at(
            max_dirs,
            [(rule.warn_dirs_at, rule.warn_dirs_threshold), rule_shared, spec_dirs, spec_shared],
        ),
        warn_depth_at=resolve_warn_at(max_depth, [rule_shared, spec_shared], None),
        relative_depth=rule.relative_depth,
        base_depth=rule.base_depth,
        entry_policy=rule.entry_policy if rule.entry_policy is not None else spec_policy,
        naming=rule.naming if rule.naming is not None else spec_naming,
        siblings=rule.siblings,
        rule=rule,
    )


StructureMatcher = RuleMatcher[CompiledStructureRule]


def _extension(name: str) -> str:
    head, dot, suffix = name.rpartition(".")
    if not dot or not head:
        return ""
    return f".{suffix.lower()}"


def _first_entry_match(
    globs: tuple[GlobPattern, ...], name: str, dir_path: str
) -> GlobPattern | None:
    full = f"{dir_path}/{name}" if dir_path else name
    for glob in globs:
        if glob.matches_name(name) or glob.matches(full):
            return glob
    return None


def _stem_regex(template: str) -> re.Pattern[str]:
    before, _, after = template.partition(STEM_PLACEHOLDER)
    return re.compile(f"{re.escape(before)}(?P<stem>.+?){re.escape(after)}")
