"""Semantic validation of a parsed Configuration."""

from __future__ import annotations

import re

from sloc_guard.config import (
    UNLIMITED,
    Configuration,
    ContentSpec,
    DirectedSibling,
    EntryPolicy,
    StructureRule,
    StructureSpec,
)
from sloc_guard.errors import ConfigSemanticError, InvalidPatternError
from sloc_guard.globs import compile_glob


def validate_configuration(config: Configuration) -> None:
    """Raise on the first range, cross-field or pattern error found."""
    _validate_content(config.content)
    _validate_structure(config.structure)
    _validate_trend(config)
    _validate_patterns(config)


def _validate_content(content: ContentSpec) -> None:
    _check_limit(content.max_lines, "content.max_lines")
    _check_threshold(content.warn_threshold, "content.warn_threshold")
    _check_warn_at(content.warn_at, content.max_lines, "content.warn_at", "content.max_lines")
    for index, rule in enumerate(content.rules):
        field_name = f"content.rules[{index}]"
        _check_limit(rule.max_lines, f"{field_name}.max_lines")
        _check_threshold(rule.warn_threshold, f"{field_name}.warn_threshold")
        limit = rule.max_lines if rule.max_lines is not None else content.max_lines
        _check_warn_at(rule.warn_at, limit, f"{field_name}.warn_at", f"{field_name}.max_lines")


def _validate_structure(structure: StructureSpec) -> None:
    _validate_structure_scope(structure, "structure")
    for index, rule in enumerate(structure.rules):
        _validate_structure_scope(rule, f"structure.rules[{index}]")


def _validate_structure_scope(scope: StructureSpec | StructureRule, field_name: str) -> None:
    _check_limit(scope.max_files, f"{field_name}.max_files")
    _check_limit(scope.max_dirs, f"{field_name}.max_dirs")
    _check_limit(scope.max_depth, f"{field_name}.max_depth")
    _check_threshold(scope.warn_threshold, f"{field_name}.warn_threshold")
    _check_threshold(scope.warn_files_threshold, f"{field_name}.warn_files_threshold")
    _check_threshold(scope.warn_dirs_threshold, f"{field_name}.warn_dirs_threshold")
    _check_warn_at(
        scope.warn_files_at,
        scope.max_files,
        f"{field_name}.warn_files_at",
        f"{field_name}.max_files",
    )
    _check_warn_at(
        scope.warn_dirs_at, scope.max_dirs, f"{field_name}.warn_dirs_at", f"{field_name}.max_dirs"
    )


def _validate_trend(config: Configuration) -> None:
    trend = config.trend
    for field_name, value in (
        ("trend.max_entries", trend.max_entries),
        ("trend.max_age_days", trend.max_age_days),
        ("trend.min_interval_secs", trend.min_interval_secs),
        ("trend.min_code_delta", trend.min_code_delta),
    ):
        if value is not None and value < 0:
            raise ConfigSemanticError(field_name, f"{field_name} must be non-negative, got {value}")


def _validate_patterns(config: Configuration) -> None:
    for pattern in config.scanner.exclude + config.content.exclude:
        compile_glob(pattern)
    for rule in config.content.rules:
        compile_glob(rule.pattern)
    structure = config.structure
    for pattern in structure.count_exclude:
        compile_glob(pattern)
    _validate_entry_patterns(structure.entry_policy)
    _validate_naming_pattern(structure.file_naming_pattern)
    for rule in structure.rules:
        compile_glob(rule.scope)
        _validate_entry_patterns(rule.entry_policy)
        _validate_naming_pattern(rule.file_naming_pattern)
        for sibling in rule.siblings:
            if isinstance(sibling, DirectedSibling):
                compile_glob(sibling.match)


def _validate_entry_patterns(policy: EntryPolicy | None) -> None:
    if policy is None:
        return
    for pattern in policy.patterns + policy.files + policy.dirs:
        compile_glob(pattern)


def _validate_naming_pattern(pattern: str | None) -> None:
    if pattern is None:
        return
    try:
        re.compile(pattern)
    except re.error as exc:
        raise InvalidPatternError(pattern, f"invalid naming regex: {exc}") from exc


def _check_limit(value: int | None, field_name: str) -> None:
    if value is not None and value < UNLIMITED:
        raise ConfigSemanticError(
            field_name,
            f"Invalid {field_name} value: {value}.",
            suggestion="Use -1 for unlimited, 0 for prohibited, or a positive number.",
        )


def _check_threshold(value: float | None, field_name: str) -> None:
    if value is not None and not 0.0 <= value <= 1.0:
        raise ConfigSemanticError(
            field_name,
            f"{field_name} must be between 0.0 and 1.0, got {value}",
        )


def _check_warn_at(
    warn_at: int | None, limit: int | None, field_name: str, limit_name: str
) -> None:
    if warn_at is None:
        return
    if warn_at < 0:
        raise ConfigSemanticError(field_name, f"{field_name} must be non-negative, got {warn_at}")
    if limit is not None and limit != UNLIMITED and warn_at >= limit:
        raise ConfigSemanticError(
            field_name,
            f"{field_name} ({warn_at}) must be less than {limit_name} ({limit})",
        )
