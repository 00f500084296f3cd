"""Configuration model and conversion from merged TOML tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from sloc_guard.errors import ConfigSemanticError, ConfigTypeError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".sloc-guard.toml"
CONFIG_VERSION = "2"
UNLIMITED = -1
DEFAULT_MAX_LINES = 500
DEFAULT_WARN_THRESHOLD = 0.8
DEFAULT_EXTENSIONS = ["rs", "go", "py", "js", "ts", "c", "cpp"]
ENTRY_KINDS = ("extensions", "patterns", "files", "dirs")
SIBLING_SEVERITIES = {"error", "warn"}
RATCHET_MODES = {"warn", "auto", "strict"}

_TOP_LEVEL_KEYS = {"version", "scanner", "content", "structure", "check", "baseline", "trend"}
_DEPRECATED_KEYS = {
    "path_rules": "[[content.rules]]",
    "default": "[content]",
    "override": "[[content.rules]] with a reason",
    "overrides": "[[content.rules]] with a reason",
    "exclude": "[scanner] exclude",
    "rules": "[content.languages.<ext>]",
}


@dataclass(slots=True)
class ScannerSpec:
    """Physical exclusion settings handed to the external scanner."""

    gitignore: bool = True
    exclude: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"gitignore": self.gitignore, "exclude": list(self.exclude)}


@dataclass(slots=True)
class ContentRule:
    """Per-glob override of content limits."""

    pattern: str
    max_lines: int | None = None
    warn_threshold: float | None = None
    warn_at: int | None = None
    skip_comments: bool | None = None
    skip_blank: bool | None = None
    reason: str | None = None
    expires: date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern": self.pattern,
            "max_lines": self.max_lines,
            "warn_threshold": self.warn_threshold,
            "warn_at": self.warn_at,
            "skip_comments": self.skip_comments,
            "skip_blank": self.skip_blank,
            "reason": self.reason,
            "expires": self.expires.isoformat() if self.expires else None,
        }


@dataclass(slots=True)
class ContentSpec:
    """Defaults and ordered rules for per-file line limits."""

    extensions: list[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    max_lines: int = DEFAULT_MAX_LINES
    warn_threshold: float | None = None
    warn_at: int | None = None
    skip_comments: bool = True
    skip_blank: bool = True
    exclude: list[str] = field(default_factory=list)
    rules: list[ContentRule] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "extensions": list(self.extensions),
            "max_lines": self.max_lines,
            "warn_threshold": self.warn_threshold,
            "warn_at": self.warn_at,
            "skip_comments": self.skip_comments,
            "skip_blank": self.skip_blank,
            "exclude": list(self.exclude),
            "rules": [rule.to_dict() for rule in self.rules],
        }


@dataclass(frozen=True, slots=True)
class AllowPolicy:
    """Only entries matching one of these are permitted."""

    extensions: tuple[str, ...] = ()
    patterns: tuple[str, ...] = ()
    files: tuple[str, ...] = ()
    dirs: tuple[str, ...] = ()

    mode = "allow"

    def to_dict(self) -> dict[str, Any]:
        return _policy_dict(self)


@dataclass(frozen=True, slots=True)
class DenyPolicy:
    """Entries matching one of these are violations."""

    extensions: tuple[str, ...] = ()
    patterns: tuple[str, ...] = ()
    files: tuple[str, ...] = ()
    dirs: tuple[str, ...] = ()

    mode = "deny"

    def to_dict(self) -> dict[str, Any]:
        return _policy_dict(self)


EntryPolicy = AllowPolicy | DenyPolicy


@dataclass(frozen=True, slots=True)
class DirectedSibling:
    """A file matching `match` requires each `require` template beside it."""

    match: str
    require: tuple[str, ...]
    severity: str = "error"

    def to_dict(self) -> dict[str, Any]:
        return {"match": self.match, "require": list(self.require), "severity": self.severity}


@dataclass(frozen=True, slots=True)
class GroupSibling:
    """If any member of the group exists for a stem, all members must."""

    group: tuple[str, ...]
    severity: str = "error"

    def to_dict(self) -> dict[str, Any]:
        return {"group": list(self.group), "severity": self.severity}


SiblingRule = DirectedSibling | GroupSibling


@dataclass(slots=True)
class StructureRule:
    """Per-scope override of directory structure limits."""

    scope: str
    max_files: int | None = None
    max_dirs: int | None = None
    max_depth: int | None = None
    relative_depth: bool = False
    warn_threshold: float | None = None
    warn_files_at: int | None = None
    warn_dirs_at: int | None = None
    warn_files_threshold: float | None = None
    warn_dirs_threshold: float | None = None
    entry_policy: EntryPolicy | None = None
    file_naming_pattern: str | None = None
    siblings: list[SiblingRule] = field(default_factory=list)
    reason: str | None = None
    expires: date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": self.scope,
            "max_files": self.max_files,
            "max_dirs": self.max_dirs,
            "max_depth": self.max_depth,
            "relative_depth": self.relative_depth,
            "warn_threshold": self.warn_threshold,
            "warn_files_at": self.warn_files_at,
            "warn_dirs_at": self.warn_dirs_at,
            "warn_files_threshold": self.warn_files_threshold,
            "warn_dirs_threshold": self.warn_dirs_threshold,
            "entries": self.entry_policy.to_dict() if self.entry_policy else None,
            "file_naming_pattern": self.file_naming_pattern,
            "siblings": [sibling.to_dict() for sibling in self.siblings],
            "reason": self.reason,
            "expires": self.expires.isoformat() if self.expires else None,
        }


@dataclass(slots=True)
class StructureSpec:
    """Defaults and ordered rules for per-directory structure limits."""

    max_files: int | None = None
    max_dirs: int | None = None
    max_depth: int | None = None
    warn_threshold: float | None = None
    warn_files_at: int | None = None
    warn_dirs_at: int | None = None
    warn_files_threshold: float | None = None
    warn_dirs_threshold: float | None = None
    count_exclude: list[str] = field(default_factory=list)
    entry_policy: EntryPolicy | None = None
    file_naming_pattern: str | None = None
    rules: list[StructureRule] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_files": self.max_files,
            "max_dirs": self.max_dirs,
            "max_depth": self.max_depth,
            "warn_threshold": self.warn_threshold,
            "warn_files_at": self.warn_files_at,
            "warn_dirs_at": self.warn_dirs_at,
            "warn_files_threshold": self.warn_files_threshold,
            "warn_dirs_threshold": self.warn_dirs_threshold,
            "count_exclude": list(self.count_exclude),
            "entries": self.entry_policy.to_dict() if self.entry_policy else None,
            "file_naming_pattern": self.file_naming_pattern,
            "rules": [rule.to_dict() for rule in self.rules],
        }


@dataclass(slots=True)
class CheckSpec:
    """Run-level switches consumed by check surfaces."""

    warnings_as_errors: bool = False
    fail_fast: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"warnings_as_errors": self.warnings_as_errors, "fail_fast": self.fail_fast}


@dataclass(slots=True)
class BaselineSpec:
    """Baseline ratchet policy."""

    ratchet: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"ratchet": self.ratchet}


@dataclass(slots=True)
class TrendSpec:
    """Retention settings for the external trend store."""

    max_entries: int | None = None
    max_age_days: int | None = None
    min_interval_secs: int | None = None
    min_code_delta: int | None = None
    auto_snapshot_on_check: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_entries": self.max_entries,
            "max_age_days": self.max_age_days,
            "min_interval_secs": self.min_interval_secs,
            "min_code_delta": self.min_code_delta,
            "auto_snapshot_on_check": self.auto_snapshot_on_check,
        }


@dataclass(slots=True)
class Configuration:
    """Fully resolved configuration, built once per run."""

    version: str = CONFIG_VERSION
    scanner: ScannerSpec = field(default_factory=ScannerSpec)
    content: ContentSpec = field(default_factory=ContentSpec)
    structure: StructureSpec = field(default_factory=StructureSpec)
    check: CheckSpec = field(default_factory=CheckSpec)
    baseline: BaselineSpec = field(default_factory=BaselineSpec)
    trend: TrendSpec = field(default_factory=TrendSpec)
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "scanner": self.scanner.to_dict(),
            "content": self.content.to_dict(),
            "structure": self.structure.to_dict(),
            "check": self.check.to_dict(),
            "baseline": self.baseline.to_dict(),
            "trend": self.trend.to_dict(),
            "source": self.source,
        }


def config_from_mapping(mapping: dict[str, Any], *, source: str | None = None) -> Configuration:
    """Convert a merged TOML table into a Configuration.

    Type problems raise ConfigTypeError; deprecated v1 keys and unsupported
    versions raise ConfigSemanticError. Range checks live in `validation`.
    """
    _reject_deprecated_keys(mapping)
    version = _check_version(mapping.get("version"))
    for key in sorted(set(mapping) - _TOP_LEVEL_KEYS):
        logger.warning("Ignoring unknown config key '%s'", key)

    content_mapping = _expand_languages(_as_table(mapping.get("content"), "content"))
    structure_mapping = _as_table(mapping.get("structure"), "structure")
    return Configuration(
        version=version,
        scanner=_parse_scanner(_as_table(mapping.get("scanner"), "scanner")),
        content=_parse_content(content_mapping),
        structure=_parse_structure(structure_mapping),
        check=_parse_check(_as_table(mapping.get("check"), "check")),
        baseline=_parse_baseline(_as_table(mapping.get("baseline"), "baseline")),
        trend=_parse_trend(_as_table(mapping.get("trend"), "trend")),
        source=source,
    )


def default_config_template() -> str:
    """Return a starter `.sloc-guard.toml`."""
    return "\n".join(
        [
            'version = "2"',
            '# extends = "preset:python-strict"',
            "",
            "[scanner]",
            "gitignore = true",
            'exclude = [".git/**", "**/node_modules/**", "**/__pycache__/**"]',
            "",
            "[content]",
            'extensions = ["py", "rs", "go", "ts"]',
            "max_lines = 500",
            "warn_threshold = 0.8",
            "skip_comments = true",
            "skip_blank = true",
            "",
            "[[content.rules]]",
            'pattern = "**/tests/**"',
            "max_lines = 1000",
            'reason = "Test fixtures are verbose"',
            "",
            "[structure]",
            "max_files = 30",
            "max_dirs = 10",
            'deny_extensions = [".exe", ".dll"]',
            "",
            "[[structure.rules]]",
            'scope = "src/components/*"',
            "max_files = 10",
            "",
            "[[structure.rules.siblings]]",
            'match = "*.tsx"',
            'require = "{stem}.test.tsx"',
            'severity = "warn"',
            "",
            "[baseline]",
            'ratchet = "warn"',
            "",
        ]
    )


def _reject_deprecated_keys(mapping: dict[str, Any]) -> None:
    for key, replacement in _DEPRECATED_KEYS.items():
        if key in mapping:
            raise ConfigSemanticError(
                key,
                f"'{key}' is no longer supported. Use {replacement} instead.",
                suggestion=f"Move the settings under '{key}' to {replacement}.",
            )


def _check_version(raw: Any) -> str:
    if raw is None:
        return CONFIG_VERSION
    version = _as_str(raw, "version")
    major, _, _ = version.partition(".")
    if major != CONFIG_VERSION:
        raise ConfigSemanticError(
            "version",
            f"Unsupported config version '{version}'. "
            f"Only version '{CONFIG_VERSION}' is supported.",
            suggestion="Please update your configuration to the V2 format.",
        )
    if version != CONFIG_VERSION:
        logger.info("Migrating config version %s to %s", version, CONFIG_VERSION)
    return CONFIG_VERSION


def _expand_languages(content: dict[str, Any]) -> dict[str, Any]:
    languages = _as_table(content.get("languages"), "content.languages")
    if not languages:
        return content
    default_max = content.get("max_lines", DEFAULT_MAX_LINES)
    expanded: list[dict[str, Any]] = []
    for extension in sorted(languages):
        settings = _as_table(languages[extension], f"content.languages.{extension}")
        rule = {"pattern": f"**/*.{extension}", "max_lines": settings.get("max_lines", default_max)}
        for key in ("warn_threshold", "warn_at", "skip_comments", "skip_blank"):
            if key in settings:
                rule[key] = settings[key]
        expanded.append(rule)
    existing = _as_table_list(content.get("rules"), "content.rules")
    result = {key: value for key, value in content.items() if key != "languages"}
    result["rules"] = expanded + existing
    return result


def _parse_scanner(value: dict[str, Any]) -> ScannerSpec:
    return ScannerSpec(
        gitignore=_as_bool(value.get("gitignore", True), "scanner.gitignore"),
        exclude=_as_str_list(value.get("exclude"), "scanner.exclude"),
    )


def _parse_content(value: dict[str, Any]) -> ContentSpec:
    rules = [
        _parse_content_rule(item, f"content.rules[{index}]")
        for index, item in enumerate(_as_table_list(value.get("rules"), "content.rules"))
    ]
    extensions = value.get("extensions")
    return ContentSpec(
        extensions=(
            _as_str_list(extensions, "content.extensions")
            if extensions is not None
            else list(DEFAULT_EXTENSIONS)
        ),
        max_lines=_as_int(value.get("max_lines", DEFAULT_MAX_LINES), "content.max_lines"),
        warn_threshold=_as_optional_float(value.get("warn_threshold"), "content.warn_threshold"),
        warn_at=_as_optional_int(value.get("warn_at"), "content.warn_at"),
        skip_comments=_as_bool(value.get("skip_comments", True), "content.skip_comments"),
        skip_blank=_as_bool(value.get("skip_blank", True), "content.skip_blank"),
        exclude=_as_str_list(value.get("exclude"), "content.exclude"),
        rules=rules,
    )


def _parse_content_rule(item: dict[str, Any], field_name: str) -> ContentRule:
    return ContentRule(
        pattern=_as_str(item.get("pattern"), f"{field_name}.pattern"),
        max_lines=_as_optional_int(item.get("max_lines"), f"{field_name}.max_lines"),
        warn_threshold=_as_optional_float(
            item.get("warn_threshold"), f"{field_name}.warn_threshold"
        ),
        warn_at=_as_optional_int(item.get("warn_at"), f"{field_name}.warn_at"),
        skip_comments=_as_optional_bool(item.get("skip_comments"), f"{field_name}.skip_comments"),
        skip_blank=_as_optional_bool(item.get("skip_blank"), f"{field_name}.skip_blank"),
        reason=_as_optional_str(item.get("reason"), f"{field_name}.reason"),
        expires=_as_optional_date(item.get("expires"), f"{field_name}.expires"),
    )


def _parse_structure(value: dict[str, Any]) -> StructureSpec:
    value = _migrate_deny_file_patterns(value, "structure")
    rules = [
        _parse_structure_rule(
            _migrate_deny_file_patterns(item, f"structure.rules[{index}]"),
            f"structure.rules[{index}]",
        )
        for index, item in enumerate(_as_table_list(value.get("rules"), "structure.rules"))
    ]
    return StructureSpec(
        max_files=_as_optional_int(value.get("max_files"), "structure.max_files"),
        max_dirs=_as_optional_int(value.get("max_dirs"), "structure.max_dirs"),
        max_depth=_as_optional_int(value.get("max_depth"), "structure.max_depth"),
        warn_threshold=_as_optional_float(
            value.get("warn_threshold"), "structure.warn_threshold"
        ),
        warn_files_at=_as_optional_int(value.get("warn_files_at"), "structure.warn_files_at"),
        warn_dirs_at=_as_optional_int(value.get("warn_dirs_at"), "structure.warn_dirs_at"),
        warn_files_threshold=_as_optional_float(
            value.get("warn_files_threshold"), "structure.warn_files_threshold"
        ),
        warn_dirs_threshold=_as_optional_float(
            value.get("warn_dirs_threshold"), "structure.warn_dirs_threshold"
        ),
        count_exclude=_as_str_list(value.get("count_exclude"), "structure.count_exclude"),
        entry_policy=_parse_entry_policy(value, "structure"),
        file_naming_pattern=_as_optional_str(
            value.get("file_naming_pattern"), "structure.file_naming_pattern"
        ),
        rules=rules,
    )


def _parse_structure_rule(item: dict[str, Any], field_name: str) -> StructureRule:
    return StructureRule(
        scope=_as_str(item.get("scope"), f"{field_name}.scope"),
        max_files=_as_optional_int(item.get("max_files"), f"{field_name}.max_files"),
        max_dirs=_as_optional_int(item.get("max_dirs"), f"{field_name}.max_dirs"),
        max_depth=_as_optional_int(item.get("max_depth"), f"{field_name}.max_depth"),
        relative_depth=_as_bool(item.get("relative_depth", False), f"{field_name}.relative_depth"),
        warn_threshold=_as_optional_float(
            item.get("warn_threshold"), f"{field_name}.warn_threshold"
        ),
        warn_files_at=_as_optional_int(item.get("warn_files_at"), f"{field_name}.warn_files_at"),
        warn_dirs_at=_as_optional_int(item.get("warn_dirs_at"), f"{field_name}.warn_dirs_at"),
        warn_files_threshold=_as_optional_float(
            item.get("warn_files_threshold"), f"{field_name}.warn_files_threshold"
        ),
        warn_dirs_threshold=_as_optional_float(
            item.get("warn_dirs_threshold"), f"{field_name}.warn_dirs_threshold"
        ),
        entry_policy=_parse_entry_policy(item, field_name),
        file_naming_pattern=_as_optional_str(
            item.get("file_naming_pattern"), f"{field_name}.file_naming_pattern"
        ),
        siblings=_parse_siblings(item.get("siblings"), f"{field_name}.siblings"),
        reason=_as_optional_str(item.get("reason"), f"{field_name}.reason"),
        expires=_as_optional_date(item.get("expires"), f"{field_name}.expires"),
    )


def _migrate_deny_file_patterns(value: dict[str, Any], field_name: str) -> dict[str, Any]:
    if "deny_file_patterns" not in value:
        return value
    logger.warning(
        "%s.deny_file_patterns is deprecated; use %s.deny_files instead",
        field_name,
        field_name,
    )
    migrated = {key: item for key, item in value.items() if key != "deny_file_patterns"}
    migrated["deny_files"] = _as_str_list(
        value.get("deny_files"), f"{field_name}.deny_files"
    ) + _as_str_list(value["deny_file_patterns"], f"{field_name}.deny_file_patterns")
    return migrated


def _parse_entry_policy(value: dict[str, Any], field_name: str) -> EntryPolicy | None:
    allow = {
        kind: tuple(_as_str_list(value.get(f"allow_{kind}"), f"{field_name}.allow_{kind}"))
        for kind in ENTRY_KINDS
    }
    deny = {
        kind: tuple(_as_str_list(value.get(f"deny_{kind}"), f"{field_name}.deny_{kind}"))
        for kind in ENTRY_KINDS
    }
    has_allow = any(allow.values())
    has_deny = any(deny.values())
    if has_allow and has_deny:
        raise ConfigSemanticError(
            field_name,
            f"{field_name} cannot mix allow_* and deny_* fields. "
            "Use either allowlist mode OR denylist mode, not both.",
            suggestion="Keep only the allow_* fields or only the deny_* fields at this scope.",
        )
    if has_allow:
        allow["extensions"] = _dotted(allow["extensions"])
        return AllowPolicy(**allow)
    if has_deny:
        deny["extensions"] = _dotted(deny["extensions"])
        return DenyPolicy(**deny)
    return None


def _parse_siblings(value: Any, field_name: str) -> list[SiblingRule]:
    parsed: list[SiblingRule] = []
    for index, item in enumerate(_as_table_list(value, field_name)):
        item_field = f"{field_name}[{index}]"
        severity = _as_choice(
            item.get("severity", "error"), SIBLING_SEVERITIES, f"{item_field}.severity"
        )
        is_directed = "match" in item or "require" in item
        if is_directed and "group" in item:
            raise ConfigSemanticError(
                item_field,
                f"{item_field} is ambiguous: use either match/require or group, not both",
            )
        if is_directed:
            parsed.append(_parse_directed_sibling(item, item_field, severity))
        elif "group" in item:
            parsed.append(_parse_group_sibling(item, item_field, severity))
        else:
            raise ConfigSemanticError(
                item_field,
                f"{item_field} must define either match/require or group",
            )
    return parsed


def _parse_directed_sibling(
    item: dict[str, Any], field_name: str, severity: str
) -> DirectedSibling:
    if "match" not in item:
        raise ConfigSemanticError(field_name, f"{field_name} has 'require' but no 'match' pattern")
    if "require" not in item:
        raise ConfigSemanticError(field_name, f"{field_name} has 'match' but no 'require' pattern")
    match = _as_str(item["match"], f"{field_name}.match")
    if not match:
        raise ConfigSemanticError(field_name, f"{field_name} has empty 'match' pattern")
    raw_require = item["require"]
    if isinstance(raw_require, str):
        require = [raw_require]
    else:
        require = _as_str_list(raw_require, f"{field_name}.require")
    if not require:
        raise ConfigSemanticError(field_name, f"{field_name} has empty 'require' pattern")
    for pattern in require:
        _check_stem_template(pattern, f"{field_name}.require")
    return DirectedSibling(match=match, require=tuple(require), severity=severity)


def _parse_group_sibling(item: dict[str, Any], field_name: str, severity: str) -> GroupSibling:
    group = _as_str_list(item["group"], f"{field_name}.group")
    if len(group) < 2:
        raise ConfigSemanticError(field_name, f"{field_name} group must have at least 2 patterns")
    for pattern in group:
        _check_stem_template(pattern, f"{field_name}.group")
    return GroupSibling(group=tuple(group), severity=severity)


def _check_stem_template(pattern: str, field_name: str) -> None:
    if not pattern:
        raise ConfigSemanticError(field_name, f"{field_name} contains an empty pattern")
    if "{stem}" not in pattern:
        raise ConfigSemanticError(
            field_name,
            f"{field_name} pattern '{pattern}' must contain {{stem}} placeholder",
        )


def _parse_check(value: dict[str, Any]) -> CheckSpec:
    return CheckSpec(
        warnings_as_errors=_as_bool(
            value.get("warnings_as_errors", False), "check.warnings_as_errors"
        ),
        fail_fast=_as_bool(value.get("fail_fast", False), "check.fail_fast"),
    )


def _parse_baseline(value: dict[str, Any]) -> BaselineSpec:
    raw = value.get("ratchet")
    return BaselineSpec(
        ratchet=None if raw is None else _as_choice(raw, RATCHET_MODES, "baseline.ratchet")
    )


def _parse_trend(value: dict[str, Any]) -> TrendSpec:
    return TrendSpec(
        max_entries=_as_optional_int(value.get("max_entries"), "trend.max_entries"),
        max_age_days=_as_optional_int(value.get("max_age_days"), "trend.max_age_days"),
        min_interval_secs=_as_optional_int(
            value.get("min_interval_secs"), "trend.min_interval_secs"
        ),
        min_code_delta=_as_optional_int(value.get("min_code_delta"), "trend.min_code_delta"),
        auto_snapshot_on_check=_as_optional_bool(
            value.get("auto_snapshot_on_check"), "trend.auto_snapshot_on_check"
        ),
    )


def _policy_dict(policy: AllowPolicy | DenyPolicy) -> dict[str, Any]:
    return {
        "mode": policy.mode,
        "extensions": list(policy.extensions),
        "patterns": list(policy.patterns),
        "files": list(policy.files),
        "dirs": list(policy.dirs),
    }


def _dotted(extensions: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(ext if ext.startswith(".") else f".{ext}" for ext in extensions)


def _as_table(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigTypeError(field_name, "a table/object")
    return value


def _as_table_list(value: Any, field_name: str) -> list[dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigTypeError(field_name, "a list of tables")
    output: list[dict[str, Any]] = []
    for item in value:
        if not isinstance(item, dict):
            raise ConfigTypeError(field_name, "a list of tables")
        output.append(item)
    return output


def _as_str_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigTypeError(field_name, "a list of strings")
    items: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ConfigTypeError(field_name, "a list of strings")
        items.append(item)
    return items


def _as_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ConfigTypeError(field_name, "a string")
    return value


def _as_optional_str(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    return _as_str(value, field_name)


def _as_choice(raw: Any, allowed: set[str], field_name: str) -> str:
    value = str(raw).lower()
    if value not in allowed:
        choices = ", ".join(sorted(allowed))
        raise ConfigTypeError(field_name, f"one of: {choices}")
    return value


def _as_int(raw: Any, field_name: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ConfigTypeError(field_name, "an integer")
    return raw


def _as_optional_int(raw: Any, field_name: str) -> int | None:
    if raw is None:
        return None
    return _as_int(raw, field_name)


def _as_bool(raw: Any, field_name: str) -> bool:
    if not isinstance(raw, bool):
        raise ConfigTypeError(field_name, "a boolean")
    return raw


def _as_optional_bool(raw: Any, field_name: str) -> bool | None:
    if raw is None:
        return None
    return _as_bool(raw, field_name)


def _as_optional_float(raw: Any, field_name: str) -> float | None:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ConfigTypeError(field_name, "a number")
    return float(raw)


def _as_optional_date(raw: Any, field_name: str) -> date | None:
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str):
        try:
            return date.fromisoformat(raw)
        except ValueError as exc:
            raise ConfigTypeError(field_name, "a date in YYYY-MM-DD format") from exc
    raise ConfigTypeError(field_name, "a date in YYYY-MM-DD format")
