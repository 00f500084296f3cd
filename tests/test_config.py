"""Tests for converting merged tables into a Configuration and validating it."""

from __future__ import annotations

import logging
from datetime import date

import pytest

from sloc_guard.config import (
    DEFAULT_EXTENSIONS,
    AllowPolicy,
    DenyPolicy,
    DirectedSibling,
    GroupSibling,
    config_from_mapping,
)
from sloc_guard.errors import (
    ConfigSemanticError,
    ConfigTypeError,
    InvalidPatternError,
)
from sloc_guard.validation import validate_configuration


def test_empty_mapping_yields_defaults() -> None:
    config = config_from_mapping({})
    assert config.version == "2"
    assert config.content.max_lines == 500
    assert config.content.extensions == DEFAULT_EXTENSIONS
    assert config.content.skip_comments is True
    assert config.content.skip_blank is True
    assert config.structure.max_files is None
    assert config.baseline.ratchet is None
    assert config.scanner.gitignore is True


def test_content_rules_keep_declaration_order_and_parse_dates() -> None:
    config = config_from_mapping(
        {
            "content": {
                "max_lines": 400,
                "rules": [
                    {"pattern": "src/**", "max_lines": 300},
                    {
                        "pattern": "src/legacy/**",
                        "max_lines": 900,
                        "reason": "Legacy parser",
                        "expires": "2030-01-31",
                    },
                    {"pattern": "gen/**", "expires": date(2031, 5, 1)},
                ],
            }
        }
    )
    rules = config.content.rules
    assert [rule.pattern for rule in rules] == ["src/**", "src/legacy/**", "gen/**"]
    assert rules[1].expires == date(2030, 1, 31)
    assert rules[1].reason == "Legacy parser"
    assert rules[2].expires == date(2031, 5, 1)
    assert rules[2].max_lines is None


def test_language_shorthand_expands_to_leading_rules() -> None:
    config = config_from_mapping(
        {
            "content": {
                "max_lines": 450,
                "languages": {"rs": {"max_lines": 300}, "go": {"warn_threshold": 0.7}},
                "rules": [{"pattern": "src/big.rs", "max_lines": 1200}],
            }
        }
    )
    rules = config.content.rules
    assert [rule.pattern for rule in rules] == ["**/*.go", "**/*.rs", "src/big.rs"]
    assert rules[0].max_lines == 450
    assert rules[0].warn_threshold == 0.7
    assert rules[1].max_lines == 300


def test_deny_and_allow_policies_are_parsed_with_dotted_extensions() -> None:
    config = config_from_mapping(
        {
            "structure": {
                "deny_extensions": ["exe", ".dll"],
                "deny_dirs": ["__pycache__"],
                "rules": [
                    {"scope": "src/**", "allow_extensions": ["py"], "allow_files": ["py.typed"]}
                ],
            }
        }
    )
    assert config.structure.entry_policy == DenyPolicy(
        extensions=(".exe", ".dll"), dirs=("__pycache__",)
    )
    assert config.structure.rules[0].entry_policy == AllowPolicy(
        extensions=(".py",), files=("py.typed",)
    )


def test_mixing_allow_and_deny_is_rejected() -> None:
    with pytest.raises(ConfigSemanticError, match="cannot mix allow_\\* and deny_\\* fields"):
        config_from_mapping({"structure": {"allow_extensions": ["py"], "deny_files": ["*.bak"]}})


def test_deprecated_deny_file_patterns_migrates_with_warning(
    caplog: pytest.LogCaptureFixture,
) -> None:
    with caplog.at_level(logging.WARNING, logger="sloc_guard.config"):
        config = config_from_mapping(
            {"structure": {"deny_files": ["*.tmp"], "deny_file_patterns": ["*.bak"]}}
        )
    assert config.structure.entry_policy == DenyPolicy(files=("*.tmp", "*.bak"))
    assert "deny_file_patterns is deprecated" in caplog.text


def test_siblings_parse_directed_and_group_forms() -> None:
    config = config_from_mapping(
        {
            "structure": {
                "rules": [
                    {
                        "scope": "src/components/**",
                        "siblings": [
                            {"match": "*.tsx", "require": "{stem}.test.tsx", "severity": "warn"},
                            {"group": ["{stem}.tsx", "{stem}.css"]},
                        ],
                    }
                ]
            }
        }
    )
    siblings = config.structure.rules[0].siblings
    assert siblings[0] == DirectedSibling(
        match="*.tsx", require=("{stem}.test.tsx",), severity="warn"
    )
    assert siblings[1] == GroupSibling(group=("{stem}.tsx", "{stem}.css"), severity="error")


@pytest.mark.parametrize(
    ("sibling", "message"),
    [
        ({"match": "*.ts", "require": "{stem}.spec.ts", "group": ["a", "b"]}, "is ambiguous"),
        ({"severity": "warn"}, "must define either match/require or group"),
        ({"group": ["{stem}.ts"]}, "group must have at least 2 patterns"),
        ({"match": "*.ts", "require": "index.spec.ts"}, "must contain {stem} placeholder"),
        ({"match": "", "require": "{stem}.spec.ts"}, "has empty 'match' pattern"),
        ({"require": "{stem}.spec.ts"}, "has 'require' but no 'match' pattern"),
    ],
)
def test_invalid_siblings_are_rejected(sibling: dict[str, object], message: str) -> None:
    mapping = {"structure": {"rules": [{"scope": "src/**", "siblings": [sibling]}]}}
    with pytest.raises(ConfigSemanticError) as excinfo:
        config_from_mapping(mapping)
    assert message in str(excinfo.value)


def test_deprecated_top_level_keys_are_rejected() -> None:
    with pytest.raises(ConfigSemanticError, match="'path_rules' is no longer supported"):
        config_from_mapping({"path_rules": [{"pattern": "src/**"}]})


def test_unsupported_version_is_rejected() -> None:
    with pytest.raises(ConfigSemanticError, match="Unsupported config version '3'"):
        config_from_mapping({"version": "3"})


def test_unknown_keys_are_logged_and_ignored(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="sloc_guard.config"):
        config = config_from_mapping({"colour": "always"})
    assert config.content.max_lines == 500
    assert "Ignoring unknown config key 'colour'" in caplog.text


def test_wrong_types_raise_config_type_error() -> None:
    with pytest.raises(ConfigTypeError, match="content.max_lines must be an integer"):
        config_from_mapping({"content": {"max_lines": "500"}})
    with pytest.raises(ConfigTypeError, match="baseline.ratchet must be one of"):
        config_from_mapping({"baseline": {"ratchet": "sometimes"}})
    with pytest.raises(ConfigTypeError, match="YYYY-MM-DD"):
        config_from_mapping({"content": {"rules": [{"pattern": "a", "expires": "soon"}]}})


def test_validation_accepts_unlimited_and_zero_limits() -> None:
    config = config_from_mapping(
        {
            "content": {"max_lines": -1},
            "structure": {"max_files": 0, "rules": [{"scope": "gen/**", "max_dirs": -1}]},
        }
    )
    validate_configuration(config)


@pytest.mark.parametrize(
    ("mapping", "message"),
    [
        ({"content": {"max_lines": -2}}, "Invalid content.max_lines value: -2"),
        ({"content": {"warn_threshold": 1.5}}, "must be between 0.0 and 1.0"),
        ({"content": {"max_lines": 100, "warn_at": 100}}, "must be less than content.max_lines"),
        (
            {"structure": {"max_files": 10, "warn_files_at": 12}},
            "structure.warn_files_at (12) must be less than structure.max_files (10)",
        ),
        ({"trend": {"max_entries": -1}}, "trend.max_entries must be non-negative"),
    ],
)
def test_validation_rejects_out_of_range_values(mapping: dict[str, object], message: str) -> None:
    config = config_from_mapping(mapping)
    with pytest.raises(ConfigSemanticError) as excinfo:
        validate_configuration(config)
    assert message in str(excinfo.value)


def test_validation_rejects_bad_globs_and_naming_regex() -> None:
    with pytest.raises(InvalidPatternError, match="Invalid pattern 'src/\\[abc'"):
        validate_configuration(
            config_from_mapping({"content": {"rules": [{"pattern": "src/[abc"}]}})
        )
    with pytest.raises(InvalidPatternError, match="invalid naming regex"):
        validate_configuration(
            config_from_mapping({"structure": {"file_naming_pattern": "^[a-z"}})
        )
