"""Tests for rule matching, warn boundaries and effective limit resolution."""

from __future__ import annotations

from datetime import date

from sloc_guard.config import config_from_mapping
from sloc_guard.rules import RuleIndex, build_rule_index
from sloc_guard.rules.base import MatchStatus, Status, classify, resolve_warn_at

TODAY = date(2026, 3, 1)


def _index(mapping: dict[str, object]) -> RuleIndex:
    return build_rule_index(config_from_mapping(mapping), today=TODAY)


def test_last_declared_matching_rule_wins() -> None:
    index = _index(
        {
            "content": {
                "rules": [
                    {"pattern": "src/**", "max_lines": 300},
                    {"pattern": "src/legacy/**", "max_lines": 900},
                    {"pattern": "**/*.py", "max_lines": 200},
                ]
            }
        }
    )

    assert index.content_limits("src/legacy/parser.rs").max_lines == 900
    assert index.content_limits("src/legacy/parser.py").max_lines == 200
    assert index.content_limits("src/main.rs").max_lines == 300
    assert index.content_limits("lib/main.rs").max_lines == 500


def test_expired_rule_is_ignored_and_earlier_rule_applies() -> None:
    index = _index(
        {
            "content": {
                "rules": [
                    {"pattern": "src/**", "max_lines": 300},
                    {"pattern": "src/legacy/**", "max_lines": 900, "expires": "2026-02-28"},
                    {"pattern": "src/today/**", "max_lines": 700, "expires": "2026-03-01"},
                ]
            }
        }
    )

    assert index.content_limits("src/legacy/parser.rs").max_lines == 300
    # Expiry is exclusive: a rule expiring today still applies.
    assert index.content_limits("src/today/a.rs").max_lines == 700


def test_trail_marks_each_rule_and_agrees_with_match() -> None:
    index = _index(
        {
            "content": {
                "rules": [
                    {"pattern": "src/**", "max_lines": 300},
                    {"pattern": "docs/**", "max_lines": 100},
                    {"pattern": "src/legacy/**", "max_lines": 900, "expires": "2025-01-01"},
                    {"pattern": "**/*.rs", "max_lines": 400, "reason": "Rust files"},
                ]
            }
        }
    )

    trail = index.content_trail("src/legacy/parser.rs")

    assert [candidate.status for candidate in trail.candidates] == [
        MatchStatus.SUPERSEDED,
        MatchStatus.NO_MATCH,
        MatchStatus.EXPIRED,
        MatchStatus.MATCHED,
    ]
    assert trail.selected is index.content.match("src/legacy/parser.rs")
    assert trail.selected is not None
    assert trail.selected.index == 3
    assert trail.candidates[3].reason == "Rust files"


def test_trail_without_match_selects_nothing() -> None:
    index = _index({"content": {"rules": [{"pattern": "src/**", "max_lines": 300}]}})
    trail = index.content_trail("README.md")
    assert trail.selected is None
    assert trail.to_dict()["selected"] is None
    assert trail.candidates[0].status is MatchStatus.NO_MATCH


def test_matching_is_deterministic_across_index_builds() -> None:
    mapping = {
        "structure": {
            "rules": [
                {"scope": "src/**", "max_files": 10},
                {"scope": "src/*", "max_files": 5},
            ]
        }
    }
    first = _index(mapping).structure_limits("src/components")
    second = _index(mapping).structure_limits("src/components")
    assert first == second
    assert first.max_files == 5


def test_resolve_warn_at_prefers_specific_levels() -> None:
    assert resolve_warn_at(500, []) == 400
    assert resolve_warn_at(500, [(None, 0.9)]) == 450
    assert resolve_warn_at(500, [(450, 0.5)]) == 450
    assert resolve_warn_at(500, [(None, None), (None, 0.6)]) == 300
    assert resolve_warn_at(500, [(600, None), (None, 0.5)]) == 250
    assert resolve_warn_at(10, [(None, 0.85)]) == 9
    assert resolve_warn_at(-1, [(None, 0.9)]) is None
    assert resolve_warn_at(0, []) is None
    assert resolve_warn_at(None, []) is None
    assert resolve_warn_at(5, [], None) is None


def test_classify_boundaries() -> None:
    assert classify(399, 500, 400) is Status.PASSED
    assert classify(400, 500, 400) is Status.WARNING
    assert classify(500, 500, 400) is Status.WARNING
    assert classify(501, 500, 400) is Status.FAILED
    assert classify(10_000, -1, None) is Status.PASSED
    assert classify(3, None, None) is Status.PASSED
    assert classify(0, 0, None) is Status.PASSED
    assert classify(1, 0, None) is Status.FAILED


def test_content_rule_inherits_unset_fields_from_defaults() -> None:
    index = _index(
        {
            "content": {
                "max_lines": 500,
                "warn_at": 350,
                "skip_comments": False,
                "rules": [
                    {"pattern": "src/**", "skip_blank": False},
                    {"pattern": "gen/**", "max_lines": 1000, "warn_threshold": 0.5},
                ],
            }
        }
    )

    src = index.content_limits("src/a.rs")
    assert src.max_lines == 500
    assert src.warn_at == 350
    assert src.skip_comments is False
    assert src.skip_blank is False

    generated = index.content_limits("gen/a.rs")
    assert generated.max_lines == 1000
    assert generated.warn_at == 500


def test_structure_warn_boundaries_resolve_per_dimension() -> None:
    index = _index(
        {
            "structure": {
                "max_files": 20,
                "max_dirs": 10,
                "warn_threshold": 0.5,
                "warn_dirs_at": 7,
                "rules": [
                    {"scope": "src/**", "max_files": 40, "warn_files_threshold": 0.75},
                    {"scope": "lib/**", "warn_threshold": 0.9},
                ],
            }
        }
    )

    defaults = index.structure_limits("docs")
    assert defaults.warn_files_at == 10
    assert defaults.warn_dirs_at == 7
    assert defaults.warn_depth_at is None

    src = index.structure_limits("src/app")
    assert src.max_files == 40
    assert src.warn_files_at == 30
    assert src.warn_dirs_at == 7

    lib = index.structure_limits("lib/core")
    assert lib.warn_files_at == 18
    assert lib.warn_dirs_at == 9


def test_structure_rule_policy_overrides_default_policy() -> None:
    index = _index(
        {
            "structure": {
                "deny_extensions": [".exe"],
                "file_naming_pattern": "^[a-z_]+\\.py$",
                "rules": [
                    {"scope": "bin/**", "allow_extensions": [".sh"]},
                    {"scope": "docs/**", "max_files": 5},
                ],
            }
        }
    )

    bin_limits = index.structure_limits("bin/tools")
    assert bin_limits.entry_policy is not None
    assert bin_limits.entry_policy.mode == "allow"
    assert bin_limits.naming is not None

    docs_limits = index.structure_limits("docs/guide")
    assert docs_limits.entry_policy is index.structure_policy
    assert docs_limits.siblings == ()


def test_relative_depth_records_scope_base_depth() -> None:
    index = _index(
        {
            "structure": {
                "rules": [
                    {"scope": "src/features/**", "max_depth": 2, "relative_depth": True}
                ]
            }
        }
    )
    limits = index.structure_limits("src/features/auth/ui")
    assert limits.relative_depth is True
    assert limits.base_depth == 2
    assert limits.max_depth == 2
