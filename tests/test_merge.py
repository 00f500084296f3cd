"""Tests for configuration fragment merging."""

from __future__ import annotations

import pytest

from sloc_guard.errors import ConfigSemanticError
from sloc_guard.merge import (
    merge_tables,
    strip_inheritance_keys,
    strip_reset_markers,
    validate_reset_positions,
)


def test_child_scalars_win_and_tables_merge_recursively() -> None:
    base = {"content": {"max_lines": 500, "skip_blank": True}, "version": "2"}
    child = {"content": {"max_lines": 300}}

    merged = merge_tables(base, child)

    assert merged == {"content": {"max_lines": 300, "skip_blank": True}, "version": "2"}
    assert base["content"]["max_lines"] == 500


def test_merging_an_empty_child_leaves_base_unchanged() -> None:
    base = {
        "content": {"max_lines": 500, "rules": [{"pattern": "src/**", "max_lines": 800}]},
        "structure": {"max_files": 20, "deny_dirs": ["__pycache__"]},
        "version": "2",
    }

    merged = merge_tables(base, {})

    assert merged == base
    assert merged["content"]["rules"] is not base["content"]["rules"]


def test_lists_append_child_after_parent() -> None:
    base = {"content": {"rules": [{"pattern": "a/**"}]}}
    child = {"content": {"rules": [{"pattern": "b/**"}]}}

    merged = merge_tables(base, child)

    assert [rule["pattern"] for rule in merged["content"]["rules"]] == ["a/**", "b/**"]


def test_reset_marker_discards_parent_list() -> None:
    base = {"scanner": {"exclude": ["target/**", "vendor/**"]}}
    child = {"scanner": {"exclude": ["$reset", "dist/**"]}}

    assert merge_tables(base, child)["scanner"]["exclude"] == ["dist/**"]


def test_reset_marker_table_discards_parent_rules() -> None:
    base = {"content": {"rules": [{"pattern": "a/**", "max_lines": 10}]}}
    child = {"content": {"rules": [{"pattern": "$reset"}, {"pattern": "b/**", "max_lines": 20}]}}

    merged = merge_tables(base, child)

    assert merged["content"]["rules"] == [{"pattern": "b/**", "max_lines": 20}]


def test_merge_is_not_aliased_to_the_child() -> None:
    child = {"content": {"exclude": ["gen/**"]}}
    merged = merge_tables({}, child)
    merged["content"]["exclude"].append("other/**")
    assert child["content"]["exclude"] == ["gen/**"]


def test_reset_marker_outside_first_position_is_rejected() -> None:
    with pytest.raises(ConfigSemanticError, match="found at position 1") as excinfo:
        validate_reset_positions({"scanner": {"exclude": ["dist/**", "$reset"]}})
    assert "'scanner.exclude'" in str(excinfo.value)


def test_strip_helpers_remove_leftover_markers_and_inheritance_keys() -> None:
    value = {
        "extends": "base.toml",
        "extends_sha256": "abc",
        "scanner": {"exclude": ["$reset", "dist/**"]},
    }

    cleaned = strip_inheritance_keys(strip_reset_markers(value))

    assert cleaned == {"scanner": {"exclude": ["dist/**"]}}
