"""Deterministic merging of configuration fragments."""

from __future__ import annotations

import copy
from typing import Any

from sloc_guard.errors import ConfigSemanticError

RESET_MARKER = "$reset"
INHERITANCE_KEYS = ("extends", "extends_sha256")


def merge_tables(base: dict[str, Any], child: dict[str, Any]) -> dict[str, Any]:
    """Merge `child` over `base` and return a new table.

    Scalars in the child win, tables merge key by key, lists append unless the
    child list starts with the reset marker.
    """
    return _merge_tables(copy.deepcopy(base), child)


def validate_reset_positions(value: Any, path: str = "") -> None:
    """Reject reset markers anywhere but the first element of a list."""
    if isinstance(value, dict):
        for key, item in value.items():
            validate_reset_positions(item, f"{path}.{key}" if path else str(key))
    elif isinstance(value, list):
        for position, item in enumerate(value):
            if position > 0 and is_reset_marker(item):
                raise ConfigSemanticError(
                    path,
                    f"'{RESET_MARKER}' must be the first element in array '{path}', "
                    f"found at position {position}",
                    suggestion=f"Move '{RESET_MARKER}' to the start of '{path}'.",
                )
            validate_reset_positions(item, f"{path}[{position}]")


def strip_reset_markers(value: Any) -> Any:
    """Drop leftover leading reset markers from lists that had no parent to reset."""
    if isinstance(value, dict):
        return {key: strip_reset_markers(item) for key, item in value.items()}
    if isinstance(value, list):
        items = value[1:] if value and is_reset_marker(value[0]) else value
        return [strip_reset_markers(item) for item in items]
    return value


def strip_inheritance_keys(table: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in table.items() if key not in INHERITANCE_KEYS}


def is_reset_marker(item: Any) -> bool:
    if item == RESET_MARKER:
        return True
    if isinstance(item, dict):
        return item.get("pattern") == RESET_MARKER or item.get("scope") == RESET_MARKER
    return False


def _merge_tables(base: dict[str, Any], child: dict[str, Any]) -> dict[str, Any]:
    for key, child_value in child.items():
        base_value = base.get(key)
        if isinstance(base_value, dict) and isinstance(child_value, dict):
            base[key] = _merge_tables(base_value, child_value)
        elif isinstance(base_value, list) and isinstance(child_value, list):
            base[key] = _merge_lists(base_value, child_value)
        else:
            base[key] = copy.deepcopy(child_value)
    return base


def _merge_lists(base: list[Any], child: list[Any]) -> list[Any]:
    if child and is_reset_marker(child[0]):
        return copy.deepcopy(child[1:])
    return base + copy.deepcopy(child)
