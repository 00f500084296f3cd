"""Glob compilation with `**` and `{a,b}` support.

`fnmatch` lets `*` cross directory separators and has no brace groups, so rule
scopes are translated to anchored regular expressions here instead:

- `*` matches within one path component, `?` matches one character
- `**` as a whole component matches zero or more directories
- `[abc]`, `[!abc]` and `[^abc]` are character classes
- `{a,b}` are alternatives and may nest
- a backslash escapes the next character
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import PurePath

from sloc_guard.errors import InvalidPatternError

GLOB_METACHARACTERS = ("*", "?", "[", "{")


@dataclass(frozen=True, slots=True)
class GlobPattern:
    """A compiled glob matched against normalized, slash-separated paths."""

    pattern: str
    regex: re.Pattern[str]

    def matches(self, path: str | PurePath) -> bool:
        return self.regex.fullmatch(normalize_path(path)) is not None

    def matches_name(self, name: str) -> bool:
        return self.regex.fullmatch(name) is not None


def compile_glob(pattern: str) -> GlobPattern:
    """Compile a glob, raising InvalidPatternError for malformed syntax."""
    # Backslashes are escapes here, not separators.
    source = pattern
    while source.startswith("./"):
        source = source[2:]
    try:
        regex = re.compile(_translate(source))
    except re.error as exc:
        raise InvalidPatternError(pattern, str(exc)) from exc
    return GlobPattern(pattern=pattern, regex=regex)


def compile_globs(patterns: Iterable[str]) -> tuple[GlobPattern, ...]:
    return tuple(compile_glob(pattern) for pattern in patterns)


def first_match(globs: Iterable[GlobPattern], path: str | PurePath) -> GlobPattern | None:
    normalized = normalize_path(path)
    for glob in globs:
        if glob.regex.fullmatch(normalized) is not None:
            return glob
    return None


def normalize_path(path: str | PurePath) -> str:
    """Return a slash-separated path without a leading `./`."""
    text = str(path).replace("\\", "/")
    while text.startswith("./"):
        text = text[2:]
    if text == ".":
        return ""
    while "//" in text:
        text = text.replace("//", "/")
    return text


def base_depth(pattern: str) -> int:
    """Count the literal path components before the first glob metacharacter.

    `src/features/**` -> 2, `src/*/utils` -> 1, `**/*.rs` -> 0.
    """
    depth = 0
    for component in normalize_path(pattern).split("/"):
        if not component:
            continue
        if any(char in component for char in GLOB_METACHARACTERS):
            break
        depth += 1
    return depth


def _translate(pattern: str) -> str:
    out: list[str] = []
    brace_depth = 0
    index = 0
    length = len(pattern)
    while index < length:
        char = pattern[index]
        if char == "*":
            end = index
            while end < length and pattern[end] == "*":
                end += 1
            stars = end - index
            at_start = index == 0 or pattern[index - 1] in "/{,"
            at_end = end == length or pattern[end] in "/},"
            if stars >= 2 and at_start and at_end:
                if end < length and pattern[end] == "/":
                    out.append("(?:.*/)?")
                    index = end + 1
                else:
                    out.append(".*")
                    index = end
                continue
            out.append("[^/]*")
            index = end
        elif char == "?":
            out.append("[^/]")
            index += 1
        elif char == "[":
            fragment, index = _translate_class(pattern, index)
            out.append(fragment)
        elif char == "{":
            brace_depth += 1
            out.append("(?:")
            index += 1
        elif char == "}" and brace_depth > 0:
            brace_depth -= 1
            out.append(")")
            index += 1
        elif char == "," and brace_depth > 0:
            out.append("|")
            index += 1
        elif char == "\\":
            if index + 1 >= length:
                raise InvalidPatternError(pattern, "dangling escape at end of pattern")
            out.append(re.escape(pattern[index + 1]))
            index += 2
        else:
            out.append(re.escape(char))
            index += 1
    if brace_depth:
        raise InvalidPatternError(pattern, "unclosed alternate group '{'")
    return "".join(out)


def _translate_class(pattern: str, start: int) -> tuple[str, int]:
    index = start + 1
    negate = False
    if index < len(pattern) and pattern[index] in "!^":
        negate = True
        index += 1
    body_start = index
    # A leading ']' is a literal member of the class.
    if index < len(pattern) and pattern[index] == "]":
        index += 1
    while index < len(pattern) and pattern[index] != "]":
        index += 1
    if index >= len(pattern):
        raise InvalidPatternError(pattern, "unclosed character class '['")
    body = "".join("\\" + char if char in "\\]^[" else char for char in pattern[body_start:index])
    if not body:
        raise InvalidPatternError(pattern, "empty character class")
    prefix = "[^/" if negate else "["
    return (f"{prefix}{body}]", index + 1)
