"""Error types raised while resolving and validating configuration."""

from __future__ import annotations

from typing import Any


class ConfigError(ValueError):
    """Base class for configuration problems that abort a run before evaluation."""

    def __init__(
        self,
        message: str,
        *,
        detail: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.suggestion = suggestion

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "detail": self.detail,
            "suggestion": self.suggestion,
        }


class ConfigReadError(ConfigError):
    """A configuration file could not be read."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(
            f"Failed to read config file {path}: {reason}",
            detail=reason,
            suggestion="Check that the file exists and is readable.",
        )
        self.path = path


class ConfigSyntaxError(ConfigError):
    """Malformed TOML document."""

    def __init__(
        self,
        origin: str,
        message: str,
        *,
        line: int | None = None,
        column: int | None = None,
        chain: list[str] | None = None,
    ) -> None:
        location = f":{line}:{column}" if line is not None and column is not None else ""
        via = f" (extends chain: {' -> '.join(chain)})" if chain and len(chain) > 1 else ""
        super().__init__(
            f"Invalid TOML in {origin}{location}{via}: {message}",
            detail=message,
            suggestion="Fix the TOML syntax at the reported location.",
        )
        self.origin = origin
        self.line = line
        self.column = column
        self.chain = list(chain or [])


class ConfigTypeError(ConfigError):
    """A configuration value has the wrong type."""

    def __init__(self, field: str, expected: str) -> None:
        super().__init__(f"{field} must be {expected}")
        self.field = field
        self.expected = expected


class ConfigSemanticError(ConfigError):
    """A well-typed value that is out of range or conflicts with another field."""

    def __init__(self, field: str, message: str, suggestion: str | None = None) -> None:
        super().__init__(message, detail=field, suggestion=suggestion)
        self.field = field


class InvalidPatternError(ConfigError):
    """A glob or regex failed to compile."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(
            f"Invalid pattern '{pattern}': {reason}",
            detail=reason,
            suggestion="Check glob syntax: unclosed '[' or '{' are the usual culprits.",
        )
        self.pattern = pattern
        self.reason = reason


class ExtendsError(ConfigError):
    """Base class for failures while following an extends chain."""


class CircularExtendsError(ExtendsError):
    """A source reappeared in its own ancestry."""

    def __init__(self, chain: list[str]) -> None:
        super().__init__(
            f"Circular extends detected: {' -> '.join(chain)}",
            suggestion="Remove one of the extends references to break the cycle.",
        )
        self.chain = list(chain)


class ExtendsTooDeepError(ExtendsError):
    """The extends chain is longer than the allowed maximum."""

    def __init__(self, depth: int, max_depth: int, chain: list[str]) -> None:
        super().__init__(
            f"Extends chain too deep ({depth} levels, max {max_depth}): {' -> '.join(chain)}",
            suggestion="Flatten the inheritance chain or merge intermediate configs.",
        )
        self.depth = depth
        self.max_depth = max_depth
        self.chain = list(chain)


class RemoteFetchError(ExtendsError):
    """A remote config could not be fetched or served from cache."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(
            f"Failed to fetch remote config {url}: {reason}",
            detail=reason,
            suggestion="Check network access, or run online once to populate the cache.",
        )
        self.url = url
        self.reason = reason


class HashMismatchError(ExtendsError):
    """Fetched remote content does not match the pinned extends_sha256."""

    def __init__(self, url: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Remote config hash mismatch for {url}: expected {expected}, got {actual}",
            detail=f"expected {expected}, actual {actual}",
            suggestion=(
                "Update extends_sha256 in config if the remote change is intended, "
                "otherwise investigate the remote source."
            ),
        )
        self.url = url
        self.expected = expected
        self.actual = actual
