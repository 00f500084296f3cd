"""Resolve an extends chain of configuration fragments into one Configuration."""

from __future__ import annotations

import logging
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sloc_guard.config import Configuration, config_from_mapping
from sloc_guard.errors import (
    CircularExtendsError,
    ConfigError,
    ConfigReadError,
    ConfigSyntaxError,
    ConfigTypeError,
    ExtendsTooDeepError,
)
from sloc_guard.merge import (
    merge_tables,
    strip_inheritance_keys,
    strip_reset_markers,
    validate_reset_positions,
)
from sloc_guard.presets import is_preset_reference, load_preset, preset_name
from sloc_guard.project import find_config_file
from sloc_guard.remote import RemoteFetcher, is_remote_url
from sloc_guard.validation import validate_configuration

logger = logging.getLogger(__name__)

MAX_EXTENDS_DEPTH = 10

_LOCATION_RE = re.compile(r"at line (\d+), column (\d+)")


@dataclass(frozen=True, slots=True)
class ConfigSource:
    """Where a fragment came from: a local path, a remote URL or a preset name."""

    kind: str
    location: str
    expected_hash: str | None = None

    @classmethod
    def local(cls, path: Path) -> ConfigSource:
        return cls("local", str(path.resolve()))

    @classmethod
    def remote(cls, url: str, expected_hash: str | None = None) -> ConfigSource:
        return cls("remote", url, expected_hash)

    @classmethod
    def preset(cls, name: str) -> ConfigSource:
        return cls("preset", name)

    @property
    def label(self) -> str:
        if self.kind == "preset":
            return f"preset:{self.location}"
        return self.location

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "location": self.location, "expected_hash": self.expected_hash}


@dataclass(slots=True)
class ConfigFragment:
    """One parsed configuration unit from a single source."""

    source: ConfigSource
    value: dict[str, Any]

    @property
    def extends(self) -> str | None:
        raw = self.value.get("extends")
        if raw is None:
            return None
        if not isinstance(raw, str):
            raise ConfigTypeError(f"extends in {self.source.label}", "a string")
        return raw

    @property
    def extends_sha256(self) -> str | None:
        raw = self.value.get("extends_sha256")
        if raw is None:
            return None
        if not isinstance(raw, str):
            raise ConfigTypeError(f"extends_sha256 in {self.source.label}", "a string")
        return raw


@dataclass(slots=True)
class ResolvedConfig:
    """A Configuration plus the fragments that produced it, base first."""

    config: Configuration
    sources: list[ConfigFragment] = field(default_factory=list)
    preset_used: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "sources": [fragment.source.to_dict() for fragment in self.sources],
            "preset_used": self.preset_used,
        }


class ConfigResolver:
    """Turn a root source into a merged, validated Configuration."""

    def __init__(
        self,
        *,
        fetcher: RemoteFetcher | None = None,
        follow_extends: bool = True,
    ) -> None:
        self.fetcher = fetcher if fetcher is not None else RemoteFetcher()
        self.follow_extends = follow_extends

    def resolve(self, root: Path | ConfigSource) -> Configuration:
        return self.resolve_with_sources(root).config

    def resolve_with_sources(self, root: Path | ConfigSource) -> ResolvedConfig:
        source = root if isinstance(root, ConfigSource) else ConfigSource.local(root)
        fragment = self._load_fragment(source, chain=[source.label])

        if not self.follow_extends or fragment.extends is None:
            config = _finalize(fragment.value, source.label)
            return ResolvedConfig(config=config, sources=[fragment])

        chain: list[ConfigFragment] = []
        merged, preset = self._resolve_chain(fragment, visited=[], chain=chain, depth=0)
        config = _finalize(merged, source.label)
        logger.debug(
            "Resolved config from %s", " <- ".join(item.source.label for item in chain)
        )
        return ResolvedConfig(config=config, sources=chain, preset_used=preset)

    def _resolve_chain(
        self,
        fragment: ConfigFragment,
        *,
        visited: list[str],
        chain: list[ConfigFragment],
        depth: int,
    ) -> tuple[dict[str, Any], str | None]:
        key = fragment.source.label
        if depth > MAX_EXTENDS_DEPTH:
            raise ExtendsTooDeepError(depth, MAX_EXTENDS_DEPTH, visited + [key])
        if key in visited:
            raise CircularExtendsError(visited + [key])
        visited.append(key)

        reference = fragment.extends
        if reference is None:
            chain.append(fragment)
            return fragment.value, None

        if is_preset_reference(reference):
            name = preset_name(reference)
            preset_fragment = ConfigFragment(ConfigSource.preset(name), load_preset(name))
            chain.extend([preset_fragment, fragment])
            return merge_tables(preset_fragment.value, fragment.value), name

        parent_source = self._parent_source(fragment, reference)
        parent = self._load_fragment(parent_source, chain=visited + [parent_source.label])
        base, preset = self._resolve_chain(parent, visited=visited, chain=chain, depth=depth + 1)
        chain.append(fragment)
        return merge_tables(base, fragment.value), preset

    def _parent_source(self, fragment: ConfigFragment, reference: str) -> ConfigSource:
        if is_remote_url(reference):
            return ConfigSource.remote(reference, fragment.extends_sha256)
        if fragment.source.kind == "remote":
            if not Path(reference).is_absolute():
                raise ConfigError(
                    f"Relative extends path '{reference}' is not allowed in remote config "
                    f"{fragment.source.location}",
                    suggestion="Use a URL or preset in remote configs.",
                )
            return ConfigSource.local(Path(reference))
        path = Path(reference).expanduser()
        if not path.is_absolute():
            path = Path(fragment.source.location).parent / path
        return ConfigSource.local(path)

    def _load_fragment(self, source: ConfigSource, *, chain: list[str]) -> ConfigFragment:
        if source.kind == "preset":
            return ConfigFragment(source, load_preset(source.location))
        if source.kind == "remote":
            text = self.fetcher.fetch(source.location, source.expected_hash)
        else:
            try:
                text = Path(source.location).read_text(encoding="utf-8")
            except OSError as exc:
                raise ConfigReadError(source.location, exc.strerror or str(exc)) from exc
        value = parse_toml(text, origin=source.label, chain=chain)
        validate_reset_positions(value)
        return ConfigFragment(source, value)


def parse_toml(text: str, *, origin: str, chain: list[str] | None = None) -> dict[str, Any]:
    """Parse TOML text, keeping line and column of syntax errors."""
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        line = getattr(exc, "lineno", None)
        column = getattr(exc, "colno", None)
        message = getattr(exc, "msg", None) or str(exc)
        if line is None:
            found = _LOCATION_RE.search(str(exc))
            if found:
                line, column = int(found.group(1)), int(found.group(2))
            message = _LOCATION_RE.sub("", message).replace("()", "").strip()
        raise ConfigSyntaxError(origin, message, line=line, column=column, chain=chain) from exc


def load_configuration(
    repo: Path,
    config_path: Path | None = None,
    *,
    resolver: ConfigResolver | None = None,
) -> ResolvedConfig:
    """Load config from an explicit path or by discovery under `repo`."""
    resolver = resolver if resolver is not None else ConfigResolver()
    repo = repo.resolve()
    if config_path is not None:
        resolved = config_path if config_path.is_absolute() else (repo / config_path)
        if not resolved.exists():
            raise ConfigReadError(str(resolved), "Config file does not exist")
        return resolver.resolve_with_sources(resolved)

    discovered = find_config_file(repo)
    if discovered is None:
        logger.debug("No config file found under %s; using defaults", repo)
        return ResolvedConfig(config=Configuration())
    return resolver.resolve_with_sources(discovered)


def _finalize(value: dict[str, Any], source: str) -> Configuration:
    cleaned = strip_inheritance_keys(strip_reset_markers(value))
    config = config_from_mapping(cleaned, source=source)
    validate_configuration(config)
    return config
