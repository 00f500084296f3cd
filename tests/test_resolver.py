"""Tests for extends resolution: local chains, presets, remote fetching and caching."""

from __future__ import annotations

import os
import time
from pathlib import Path

import pytest

from sloc_guard.errors import (
    CircularExtendsError,
    ConfigError,
    ConfigReadError,
    ConfigSyntaxError,
    ExtendsTooDeepError,
    HashMismatchError,
    RemoteFetchError,
)
from sloc_guard.remote import (
    FetchPolicy,
    RemoteConfigCache,
    RemoteFetcher,
    compute_content_hash,
)
from sloc_guard.resolver import ConfigResolver, ConfigSource, load_configuration

REMOTE_URL = "https://example.com/sloc/base.toml"
REMOTE_BODY = "\n".join(
    [
        'version = "2"',
        "",
        "[content]",
        "max_lines = 250",
        'exclude = ["gen/**"]',
    ]
)


class FakeProvider:
    def __init__(self, bodies: dict[str, str]) -> None:
        self.bodies = bodies
        self.calls: list[str] = []

    def get(self, url: str) -> str:
        self.calls.append(url)
        if url not in self.bodies:
            raise RemoteFetchError(url, "HTTP 404")
        return self.bodies[url]


def _fetcher(
    tmp_path: Path,
    provider: FakeProvider,
    policy: FetchPolicy = FetchPolicy.NORMAL,
) -> RemoteFetcher:
    return RemoteFetcher(
        provider=provider, cache=RemoteConfigCache(tmp_path / "cache"), policy=policy
    )


def _write(path: Path, lines: list[str]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def test_local_chain_merges_base_first(tmp_path: Path) -> None:
    _write(
        tmp_path / "shared" / "base.toml",
        [
            "[content]",
            "max_lines = 400",
            'exclude = ["vendor/**"]',
            "",
            "[[content.rules]]",
            'pattern = "src/**"',
            "max_lines = 300",
        ],
    )
    root = _write(
        tmp_path / ".sloc-guard.toml",
        [
            'extends = "shared/base.toml"',
            "",
            "[content]",
            'exclude = ["dist/**"]',
            "",
            "[[content.rules]]",
            'pattern = "src/legacy/**"',
            "max_lines = 900",
        ],
    )

    resolved = ConfigResolver(follow_extends=True).resolve_with_sources(root)

    content = resolved.config.content
    assert content.max_lines == 400
    assert content.exclude == ["vendor/**", "dist/**"]
    assert [rule.pattern for rule in content.rules] == ["src/**", "src/legacy/**"]
    assert [fragment.source.location for fragment in resolved.sources] == [
        str((tmp_path / "shared" / "base.toml").resolve()),
        str(root.resolve()),
    ]
    assert resolved.config.source == str(root.resolve())


def test_no_extends_flag_uses_root_file_alone(tmp_path: Path) -> None:
    _write(tmp_path / "base.toml", ["[content]", "max_lines = 100"])
    root = _write(
        tmp_path / "child.toml", ['extends = "base.toml"', "[content]", "skip_blank = false"]
    )

    config = ConfigResolver(follow_extends=False).resolve(root)

    assert config.content.max_lines == 500
    assert config.content.skip_blank is False


def test_cycle_reports_full_chain(tmp_path: Path) -> None:
    a = _write(tmp_path / "a.toml", ['extends = "b.toml"'])
    b = _write(tmp_path / "b.toml", ['extends = "c.toml"'])
    c = _write(tmp_path / "c.toml", ['extends = "a.toml"'])

    with pytest.raises(CircularExtendsError) as excinfo:
        ConfigResolver().resolve(a)

    expected = [str(path.resolve()) for path in (a, b, c, a)]
    assert excinfo.value.chain == expected
    assert "Circular extends detected" in str(excinfo.value)


def test_self_extends_is_a_cycle(tmp_path: Path) -> None:
    root = _write(tmp_path / "self.toml", ['extends = "self.toml"'])
    with pytest.raises(CircularExtendsError):
        ConfigResolver().resolve(root)


def _chain(tmp_path: Path, length: int) -> Path:
    for position in range(length):
        lines = [f"# level {position}"]
        if position + 1 < length:
            lines.append(f'extends = "level{position + 1}.toml"')
        else:
            lines.extend(["[content]", "max_lines = 123"])
        _write(tmp_path / f"level{position}.toml", lines)
    return tmp_path / "level0.toml"


def test_chain_of_eleven_files_is_accepted(tmp_path: Path) -> None:
    config = ConfigResolver().resolve(_chain(tmp_path, 11))
    assert config.content.max_lines == 123


def test_chain_of_twelve_files_is_too_deep(tmp_path: Path) -> None:
    with pytest.raises(ExtendsTooDeepError) as excinfo:
        ConfigResolver().resolve(_chain(tmp_path, 12))
    assert excinfo.value.max_depth == 10
    assert len(excinfo.value.chain) == 12


def test_preset_is_a_terminal_base(tmp_path: Path) -> None:
    root = _write(
        tmp_path / ".sloc-guard.toml",
        ['extends = "preset:python-strict"', "", "[content]", "max_lines = 700"],
    )

    resolved = ConfigResolver().resolve_with_sources(root)

    assert resolved.preset_used == "python-strict"
    assert resolved.sources[0].source.label == "preset:python-strict"
    assert resolved.config.content.max_lines == 700
    assert resolved.config.content.extensions == ["py", "pyi"]
    assert resolved.config.content.warn_threshold == 0.85
    assert resolved.config.structure.max_files == 20


def test_unknown_preset_lists_available_names(tmp_path: Path) -> None:
    root = _write(tmp_path / "cfg.toml", ['extends = "preset:cobol-strict"'])
    with pytest.raises(ConfigError, match="Unknown preset: 'cobol-strict'") as excinfo:
        ConfigResolver().resolve(root)
    assert "python-strict" in str(excinfo.value)


def test_reset_marker_clears_inherited_rules(tmp_path: Path) -> None:
    _write(
        tmp_path / "base.toml",
        ["[[content.rules]]", 'pattern = "src/**"', "max_lines = 300"],
    )
    root = _write(
        tmp_path / "child.toml",
        [
            'extends = "base.toml"',
            "",
            "[[content.rules]]",
            'pattern = "$reset"',
            "",
            "[[content.rules]]",
            'pattern = "lib/**"',
            "max_lines = 200",
        ],
    )

    config = ConfigResolver().resolve(root)

    assert [rule.pattern for rule in config.content.rules] == ["lib/**"]


def test_misplaced_reset_marker_is_rejected(tmp_path: Path) -> None:
    root = _write(tmp_path / "cfg.toml", ["[scanner]", 'exclude = ["a/**", "$reset"]'])
    with pytest.raises(ConfigError, match="must be the first element"):
        ConfigResolver().resolve(root)


def test_syntax_error_reports_line_and_column(tmp_path: Path) -> None:
    root = _write(tmp_path / "bad.toml", ['version = "2"', "[content", "max_lines = 1"])

    with pytest.raises(ConfigSyntaxError) as excinfo:
        ConfigResolver().resolve(root)

    assert excinfo.value.line == 2
    assert excinfo.value.column is not None
    assert str(root.resolve()) in str(excinfo.value)


def test_syntax_error_in_parent_names_the_extends_chain(tmp_path: Path) -> None:
    _write(tmp_path / "base.toml", ["max_lines = = 3"])
    root = _write(tmp_path / "child.toml", ['extends = "base.toml"'])

    with pytest.raises(ConfigSyntaxError) as excinfo:
        ConfigResolver().resolve(root)

    assert excinfo.value.chain[-1] == str((tmp_path / "base.toml").resolve())
    assert "extends chain:" in str(excinfo.value)


def test_remote_extends_uses_cache_on_second_resolve(tmp_path: Path) -> None:
    provider = FakeProvider({REMOTE_URL: REMOTE_BODY})
    root = _write(
        tmp_path / "cfg.toml", [f'extends = "{REMOTE_URL}"', "[content]", "skip_blank = false"]
    )
    resolver = ConfigResolver(fetcher=_fetcher(tmp_path, provider))

    first = resolver.resolve(root)
    second = resolver.resolve(root)

    assert first == second
    assert first.content.max_lines == 250
    assert first.content.skip_blank is False
    assert provider.calls == [REMOTE_URL]


def test_remote_hash_mismatch_is_rejected(tmp_path: Path) -> None:
    provider = FakeProvider({REMOTE_URL: REMOTE_BODY})
    root = _write(
        tmp_path / "cfg.toml",
        [f'extends = "{REMOTE_URL}"', f'extends_sha256 = "{"0" * 64}"'],
    )

    with pytest.raises(HashMismatchError) as excinfo:
        ConfigResolver(fetcher=_fetcher(tmp_path, provider)).resolve(root)

    assert excinfo.value.actual == compute_content_hash(REMOTE_BODY)
    assert not RemoteConfigCache(tmp_path / "cache").path_for(REMOTE_URL).exists()


def test_remote_pinned_hash_accepts_matching_content(tmp_path: Path) -> None:
    provider = FakeProvider({REMOTE_URL: REMOTE_BODY})
    digest = compute_content_hash(REMOTE_BODY).upper()
    root = _write(
        tmp_path / "cfg.toml", [f'extends = "{REMOTE_URL}"', f'extends_sha256 = "{digest}"']
    )

    config = ConfigResolver(fetcher=_fetcher(tmp_path, provider)).resolve(root)

    assert config.content.max_lines == 250


def test_offline_mode_fails_on_cache_miss(tmp_path: Path) -> None:
    provider = FakeProvider({REMOTE_URL: REMOTE_BODY})
    root = _write(tmp_path / "cfg.toml", [f'extends = "{REMOTE_URL}"'])
    fetcher = _fetcher(tmp_path, provider, FetchPolicy.OFFLINE)

    with pytest.raises(RemoteFetchError, match="cache miss in offline mode"):
        ConfigResolver(fetcher=fetcher).resolve(root)
    assert provider.calls == []


def test_offline_mode_serves_expired_cache(tmp_path: Path) -> None:
    provider = FakeProvider({REMOTE_URL: REMOTE_BODY})
    cache = RemoteConfigCache(tmp_path / "cache", ttl_seconds=60)
    cache.write(REMOTE_URL, REMOTE_BODY)
    stale = time.time() - 3600
    os.utime(cache.path_for(REMOTE_URL), (stale, stale))
    fetcher = RemoteFetcher(provider=provider, cache=cache, policy=FetchPolicy.OFFLINE)

    assert fetcher.fetch(REMOTE_URL) == REMOTE_BODY
    assert provider.calls == []


def test_expired_cache_entry_is_refetched(tmp_path: Path) -> None:
    provider = FakeProvider({REMOTE_URL: REMOTE_BODY})
    cache = RemoteConfigCache(tmp_path / "cache", ttl_seconds=60)
    cache.write(REMOTE_URL, "stale = true")
    stale = time.time() - 3600
    os.utime(cache.path_for(REMOTE_URL), (stale, stale))
    fetcher = RemoteFetcher(provider=provider, cache=cache)

    assert fetcher.fetch(REMOTE_URL) == REMOTE_BODY
    assert provider.calls == [REMOTE_URL]
    assert cache.read(REMOTE_URL) == REMOTE_BODY


def test_force_refresh_bypasses_fresh_cache(tmp_path: Path) -> None:
    provider = FakeProvider({REMOTE_URL: REMOTE_BODY})
    cache = RemoteConfigCache(tmp_path / "cache")
    cache.write(REMOTE_URL, "cached = true")
    fetcher = RemoteFetcher(provider=provider, cache=cache, policy=FetchPolicy.FORCE_REFRESH)

    assert fetcher.fetch(REMOTE_URL) == REMOTE_BODY
    assert provider.calls == [REMOTE_URL]


def test_cache_clear_removes_entries(tmp_path: Path) -> None:
    cache = RemoteConfigCache(tmp_path / "cache")
    cache.write(REMOTE_URL, REMOTE_BODY)
    cache.write("https://example.com/other.toml", REMOTE_BODY)

    assert cache.clear() == 2
    assert cache.read(REMOTE_URL) is None
    assert RemoteConfigCache(tmp_path / "missing").clear() == 0


def test_relative_extends_inside_remote_config_is_rejected(tmp_path: Path) -> None:
    provider = FakeProvider({REMOTE_URL: 'extends = "../base.toml"'})
    resolver = ConfigResolver(fetcher=_fetcher(tmp_path, provider))

    with pytest.raises(ConfigError, match="Relative extends path '../base.toml'"):
        resolver.resolve(ConfigSource.remote(REMOTE_URL))


def test_remote_config_may_extend_a_preset(tmp_path: Path) -> None:
    body = "\n".join(['extends = "preset:rust-strict"', "[content]", "max_lines = 420"])
    provider = FakeProvider({REMOTE_URL: body})
    resolver = ConfigResolver(fetcher=_fetcher(tmp_path, provider))

    resolved = resolver.resolve_with_sources(ConfigSource.remote(REMOTE_URL))

    assert resolved.preset_used == "rust-strict"
    assert resolved.config.content.max_lines == 420
    assert [fragment.source.kind for fragment in resolved.sources] == ["preset", "remote"]


def test_invalid_remote_url_is_a_config_error(tmp_path: Path) -> None:
    fetcher = _fetcher(tmp_path, FakeProvider({}))
    with pytest.raises(ConfigError, match="Invalid remote config URL"):
        fetcher.fetch("https://")


def test_load_configuration_without_any_file_uses_defaults(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    repo = tmp_path / "repo"
    repo.mkdir()

    resolved = load_configuration(repo)

    assert resolved.sources == []
    assert resolved.config.content.max_lines == 500
    assert resolved.config.source is None


def test_load_configuration_falls_back_to_user_config(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    user = _write(tmp_path / "xdg" / "sloc-guard" / "config.toml", ["[content]", "max_lines = 321"])
    repo = tmp_path / "repo"
    repo.mkdir()

    resolved = load_configuration(repo)

    assert resolved.config.content.max_lines == 321
    assert resolved.config.source == str(user.resolve())


def test_load_configuration_missing_explicit_path(tmp_path: Path) -> None:
    with pytest.raises(ConfigReadError, match="Config file does not exist"):
        load_configuration(tmp_path, Path("nope.toml"))
