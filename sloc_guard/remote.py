"""Remote config fetching with a TTL cache and pinned-hash verification."""

from __future__ import annotations

import hashlib
import logging
import os
import time
from enum import Enum
from pathlib import Path
from typing import Protocol

import httpx

from sloc_guard.errors import ConfigError, HashMismatchError, RemoteFetchError

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 3600
REQUEST_TIMEOUT_SECONDS = 30.0
CACHE_SUBDIR = Path("sloc-guard") / "configs"


class FetchPolicy(str, Enum):
    """How remote configs interact with the local cache."""

    NORMAL = "normal"
    OFFLINE = "offline"
    FORCE_REFRESH = "force-refresh"


class HttpProvider(Protocol):
    """Anything able to GET a URL and return its body as text."""

    def get(self, url: str) -> str:
        """Return the response body or raise RemoteFetchError."""


class HttpxProvider:
    """Default provider backed by httpx."""

    def __init__(self, timeout: float = REQUEST_TIMEOUT_SECONDS) -> None:
        self.timeout = timeout

    def get(self, url: str) -> str:
        try:
            with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
                response = client.get(url)
        except httpx.TimeoutException as exc:
            raise RemoteFetchError(url, "request timed out") from exc
        except httpx.HTTPError as exc:
            raise RemoteFetchError(url, str(exc) or type(exc).__name__) from exc
        if not response.is_success:
            raise RemoteFetchError(url, f"HTTP {response.status_code}")
        return response.text


def is_remote_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


def compute_content_hash(content: str) -> str:
    """Return the lowercase sha256 hex digest of `content`."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def default_cache_dir() -> Path:
    base = os.environ.get("XDG_CACHE_HOME")
    root = Path(base) if base else Path.home() / ".cache"
    return root / CACHE_SUBDIR


class RemoteConfigCache:
    """On-disk cache keyed by the sha256 of the URL."""

    def __init__(self, directory: Path | None = None, ttl_seconds: int = CACHE_TTL_SECONDS) -> None:
        self.directory = directory if directory is not None else default_cache_dir()
        self.ttl_seconds = ttl_seconds

    def path_for(self, url: str) -> Path:
        return self.directory / f"{compute_content_hash(url)}.toml"

    def read(self, url: str, *, ignore_ttl: bool = False) -> str | None:
        path = self.path_for(url)
        try:
            if not ignore_ttl and time.time() - path.stat().st_mtime > self.ttl_seconds:
                return None
            return path.read_text(encoding="utf-8")
        except OSError:
            return None

    def write(self, url: str, content: str) -> bool:
        path = self.path_for(url)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not cache remote config %s at %s: %s", url, path, exc)
            return False
        return True

    def clear(self) -> int:
        """Remove every cached config and return how many were deleted."""
        if not self.directory.is_dir():
            return 0
        removed = 0
        for path in self.directory.glob("*.toml"):
            try:
                path.unlink()
            except OSError as exc:
                logger.warning("Could not remove cached config %s: %s", path, exc)
                continue
            removed += 1
        return removed


class RemoteFetcher:
    """Fetch remote configs according to a FetchPolicy."""

    def __init__(
        self,
        *,
        provider: HttpProvider | None = None,
        cache: RemoteConfigCache | None = None,
        policy: FetchPolicy = FetchPolicy.NORMAL,
    ) -> None:
        self.provider = provider if provider is not None else HttpxProvider()
        self.cache = cache if cache is not None else RemoteConfigCache()
        self.policy = policy

    def fetch(self, url: str, expected_hash: str | None = None) -> str:
        """Return config text for `url`, verifying `expected_hash` when given."""
        _validate_url(url)

        if self.policy is not FetchPolicy.FORCE_REFRESH:
            cached = self.cache.read(url, ignore_ttl=self.policy is FetchPolicy.OFFLINE)
            if cached is not None:
                if self.policy is FetchPolicy.OFFLINE:
                    _verify_hash(url, cached, expected_hash)
                    logger.debug("Serving %s from cache (offline)", url)
                    return cached
                if expected_hash is None or compute_content_hash(cached) == expected_hash.lower():
                    logger.debug("Serving %s from cache", url)
                    return cached
                logger.debug("Cached copy of %s does not match pinned hash; refetching", url)

        if self.policy is FetchPolicy.OFFLINE:
            raise RemoteFetchError(
                url, "cache miss in offline mode; run once without --offline to populate it"
            )

        logger.debug("Fetching remote config %s", url)
        content = self.provider.get(url)
        _verify_hash(url, content, expected_hash)
        self.cache.write(url, content)
        return content


def _validate_url(url: str) -> None:
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise ConfigError(f"Invalid remote config URL: {url}") from exc
    if parsed.scheme not in {"http", "https"} or not parsed.host:
        raise ConfigError(f"Invalid remote config URL: {url}")


def _verify_hash(url: str, content: str, expected_hash: str | None) -> None:
    if expected_hash is None:
        return
    actual = compute_content_hash(content)
    if actual != expected_hash.lower():
        raise HashMismatchError(url, expected_hash, actual)
