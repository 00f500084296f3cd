"""Advisory file locks and atomic writes for state files such as the baseline."""

from __future__ import annotations

import fcntl
import logging
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import IO

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 5.0
LOCK_POLL_INTERVAL = 0.05


class LockTimeoutError(TimeoutError):
    """The lock was still held by another process when the timeout expired."""

    def __init__(self, path: Path, timeout: float) -> None:
        super().__init__(f"Timed out after {timeout:.1f}s waiting for lock on {path}")
        self.path = path
        self.timeout = timeout


class SaveOutcome(str, Enum):
    """Whether a locked write happened or was skipped because of contention."""

    SAVED = "saved"
    SKIPPED = "skipped"


def lock_path(path: Path) -> Path:
    """Sidecar lock file; it survives the `os.replace` that swaps `path` itself."""
    return path.with_name(f"{path.name}.lock")


@contextmanager
def locked(
    handle: IO[str],
    path: Path,
    *,
    exclusive: bool,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
) -> Iterator[None]:
    """Hold an flock on `handle`, polling until `timeout` seconds have passed."""
    operation = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
    deadline = time.monotonic() + timeout
    while True:
        try:
            fcntl.flock(handle.fileno(), operation | fcntl.LOCK_NB)
            break
        except BlockingIOError:
            if time.monotonic() >= deadline:
                raise LockTimeoutError(path, timeout) from None
            time.sleep(LOCK_POLL_INTERVAL)
    try:
        yield
    finally:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def read_text_locked(
    path: Path, *, description: str, timeout: float = DEFAULT_LOCK_TIMEOUT
) -> str:
    """Read `path` under a shared lock; on timeout, warn and read unlocked."""
    sidecar = lock_path(path)
    try:
        lock_handle = sidecar.open("a", encoding="utf-8")
    except OSError as exc:
        logger.warning("Cannot open lock file for %s: %s", description, exc)
        return path.read_text(encoding="utf-8")
    with lock_handle:
        try:
            with locked(lock_handle, sidecar, exclusive=False, timeout=timeout):
                return path.read_text(encoding="utf-8")
        except LockTimeoutError as exc:
            logger.warning("Failed to acquire read lock on %s: %s", description, exc)
    return path.read_text(encoding="utf-8")


def write_text_atomic(
    path: Path,
    content: str,
    *,
    description: str,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
) -> SaveOutcome:
    """Replace `path` with `content` via a temp file, under an exclusive lock.

    The lock lives on the `lock_path` sidecar so that concurrent writers stay
    ordered across the replace.

    Lock contention past `timeout` leaves the existing file untouched and
    returns SaveOutcome.SKIPPED. Other I/O failures propagate.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(f".{path.name}.tmp.{os.getpid()}")
    try:
        with temp_path.open("w", encoding="utf-8") as temp:
            temp.write(content)
            temp.flush()
            os.fsync(temp.fileno())

        sidecar = lock_path(path)
        with sidecar.open("a", encoding="utf-8") as lock_handle:
            try:
                with locked(lock_handle, sidecar, exclusive=True, timeout=timeout):
                    os.replace(temp_path, path)
            except LockTimeoutError as exc:
                logger.warning("Skipping write of %s: %s", description, exc)
                return SaveOutcome.SKIPPED
    finally:
        temp_path.unlink(missing_ok=True)
    return SaveOutcome.SAVED
