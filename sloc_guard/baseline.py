"""Baseline store, grandfathering and the stale-entry ratchet."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sloc_guard.locking import SaveOutcome, read_text_locked, write_text_atomic
from sloc_guard.rules.base import Status
from sloc_guard.verdict import BASELINE_KINDS, CONTENT, STRUCTURE, Verdict, Violation

logger = logging.getLogger(__name__)

BASELINE_VERSION = 2
UPDATE_MODES = {"all", "content", "structure", "new"}
STRUCTURE_KINDS = set(BASELINE_KINDS.values())


class BaselineError(ValueError):
    """The baseline file exists but cannot be understood."""


@dataclass(frozen=True, slots=True)
class ContentEntry:
    """A grandfathered oversized file, pinned to its content hash."""

    lines: int
    hash: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": CONTENT, "lines": self.lines, "hash": self.hash}


@dataclass(slots=True)
class StructureEntry:
    """Grandfathered directory counts, one per dimension (`files`, `dirs`)."""

    counts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": STRUCTURE, "counts": dict(sorted(self.counts.items()))}


BaselineEntry = ContentEntry | StructureEntry


@dataclass(slots=True)
class Baseline:
    """Map of path to grandfathered violation."""

    entries: dict[str, BaselineEntry] = field(default_factory=dict)
    version: int = BASELINE_VERSION

    def set_content(self, path: str, lines: int, content_hash: str) -> None:
        self.entries[path] = ContentEntry(lines=lines, hash=content_hash)

    def set_structure(self, path: str, kind: str, count: int) -> None:
        if kind not in STRUCTURE_KINDS:
            raise ValueError(f"structure baseline kind must be one of {sorted(STRUCTURE_KINDS)}")
        entry = self.entries.get(path)
        if not isinstance(entry, StructureEntry):
            entry = self.entries[path] = StructureEntry()
        entry.counts[kind] = count

    def get(self, path: str) -> BaselineEntry | None:
        return self.entries.get(path)

    def remove(self, path: str) -> BaselineEntry | None:
        return self.entries.pop(path, None)

    def remove_structure_kinds(self, path: str, kinds: Iterable[str]) -> None:
        """Drop some dimensions of a structure entry, and the entry once none remain."""
        entry = self.entries.get(path)
        if not isinstance(entry, StructureEntry):
            return
        for kind in kinds:
            entry.counts.pop(kind, None)
        if not entry.counts:
            del self.entries[path]

    def contains(self, path: str) -> bool:
        return path in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "files": {path: self.entries[path].to_dict() for path in sorted(self.entries)},
        }

    @classmethod
    def from_dict(cls, payload: Any) -> Baseline:
        """Parse a baseline document, migrating version 1 content-only files."""
        if not isinstance(payload, dict):
            raise BaselineError("baseline must be a JSON object")
        version = payload.get("version", 1)
        files = payload.get("files", {})
        if not isinstance(files, dict):
            raise BaselineError("baseline 'files' must be an object")
        if version == 1:
            logger.info("Migrating baseline from version 1 to %d", BASELINE_VERSION)
            return cls(entries={path: _parse_v1_entry(path, raw) for path, raw in files.items()})
        if version != BASELINE_VERSION:
            raise BaselineError(f"Unsupported baseline version: {version}")
        return cls(entries={path: _parse_entry(path, raw) for path, raw in files.items()})

    @classmethod
    def load(cls, path: Path) -> Baseline:
        text = read_text_locked(path, description="baseline file")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise BaselineError(f"Invalid baseline JSON in {path}: {exc}") from exc
        return cls.from_dict(payload)

    @classmethod
    def load_optional(cls, path: Path) -> Baseline | None:
        if not path.is_file():
            return None
        return cls.load(path)

    def save(self, path: Path) -> SaveOutcome:
        content = json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n"
        return write_text_atomic(path, content, description="baseline file")


@dataclass(slots=True)
class RatchetOutcome:
    """Baseline entries whose recorded violation no longer reproduces.

    `partial` names the stale dimensions of structure entries where other
    dimensions still fail; those entries are tightened rather than dropped.
    """

    stale_paths: list[str] = field(default_factory=list)
    partial: dict[str, list[str]] = field(default_factory=dict)

    @property
    def stale_entry_count(self) -> int:
        return len(self.stale_paths)

    @property
    def is_stale(self) -> bool:
        return bool(self.stale_paths)

    def to_dict(self) -> dict[str, Any]:
        return {"stale_entry_count": self.stale_entry_count, "stale_paths": list(self.stale_paths)}


@dataclass(slots=True)
class RatchetDecision:
    """What a ratchet mode did with a RatchetOutcome."""

    mode: str
    outcome: RatchetOutcome
    failed: bool = False
    save: SaveOutcome | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "failed": self.failed,
            "save": self.save.value if self.save else None,
            **self.outcome.to_dict(),
        }


class BaselineComparator:
    """Decide grandfathering for verdicts and find stale baseline entries."""

    def __init__(self, baseline: Baseline | None) -> None:
        self.baseline = baseline

    def grandfather(self, verdict: Verdict) -> Verdict:
        """Mark violations covered by the baseline and refresh the verdict status."""
        if self.baseline is None or verdict.status not in (Status.FAILED, Status.WARNING):
            return verdict
        entry = self.baseline.get(verdict.path)
        if entry is None:
            return verdict
        changed = False
        for violation in verdict.violations:
            if _covers(entry, verdict, violation):
                violation.grandfathered = True
                changed = True
        if changed:
            verdict.refresh_status()
        return verdict

    def ratchet(self, verdicts: Iterable[Verdict]) -> RatchetOutcome:
        outcome = RatchetOutcome()
        if self.baseline is None:
            return outcome
        by_key = {(verdict.target, verdict.path): verdict for verdict in verdicts}
        for path in sorted(self.baseline.entries):
            entry = self.baseline.entries[path]
            if isinstance(entry, ContentEntry):
                if _content_entry_is_stale(entry, by_key.get((CONTENT, path))):
                    outcome.stale_paths.append(path)
                continue
            stale_kinds = _stale_structure_kinds(entry, by_key.get((STRUCTURE, path)))
            if not stale_kinds:
                continue
            outcome.stale_paths.append(path)
            if len(stale_kinds) < len(entry.counts):
                outcome.partial[path] = stale_kinds
        return outcome


def apply_ratchet(
    baseline: Baseline,
    outcome: RatchetOutcome,
    mode: str,
    path: Path | None = None,
) -> RatchetDecision:
    """Act on stale entries: warn logs, auto prunes and saves, strict fails."""
    decision = RatchetDecision(mode=mode, outcome=outcome)
    if not outcome.is_stale:
        return decision
    if mode == "warn":
        logger.warning(
            "Baseline has %d stale entries that can be tightened: %s",
            outcome.stale_entry_count,
            ", ".join(outcome.stale_paths),
        )
    elif mode == "auto":
        for stale_path in outcome.stale_paths:
            if stale_path in outcome.partial:
                baseline.remove_structure_kinds(stale_path, outcome.partial[stale_path])
            else:
                baseline.remove(stale_path)
        if path is not None:
            decision.save = baseline.save(path)
        logger.info("Removed %d stale baseline entries", outcome.stale_entry_count)
    elif mode == "strict":
        decision.failed = True
    else:
        raise ValueError(f"Unknown ratchet mode: {mode}")
    return decision


def update_baseline(
    verdicts: Iterable[Verdict],
    mode: str = "all",
    existing: Baseline | None = None,
) -> Baseline:
    """Build a baseline from the failing verdicts of a run.

    `new` keeps every existing entry and only adds paths not yet recorded;
    the other modes rebuild from scratch for their target.
    """
    if mode not in UPDATE_MODES:
        raise ValueError(f"baseline update mode must be one of: {', '.join(sorted(UPDATE_MODES))}")
    if mode == "new":
        baseline = Baseline(entries=dict(existing.entries) if existing else {})
    else:
        baseline = Baseline()

    for verdict in sorted(verdicts, key=lambda item: (item.target, item.path)):
        if mode == "new" and baseline.contains(verdict.path):
            continue
        if verdict.target == CONTENT and mode in {"all", "content", "new"}:
            if _underlying_failure(verdict, "line_count") and verdict.content_hash:
                baseline.set_content(verdict.path, verdict.observed, verdict.content_hash)
        elif verdict.target == STRUCTURE and mode in {"all", "structure", "new"}:
            for kind, short in BASELINE_KINDS.items():
                violation = _underlying_failure(verdict, kind)
                if violation is not None:
                    baseline.set_structure(verdict.path, short, violation.observed)
    return baseline


def _underlying_failure(verdict: Verdict, kind: str) -> Violation | None:
    for violation in verdict.violations:
        if violation.kind == kind and violation.status is Status.FAILED:
            return violation
    return None


def _covers(entry: BaselineEntry, verdict: Verdict, violation: Violation) -> bool:
    if violation.status not in (Status.FAILED, Status.WARNING):
        return False
    if isinstance(entry, ContentEntry):
        return (
            verdict.target == CONTENT
            and violation.kind == "line_count"
            and verdict.content_hash is not None
            and entry.hash == verdict.content_hash
        )
    return (
        verdict.target == STRUCTURE
        and violation.kind in BASELINE_KINDS
        and entry.counts.get(BASELINE_KINDS[violation.kind]) == violation.observed
    )


def _content_entry_is_stale(entry: ContentEntry, verdict: Verdict | None) -> bool:
    if verdict is None:
        return True
    return _violation_is_stale(
        next((item for item in verdict.violations if item.kind == "line_count"), None),
        entry.lines,
    )


def _stale_structure_kinds(entry: StructureEntry, verdict: Verdict | None) -> list[str]:
    if verdict is None:
        return sorted(entry.counts)
    by_kind = {
        BASELINE_KINDS[item.kind]: item
        for item in verdict.violations
        if item.kind in BASELINE_KINDS
    }
    return [
        kind
        for kind in sorted(entry.counts)
        if _violation_is_stale(by_kind.get(kind), entry.counts[kind])
    ]


def _violation_is_stale(violation: Violation | None, recorded: int) -> bool:
    if violation is None:
        return True
    if violation.grandfathered:
        return False
    if violation.status is not Status.FAILED:
        return True
    return violation.observed <= recorded


def _parse_v1_entry(path: str, raw: Any) -> ContentEntry:
    if not isinstance(raw, dict):
        raise BaselineError(f"baseline entry for {path} must be an object")
    return ContentEntry(lines=_entry_int(path, raw, "lines"), hash=_entry_str(path, raw, "hash"))


def _parse_entry(path: str, raw: Any) -> BaselineEntry:
    if not isinstance(raw, dict):
        raise BaselineError(f"baseline entry for {path} must be an object")
    entry_type = raw.get("type", CONTENT)
    if entry_type == CONTENT:
        return _parse_v1_entry(path, raw)
    if entry_type == STRUCTURE:
        return _parse_structure_entry(path, raw)
    raise BaselineError(f"baseline entry for {path} has unknown type '{entry_type}'")


def _parse_structure_entry(path: str, raw: dict[str, Any]) -> StructureEntry:
    if "counts" not in raw:
        # Single-dimension form: {"kind": "files", "count": n}
        raw = {"counts": {_entry_str(path, raw, "kind"): raw.get("count")}}
    counts = raw["counts"]
    if not isinstance(counts, dict) or not counts:
        raise BaselineError(f"baseline entry for {path} needs a non-empty 'counts' object")
    for kind in counts:
        if kind not in STRUCTURE_KINDS:
            raise BaselineError(f"baseline entry for {path} has unknown kind '{kind}'")
    return StructureEntry(counts={kind: _entry_int(path, counts, kind) for kind in counts})


def _entry_int(path: str, raw: dict[str, Any], key: str) -> int:
    value = raw.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise BaselineError(f"baseline entry for {path} needs a non-negative integer '{key}'")
    return value


def _entry_str(path: str, raw: dict[str, Any], key: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str):
        raise BaselineError(f"baseline entry for {path} needs a string '{key}'")
    return value
