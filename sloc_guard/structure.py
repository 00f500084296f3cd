"""Per-directory structure evaluation."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import PurePath, PurePosixPath

from sloc_guard.baseline import Baseline, BaselineComparator
from sloc_guard.globs import normalize_path
from sloc_guard.rules import RuleIndex
from sloc_guard.rules.base import Status, classify
from sloc_guard.rules.structure import CompiledSibling, StructureLimits
from sloc_guard.verdict import STRUCTURE, RuleProvenance, Verdict, Violation, worst_status

COUNT_KINDS = ("file_count", "dir_count", "max_depth")


@dataclass(frozen=True, slots=True)
class DirStats:
    """Immediate-children counts for one directory, plus the entry names when known."""

    file_count: int
    dir_count: int
    depth: int
    files: tuple[str, ...] = ()
    dirs: tuple[str, ...] = ()

    @classmethod
    def from_listing(cls, files: Iterable[str], dirs: Iterable[str], depth: int) -> DirStats:
        file_names = tuple(sorted(files))
        dir_names = tuple(sorted(dirs))
        return cls(
            file_count=len(file_names),
            dir_count=len(dir_names),
            depth=depth,
            files=file_names,
            dirs=dir_names,
        )


class StructureEvaluator:
    """Evaluate directories against the effective structure rule for their path."""

    def __init__(self, index: RuleIndex, baseline: Baseline | None = None) -> None:
        self.index = index
        self.comparator = BaselineComparator(baseline)

    def limits(self, path: str | PurePath) -> StructureLimits:
        return self.index.structure_limits(normalize_path(path))

    def evaluate(self, path: str | PurePath, stats: DirStats) -> Verdict:
        normalized = normalize_path(path)
        limits = self.limits(normalized)
        file_count = max(stats.file_count - self._count_excluded(stats.files, normalized), 0)
        dir_count = max(stats.dir_count - self._count_excluded(stats.dirs, normalized), 0)

        violations: list[Violation] = []
        _check_count(violations, "file_count", file_count, limits.max_files, limits.warn_files_at)
        _check_count(violations, "dir_count", dir_count, limits.max_dirs, limits.warn_dirs_at)
        depth = stats.depth
        if limits.relative_depth:
            depth = max(depth - limits.base_depth, 0)
        _check_count(violations, "max_depth", depth, limits.max_depth, limits.warn_depth_at)
        violations.extend(_entry_violations(limits, stats, normalized))
        for sibling in limits.siblings:
            violations.extend(_sibling_violations(sibling, stats.files))

        dimensions = {
            "file_count": (file_count, limits.max_files, limits.warn_files_at),
            "dir_count": (dir_count, limits.max_dirs, limits.warn_dirs_at),
            "max_depth": (depth, limits.max_depth, limits.warn_depth_at),
        }
        observed, limit, warn_at = dimensions[_headline_dimension(violations)]
        verdict = Verdict(
            path=normalized,
            target=STRUCTURE,
            status=worst_status([item.status for item in violations]),
            observed=observed,
            limit=limit,
            warn_at=warn_at,
            provenance=_provenance(limits),
            violations=violations,
        )
        return self.comparator.grandfather(verdict)

    def _count_excluded(self, names: tuple[str, ...], dir_path: str) -> int:
        if not self.index.count_exclude:
            return 0
        excluded = 0
        for name in names:
            full = f"{dir_path}/{name}" if dir_path else name
            globs = self.index.count_exclude
            if any(glob.matches_name(name) or glob.matches(full) for glob in globs):
                excluded += 1
        return excluded


def _headline_dimension(violations: list[Violation]) -> str:
    """The count the verdict reports: first failing, else first warning, else files."""
    counts = [item for item in violations if item.kind in COUNT_KINDS]
    for item in counts:
        if item.status is Status.FAILED:
            return item.kind
    return counts[0].kind if counts else "file_count"


def _check_count(
    violations: list[Violation],
    kind: str,
    observed: int,
    limit: int | None,
    warn_at: int | None,
) -> None:
    status = classify(observed, limit, warn_at)
    if status is Status.PASSED or limit is None:
        return
    noun = {"file_count": "files", "dir_count": "subdirectories", "max_depth": "depth"}[kind]
    if status is Status.FAILED:
        detail = f"{observed} {noun} exceeds limit of {limit}"
    else:
        detail = f"{observed} {noun} reaches warning threshold {warn_at} (limit {limit})"
    violations.append(
        Violation(kind=kind, status=status, observed=observed, limit=limit, detail=detail)
    )


def _entry_violations(limits: StructureLimits, stats: DirStats, dir_path: str) -> list[Violation]:
    violations: list[Violation] = []
    policy = limits.entry_policy
    for name in stats.files:
        if policy is not None:
            found = policy.check_file(name, dir_path)
            if found is not None:
                detail = (
                    f"matches denied '{found.matched}'"
                    if found.matched
                    else "not in the allowed extensions or patterns"
                )
                violations.append(_entry_violation(found.kind, name, detail))
                continue
        if limits.naming is not None and limits.naming.search(name) is None:
            violations.append(
                _entry_violation(
                    "naming_convention",
                    name,
                    f"does not match naming pattern '{limits.naming.pattern}'",
                )
            )
    if policy is not None:
        for name in stats.dirs:
            found = policy.check_dir(name, dir_path)
            if found is not None:
                detail = (
                    f"matches denied '{found.matched}'"
                    if found.matched
                    else "not in the allowed directories"
                )
                violations.append(_entry_violation(found.kind, name, detail))
    return violations


def _entry_violation(kind: str, name: str, detail: str) -> Violation:
    return Violation(
        kind=kind, status=Status.FAILED, observed=1, limit=0, subject=name, detail=detail
    )


def _sibling_violations(sibling: CompiledSibling, files: tuple[str, ...]) -> list[Violation]:
    status = Status.WARNING if sibling.severity == "warn" else Status.FAILED
    present = set(files)
    violations: list[Violation] = []
    if sibling.kind == "directed":
        for name in files:
            if sibling.match is None or not sibling.match.matches_name(name):
                continue
            # A file that is itself a required sibling does not need its own.
            if sibling.stem_of(name) is not None:
                continue
            for expected in sibling.expand(PurePosixPath(name).stem):
                if expected not in present:
                    violations.append(
                        Violation(
                            kind="missing_sibling",
                            status=status,
                            observed=0,
                            limit=1,
                            subject=name,
                            detail=f"requires sibling '{expected}'",
                        )
                    )
        return violations

    stems = sorted({stem for name in files if (stem := sibling.stem_of(name)) is not None})
    for stem in stems:
        expected = sibling.expand(stem)
        missing = [name for name in expected if name not in present]
        if missing and len(missing) < len(expected):
            violations.append(
                Violation(
                    kind="group_incomplete",
                    status=status,
                    observed=len(expected) - len(missing),
                    limit=len(expected),
                    subject=stem,
                    detail=f"group '{stem}' is missing {', '.join(missing)}",
                )
            )
    return violations


def _provenance(limits: StructureLimits) -> RuleProvenance:
    rule = limits.rule
    if rule is None:
        return RuleProvenance.default()
    return RuleProvenance(
        source="structure.rules", index=rule.index, pattern=rule.pattern, reason=rule.reason
    )
