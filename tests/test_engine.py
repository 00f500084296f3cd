"""Tests for the parallel check runner and observation parsing."""

from __future__ import annotations

from datetime import date

import pytest

from sloc_guard.baseline import Baseline
from sloc_guard.config import config_from_mapping
from sloc_guard.content import FileMetrics
from sloc_guard.engine import (
    CheckRun,
    Observations,
    ProgressCounter,
    StaticMetrics,
    run_checks,
)
from sloc_guard.rules import RuleIndex, build_rule_index
from sloc_guard.rules.base import Status
from sloc_guard.structure import DirStats

TODAY = date(2026, 3, 1)


def _index() -> RuleIndex:
    mapping = {
        "content": {"extensions": ["rs", "py"], "max_lines": 100},
        "structure": {"max_files": 3},
    }
    return build_rule_index(config_from_mapping(mapping), today=TODAY)


def _metrics(code: int, digest: str = "h") -> FileMetrics:
    return FileMetrics(total=code, code=code, comment=0, blank=0, hash=digest)


class FlakyMetrics:
    def __init__(self, metrics: dict[str, FileMetrics]) -> None:
        self._metrics = metrics

    def metrics(self, path: str) -> FileMetrics:
        if path == "src/locked.rs":
            raise PermissionError(13, "Permission denied", path)
        return self._metrics[path]


def test_run_checks_evaluates_files_and_dirs_in_stable_order() -> None:
    metrics = StaticMetrics(
        {
            "src/z.rs": _metrics(50),
            "src/a.rs": _metrics(150),
            "README.md": _metrics(5000),
        }
    )
    dirs = {"src": DirStats.from_listing(["a.rs", "z.rs", "b.rs", "c.rs"], [], depth=1)}
    seen: list[int] = []

    run = run_checks(
        _index(),
        files=["src/z.rs", "README.md", "src/a.rs"],
        dirs=dirs,
        metrics=metrics,
        workers=4,
        progress=ProgressCounter(seen.append),
    )

    assert [(verdict.path, verdict.target) for verdict in run.verdicts] == [
        ("src", "structure"),
        ("src/a.rs", "content"),
        ("src/z.rs", "content"),
    ]
    assert run.count(Status.FAILED) == 2
    assert run.has_failures()
    assert sorted(seen) == [1, 2, 3]


def test_io_errors_become_path_errors() -> None:
    metrics = FlakyMetrics({"src/ok.rs": _metrics(10)})

    run = run_checks(_index(), files=["src/ok.rs", "src/locked.rs"], metrics=metrics)

    assert [verdict.path for verdict in run.verdicts] == ["src/ok.rs"]
    assert len(run.errors) == 1
    assert run.errors[0].path == "src/locked.rs"
    assert "Permission denied" in run.errors[0].message
    assert not run.has_failures()


def test_static_metrics_missing_path_is_reported_not_raised() -> None:
    run = run_checks(_index(), files=["src/ghost.rs"], metrics=StaticMetrics({}))
    assert run.verdicts == []
    assert run.errors[0].to_dict()["error"] == "no metrics recorded for src/ghost.rs"


def test_files_without_metrics_provider_is_a_usage_error() -> None:
    with pytest.raises(ValueError, match="metrics provider is required"):
        run_checks(_index(), files=["src/a.rs"])


def test_warnings_as_errors_and_ratchet_summary() -> None:
    baseline = Baseline()
    baseline.set_content("src/gone.rs", 500, "x")
    metrics = StaticMetrics({"src/near.rs": _metrics(90)})

    run = run_checks(_index(), files=["src/near.rs"], metrics=metrics, baseline=baseline)

    assert run.count(Status.WARNING) == 1
    assert not run.has_failures()
    assert run.has_failures(warnings_as_errors=True)
    payload = run.to_dict()
    assert payload["summary"] == {"passed": 0, "warning": 1, "failed": 0, "grandfathered": 0}
    assert payload["ratchet"] == {"stale_entry_count": 1, "stale_paths": ["src/gone.rs"]}


def test_empty_run_has_no_failures() -> None:
    run = CheckRun()
    assert not run.has_failures(warnings_as_errors=True)
    assert run.to_dict()["verdicts"] == []


def test_observations_from_dict_normalizes_paths_and_counts() -> None:
    observations = Observations.from_dict(
        {
            "files": {
                "./src/a.rs": {"total": 12, "code": 8, "comment": 2, "blank": 2, "hash": "h"}
            },
            "dirs": {"src": {"files": ["a.rs", "b.rs"], "dirs": ["util"], "depth": 1}},
        }
    )

    assert observations.files["src/a.rs"] == FileMetrics(12, 8, 2, 2, "h")
    stats = observations.dirs["src"]
    assert stats.file_count == 2
    assert stats.dir_count == 1
    assert stats.files == ("a.rs", "b.rs")


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ([], "observations must be a JSON object"),
        ({"files": []}, "observations.files must be an object"),
        ({"files": {"a.rs": {"total": -1}}}, "total must be a non-negative integer"),
    ],
)
def test_observations_reject_bad_shapes(payload: object, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        Observations.from_dict(payload)
