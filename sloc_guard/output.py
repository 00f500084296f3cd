"""Output rendering."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import click

from sloc_guard import __version__
from sloc_guard.baseline import RatchetDecision
from sloc_guard.engine import CheckRun
from sloc_guard.explain import Explanation
from sloc_guard.expires import ExpiredRule
from sloc_guard.resolver import ResolvedConfig
from sloc_guard.rules.base import MatchStatus, Status

_STATUS_COLORS = {
    Status.PASSED: "green",
    Status.WARNING: "yellow",
    Status.FAILED: "red",
    Status.GRANDFATHERED: "cyan",
}
_MATCH_COLORS = {
    MatchStatus.MATCHED: "green",
    MatchStatus.SUPERSEDED: "yellow",
    MatchStatus.NO_MATCH: None,
    MatchStatus.EXPIRED: "magenta",
}


def render_json(payload: dict[str, Any]) -> str:
    """Render stable JSON output for CI and automation."""
    return json.dumps(payload, sort_keys=True)


def build_run_payload(run: CheckRun, *, config_source: str | None) -> dict[str, Any]:
    payload = run.to_dict()
    payload["meta"] = {
        "generated_at": datetime.now(tz=UTC)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z"),
        "config_source": config_source,
        "version": __version__,
    }
    return payload


def render_run_human(run: CheckRun, *, show_passed: bool = False) -> str:
    """Render a compact colorized summary of a check run."""
    lines: list[str] = []
    for verdict in run.verdicts:
        if verdict.status is Status.PASSED and not show_passed:
            continue
        label = click.style(verdict.status.value.upper(), fg=_STATUS_COLORS[verdict.status])
        limit = "unlimited" if verdict.limit in (None, -1) else str(verdict.limit)
        lines.append(f"{label} [{verdict.target}] {verdict.path} ({verdict.observed}/{limit})")
        for violation in verdict.violations:
            subject = f" {violation.subject}:" if violation.subject else ""
            lines.append(f"   - {violation.kind}{subject} {violation.detail}")
        if verdict.provenance.reason:
            lines.append(f"   reason: {verdict.provenance.reason}")
    for error in run.errors:
        lines.append(click.style(f"ERROR [{error.target}] {error.path}: {error.message}", fg="red"))

    summary = ", ".join(f"{run.count(status)} {status.value}" for status in Status)
    lines.append(click.style(f"Summary: {summary}", bold=True))
    if run.ratchet.is_stale:
        lines.append(
            click.style(
                f"Baseline: {run.ratchet.stale_entry_count} stale entries can be tightened",
                fg="yellow",
            )
        )
    return "\n".join(lines)


def render_config_human(resolved: ResolvedConfig) -> str:
    config = resolved.config
    content = config.content
    structure = config.structure
    lines = [
        click.style("Resolved configuration:", bold=True),
        f"- source: {config.source or 'defaults'}",
        f"- version: {config.version}",
        f"- preset: {resolved.preset_used or 'none'}",
        f"- scanner.exclude: {config.scanner.exclude}",
        f"- content.extensions: {content.extensions}",
        f"- content.max_lines: {content.max_lines}",
        f"- content.warn_threshold: {content.warn_threshold}",
        f"- content.warn_at: {content.warn_at}",
        f"- content.rules: {len(content.rules)}",
        f"- structure.max_files: {structure.max_files}",
        f"- structure.max_dirs: {structure.max_dirs}",
        f"- structure.max_depth: {structure.max_depth}",
        f"- structure.rules: {len(structure.rules)}",
        f"- baseline.ratchet: {config.baseline.ratchet}",
    ]
    return "\n".join(lines)


def render_sources_human(resolved: ResolvedConfig) -> str:
    lines = [click.style("Config sources (base first):", bold=True)]
    if not resolved.sources:
        lines.append("- defaults")
    for position, fragment in enumerate(resolved.sources, start=1):
        lines.append(f"{position}. [{fragment.source.kind}] {fragment.source.label}")
    return "\n".join(lines)


def render_explanation_human(explanation: Explanation) -> str:
    lines = [click.style(f"{explanation.target.title()} rules for {explanation.path}:", bold=True)]
    if explanation.excluded_by == "extension":
        lines.append(
            click.style(
                "Not checked: extension not listed and no content rule matches", fg="yellow"
            )
        )
    elif explanation.excluded_by is not None:
        lines.append(
            click.style(f"Excluded from content checks by '{explanation.excluded_by}'", fg="yellow")
        )
    if not explanation.candidates:
        lines.append("- no rules declared")
    for candidate in explanation.candidates:
        status = click.style(candidate.status.value, fg=_MATCH_COLORS[candidate.status])
        line = f"- [{candidate.index}] {candidate.pattern}: {status}"
        if candidate.reason:
            line += f" (reason: {candidate.reason})"
        if candidate.status is MatchStatus.EXPIRED and candidate.expires is not None:
            line += f" (expired {candidate.expires.isoformat()})"
        lines.append(line)
    if not explanation.checked:
        return "\n".join(lines)
    winner = "default" if explanation.selected is None else f"rule {explanation.selected}"
    lines.append(click.style(f"Effective ({winner}):", bold=True))
    for key in sorted(explanation.effective):
        lines.append(f"- {key}: {explanation.effective[key]}")
    return "\n".join(lines)


def render_expired_human(expired: list[ExpiredRule]) -> str:
    if not expired:
        return click.style("No expired rules.", fg="green")
    lines = [click.style(f"{len(expired)} expired rule(s):", fg="yellow", bold=True)]
    for rule in expired:
        reason = f" - {rule.reason}" if rule.reason else ""
        lines.append(
            f"- {rule.rule_type}.rules[{rule.index}] {rule.pattern} "
            f"(expired {rule.expires.isoformat()}){reason}"
        )
    return "\n".join(lines)


def render_ratchet_human(decision: RatchetDecision) -> str:
    outcome = decision.outcome
    if not outcome.is_stale:
        return click.style("Baseline is tight: no stale entries.", fg="green")
    color = "red" if decision.failed else "yellow"
    lines = [
        click.style(
            f"Baseline has {outcome.stale_entry_count} stale entries (ratchet: {decision.mode})",
            fg=color,
            bold=True,
        )
    ]
    lines.extend(f"- {path}" for path in outcome.stale_paths)
    if decision.save is not None:
        lines.append(f"Baseline update: {decision.save.value}")
    return "\n".join(lines)
