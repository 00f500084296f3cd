"""CLI entrypoint for sloc-guard."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Any

import typer

from sloc_guard import __version__
from sloc_guard.baseline import (
    UPDATE_MODES,
    Baseline,
    RatchetDecision,
    apply_ratchet,
    update_baseline,
)
from sloc_guard.config import CONFIG_FILENAME, default_config_template
from sloc_guard.engine import Observations, StaticMetrics, run_checks
from sloc_guard.explain import explain_content, explain_structure
from sloc_guard.expires import collect_expired_rules
from sloc_guard.output import (
    build_run_payload,
    render_config_human,
    render_expired_human,
    render_explanation_human,
    render_json,
    render_ratchet_human,
    render_run_human,
    render_sources_human,
)
from sloc_guard.presets import available_presets
from sloc_guard.project import baseline_path, discover_project_root
from sloc_guard.remote import FetchPolicy, RemoteConfigCache, RemoteFetcher
from sloc_guard.resolver import ConfigResolver, ResolvedConfig, load_configuration
from sloc_guard.rules import RuleIndex, build_rule_index

app = typer.Typer(
    name="sloc-guard",
    no_args_is_help=True,
    help="Resolve and enforce per-file line limits and per-directory structure limits.",
)

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to config TOML file."),
]
RepoOption = Annotated[Path, typer.Option(help="Repository path.")]
FormatOption = Annotated[str, typer.Option(help="Output format: human|json.")]
NoExtendsOption = Annotated[
    bool, typer.Option("--no-extends", help="Ignore extends and use the root file alone.")
]
OfflineOption = Annotated[
    bool, typer.Option("--offline", help="Use cached remote configs only.")
]
RefreshOption = Annotated[
    bool, typer.Option("--refresh", help="Bypass the remote config cache.")
]


def version_callback(value: bool) -> None:
    """Print version and exit when --version is provided."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option("--version", help="Show version and exit.", callback=version_callback),
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log resolution details to stderr.")
    ] = False,
) -> None:
    """Root command callback."""
    _ = version
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command("check")
def check_command(
    observations: Annotated[
        Path,
        typer.Option(help="JSON file with file metrics and directory stats from a scanner."),
    ],
    repo: RepoOption = Path("."),
    config_file: ConfigOption = None,
    format: FormatOption = "human",
    baseline: Annotated[
        Path | None, typer.Option(help="Baseline file (default: <root>/.sloc-guard-baseline.json).")
    ] = None,
    update_baseline_mode: Annotated[
        str | None,
        typer.Option("--update-baseline", help="Rewrite the baseline: all|content|structure|new."),
    ] = None,
    warnings_as_errors: Annotated[
        bool, typer.Option("--warnings-as-errors", help="Exit nonzero on warnings too.")
    ] = False,
    workers: Annotated[int, typer.Option(help="Worker threads for evaluation.")] = 8,
    offline: OfflineOption = False,
    refresh: RefreshOption = False,
) -> None:
    """Evaluate scanner observations against the resolved rules."""
    output_format = _output_format(format)
    if update_baseline_mode is not None and update_baseline_mode not in UPDATE_MODES:
        choices = ", ".join(sorted(UPDATE_MODES))
        raise typer.BadParameter(
            f"--update-baseline must be one of: {choices}", param_hint="--update-baseline"
        )

    resolved = _load_config_or_raise(repo, config_file, offline=offline, refresh=refresh)
    config = resolved.config
    index = _build_index_or_raise(resolved)
    observed = _load_observations_or_raise(observations)

    root = discover_project_root(repo)
    baseline_file = baseline if baseline is not None else baseline_path(root)
    existing = _load_baseline_or_raise(baseline_file)

    run = run_checks(
        index,
        files=sorted(observed.files),
        dirs=observed.dirs,
        metrics=StaticMetrics(observed.files),
        baseline=existing,
        workers=workers,
    )

    decision: RatchetDecision | None = None
    if existing is not None and config.baseline.ratchet is not None:
        decision = apply_ratchet(existing, run.ratchet, config.baseline.ratchet, baseline_file)

    if update_baseline_mode is not None:
        updated = update_baseline(run.verdicts, update_baseline_mode, existing)
        outcome = updated.save(baseline_file)
        typer.echo(f"Baseline {outcome.value}: {baseline_file} ({len(updated)} entries)", err=True)

    if output_format == "json":
        payload = build_run_payload(run, config_source=config.source)
        payload["ratchet_decision"] = decision.to_dict() if decision else None
        typer.echo(render_json(payload))
    else:
        typer.echo(render_run_human(run))
        if decision is not None and decision.outcome.is_stale:
            typer.echo(render_ratchet_human(decision))

    strict = warnings_as_errors or config.check.warnings_as_errors
    if run.has_failures(warnings_as_errors=strict) or (decision is not None and decision.failed):
        raise typer.Exit(code=1)


@app.command("explain")
def explain_command(
    path: Annotated[str, typer.Argument(help="Path relative to the repository root.")],
    repo: RepoOption = Path("."),
    config_file: ConfigOption = None,
    format: FormatOption = "human",
    directory: Annotated[
        bool, typer.Option("--dir", help="Explain structure rules for a directory.")
    ] = False,
    sources: Annotated[
        bool, typer.Option("--sources", help="Also list the config sources that were merged.")
    ] = False,
    offline: OfflineOption = False,
) -> None:
    """Show which rule governs a path and the effective limits."""
    output_format = _output_format(format)
    resolved = _load_config_or_raise(repo, config_file, offline=offline)
    index = _build_index_or_raise(resolved)
    explanation = explain_structure(index, path) if directory else explain_content(index, path)

    if output_format == "json":
        payload: dict[str, Any] = explanation.to_dict()
        if sources:
            payload["sources"] = [fragment.source.to_dict() for fragment in resolved.sources]
        typer.echo(render_json(payload))
        return
    typer.echo(render_explanation_human(explanation))
    if sources:
        typer.echo(render_sources_human(resolved))


@app.command("config")
def config_command(
    repo: RepoOption = Path("."),
    config_file: ConfigOption = None,
    format: FormatOption = "human",
    no_extends: NoExtendsOption = False,
    offline: OfflineOption = False,
    refresh: RefreshOption = False,
) -> None:
    """Show resolved configuration."""
    output_format = _output_format(format)
    resolved = _load_config_or_raise(
        repo, config_file, follow_extends=not no_extends, offline=offline, refresh=refresh
    )
    if output_format == "json":
        typer.echo(render_json(resolved.to_dict()))
        return
    typer.echo(render_config_human(resolved))


@app.command("config-init")
def config_init_command(
    out: Annotated[Path, typer.Option(help="Output path for starter config TOML.")] = Path(
        CONFIG_FILENAME
    ),
    preset: Annotated[
        str | None, typer.Option(help="Start from a built-in preset via extends.")
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite if file already exists."),
    ] = False,
) -> None:
    """Create a starter repository config file."""
    out_path = out.resolve()
    if out_path.exists() and not force:
        raise typer.BadParameter(
            f"Refusing to overwrite existing file: {out_path}. Use --force to overwrite."
        )
    template = default_config_template()
    if preset is not None:
        if preset not in available_presets():
            choices = ", ".join(available_presets())
            raise typer.BadParameter(f"--preset must be one of: {choices}", param_hint="--preset")
        template = template.replace(
            '# extends = "preset:python-strict"', f'extends = "preset:{preset}"'
        )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(template, encoding="utf-8")
    typer.echo(f"Wrote starter config: {out_path}")


@app.command("config-validate")
def config_validate_command(
    repo: RepoOption = Path("."),
    config_file: Annotated[
        Path,
        typer.Option("--config", help="Path to config TOML file to validate."),
    ] = Path(CONFIG_FILENAME),
    format: FormatOption = "human",
    offline: OfflineOption = False,
) -> None:
    """Validate a config file, including its extends chain and patterns."""
    output_format = _output_format(format)
    resolved = _load_config_or_raise(repo, config_file, offline=offline)
    index = _build_index_or_raise(resolved)
    expired = collect_expired_rules(resolved.config, index.today)
    payload = {
        "ok": True,
        "source": resolved.config.source,
        "sources": [fragment.source.label for fragment in resolved.sources],
        "content_rules": len(resolved.config.content.rules),
        "structure_rules": len(resolved.config.structure.rules),
        "expired_rules": len(expired),
    }
    if output_format == "json":
        typer.echo(render_json(payload))
        return
    typer.echo(
        "\n".join(
            [
                "Config is valid.",
                f"- source: {payload['source']}",
                f"- sources: {payload['sources']}",
                f"- content_rules: {payload['content_rules']}",
                f"- structure_rules: {payload['structure_rules']}",
                f"- expired_rules: {payload['expired_rules']}",
            ]
        )
    )


@app.command("presets")
def presets_command(format: FormatOption = "human") -> None:
    """List built-in presets usable as `extends = "preset:<name>"`."""
    output_format = _output_format(format)
    names = available_presets()
    if output_format == "json":
        typer.echo(render_json({"presets": names}))
        return
    typer.echo("\n".join(["Available presets:", *(f"- {name}" for name in names)]))


@app.command("expired")
def expired_command(
    repo: RepoOption = Path("."),
    config_file: ConfigOption = None,
    format: FormatOption = "human",
    fail: Annotated[
        bool, typer.Option("--fail", help="Exit nonzero when any rule has expired.")
    ] = False,
) -> None:
    """List rules whose `expires` date has passed."""
    output_format = _output_format(format)
    resolved = _load_config_or_raise(repo, config_file)
    expired = collect_expired_rules(resolved.config)
    if output_format == "json":
        typer.echo(render_json({"expired": [rule.to_dict() for rule in expired]}))
    else:
        typer.echo(render_expired_human(expired))
    if fail and expired:
        raise typer.Exit(code=1)


@app.command("cache-clear")
def cache_clear_command(
    cache_dir: Annotated[
        Path | None, typer.Option(help="Remote config cache directory.")
    ] = None,
) -> None:
    """Remove cached remote configs."""
    removed = RemoteConfigCache(cache_dir).clear()
    typer.echo(f"Removed {removed} cached remote config(s).")


def main() -> None:
    """Console script entrypoint."""
    app()


def _output_format(value: str) -> str:
    output_format = value.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")
    return output_format


def _load_config_or_raise(
    repo: Path,
    config_file: Path | None = None,
    *,
    follow_extends: bool = True,
    offline: bool = False,
    refresh: bool = False,
) -> ResolvedConfig:
    if offline and refresh:
        raise typer.BadParameter("Use either --offline or --refresh, not both.")
    policy = FetchPolicy.NORMAL
    if offline:
        policy = FetchPolicy.OFFLINE
    elif refresh:
        policy = FetchPolicy.FORCE_REFRESH
    resolver = ConfigResolver(
        fetcher=RemoteFetcher(policy=policy), follow_extends=follow_extends
    )
    try:
        return load_configuration(repo, config_file, resolver=resolver)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc


def _build_index_or_raise(resolved: ResolvedConfig) -> RuleIndex:
    try:
        return build_rule_index(resolved.config)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc


def _load_observations_or_raise(path: Path) -> Observations:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        return Observations.from_dict(payload)
    except OSError as exc:
        raise typer.BadParameter(
            f"Cannot read observations file {path}: {exc}", param_hint="--observations"
        ) from exc
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--observations") from exc


def _load_baseline_or_raise(path: Path) -> Baseline | None:
    try:
        return Baseline.load_optional(path)
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(str(exc), param_hint="--baseline") from exc
