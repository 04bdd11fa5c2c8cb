"""CLI entrypoint for docklint."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer

from docklint import __version__
from docklint.config import AppConfig, default_config_template, load_app_config
from docklint.dockerfile_parser import (
    ParsedDockerfile,
    ParseError,
    load_dockerfile,
    parse_dockerfile,
)
from docklint.engine import RuleEngine, analyze
from docklint.fs import LocalFileSystem
from docklint.output import EXIT_ERROR, exit_code, render, render_json
from docklint.rules import RuleOptions, build_rules, list_rule_info
from docklint.rules.base import Rule

app = typer.Typer(
    name="docklint",
    no_args_is_help=True,
    help="Check Dockerfiles against build best practices.",
)


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
) -> None:
    """Root command callback."""
    _ = version


@app.command("lint")
def lint_command(
    dockerfile: Annotated[
        Path | None,
        typer.Argument(help="Path to the Dockerfile.", show_default="Dockerfile"),
    ] = None,
    stdin: Annotated[bool, typer.Option(help="Read the Dockerfile from stdin.")] = False,
    format: Annotated[
        str | None, typer.Option(help="Output format: text|json.", show_default="text")
    ] = None,
    strict: Annotated[
        bool | None,
        typer.Option("--strict/--no-strict", help="Fail on WARNING findings as well."),
    ] = None,
    output: Annotated[
        Path | None, typer.Option(help="Also write the JSON report to this file.")
    ] = None,
    context: Annotated[
        Path | None, typer.Option(help="Build context directory (defaults to the file's).")
    ] = None,
    ignore_file: Annotated[
        Path | None, typer.Option("--ignore-file", help="Expected ignore file path.")
    ] = None,
    deadline: Annotated[
        float | None, typer.Option(help="Abandon rule evaluation after this many seconds.")
    ] = None,
    workers: Annotated[int | None, typer.Option(help="Rule worker threads.")] = None,
    root: Annotated[Path, typer.Option(help="Project root for config discovery.")] = Path("."),
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
) -> None:
    """Lint a Dockerfile and report findings."""
    _configure_logging(verbose)
    app_config = _load_config_or_raise(root, config_file)
    output_format = (format or app_config.format).lower()
    if output_format not in {"text", "json"}:
        raise typer.BadParameter("format must be one of: json, text", param_hint="--format")
    if dockerfile is not None and stdin:
        raise typer.BadParameter("Use either a DOCKERFILE path or --stdin, not both.")
    if deadline is not None and deadline <= 0:
        raise typer.BadParameter("deadline must be > 0", param_hint="--deadline")
    if workers is not None and workers < 1:
        raise typer.BadParameter("workers must be >= 1", param_hint="--workers")

    dockerfile_path = None if stdin else (dockerfile or Path("Dockerfile"))
    parsed, source = _read_and_parse(dockerfile_path)

    fs = LocalFileSystem()
    options = RuleOptions(
        denylist_base_images=list(app_config.denylist_base_images),
        documentation_threshold=app_config.documentation_threshold,
        fs=fs,
        dockerfile=dockerfile_path,
        context_dir=context,
        ignore_file=ignore_file,
    )
    rules = _build_configured_rules_or_raise(app_config, options)
    engine = RuleEngine(rules, max_workers=workers or app_config.workers)
    report = analyze(
        parsed,
        engine,
        deadline_seconds=deadline if deadline is not None else app_config.deadline_seconds,
        source=source,
    )

    typer.echo(render(report, output_format))
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(render_json(report), encoding="utf-8")

    strict_mode = strict if strict is not None else app_config.strict
    code = exit_code(report, strict=strict_mode)
    if code:
        raise typer.Exit(code=code)


@app.command("rules")
def rules_command(
    root: Annotated[Path, typer.Option(help="Project root for config discovery.")] = Path("."),
    format: Annotated[str, typer.Option(help="Output format: text|json.")] = "text",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """List available rules."""
    output_format = format.lower()
    if output_format not in {"text", "json"}:
        raise typer.BadParameter("format must be one of: json, text", param_hint="--format")

    app_config = _load_config_or_raise(root, config_file)
    active_rules = _build_configured_rules_or_raise(app_config, RuleOptions())
    active_ids = {rule.rule_id for rule in active_rules}
    rule_info = list_rule_info()

    if output_format == "json":
        payload = {
            "rules": [
                {
                    "rule_id": item.rule_id,
                    "name": item.name,
                    "description": item.description,
                    "category": item.category,
                    "severity": item.severity.value,
                    "enabled": item.rule_id in active_ids,
                }
                for item in rule_info
            ],
            "meta": {"config_source": app_config.source},
        }
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = ["Available rules:"]
    for item in rule_info:
        status = "enabled" if item.rule_id in active_ids else "disabled"
        lines.append(
            f"- {item.rule_id} [{status}, {item.severity.value}] - {item.description}"
        )
    typer.echo("\n".join(lines))


@app.command("config")
def config_command(
    root: Annotated[Path, typer.Option(help="Project root for config discovery.")] = Path("."),
    format: Annotated[str, typer.Option(help="Output format: text|json.")] = "text",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Show resolved configuration."""
    output_format = format.lower()
    if output_format not in {"text", "json"}:
        raise typer.BadParameter("format must be one of: json, text", param_hint="--format")

    app_config = _load_config_or_raise(root, config_file)
    active_rules = _build_configured_rules_or_raise(app_config, RuleOptions())
    payload = app_config.to_dict()
    payload["active_rule_ids"] = [rule.rule_id for rule in active_rules]

    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [
        "Resolved configuration:",
        f"- source: {payload['source'] or 'defaults'}",
        f"- format: {payload['format']}",
        f"- strict: {payload['strict']}",
        f"- documentation_threshold: {payload['documentation_threshold']}",
        f"- denylist_base_images: {payload['denylist_base_images']}",
        f"- deadline_seconds: {payload['deadline_seconds']}",
        f"- rules.enable: {payload['rules']['enable']}",
        f"- rules.disable: {payload['rules']['disable']}",
        f"- rules.severity: {payload['rules']['severity']}",
        f"- active_rule_ids: {payload['active_rule_ids']}",
    ]
    typer.echo("\n".join(lines))


@app.command("config-init")
def config_init_command(
    out: Annotated[Path, typer.Option(help="Output path for starter config TOML.")] = Path(
        ".docklint.toml"
    ),
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite if file already exists."),
    ] = False,
) -> None:
    """Create a starter project config file."""
    out_path = out.resolve()
    if out_path.exists() and not force:
        raise typer.BadParameter(
            f"Refusing to overwrite existing file: {out_path}. Use --force to overwrite."
        )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(default_config_template(), encoding="utf-8")
    typer.echo(f"Wrote starter config: {out_path}")


@app.command("config-validate")
def config_validate_command(
    root: Annotated[Path, typer.Option(help="Project root for config discovery.")] = Path("."),
    config_file: Annotated[
        Path,
        typer.Option("--config", help="Path to config TOML file to validate."),
    ] = Path(".docklint.toml"),
    format: Annotated[str, typer.Option(help="Output format: text|json.")] = "text",
) -> None:
    """Validate a config file and report active rules."""
    output_format = format.lower()
    if output_format not in {"text", "json"}:
        raise typer.BadParameter("format must be one of: json, text", param_hint="--format")

    app_config = _load_config_or_raise(root, config_file)
    active_rules = _build_configured_rules_or_raise(app_config, RuleOptions())
    payload = {
        "ok": True,
        "source": app_config.source,
        "active_rule_ids": [rule.rule_id for rule in active_rules],
    }
    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return
    typer.echo(
        "\n".join(
            [
                "Config is valid.",
                f"- source: {payload['source']}",
                f"- active_rule_ids: {payload['active_rule_ids']}",
            ]
        )
    )


def main() -> None:
    """Console script entrypoint."""
    app()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def _read_and_parse(dockerfile: Path | None) -> tuple[ParsedDockerfile, str]:
    source = "stdin" if dockerfile is None else str(dockerfile)
    try:
        if dockerfile is None:
            return (parse_dockerfile(sys.stdin.read()), source)
        return (load_dockerfile(dockerfile, LocalFileSystem()), source)
    except ParseError as exc:
        typer.echo(f"error: {source}: {exc}", err=True)
        raise typer.Exit(code=EXIT_ERROR) from exc
    except OSError as exc:
        typer.echo(f"error: cannot read {source}: {exc.strerror or exc}", err=True)
        raise typer.Exit(code=EXIT_ERROR) from exc


def _load_config_or_raise(root: Path, config_file: Path | None = None) -> AppConfig:
    try:
        return load_app_config(root, config_path=config_file)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc


def _build_configured_rules_or_raise(app_config: AppConfig, options: RuleOptions) -> list[Rule]:
    try:
        return build_rules(
            enabled_rule_ids=app_config.rule_enable,
            disabled_rule_ids=app_config.rule_disable,
            severity_overrides=app_config.severity_overrides,
            options=options,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config.rules") from exc
