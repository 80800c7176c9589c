"""CLI entrypoint for spec-gov."""

from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, NoReturn, TypeVar

import typer
from loguru import logger

from spec_gov import __version__
from spec_gov.config import (
    AppConfig,
    ConfigError,
    default_config_template,
    load_app_config,
    require_api_key,
    require_webhook_url,
    require_workspace_id,
)
from spec_gov.dashboard import render_dashboard
from spec_gov.linter import Linter
from spec_gov.log import configure_logging
from spec_gov.notifier import Notifier
from spec_gov.output import render_failures, render_human
from spec_gov.registry import RegistryClient, RegistryError, RegistrySpec
from spec_gov.report import (
    ReportEntry,
    ReportError,
    build_directory_report,
    build_workspace_report,
    read_report,
    report_to_json,
    score_file,
    score_spec,
    write_report,
)
from spec_gov.sync import (
    BatchOutcome,
    build_spec_ids,
    generate_all_collections,
    generate_collection_for,
    reupload,
    upload_directory,
    upload_file,
    write_spec_ids,
)

T = TypeVar("T")

app = typer.Typer(
    name="spec-gov",
    no_args_is_help=True,
    help="Lint, score, and report on OpenAPI specs hosted in a spec registry.",
)

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to config TOML file."),
]
WorkspaceOption = Annotated[
    str | None,
    typer.Option("--workspace", "-w", help="Registry workspace id (overrides env/config)."),
]
ThresholdOption = Annotated[
    int | None,
    typer.Option("--threshold", "-t", min=0, max=100, help="Minimum passing score."),
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
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging.")] = False,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Only log errors.")] = False,
    log_json: Annotated[
        bool, typer.Option("--log-json", help="Emit log records as JSON lines on stderr.")
    ] = False,
) -> None:
    """Root command callback."""
    _ = version
    level = "DEBUG" if verbose else "ERROR" if quiet else "INFO"
    configure_logging(level, json=log_json)


@app.command("score")
def score_command(
    spec_dir: Annotated[
        Path | None, typer.Option("--dir", "-d", help="Directory containing spec files.")
    ] = None,
    spec_file: Annotated[
        Path | None, typer.Option("--file", "--api", "-a", help="Single spec file to analyze.")
    ] = None,
    workspace: Annotated[
        str | None, typer.Option("--workspace", "-w", help="Score every spec in a workspace.")
    ] = None,
    spec_id: Annotated[str | None, typer.Option("--spec", help="Single registry spec id.")] = None,
    threshold: ThresholdOption = None,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write HTML dashboard to file.")
    ] = None,
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Print the JSON report instead of a summary.")
    ] = False,
    report_file: Annotated[
        Path | None, typer.Option("--report", help="Also write the JSON report to file.")
    ] = None,
    notify: Annotated[
        bool, typer.Option("--notify", help="Send a batch summary to the Teams webhook.")
    ] = False,
    config_file: ConfigOption = None,
) -> None:
    """Score specs and exit nonzero if any is below threshold."""
    selected = [item for item in (spec_dir, spec_file, workspace, spec_id) if item is not None]
    if len(selected) > 1:
        raise typer.BadParameter("Use only one of --dir, --file, --workspace, --spec.")

    app_config = _load_config_or_raise(config_file, workspace=workspace)
    resolved_threshold = threshold if threshold is not None else app_config.threshold
    api_key = _require(require_api_key, app_config)
    if notify:
        _require(require_webhook_url, app_config)
    linter = _build_linter(app_config, api_key)

    async def run() -> list[ReportEntry]:
        if spec_file is not None:
            return [await score_file(linter, spec_file, resolved_threshold)]
        if spec_id is not None:
            spec = RegistrySpec(id=spec_id, name=spec_id)
            return [await score_spec(linter, spec, resolved_threshold)]
        if workspace is not None:
            async with _build_registry(app_config) as registry:
                return await build_workspace_report(registry, linter, resolved_threshold)
        directory = spec_dir if spec_dir is not None else Path(app_config.specs_dir)
        return await build_directory_report(linter, directory, resolved_threshold)

    report = _run(run)

    if report_file is not None:
        write_report(report, report_file)
        logger.info("Report saved to {}", report_file)
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(render_dashboard(report), encoding="utf-8")
        logger.info("Dashboard saved to {}", output)

    if json_output:
        typer.echo(report_to_json(report))
    else:
        typer.echo(render_human(report, threshold=resolved_threshold))

    delivered = True
    if notify:
        delivered = _run(
            lambda: _build_notifier(app_config).send_batch(
                report,
                threshold=resolved_threshold,
                max_details=app_config.notify.max_details,
                dashboard_url=app_config.notify.dashboard_url,
            )
        )
        if not delivered:
            typer.echo("Error: Failed to send batch summary", err=True)

    failures = render_failures(report, threshold=resolved_threshold)
    if failures is not None:
        typer.echo(failures, err=True)
    if failures is not None or not delivered:
        raise typer.Exit(code=1)


@app.command("upload")
def upload_command(
    spec_file: Annotated[Path, typer.Argument(help="OpenAPI spec file to upload.")],
    name: Annotated[str | None, typer.Option(help="Spec name (default: from file name).")] = None,
    workspace: WorkspaceOption = None,
    config_file: ConfigOption = None,
) -> None:
    """Upload one spec file to the registry."""
    app_config = _registry_config_or_exit(config_file, workspace)

    async def run() -> BatchOutcome:
        async with _build_registry(app_config) as registry:
            return await upload_file(registry, spec_file, name=name)

    _echo_outcomes([_run(run)])


@app.command("upload-all")
def upload_all_command(
    spec_dir: Annotated[
        Path | None, typer.Option("--dir", "-d", help="Directory of YAML specs.")
    ] = None,
    workspace: WorkspaceOption = None,
    config_file: ConfigOption = None,
) -> None:
    """Upload every YAML spec in a directory, one at a time."""
    app_config = _registry_config_or_exit(config_file, workspace)
    directory = spec_dir if spec_dir is not None else Path(app_config.specs_dir)

    async def run() -> list[BatchOutcome]:
        async with _build_registry(app_config) as registry:
            return await upload_directory(registry, directory, exclude=app_config.exclude)

    _echo_outcomes(_run(run))


@app.command("list")
def list_command(
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Print JSON.")] = False,
    workspace: WorkspaceOption = None,
    config_file: ConfigOption = None,
) -> None:
    """List specs in the workspace."""
    app_config = _registry_config_or_exit(config_file, workspace)

    async def run() -> list[RegistrySpec]:
        async with _build_registry(app_config) as registry:
            return await registry.list_specs()

    specs = _run(run)
    if json_output:
        typer.echo(json.dumps([spec.to_dict() for spec in specs], indent=2))
        return
    lines = [f"Found {len(specs)} specs in workspace:"]
    lines.extend(f"- {spec.name} (ID: {spec.id})" for spec in specs)
    typer.echo("\n".join(lines))


@app.command("delete")
def delete_command(
    spec_id: Annotated[str, typer.Argument(help="Registry spec id.")],
    config_file: ConfigOption = None,
) -> None:
    """Delete a spec from the registry (already-deleted counts as success)."""
    app_config = _load_config_or_raise(config_file)
    _require(require_api_key, app_config)

    async def run() -> None:
        async with _build_registry(app_config) as registry:
            await registry.delete_spec(spec_id)

    _run(run)
    typer.echo(f"Deleted spec: {spec_id}")


@app.command("reupload")
def reupload_command(
    spec_file: Annotated[Path, typer.Argument(help="OpenAPI spec file to replace.")],
    workspace: WorkspaceOption = None,
    config_file: ConfigOption = None,
) -> None:
    """Delete the same-named spec (if any) and upload the file again."""
    app_config = _registry_config_or_exit(config_file, workspace)

    async def run() -> BatchOutcome:
        async with _build_registry(app_config) as registry:
            return await reupload(registry, spec_file)

    _echo_outcomes([_run(run)])


@app.command("generate-collection")
def generate_collection_command(
    spec_id: Annotated[str | None, typer.Argument(help="Registry spec id.")] = None,
    all_specs: Annotated[
        bool, typer.Option("--all", help="Generate for every spec in the workspace.")
    ] = False,
    interval: Annotated[
        float, typer.Option(min=0.0, help="Seconds between task status polls.")
    ] = 2.0,
    max_attempts: Annotated[
        int, typer.Option(min=1, help="Polls before giving up on a task.")
    ] = 30,
    workspace: WorkspaceOption = None,
    config_file: ConfigOption = None,
) -> None:
    """Generate collections from specs and wait for the tasks to finish."""
    if (spec_id is None) == (not all_specs):
        raise typer.BadParameter("Provide a spec id or --all, not both.")

    app_config = _load_config_or_raise(config_file, workspace=workspace)
    _require(require_api_key, app_config)
    if all_specs:
        _require(require_workspace_id, app_config)

    async def run() -> list[BatchOutcome]:
        async with _build_registry(app_config) as registry:
            if spec_id is not None:
                spec = RegistrySpec(id=spec_id, name=spec_id)
                return [
                    await generate_collection_for(
                        registry, spec, interval=interval, max_attempts=max_attempts
                    )
                ]
            return await generate_all_collections(
                registry, interval=interval, max_attempts=max_attempts
            )

    _echo_outcomes(_run(run))


@app.command("sync-ids")
def sync_ids_command(
    spec_dir: Annotated[
        Path | None, typer.Option("--dir", "-d", help="Directory of local spec files.")
    ] = None,
    out: Annotated[Path, typer.Option(help="Output path.")] = Path("spec-ids.json"),
    workspace: WorkspaceOption = None,
    config_file: ConfigOption = None,
) -> None:
    """Write spec-ids.json mapping workspace specs to local files."""
    app_config = _registry_config_or_exit(config_file, workspace)
    directory = spec_dir if spec_dir is not None else Path(app_config.specs_dir)

    async def run() -> list[RegistrySpec]:
        async with _build_registry(app_config) as registry:
            return await registry.list_specs()

    specs = _run(run)
    payload = build_spec_ids(specs, directory, app_config.registry.workspace_id or "")
    write_spec_ids(payload, out)
    lines = [f"Updated {out} with {len(specs)} specs", "Spec mappings:"]
    lines.extend(f"  {item['name']} -> {item['file']}" for item in payload["specs"])
    typer.echo("\n".join(lines))


@app.command("notify")
def notify_command(
    webhook: Annotated[
        str | None, typer.Option("--webhook", help="Teams webhook URL (or TEAMS_WEBHOOK_URL).")
    ] = None,
    api: Annotated[str | None, typer.Option("--api", "-a", help="API name.")] = None,
    score: Annotated[int, typer.Option("--score", "-s", min=0, max=100)] = 0,
    violations: Annotated[int, typer.Option("--violations", min=0)] = 0,
    link: Annotated[str | None, typer.Option("--link", "-l", help="Registry link.")] = None,
    batch: Annotated[
        Path | None, typer.Option("--batch", "-b", help="Send batch summary from report JSON.")
    ] = None,
    threshold: ThresholdOption = None,
    config_file: ConfigOption = None,
) -> None:
    """Send a governance card to the Teams channel."""
    if batch is None and api is None:
        raise typer.BadParameter("Must specify either --batch or --api.")

    app_config = _load_config_or_raise(config_file)
    if webhook:
        app_config.notify.webhook_url = webhook
    _require(require_webhook_url, app_config)
    resolved_threshold = threshold if threshold is not None else app_config.threshold
    notifier = _build_notifier(app_config)

    if batch is not None:
        try:
            report = read_report(batch)
        except (OSError, ValueError) as exc:
            _fail(f"Error reading batch file: {exc}")
        sent = _run(
            lambda: notifier.send_batch(
                report,
                threshold=resolved_threshold,
                max_details=app_config.notify.max_details,
                dashboard_url=app_config.notify.dashboard_url,
            )
        )
        if not sent:
            _fail("Failed to send batch summary")
        typer.echo("Batch summary sent successfully")
        return

    name = api or "Unknown API"
    sent = _run(
        lambda: notifier.send_spec(
            name,
            score,
            violations,
            threshold=resolved_threshold,
            link=link,
            submitted_by=os.environ.get("USER") or os.environ.get("BUILD_REQUESTEDFOR") or "System",
            report_url=os.environ.get("BUILD_URL")
            or os.environ.get("SYSTEM_TEAMFOUNDATIONCOLLECTIONURI"),
        )
    )
    if not sent:
        _fail("Failed to send notification")
    typer.echo(f"Notification sent for {name} (Score: {score}/100)")


@app.command("config")
def config_command(
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: ConfigOption = None,
) -> None:
    """Show resolved configuration (secrets masked)."""
    output_format = format.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")

    payload = _load_config_or_raise(config_file).to_dict()
    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [
        "Resolved configuration:",
        f"- source: {payload['source'] or 'defaults'}",
        f"- threshold: {payload['threshold']}",
        f"- specs_dir: {payload['specs_dir']}",
        f"- registry.base_url: {payload['registry']['base_url']}",
        f"- registry.workspace_id: {payload['registry']['workspace_id']}",
        f"- lint.command: {payload['lint']['command']}",
        f"- retry.max_retries: {payload['retry']['max_retries']}",
        f"- notify.webhook_url: {payload['notify']['webhook_url']}",
        f"- api_key: {payload['api_key']}",
    ]
    typer.echo("\n".join(lines))


@app.command("config-init")
def config_init_command(
    out: Annotated[Path, typer.Option(help="Output path for starter config TOML.")] = Path(
        ".spec-gov.toml"
    ),
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite if file already exists."),
    ] = False,
) -> None:
    """Create a starter config file."""
    out_path = out.resolve()
    if out_path.exists() and not force:
        raise typer.BadParameter(
            f"Refusing to overwrite existing file: {out_path}. Use --force to overwrite."
        )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(default_config_template(), encoding="utf-8")
    typer.echo(f"Wrote starter config: {out_path}")


def main() -> None:
    """Console script entrypoint."""
    app()


def _build_linter(app_config: AppConfig, api_key: str) -> Linter:
    return Linter(app_config.lint.command, api_key=api_key, timeout=app_config.lint.timeout)


def _build_registry(app_config: AppConfig) -> RegistryClient:
    return RegistryClient(
        app_config.api_key or "",
        app_config.registry.workspace_id,
        base_url=app_config.registry.base_url,
        timeout=app_config.registry.timeout,
        retry=app_config.retry.to_retry_config(),
    )


def _build_notifier(app_config: AppConfig) -> Notifier:
    return Notifier(app_config.notify.webhook_url or "")


def _load_config_or_raise(config_file: Path | None, *, workspace: str | None = None) -> AppConfig:
    try:
        app_config = load_app_config(Path("."), config_path=config_file)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc
    if workspace:
        app_config.registry.workspace_id = workspace
    return app_config


def _registry_config_or_exit(config_file: Path | None, workspace: str | None) -> AppConfig:
    app_config = _load_config_or_raise(config_file, workspace=workspace)
    _require(require_api_key, app_config)
    _require(require_workspace_id, app_config)
    return app_config


def _require(check: Callable[[AppConfig], str], app_config: AppConfig) -> str:
    try:
        return check(app_config)
    except ConfigError as exc:
        _fail(str(exc))


def _run(factory: Callable[[], Awaitable[T]]) -> T:
    """Run one coroutine to completion, mapping runtime failures to exit code 1."""

    async def runner() -> T:
        return await factory()

    try:
        return asyncio.run(runner())
    except (RegistryError, ReportError, OSError) as exc:
        _fail(str(exc))


def _echo_outcomes(outcomes: list[BatchOutcome]) -> None:
    failed = [item for item in outcomes if not item.ok]
    for item in outcomes:
        if item.ok:
            suffix = f" (task {item.task.task_id}: {item.task.state.value})" if item.task else ""
            typer.echo(f"[OK] {item.name} -> {item.spec_id}{suffix}")
        else:
            typer.echo(f"[FAILED] {item.name}: {item.error}", err=True)
    if failed:
        raise typer.Exit(code=1)


def _fail(message: str) -> NoReturn:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)
