"""Command line interface for apitrail.

Examples:
    apitrail compare --project shop --subproject checkout
    apitrail compare-all --strategy time_window --window-ms 60000
    apitrail history --limit 5
    apitrail reports --limit 3
    apitrail summary --format markdown --format html --no-ai
"""

from __future__ import annotations

import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any, NoReturn

import click
from rich.console import Console
from rich.table import Table

from apitrail.comparison import (
    ComparatorConfig,
    ComparisonStrategy,
    ComparisonUnavailable,
    DiffReport,
    HistoryComparator,
)
from apitrail.config import TrailConfig, load_config, resolve_project_name, resolve_subproject_name
from apitrail.errors import ApiTrailError
from apitrail.narrative import NarrativeGenerator, OpenRouterNarrativeGenerator
from apitrail.observability import configure_logging
from apitrail.reporting import REPORTERS, SummaryAssembler
from apitrail.runlog import RunLog
from apitrail.storage import SessionRepository, SessionStore

logger = logging.getLogger(__name__)

console = Console()
error_console = Console(stderr=True)

_strategy_option = click.option(
    "--strategy",
    type=click.Choice([s.value for s in ComparisonStrategy]),
    help="How runs are told apart (default from config)",
)
_window_option = click.option(
    "--window-ms",
    type=click.IntRange(min=1),
    help="Idle gap in ms separating runs for time_window grouping",
)
_format_option = click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)


def _fail(message: str) -> NoReturn:
    error_console.print(f"[red]{message}[/red]")
    sys.exit(1)


def _open_store(config: TrailConfig) -> SessionRepository:
    repo = SessionRepository(config.database_url)
    repo.initialize()
    return repo


def _resolve_project(store: SessionStore, config: TrailConfig, override: str | None) -> str:
    name = resolve_project_name(config, override=override)
    if override:
        return override
    projects = store.list_projects()
    if name in projects:
        return name
    latest = store.latest_project()
    if latest:
        logger.info(f"No history for project {name!r}, using latest project {latest!r}")
        return latest
    if not name:
        _fail("Could not resolve a project name. Pass --project or set PROJECT_NAME.")
    return name


def _comparator(
    store: SessionStore,
    config: TrailConfig,
    strategy: str | None,
    window_ms: int | None,
) -> HistoryComparator:
    settings = ComparatorConfig.from_settings(config)
    overrides: dict[str, Any] = {}
    if strategy:
        overrides["strategy"] = ComparisonStrategy(strategy)
    if window_ms is not None:
        overrides["time_window_ms"] = window_ms
    if overrides:
        settings = dataclasses.replace(settings, **overrides)
    return HistoryComparator(store, settings)


def _print_result(name: str, result: DiffReport | ComparisonUnavailable) -> None:
    if isinstance(result, ComparisonUnavailable):
        console.print(f"[yellow]{name}: insufficient data ({result.reason})[/yellow]")
        return

    color = {"improvement": "green", "decline": "red"}.get(result.trend.value, "white")
    console.print(
        f"\n[bold]{name}[/bold] [{color}]{result.trend.value} ({result.delta:+.2f})[/{color}]"
    )
    table = Table(show_header=True, header_style="bold")
    table.add_column("Run")
    table.add_column("Label", style="dim")
    table.add_column("Success Rate", justify="right")
    table.add_column("Endpoints", justify="right")
    table.add_column("Failures", justify="right")
    for title, side in (("Previous", result.previous), ("Current", result.current)):
        table.add_row(title, side.label, f"{side.rate:.2f}%", str(side.total), str(side.fails))
    console.print(table)

    for label, keys, style in (
        ("Added", result.added, "cyan"),
        ("Removed", result.removed, "magenta"),
        ("New failures", result.new_failures, "red"),
        ("Recurring failures", result.recurring_failures, "yellow"),
        ("Fixed", result.fixed, "green"),
    ):
        if keys:
            console.print(f"  [{style}]{label}:[/{style}] {', '.join(keys)}")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to config file")
@click.option("--database-url", help="Override the session store URL")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config: str | None,
    database_url: str | None,
    json_logs: bool,
) -> None:
    """apitrail - compare recorded API test runs."""
    ctx.ensure_object(dict)

    try:
        config_obj = load_config(config)
    except ApiTrailError as e:
        _fail(f"Invalid configuration: {e}")
    if database_url:
        config_obj.database_url = database_url

    ctx.obj["config"] = config_obj
    configure_logging(
        level="DEBUG" if verbose else "WARNING",
        json_format=True if json_logs else None,
    )


@cli.command("compare")
@click.option("--project", "-p", help="Project name (default: resolved from environment)")
@click.option("--subproject", "-s", help="Subproject name (default: DefaultSubproject)")
@_strategy_option
@_window_option
@_format_option
@click.pass_context
def compare_cmd(
    ctx: click.Context,
    project: str | None,
    subproject: str | None,
    strategy: str | None,
    window_ms: int | None,
    output_format: str,
) -> None:
    """Compare the latest run of a subproject with the previous one."""
    config: TrailConfig = ctx.obj["config"]
    try:
        with _open_store(config) as store:
            project_name = _resolve_project(store, config, project)
            subproject_name = resolve_subproject_name(config, override=subproject)
            result = _comparator(store, config, strategy, window_ms).compare(
                project_name, subproject_name
            )
    except ApiTrailError as e:
        _fail(f"Error comparing runs: {e}")

    if output_format == "json":
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
        return
    console.print(f"[bold]Project:[/bold] {project_name}")
    _print_result(subproject_name, result)


@cli.command("compare-all")
@click.option("--project", "-p", help="Project name (default: resolved from environment)")
@_strategy_option
@_window_option
@_format_option
@click.pass_context
def compare_all_cmd(
    ctx: click.Context,
    project: str | None,
    strategy: str | None,
    window_ms: int | None,
    output_format: str,
) -> None:
    """Compare every subproject of a project and report the weighted rate."""
    config: TrailConfig = ctx.obj["config"]
    try:
        with _open_store(config) as store:
            project_name = _resolve_project(store, config, project)
            overview = _comparator(store, config, strategy, window_ms).compare_all(project_name)
    except ApiTrailError as e:
        _fail(f"Error comparing runs: {e}")

    if output_format == "json":
        click.echo(json.dumps(overview.to_dict(), indent=2, default=str))
        return

    if not overview.per_subproject:
        console.print(f"[yellow]No history found for project {project_name}.[/yellow]")
        return
    console.print(
        f"[bold]Project:[/bold] {project_name}  "
        f"[bold]Weighted success rate:[/bold] {overview.weighted_average:.2f}%"
    )
    for name, result in overview.per_subproject.items():
        _print_result(name, result)


@cli.command("history")
@click.option("--project", "-p", help="Project name (default: resolved from environment)")
@click.option("--subproject", "-s", help="Subproject name (default: DefaultSubproject)")
@click.option("--limit", "-n", default=10, type=click.IntRange(min=1), help="Sessions to show")
@_format_option
@click.pass_context
def history_cmd(
    ctx: click.Context,
    project: str | None,
    subproject: str | None,
    limit: int,
    output_format: str,
) -> None:
    """List the most recent sessions of a subproject."""
    config: TrailConfig = ctx.obj["config"]
    try:
        with _open_store(config) as store:
            project_name = _resolve_project(store, config, project)
            subproject_name = resolve_subproject_name(config, override=subproject)
            sessions = store.find_recent_sessions(project_name, subproject_name, limit=limit)
    except ApiTrailError as e:
        _fail(f"Error loading history: {e}")

    if output_format == "json":
        click.echo(json.dumps([s.to_dict() for s in sessions], indent=2, default=str))
        return

    if not sessions:
        console.print("[yellow]No sessions found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Session", style="dim")
    table.add_column("Created At")
    table.add_column("Calls", justify="right")
    table.add_column("Failures", justify="right")
    for session in sessions:
        failures = sum(1 for r in session.endpoints if not r.is_success)
        fail_style = "red" if failures else "green"
        table.add_row(
            session.session_id,
            session.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            str(session.total),
            f"[{fail_style}]{failures}[/{fail_style}]",
        )
    console.print(f"\n[bold]{project_name} / {subproject_name}[/bold] ({len(sessions)} sessions)\n")
    console.print(table)


@cli.command("reports")
@click.option("--project", "-p", help="Project name (default: resolved from environment)")
@click.option("--limit", "-n", default=5, type=click.IntRange(min=1), help="Reports to show")
@_format_option
@click.pass_context
def reports_cmd(
    ctx: click.Context,
    project: str | None,
    limit: int,
    output_format: str,
) -> None:
    """List the narratives saved by earlier summaries."""
    config: TrailConfig = ctx.obj["config"]
    try:
        with _open_store(config) as store:
            project_name = _resolve_project(store, config, project)
            reports = store.recent_reports(project_name, limit=limit)
    except ApiTrailError as e:
        _fail(f"Error loading reports: {e}")

    if output_format == "json":
        click.echo(json.dumps([r.to_dict() for r in reports], indent=2, default=str))
        return

    if not reports:
        console.print(f"[yellow]No saved reports for project {project_name}.[/yellow]")
        return

    for report in reports:
        scope = report.subproject or "all subprojects"
        console.print(
            f"\n[bold]{report.created_at.strftime('%Y-%m-%d %H:%M:%S')}[/bold] [dim]{scope}[/dim]"
        )
        console.print(report.narrative)


def _replay_latest_sessions(store: SessionStore, project: str, subprojects: list[str]) -> RunLog:
    """Load the latest session of each subproject into a fresh RunLog."""
    run_log = RunLog()
    for name in subprojects:
        for session in store.find_recent_sessions(project, name, limit=1):
            run_log.info(f"{name}: session {session.session_id}")
            for record in session.endpoints:
                run_log.record_endpoint(record.method, record.endpoint, record.status)
                if not record.is_success and record.response:
                    run_log.record_error(record.key, record.response[:200])
    return run_log


@cli.command("summary")
@click.option("--project", "-p", help="Project name (default: resolved from environment)")
@click.option("--subproject", "-s", help="Limit the summary to one subproject")
@click.option("--output-dir", "-o", type=click.Path(file_okay=False), help="Report directory")
@click.option(
    "--format",
    "-f",
    "formats",
    multiple=True,
    type=click.Choice(sorted(REPORTERS)),
    help="Report format(s) (default from config)",
)
@click.option("--no-ai", is_flag=True, help="Skip narrative generation")
@_strategy_option
@_window_option
@click.pass_context
def summary_cmd(
    ctx: click.Context,
    project: str | None,
    subproject: str | None,
    output_dir: str | None,
    formats: tuple[str, ...],
    no_ai: bool,
    strategy: str | None,
    window_ms: int | None,
) -> None:
    """Write summary reports combining the comparison and an AI narrative."""
    config: TrailConfig = ctx.obj["config"]
    narrative: NarrativeGenerator | None = None
    if config.narrative_enabled and not no_ai:
        narrative = OpenRouterNarrativeGenerator.from_config(config)

    target = Path(output_dir or config.report_dir)
    written: list[Path] = []
    try:
        with _open_store(config) as store:
            project_name = _resolve_project(store, config, project)
            scope = [subproject] if subproject else store.list_subprojects(project_name)
            run_log = _replay_latest_sessions(store, project_name, scope)
            assembler = SummaryAssembler(
                _comparator(store, config, strategy, window_ms),
                narrative=narrative,
                run_log=run_log,
            )
            report = assembler.assemble(project_name, subproject)

        for fmt in formats or config.report_formats:
            reporter = REPORTERS[fmt]()
            path = target / f"{_slug(project_name)}_summary{reporter.file_extension}"
            written.append(reporter.save(report, path))
    except ApiTrailError as e:
        _fail(f"Error writing summary: {e}")

    console.print(report.paragraph)
    if not report.narrative_available:
        console.print(f"[yellow]{report.narrative}[/yellow]")
    for path in written:
        console.print(f"[green]Wrote {path}[/green]")


def _slug(name: str) -> str:
    return "".join(c if c.isalnum() or c in "-_" else "_" for c in name)
