"""CLI entry point for gh-overseer."""

import asyncio
import json
from datetime import UTC, datetime
from pathlib import Path

import click
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from gh_overseer import __version__
from gh_overseer.collect.aggregator import COUNTERS, Stats
from gh_overseer.config import load_config
from gh_overseer.logging import LOG_LEVELS, setup_logging
from gh_overseer.models import to_utc

console = Console()

COLUMN_TITLES = {
    "issues": "Issues",
    "pull_requests": "PRs",
    "issue_comments": "Issue comments",
    "pr_review_comments": "Review comments",
    "lgtms": "LGTMs",
    "labels": "Labels",
}


def _parse_time(
    ctx: click.Context, param: click.Parameter, value: str | None
) -> datetime | None:
    if value is None:
        return None
    msg = f"'{value}' is not an RFC 3339 timestamp like 2015-09-21T00:00:00Z"
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise click.BadParameter(msg) from e
    # A bare date or a time without offset is not RFC 3339
    if parsed.tzinfo is None:
        raise click.BadParameter(msg)
    return to_utc(parsed)


def render_table(stats: Stats) -> Table:
    """Render stats as one row per user and one column per counter."""
    table = Table(title="Activity per user")
    table.add_column("User", style="bold")
    for name in COUNTERS:
        table.add_column(COLUMN_TITLES[name], justify="right")

    for user in stats.users():
        counts = (str(getattr(stats, name)[user]) for name in COUNTERS)
        table.add_row(user or "(unknown)", *counts)
    return table


@click.group()
@click.version_option(version=__version__, prog_name="gh-overseer")
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(list(LOG_LEVELS), case_sensitive=False),
    default="info",
    show_default=True,
    help="Log level",
)
@click.option("--log-json", is_flag=True, default=False, help="Emit logs as JSON lines")
def main(log_level: str, log_json: bool) -> None:
    """Count issues, pull requests, comments and approvals per user.

    \b
    Quick Start:
        gh-overseer stats --config config.yaml --start-time 2024-01-01T00:00:00Z
    """
    setup_logging(level=log_level, json_format=log_json)


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default="config.yaml",
    show_default=True,
    help="Path to config.yaml file",
)
@click.option(
    "--start-time",
    "-s",
    callback=_parse_time,
    help="Window start (RFC 3339). Defaults to windows.since from the config.",
)
@click.option(
    "--end-time",
    "-e",
    callback=_parse_time,
    help="Window end (RFC 3339). Defaults to windows.until from the config, then now.",
)
@click.option(
    "--json", "as_json", is_flag=True, default=False, help="Print JSON instead of a table"
)
def stats(
    config: Path,
    start_time: datetime | None,
    end_time: datetime | None,
    as_json: bool,
) -> None:
    """Collect activity for the configured repositories and print per-user counts."""
    from gh_overseer.collect.orchestrator import CollectionError, collect_stats

    try:
        cfg = load_config(config)
    except (ValidationError, yaml.YAMLError) as e:
        console.print(
            f"[bold red]Error:[/bold red] failed to load config file from '{config}': {e}"
        )
        raise click.Abort() from e

    start = start_time or cfg.windows.since
    if start is None:
        raise click.UsageError("--start-time is required when the config has no windows.since")
    end = end_time or cfg.windows.until or datetime.now(UTC)
    if start > end:
        msg = f"start time {start.isoformat()} is after end time {end.isoformat()}"
        raise click.UsageError(msg)

    try:
        result = asyncio.run(collect_stats(cfg, start, end))
    except CollectionError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise click.Abort() from e
    except KeyboardInterrupt:
        console.print("\n[yellow]Collection interrupted by user[/yellow]")
        raise click.Abort() from None

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if result.is_empty():
        console.print("[yellow]No activity found for the configured users.[/yellow]")
        return
    console.print(render_table(result))
