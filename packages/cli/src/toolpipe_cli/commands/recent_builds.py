"""recent-builds command: newest open and merged generated-tool PRs."""

from __future__ import annotations

import json

import click
from rich.console import Console
from rich.table import Table

from toolpipe_cli.auth import get_broker, get_client, pipeline_errors
from toolpipe_core.models import BuildStatus
from toolpipe_core.recent_builds import list_recent_builds

console = Console()


@click.command("recent-builds")
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Maximum number of builds to show.")
@click.option("--json", "as_json", is_flag=True, help="Print the feed as JSON.")
@click.pass_context
def recent_builds_cmd(ctx, limit: int | None, as_json: bool):
    config = ctx.obj["config"]
    client = get_client(ctx)
    with pipeline_errors(), get_broker(ctx).guard_auth():
        builds = list_recent_builds(client, config, max_results=limit)

    if as_json:
        click.echo(json.dumps({"recentBuilds": [b.to_dict() for b in builds]}, indent=2))
        return
    if not builds:
        console.print("[yellow]No recent tool builds found.[/yellow]")
        return

    table = Table(title="Recent tool builds", show_header=True, header_style="bold cyan")
    table.add_column("PR", style="bold", width=6)
    table.add_column("Tool", max_width=30)
    table.add_column("Status", width=8)
    table.add_column("When", width=20)
    table.add_column("Route", max_width=40)
    for b in builds:
        style = "green" if b.status is BuildStatus.MERGED else "yellow"
        table.add_row(
            f"#{b.pr_number}",
            b.tool_directive,
            f"[{style}]{b.status.value}[/{style}]",
            b.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            b.tool_route or "",
        )
    console.print(table)
