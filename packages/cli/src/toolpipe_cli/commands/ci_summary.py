"""ci-summary command: CI status and pipeline verdict of one PR."""

from __future__ import annotations

import json

import click
from rich.console import Console
from rich.table import Table

from toolpipe_cli.auth import get_broker, get_client, pipeline_errors
from toolpipe_core.ci import summarize
from toolpipe_core.models import WorkflowCategory
from toolpipe_core.pipeline_status import derive_status

console = Console()

_HINT_STYLE = {
    "success": "green",
    "error": "red",
    "warning": "yellow",
    "info": "cyan",
    "loading": "blue",
}
_CONCLUSION_STYLE = {"success": "green", "failure": "red", "cancelled": "yellow"}


def _styled(value: str | None) -> str:
    if not value:
        return "-"
    style = _CONCLUSION_STYLE.get(value, "white")
    return f"[{style}]{value}[/{style}]"


@click.command("ci-summary")
@click.option("--pr", "pr_number", type=click.IntRange(min=1), required=True, help="Pull request number.")
@click.option("--json", "as_json", is_flag=True, help="Print the raw summary as JSON.")
@click.option(
    "--attempt",
    "polling_attempt",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Polling attempt number, for timeout detection.",
)
@click.pass_context
def ci_summary_cmd(ctx, pr_number: int, as_json: bool, polling_attempt: int):
    """Show workflow runs, check suites and the pipeline verdict of a PR."""
    config = ctx.obj["config"]
    client = get_client(ctx)
    with pipeline_errors(), get_broker(ctx).guard_auth():
        summary = summarize(client, pr_number, config)
    status = derive_status(summary, polling_attempt)

    if as_json:
        data = summary.to_dict()
        data["pipelineStatus"] = status.to_dict()
        click.echo(json.dumps(data, indent=2))
        return

    pr = summary.pr
    console.print(f"[bold]PR #{pr.number}[/bold] {pr.title or ''}")
    console.print(f"  branch {pr.branch}  head {pr.head_sha[:7]}  state {pr.state}{' (merged)' if pr.merged else ''}")

    table = Table(title="Workflow runs", show_header=True, header_style="bold cyan")
    table.add_column("Category", width=8)
    table.add_column("Workflow", max_width=40)
    table.add_column("SHA", width=8)
    table.add_column("Status", width=12)
    table.add_column("Conclusion", width=12)
    for category in WorkflowCategory:
        for run in summary.workflow_runs.get(category, []):
            table.add_row(
                category.value, run.name, run.head_sha[:7], run.status or "-", _styled(run.conclusion)
            )
    console.print(table)

    for slug, suite in summary.check_suites.items():
        console.print(f"  check suite [bold]{slug}[/bold]: {suite.status} {_styled(suite.conclusion)}")
    if summary.deploy_preview_url:
        console.print(f"  deploy preview: {summary.deploy_preview_url}")
    if summary.screenshot_url:
        console.print(f"  screenshot: {summary.screenshot_url}")

    style = _HINT_STYLE.get(status.ui_hint, "white")
    console.print(f"\n[{style}]{status.summary}[/{style}]")
    console.print(f"Next: [bold]{status.next_action}[/bold]")
