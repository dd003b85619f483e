"""feedback commands: read and write user feedback comments on a PR."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from toolpipe_cli.auth import get_broker, get_client, pipeline_errors
from toolpipe_core.feedback import DEFAULT_EMOJI, list_feedback, post_feedback, validate_feedback_input

console = Console()


@click.group("feedback")
def feedback_group():
    """User feedback comments on generated-tool PRs."""


@feedback_group.command("list")
@click.option("--pr", "pr_number", type=click.IntRange(min=1), required=True, help="Pull request number.")
@click.pass_context
def list_cmd(ctx, pr_number: int):
    client = get_client(ctx)
    with pipeline_errors(), get_broker(ctx).guard_auth():
        comments = list_feedback(client, pr_number)
    if not comments:
        console.print("[yellow]No feedback comments found.[/yellow]")
        return

    table = Table(title=f"Feedback on PR #{pr_number}", show_header=True, header_style="bold cyan")
    table.add_column("", width=3)
    table.add_column("Author", width=20)
    table.add_column("Feedback", max_width=60)
    table.add_column("Posted At", width=20)
    for c in comments:
        author = c.author_login or "?"
        if c.is_app_author:
            author += " (app)"
        posted = c.created_at.strftime("%Y-%m-%d %H:%M:%S") if c.created_at else ""
        table.add_row(c.emoji, author, c.text, posted)
    console.print(table)


@feedback_group.command("post")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option("--text", required=True, help="Feedback text.")
@click.option("--emoji", default=DEFAULT_EMOJI, show_default=True, help="Emoji shown in the header.")
@click.pass_context
def post_cmd(ctx, pr_number: int, text: str, emoji: str):
    with pipeline_errors():
        pr_number, emoji, text = validate_feedback_input(pr_number, emoji, text)
    client = get_client(ctx)
    with pipeline_errors(), get_broker(ctx).guard_auth():
        comment = post_feedback(client, pr_number, emoji, text)
    console.print(f"[green]Posted feedback on PR #{pr_number}:[/green] {comment.html_url or comment.id}")
