"""CLI entry point for toolpipe.

Commands:
  ci-summary     CI status and pipeline verdict of a generated-tool PR
  feedback       list or post user feedback comments on a PR
  recent-builds  newest open and merged generated-tool PRs
  fix-lint       repair local files against a lint report with an AI model
  serve          run the HTTP API
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from toolpipe_cli.commands.ci_summary import ci_summary_cmd
from toolpipe_cli.commands.feedback import feedback_group
from toolpipe_cli.commands.fix_lint import fix_lint_cmd
from toolpipe_cli.commands.recent_builds import recent_builds_cmd
from toolpipe_cli.commands.serve import serve_cmd

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=verbose)],
        force=True,
    )
    # PyGithub and urllib3 are chatty at DEBUG.
    for name in ("github", "urllib3"):
        logging.getLogger(name).setLevel(logging.INFO if verbose else logging.WARNING)


@click.group()
@click.version_option(
    version=importlib.metadata.version("toolpipe"),
    prog_name="toolpipe",
)
@click.option(
    "--config",
    "config_path",
    default=".toolpipe.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="TOOLPIPE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Automated tool-delivery pipeline: CI status, feedback, builds and lint repair."""
    from toolpipe_core.config import load_config

    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["config"] = load_config(config_path)
    ctx.obj["broker"] = None


main.add_command(ci_summary_cmd)
main.add_command(feedback_group)
main.add_command(recent_builds_cmd)
main.add_command(fix_lint_cmd)
main.add_command(serve_cmd)
