"""fix-lint command: repair local files against a lint report."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console

from toolpipe_core.config import load_lint_prompt_template
from toolpipe_core.errors import PartialBatchFailure
from toolpipe_core.lintfix import get_fixer, repair
from toolpipe_core.models import FileFixRequest, OutcomeKind

console = Console()

_KIND_STYLE = {
    OutcomeKind.FIXED: "green",
    OutcomeKind.UNCHANGED: "dim",
    OutcomeKind.FAILED: "red",
}


@click.command("fix-lint")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--errors",
    "errors_file",
    required=True,
    type=click.File("r"),
    help="Lint report file ('-' for stdin).",
)
@click.option(
    "--model",
    type=click.Choice(["anthropic", "openai"]),
    default=None,
    help="AI model provider. Overrides config file.",
)
@click.option("--model-name", default=None, help="Provider model name, e.g. claude-sonnet-4-20250514.")
@click.option("--write", is_flag=True, help="Write fixed content back to the files.")
@click.option("--strict", is_flag=True, help="Exit non-zero if any file failed.")
@click.pass_context
def fix_lint_cmd(ctx, files, errors_file, model, model_name, write: bool, strict: bool):
    """Ask the AI model to fix the lint errors reported for FILES.

    Paths are matched against the report as given, so pass them the way the
    linter prints them.

    \b
    Required environment variables:
      ANTHROPIC_API_KEY    Required when using --model anthropic
      OPENAI_API_KEY       Required when using --model openai
    """
    config = dict(ctx.obj["config"])
    if model:
        config["model"] = model
    if not config.get(f"{config['model']}_api_key"):
        raise click.UsageError(f"{config['model'].upper()}_API_KEY environment variable is not set.")

    lint_report = errors_file.read()
    if not lint_report.strip():
        raise click.UsageError("The lint report is empty.")

    fix_requests = [FileFixRequest(path=path, current_content=Path(path).read_text()) for path in files]
    fixer = get_fixer(config, model_name)
    result = repair(fix_requests, lint_report, fixer, load_lint_prompt_template(config))

    for path, outcome in result.outcomes.items():
        style = _KIND_STYLE[outcome.kind]
        detail = f" ({outcome.reason})" if outcome.reason else ""
        console.print(f"  [{style}]{outcome.kind.value:<9}[/{style}] {path}{detail}")
        if write and outcome.kind is OutcomeKind.FIXED:
            Path(path).write_text(outcome.content + "\n")
    console.print(result.message)

    try:
        result.raise_for_status()
    except PartialBatchFailure as e:
        # A partial failure only fails the command under --strict.
        if strict or e.all_failed:
            raise click.ClickException(str(e)) from e
