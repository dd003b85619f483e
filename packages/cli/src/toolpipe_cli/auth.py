"""GitHub App client resolution for CLI commands.

Every command that talks to GitHub goes through get_client(); toolpipe
errors are turned into click errors so users see one line, not a traceback.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager

import click

from toolpipe_core.errors import ConfigError, ToolpipeError, ValidationError
from toolpipe_core.gh.auth import CredentialBroker

logger = logging.getLogger(__name__)


def get_broker(ctx: click.Context) -> CredentialBroker:
    obj = ctx.find_root().obj
    if obj.get("broker") is None:
        obj["broker"] = CredentialBroker(obj["config"])
    return obj["broker"]


def get_client(ctx: click.Context):
    broker = get_broker(ctx)
    with pipeline_errors():
        return broker.get_authenticated_client()


@contextmanager
def pipeline_errors():
    """Convert toolpipe errors into click errors."""
    try:
        yield
    except (ConfigError, ValidationError) as e:
        raise click.UsageError(str(e)) from e
    except ToolpipeError as e:
        logger.debug("Command failed", exc_info=True)
        raise click.ClickException(str(e)) from e
