"""serve command: run the HTTP API with uvicorn."""

from __future__ import annotations

import os

import click


@click.command("serve")
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind.")
@click.option("--port", default=8000, show_default=True, type=int, help="Port to listen on.")
@click.option("--reload", is_flag=True, help="Reload on code changes (development).")
@click.pass_context
def serve_cmd(ctx, host: str, port: int, reload: bool):
    import uvicorn

    # The app loads its config itself; point it at the same file.
    os.environ["TOOLPIPE_CONFIG"] = ctx.obj["config_path"]
    uvicorn.run("toolpipe_api.app:app", host=host, port=port, reload=reload)
