"""FastAPI application exposing the pipeline operations over HTTP.

Run with ``toolpipe serve`` or ``uvicorn toolpipe_api.app:app``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from toolpipe_api.routers import builds, lint, pr, status
from toolpipe_core.errors import NotFoundError, ToolpipeError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

# Upstream statuses that are meaningful to the caller as-is.
_PASSTHROUGH_STATUSES = {401, 403}


def status_code_for(exc: ToolpipeError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, UpstreamError) and exc.status in _PASSTHROUGH_STATUSES:
        return exc.status
    return 500


def create_app() -> FastAPI:
    app = FastAPI(title="toolpipe", description="Automated tool-delivery pipeline API")

    @app.exception_handler(ToolpipeError)
    async def handle_toolpipe_error(request: Request, exc: ToolpipeError):
        code = status_code_for(exc)
        if code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.info("%s %s rejected (%d): %s", request.method, request.url.path, code, exc)
        return JSONResponse(status_code=code, content={"error": str(exc)})

    for module in (lint, pr, builds, status):
        app.include_router(module.router)
    return app


app = create_app()
