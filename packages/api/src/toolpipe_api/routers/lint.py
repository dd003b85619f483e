from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Body, Depends
from fastapi.responses import JSONResponse

from toolpipe_api.deps import get_config, get_fixer_factory
from toolpipe_core.config import load_lint_prompt_template
from toolpipe_core.errors import ConfigError, ValidationError
from toolpipe_core.lintfix import parse_fix_requests, repair
from toolpipe_core.models import BatchStatus
from toolpipe_core.telemetry import emit_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["lint"])


@router.post("/fix-linting-errors")
def fix_linting_errors(
    background: BackgroundTasks,
    payload: Any = Body(None),
    config: dict = Depends(get_config),
    fixer_factory=Depends(get_fixer_factory),
):
    """
    Ask the model to repair each file against its lines of the lint report.

    Responds 500 only when every file failed; partial failures are a 200
    with ``null`` for the files that need resubmission.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    files = parse_fix_requests(payload.get("filesToFix"))
    lint_errors = payload.get("lintErrors")
    if not isinstance(lint_errors, str) or not lint_errors.strip():
        raise ValidationError('Missing or empty "lintErrors" string.')
    model_name = payload.get("modelName")
    if model_name is not None and not isinstance(model_name, str):
        raise ValidationError('"modelName" must be a string.')

    try:
        fixer = fixer_factory(config, model_name)
    except (ImportError, KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Model provider is not configured: {e}") from e
    template = load_lint_prompt_template(config)

    logger.info("Lint fix requested for %d file(s).", len(files))
    result = repair(files, lint_errors, fixer, template)

    background.add_task(
        emit_event,
        config,
        "lint_fix",
        status=result.status.value,
        files=len(files),
        failed=len(result.failed_paths),
    )

    fixed_files = {path: outcome.content for path, outcome in result.outcomes.items()}
    all_failed = result.status is BatchStatus.ALL_FAILED
    return JSONResponse(
        status_code=500 if all_failed else 200,
        content={
            "success": not all_failed,
            "status": result.status.value,
            "message": result.message,
            "fixedFiles": fixed_files,
        },
    )
