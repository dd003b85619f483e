from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from toolpipe_api.deps import get_broker, get_config
from toolpipe_core.errors import ToolpipeError, ValidationError
from toolpipe_core.recent_builds import list_recent_builds

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["recent_builds"])

MAX_LIMIT = 100


def parse_limit(raw: Optional[str]) -> Optional[int]:
    if raw is None or not raw.strip():
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError("limit must be an integer.") from None
    if not 1 <= value <= MAX_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}.")
    return value


@router.get("/recent-builds")
def recent_builds(
    limit: Optional[str] = None,
    config: dict = Depends(get_config),
    broker=Depends(get_broker),
):
    """
    Return the newest qualifying tool PRs.

    Feed consumers never block on this endpoint: failures, including a bad
    ``limit``, still answer with an empty ``recentBuilds`` list next to the error.
    """
    try:
        max_results = parse_limit(limit)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"recentBuilds": [], "error": str(e)})
    try:
        with broker.guard_auth():
            builds = list_recent_builds(broker.get_authenticated_client(), config, max_results=max_results)
    except ToolpipeError as e:
        logger.error("Failed to fetch recent builds: %s", e)
        return JSONResponse(status_code=500, content={"recentBuilds": [], "error": str(e)})
    return {"recentBuilds": [b.to_dict() for b in builds]}
