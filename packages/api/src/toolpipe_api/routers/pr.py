from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query
from fastapi.responses import JSONResponse

from toolpipe_api.deps import get_broker, get_config
from toolpipe_core import ci, feedback
from toolpipe_core.errors import ValidationError
from toolpipe_core.pipeline_status import derive_status
from toolpipe_core.telemetry import emit_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["pull_requests"])


def parse_pr_number(raw: Optional[str]) -> int:
    if raw is None or not raw.strip().isdigit() or int(raw) <= 0:
        raise ValidationError("Valid PR number is required.")
    return int(raw)


@router.get("/pr-ci-summary")
def pr_ci_summary(
    pr_number: Optional[str] = Query(None, alias="prNumber"),
    polling_attempt: int = Query(0, alias="pollingAttempt", ge=0),
    config: dict = Depends(get_config),
    broker=Depends(get_broker),
):
    """Return the CI summary of a PR plus the derived pipeline verdict."""
    number = parse_pr_number(pr_number)
    with broker.guard_auth():
        client = broker.get_authenticated_client()
        summary = ci.summarize(client, number, config)
    data = summary.to_dict()
    data["pipelineStatus"] = derive_status(summary, polling_attempt).to_dict()
    return data


@router.get("/pr-comments")
def list_pr_comments(
    pr_number: Optional[str] = Query(None, alias="prNumber"),
    broker=Depends(get_broker),
):
    number = parse_pr_number(pr_number)
    with broker.guard_auth():
        comments = feedback.list_feedback(broker.get_authenticated_client(), number)
    return {"comments": [c.to_dict() for c in comments]}


@router.post("/pr-comments")
def post_pr_comment(
    background: BackgroundTasks,
    payload: Any = Body(None),
    config: dict = Depends(get_config),
    broker=Depends(get_broker),
):
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    number, emoji, text = feedback.validate_feedback_input(
        payload.get("prNumber"), payload.get("emoji"), payload.get("commentText")
    )
    with broker.guard_auth():
        comment = feedback.post_feedback(broker.get_authenticated_client(), number, emoji, text)

    background.add_task(emit_event, config, "feedback_posted", prNumber=number, emoji=emoji)
    return JSONResponse(
        status_code=201,
        content={"message": "Feedback comment posted successfully.", "comment": comment.to_dict()},
    )
