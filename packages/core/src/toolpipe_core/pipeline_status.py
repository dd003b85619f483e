"""Derive a human-readable pipeline verdict from a PR's CI summary.

The generated-tool pipeline is a chain of workflows reacting to each other:
the validator (VPR) runs first, hands off to the dependency manager (ADM) or
the lint fixer (ALF) when it finds problems, and on success the deploy
preview builds. derive_status() inspects where that chain currently is and
tells a polling client what it should expect next.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from toolpipe_core.gh.pull_request import extract_tool_directive
from toolpipe_core.models import PrCiSummary, WorkflowCategory, WorkflowRun

MAX_POLLING_ATTEMPTS = 360

_LINT_ARTIFACT_PREFIX = "lint-failure-data"
_REPORT_JOB_NAME = "4. Report PR Validation Status"
_ALF_API_FAILURE = "AI Lint Fix API Call Failed"
_SKIP_PREVIEW_MARKER = "[skip netlify]"


@dataclass
class PipelineStatus:
    summary: str
    next_action: str
    should_continue_polling: bool = True
    ui_hint: str = "loading"  # info | success | warning | error | loading
    overall_check_status: str = "unknown"  # pending | success | failure | error | unknown
    deploy_preview_url: str | None = None
    deploy_succeeded: bool = False
    checks: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "statusSummary": self.summary,
            "nextExpectedAction": self.next_action,
            "shouldContinuePolling": self.should_continue_polling,
            "uiHint": self.ui_hint,
            "overallCheckStatusForHead": self.overall_check_status,
            "deployPreviewUrl": self.deploy_preview_url,
            "deploySucceeded": self.deploy_succeeded,
            "checks": self.checks,
        }


def _latest_run_for_head(runs: list[WorkflowRun], head_sha: str) -> WorkflowRun | None:
    return next((run for run in runs if run.head_sha == head_sha), None)


def _was_vpr_finalized(summary: PrCiSummary) -> bool:
    """True once the validator has finalized the PR and removed its tool-generation-info.json."""
    info = summary.tool_generation_info
    title = summary.pr.title
    return (
        info.status == "error_fetching"
        and "File not found" in (info.error or "")
        and title is not None
        and _SKIP_PREVIEW_MARKER not in title
    )


def _checks_for_ui(summary: PrCiSummary) -> list[dict]:
    vpr_runs = summary.workflow_runs.get(WorkflowCategory.VPR, [])
    run = _latest_run_for_head(vpr_runs, summary.pr.head_sha) or (vpr_runs[0] if vpr_runs else None)
    checks = [
        {"name": job.name, "status": job.status, "conclusion": job.conclusion, "url": job.html_url}
        for job in (run.jobs if run else [])
    ]
    if summary.deploy_preview is not None:
        preview = summary.deploy_preview
        checks.append(
            {
                "name": f"Deploy Preview ({preview.app_slug})",
                "status": preview.status,
                "conclusion": preview.conclusion,
                "url": preview.url,
            }
        )
    return checks


def _closed(summary: PrCiSummary, tool_name: str) -> PipelineStatus:
    pr = summary.pr
    if pr.merged:
        return PipelineStatus(
            summary=f"PR #{pr.number} for '{tool_name}' was MERGED!",
            next_action="NONE",
            should_continue_polling=False,
            ui_hint="success",
            overall_check_status="success",
        )
    vpr_runs = summary.workflow_runs.get(WorkflowCategory.VPR, [])
    last_conclusion = vpr_runs[0].conclusion if vpr_runs else None
    return PipelineStatus(
        summary=f"PR #{pr.number} for '{tool_name}' was CLOSED without merging.",
        next_action="NONE",
        should_continue_polling=False,
        ui_hint="info",
        overall_check_status=last_conclusion if last_conclusion in ("success", "failure") else "unknown",
    )


def _vpr_failed(summary: PrCiSummary, run: WorkflowRun) -> PipelineStatus:
    content = summary.tool_generation_info.content or {}
    report_job = next((job for job in run.jobs if _REPORT_JOB_NAME in job.name), None)
    has_lint_artifact = any(a.name.startswith(_LINT_ARTIFACT_PREFIX) for a in run.artifacts)
    latest_alf_comment = next((c for c in summary.recent_comments if c.bot_type == "ALF"), None)
    short_sha = summary.pr.head_sha[:7]

    def manual(message: str, action: str) -> PipelineStatus:
        return PipelineStatus(message, action, False, "error", "failure")

    if report_job is not None and report_job.conclusion == "failure":
        return manual(
            f"Critical VPR Error: 'Report PR Status' job failed (run {run.id}). Manual review of Actions logs needed.",
            "MANUAL_REVIEW_CI_ERROR",
        )
    if has_lint_artifact:
        if content.get("lintFixesAttempted"):
            return manual(
                "AI Lint Fixer previously tried. Build/lint issues persist. Manual review of PR required.",
                "MANUAL_REVIEW_LINT",
            )
        if latest_alf_comment is not None and _ALF_API_FAILURE in latest_alf_comment.body:
            return manual("AI Lint Fixer API error. Manual review required.", "MANUAL_REVIEW_LINT_API_FAIL")
        return PipelineStatus(
            "VPR detected build/lint issues. Expecting AI Lint Fixer (ALF) to run.",
            "ALF_EXPECTED",
            overall_check_status="failure",
        )
    if content.get("identifiedDependencies") and content.get("npmDependenciesFulfilled") == "absent":
        return PipelineStatus(
            "VPR identified new dependencies. Expecting AI Dependency Manager (ADM) to run.",
            "ADM_EXPECTED",
            overall_check_status="failure",
        )
    if content.get("npmDependenciesFulfilled") == "false":
        return manual("AI Dependency Manager previously failed. Manual review required.", "MANUAL_REVIEW_DEPS")
    return manual(
        f"VPR failed (commit {short_sha}). Cause unclear. Manual review of PR & Actions needed.",
        "MANUAL_REVIEW_VPR_UNKNOWN",
    )


def _deploy_status(summary: PrCiSummary, tool_name: str) -> PipelineStatus:
    preview = summary.deploy_preview
    if preview is not None and preview.conclusion == "success":
        return PipelineStatus(
            f"Deploy Preview for '{tool_name}' is READY!",
            "USER_REVIEW_PREVIEW",
            should_continue_polling=False,
            ui_hint="success",
            overall_check_status="success",
            deploy_succeeded=True,
        )
    if preview is not None and preview.conclusion == "failure":
        return PipelineStatus(
            f"VPR checks passed, but the Deploy Preview FAILED for '{tool_name}'. Manual review needed.",
            "MANUAL_REVIEW_DEPLOY",
            should_continue_polling=False,
            ui_hint="error",
            overall_check_status="failure",
        )
    state = preview.status if preview is not None else "pending"
    return PipelineStatus(
        f"VPR checks passed! Deploy Preview is {state} for '{tool_name}'.",
        "VPR_FINALIZING",
        overall_check_status="success",
    )


def derive_status(summary: PrCiSummary, polling_attempt: int = 0) -> PipelineStatus:
    pr = summary.pr
    tool_name = extract_tool_directive(pr.branch) or pr.branch or f"PR #{pr.number}"
    short_sha = pr.head_sha[:7]

    if pr.state == "closed":
        status = _closed(summary, tool_name)
    elif _was_vpr_finalized(summary):
        # The finalizing commit carries no new VPR run; only the preview is left to report.
        status = _deploy_status(summary, tool_name)
    else:
        run = _latest_run_for_head(summary.workflow_runs.get(WorkflowCategory.VPR, []), pr.head_sha)
        if run is None:
            status = PipelineStatus(
                f"Waiting for VPR checks to start for commit {short_sha}...",
                "VPR_PENDING",
                overall_check_status="pending",
            )
        elif run.status != "completed":
            status = PipelineStatus(
                f"VPR workflow is {run.status} for commit {short_sha}...",
                "VPR_RUNNING",
                overall_check_status="pending",
            )
        elif run.conclusion == "success":
            status = _deploy_status(summary, tool_name)
        else:
            status = _vpr_failed(summary, run)

    if polling_attempt >= MAX_POLLING_ATTEMPTS and status.should_continue_polling and pr.state == "open":
        status = PipelineStatus(
            "Max polling attempts reached. Please check the PR on GitHub for the latest status.",
            "MANUAL_REVIEW_TIMEOUT",
            should_continue_polling=False,
            ui_hint="error",
            overall_check_status=status.overall_check_status,
        )

    status.deploy_succeeded = status.deploy_succeeded or (
        summary.deploy_preview is not None and summary.deploy_preview.conclusion == "success"
    )
    status.deploy_preview_url = summary.deploy_preview_url
    status.checks = _checks_for_ui(summary)
    return status
