"""CI status aggregation for a single pull request.

GitHub links workflow runs to a PR only loosely: a run's ``pull_requests``
list is sometimes empty for a while after the run starts. Runs are therefore
collected two ways and merged by run id:
  (a) runs in the recent window whose pull_requests include the PR number
  (b) runs whose head SHA equals the PR's head SHA

Only the PR lookup and rejected credentials are fatal. Every other fetch
(jobs, artifacts, check suites, comments, tool-generation-info) degrades to
a partial result.
"""

from __future__ import annotations

import json
import logging
import posixpath
import re
from datetime import datetime, timezone

import requests
from github import BadCredentialsException, GithubException

from toolpipe_core.errors import UpstreamError
from toolpipe_core.gh.pull_request import extract_tool_directive, get_pull
from toolpipe_core.models import (
    Artifact,
    CheckSuiteStatus,
    Job,
    PrCiSummary,
    PrComment,
    PrInfo,
    Step,
    ToolGenerationInfo,
    WorkflowCategory,
    WorkflowRun,
)
from toolpipe_core.utils.routes import tool_url

logger = logging.getLogger(__name__)

# Keyed by the workflow file name, which is stable; display names are not.
WORKFLOW_CATEGORIES: dict[str, WorkflowCategory] = {
    "validate_generated_tool_pr.yml": WorkflowCategory.VPR,
    "ai_dependency_manager.yml": WorkflowCategory.ADM,
    "ai_lint_fixer.yml": WorkflowCategory.ALF,
}

_GITHUB_ACTIONS_SLUG = "github-actions"
_DEPLOY_PREVIEW_URL_RE = re.compile(r"https://deploy-preview-\d+--[a-zA-Z0-9-]+\.netlify\.app")
_SCREENSHOT_URL_RE = re.compile(
    r"\(Direct Imgur Link:\s*(https://i\.imgur\.com/[a-zA-Z0-9]+\.(?:png|jpg|jpeg|gif))\)", re.IGNORECASE
)
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

# GitHub / network failures that degrade a single item instead of the summary.
_DEGRADABLE = (GithubException, requests.RequestException)


def categorize_workflow(workflow_file_name: str) -> WorkflowCategory:
    return WORKFLOW_CATEGORIES.get(workflow_file_name, WorkflowCategory.OTHER)


def classify_comment_author(
    login: str | None,
    body: str,
    is_bot: bool,
    identities: list[dict],
    app_login: str | None = None,
) -> str | None:
    """Return which known automation wrote a comment, or None for humans.

    Logins are compared case-insensitively. Identities that share a login
    (several workflows post as github-actions[bot]) are told apart by a
    marker string in the comment body.
    """
    if not login:
        return None
    login_lower = login.lower()
    if app_login and login_lower == app_login.lower():
        return "APP"
    for identity in identities:
        if login_lower != str(identity.get("login", "")).lower():
            continue
        marker = identity.get("marker")
        if marker and marker not in body:
            continue
        return identity["name"]
    if is_bot:
        return "OtherBot"
    return None


def _pr_info(pr) -> PrInfo:
    return PrInfo(
        number=pr.number,
        title=pr.title,
        state=pr.state,
        merged=pr.merged_at is not None,
        branch=pr.head.ref,
        head_sha=pr.head.sha,
        base_branch=pr.base.ref if pr.base is not None else None,
        url=pr.html_url,
        created_at=pr.created_at,
        updated_at=pr.updated_at,
        author=pr.user.login if pr.user is not None else None,
    )


def find_candidate_runs(repo, pr_number: int, head_sha: str, window: int) -> list:
    """Union of PR-linked runs and head-SHA runs, deduplicated by run id."""
    candidates: dict[int, object] = {}

    try:
        for run in repo.get_workflow_runs()[:window]:
            linked = any(p.number == pr_number for p in (run.pull_requests or []))
            if linked or run.head_sha == head_sha:
                candidates.setdefault(run.id, run)
    except BadCredentialsException:
        raise
    except _DEGRADABLE as e:
        logger.warning("Could not list recent workflow runs: %s", e)

    try:
        for run in repo.get_workflow_runs(head_sha=head_sha)[:window]:
            candidates.setdefault(run.id, run)
    except BadCredentialsException:
        raise
    except _DEGRADABLE as e:
        logger.warning("Could not list workflow runs for head %s: %s", head_sha[:7], e)

    return list(candidates.values())


def summarize_run(run) -> WorkflowRun:
    """Map a PyGithub run to a WorkflowRun including jobs, steps and artifacts."""
    summary = WorkflowRun(
        id=run.id,
        name=run.name or "Unnamed Workflow",
        workflow_file_name=posixpath.basename(run.path or ""),
        status=run.status,
        conclusion=run.conclusion,
        head_sha=run.head_sha,
        created_at=run.created_at,
        html_url=run.html_url,
        event=run.event,
    )
    try:
        summary.jobs = [
            Job(
                id=job.id,
                name=job.name,
                status=job.status,
                conclusion=job.conclusion,
                html_url=job.html_url,
                started_at=job.started_at,
                completed_at=job.completed_at,
                steps=[Step(name=s.name, status=s.status, conclusion=s.conclusion) for s in (job.steps or [])],
            )
            for job in run.jobs()
        ]
        summary.artifacts = [
            Artifact(
                id=a.id,
                name=a.name,
                size_bytes=a.size_in_bytes,
                expired=a.expired,
                expires_at=a.expires_at,
            )
            for a in run.get_artifacts()
        ]
    except BadCredentialsException:
        raise
    except _DEGRADABLE as e:
        logger.warning("Could not fetch jobs/artifacts for run %s: %s", run.id, e)
        summary.jobs = []
        summary.artifacts = []
        summary.detail_error = str(e)
    return summary


def categorize_runs(runs: list[WorkflowRun]) -> dict[WorkflowCategory, list[WorkflowRun]]:
    categorized: dict[WorkflowCategory, list[WorkflowRun]] = {category: [] for category in WorkflowCategory}
    for run in runs:
        categorized[categorize_workflow(run.workflow_file_name)].append(run)
    for category_runs in categorized.values():
        category_runs.sort(key=lambda r: r.created_at or _EPOCH, reverse=True)
    return categorized


def get_check_suites(repo, head_sha: str) -> dict[str, CheckSuiteStatus]:
    """Check suites on the head commit keyed by app slug, GitHub Actions excluded."""
    suites: dict[str, CheckSuiteStatus] = {}
    try:
        for suite in repo.get_commit(head_sha).get_check_suites():
            slug = suite.app.slug if suite.app is not None else None
            if not slug or slug == _GITHUB_ACTIONS_SLUG or slug in suites:
                continue
            suites[slug] = CheckSuiteStatus(
                id=suite.id,
                app_slug=slug,
                status=suite.status,
                conclusion=suite.conclusion,
                url=suite.url,
            )
    except BadCredentialsException:
        raise
    except _DEGRADABLE as e:
        logger.warning("Could not fetch check suites for %s: %s", head_sha[:7], e)
    return suites


def get_recent_comments(pr, limit: int, identities: list[dict], app_login: str | None) -> list[PrComment]:
    """Return the newest ``limit`` issue comments, newest first, tagged by author."""
    comments = []
    try:
        for c in pr.get_issue_comments().reversed[:limit]:
            login = c.user.login if c.user is not None else None
            is_bot = c.user is not None and c.user.type == "Bot"
            body = c.body or ""
            comments.append(
                PrComment(
                    id=c.id,
                    author_login=login,
                    author_is_bot=is_bot,
                    body=body,
                    created_at=c.created_at,
                    html_url=c.html_url,
                    bot_type=classify_comment_author(login, body, is_bot, identities, app_login),
                )
            )
    except BadCredentialsException:
        raise
    except _DEGRADABLE as e:
        logger.warning("Could not fetch comments for PR #%s: %s", pr.number, e)
    return comments


def get_tool_generation_info(repo, directive: str | None, ref: str) -> ToolGenerationInfo:
    if not directive:
        return ToolGenerationInfo(status="not_applicable")
    path = f"app/tool/{directive}/tool-generation-info.json"
    try:
        content = repo.get_contents(path, ref=ref)
        data = json.loads(content.decoded_content.decode("utf-8"))
    except BadCredentialsException:
        raise
    except GithubException as e:
        if e.status == 404:
            return ToolGenerationInfo(status="error_fetching", error=f"File not found: {path} at ref {ref}")
        return ToolGenerationInfo(status="error_fetching", error=f"Error fetching {path} at ref {ref}: {e}")
    except (requests.RequestException, ValueError, AttributeError) as e:
        return ToolGenerationInfo(status="error_fetching", error=f"Error reading {path} at ref {ref}: {e}")
    return ToolGenerationInfo(status="found", content=data)


def find_deploy_preview_url(comments: list[PrComment], directive: str | None) -> str | None:
    for c in comments:
        if c.bot_type != "Netlify" or "Deploy Preview" not in c.body:
            continue
        match = _DEPLOY_PREVIEW_URL_RE.search(c.body)
        if match:
            return tool_url(match.group(0), directive) if directive else match.group(0)
    return None


def find_screenshot_url(comments: list[PrComment]) -> str | None:
    for c in comments:
        if c.bot_type != "VPR":
            continue
        match = _SCREENSHOT_URL_RE.search(c.body)
        if match:
            return match.group(1)
    return None


def summarize(client, pr_number: int, config: dict) -> PrCiSummary:
    """Build the CI summary of one PR.

    Raises NotFoundError when the PR does not exist and UpstreamError when it
    cannot be read; everything after that degrades instead of raising.
    """
    repo = client.repo
    ci_config = config.get("ci", {})
    window = ci_config.get("workflow_runs_window", 75)
    identities = config.get("bot_identities", [])

    pr = get_pull(repo, pr_number)
    try:
        info = _pr_info(pr)
    except BadCredentialsException:
        raise
    except GithubException as e:
        raise UpstreamError.from_github(e, f"PR #{pr_number}") from e
    directive = extract_tool_directive(info.branch)
    logger.info("PR #%d head %s, branch %s, tool %s", pr_number, info.head_sha[:7], info.branch, directive or "N/A")

    runs = [summarize_run(run) for run in find_candidate_runs(repo, pr_number, info.head_sha, window)]
    check_suites = get_check_suites(repo, info.head_sha)
    comments = get_recent_comments(pr, ci_config.get("comment_limit", 10), identities, client.app_login)

    return PrCiSummary(
        pr=info,
        tool_generation_info=get_tool_generation_info(repo, directive, info.head_sha),
        workflow_runs=categorize_runs(runs),
        check_suites=check_suites,
        deploy_preview=check_suites.get(config.get("deploy_preview_app", "netlify")),
        recent_comments=comments,
        deploy_preview_url=find_deploy_preview_url(comments, directive),
        screenshot_url=find_screenshot_url(comments),
    )
