"""Pipeline data models.

Plain dataclasses shared by the core operations, the HTTP layer and the CLI.
``to_dict()`` produces the camelCase JSON shape served over HTTP.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class AppCredential:
    app_id: str
    private_key_pem: str = field(repr=False)


@dataclass(frozen=True)
class InstallationToken:
    """Short-lived installation access token.

    Frozen so a refresh replaces the whole object instead of mutating the
    one other threads may be reading.
    """

    token: str = field(repr=False)
    installation_id: int
    obtained_at: datetime
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime | None = None, leeway: timedelta = timedelta(seconds=60)) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return now + leeway >= expires_at


# --------------------------------------------------------------------------- #
# Lint repair                                                                   #
# --------------------------------------------------------------------------- #


@dataclass
class FileFixRequest:
    path: str
    current_content: str


class OutcomeKind(str, enum.Enum):
    UNCHANGED = "unchanged"
    FIXED = "fixed"
    FAILED = "failed"


@dataclass
class FileFixOutcome:
    kind: OutcomeKind
    content: Optional[str] = None
    reason: Optional[str] = None
    safety_blocked: bool = False

    @classmethod
    def unchanged(cls, content: str) -> FileFixOutcome:
        return cls(OutcomeKind.UNCHANGED, content=content)

    @classmethod
    def fixed(cls, content: str) -> FileFixOutcome:
        return cls(OutcomeKind.FIXED, content=content)

    @classmethod
    def failed(cls, reason: str, safety_blocked: bool = False) -> FileFixOutcome:
        return cls(OutcomeKind.FAILED, reason=reason, safety_blocked=safety_blocked)


class BatchStatus(str, enum.Enum):
    SUCCESS = "success"
    NO_CHANGES_PROPOSED = "no_changes_proposed"
    PARTIAL_FAILURE = "partial_failure"
    ALL_FAILED = "all_failed"


# --------------------------------------------------------------------------- #
# CI                                                                            #
# --------------------------------------------------------------------------- #


class WorkflowCategory(str, enum.Enum):
    VPR = "vpr"  # validate generated tool PR
    ADM = "adm"  # AI dependency manager
    ALF = "alf"  # AI lint fixer
    OTHER = "other"


@dataclass
class Step:
    name: str
    status: Optional[str]
    conclusion: Optional[str]

    def to_dict(self) -> dict:
        return {"name": self.name, "status": self.status, "conclusion": self.conclusion}


@dataclass
class Job:
    id: int
    name: str
    status: Optional[str]
    conclusion: Optional[str]
    html_url: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    steps: list[Step] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "conclusion": self.conclusion,
            "htmlUrl": self.html_url,
            "startedAt": _iso(self.started_at),
            "completedAt": _iso(self.completed_at),
            "steps": [s.to_dict() for s in self.steps],
        }


@dataclass
class Artifact:
    id: int
    name: str
    size_bytes: int
    expired: bool
    expires_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sizeBytes": self.size_bytes,
            "expired": self.expired,
            "expiresAt": _iso(self.expires_at),
        }


@dataclass
class WorkflowRun:
    id: int
    name: str
    workflow_file_name: str
    status: Optional[str]
    conclusion: Optional[str]
    head_sha: str
    created_at: Optional[datetime] = None
    html_url: Optional[str] = None
    event: Optional[str] = None
    jobs: list[Job] = field(default_factory=list)
    artifacts: list[Artifact] = field(default_factory=list)
    # Set when jobs/artifacts could not be fetched; the run itself is kept.
    detail_error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "workflowFileName": self.workflow_file_name,
            "status": self.status,
            "conclusion": self.conclusion,
            "headSha": self.head_sha,
            "createdAt": _iso(self.created_at),
            "htmlUrl": self.html_url,
            "event": self.event,
            "jobs": [j.to_dict() for j in self.jobs],
            "artifacts": [a.to_dict() for a in self.artifacts],
            "detailError": self.detail_error,
        }


@dataclass
class CheckSuiteStatus:
    id: int
    app_slug: str
    status: Optional[str]
    conclusion: Optional[str]
    url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "appSlug": self.app_slug,
            "status": self.status,
            "conclusion": self.conclusion,
            "url": self.url,
        }


@dataclass
class PrComment:
    """A raw issue comment on a PR, as listed in the CI summary."""

    id: int
    author_login: Optional[str]
    author_is_bot: bool
    body: str
    created_at: Optional[datetime] = None
    html_url: Optional[str] = None
    bot_type: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user": self.author_login,
            "isBot": self.author_is_bot,
            "botType": self.bot_type,
            "body": self.body,
            "createdAt": _iso(self.created_at),
            "htmlUrl": self.html_url,
        }


@dataclass
class PrInfo:
    number: int
    title: Optional[str]
    state: str  # "open" | "closed"
    merged: bool
    branch: Optional[str]
    head_sha: str
    base_branch: Optional[str] = None
    url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    author: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "title": self.title,
            "state": self.state,
            "merged": self.merged,
            "branch": self.branch,
            "headSha": self.head_sha,
            "baseBranch": self.base_branch,
            "url": self.url,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "user": self.author,
        }


@dataclass
class ToolGenerationInfo:
    status: str  # "found" | "error_fetching" | "not_applicable"
    content: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {"status": self.status, "content": self.content, "error": self.error}


@dataclass
class PrCiSummary:
    pr: PrInfo
    tool_generation_info: ToolGenerationInfo
    workflow_runs: dict[WorkflowCategory, list[WorkflowRun]]
    check_suites: dict[str, CheckSuiteStatus] = field(default_factory=dict)
    deploy_preview: Optional[CheckSuiteStatus] = None
    recent_comments: list[PrComment] = field(default_factory=list)
    deploy_preview_url: Optional[str] = None
    screenshot_url: Optional[str] = None
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "prInfo": self.pr.to_dict(),
            "toolGenerationInfo": self.tool_generation_info.to_dict(),
            "githubActions": {
                category.value: [run.to_dict() for run in runs] for category, runs in self.workflow_runs.items()
            },
            "checkSuites": {slug: suite.to_dict() for slug, suite in self.check_suites.items()},
            "deployPreview": self.deploy_preview.to_dict() if self.deploy_preview else None,
            "recentComments": [c.to_dict() for c in self.recent_comments],
            "deployPreviewUrl": self.deploy_preview_url,
            "screenshotUrl": self.screenshot_url,
            "timestamp": _iso(self.generated_at),
        }


# --------------------------------------------------------------------------- #
# Feedback and recent builds                                                   #
# --------------------------------------------------------------------------- #


@dataclass
class PrFeedbackComment:
    id: int
    author_login: Optional[str]
    is_app_author: bool
    emoji: str
    text: str
    created_at: Optional[datetime] = None
    html_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "author": {"login": self.author_login, "isOetAppCommenter": self.is_app_author}
            if self.author_login
            else None,
            "createdAt": _iso(self.created_at),
            "htmlUrl": self.html_url,
            "isOetFormattedFeedback": True,
            "feedbackEmoji": self.emoji,
            "feedbackText": self.text,
        }


class BuildStatus(str, enum.Enum):
    OPEN = "open"
    MERGED = "merged"


@dataclass
class RecentBuildEntry:
    pr_number: int
    title: str
    branch_name: str
    tool_directive: str
    status: BuildStatus
    # created_at for OPEN entries, merged_at for MERGED ones.
    timestamp: datetime
    pr_url: Optional[str] = None
    tool_route: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "prNumber": self.pr_number,
            "prUrl": self.pr_url,
            "title": self.title,
            "branchName": self.branch_name,
            "toolDirective": self.tool_directive,
            "toolRoute": self.tool_route,
            "status": self.status.value,
        }
        data["createdAt" if self.status is BuildStatus.OPEN else "mergedAt"] = _iso(self.timestamp)
        return data
