"""Feed of in-flight and recently merged generated-tool PRs."""

from __future__ import annotations

import logging
from datetime import timezone

import requests
from github import BadCredentialsException, GithubException

from toolpipe_core.errors import UpstreamError
from toolpipe_core.gh.pull_request import extract_tool_directive, get_pull_requests, is_qualifying_tool_pr
from toolpipe_core.models import BuildStatus, RecentBuildEntry
from toolpipe_core.utils.routes import tool_route

logger = logging.getLogger(__name__)


def _aware(value):
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def to_build_entry(pr) -> RecentBuildEntry | None:
    """Map a PR to a feed entry; None when it does not belong in the feed."""
    if not is_qualifying_tool_pr(pr):
        return None
    if pr.state == "open":
        status, timestamp = BuildStatus.OPEN, pr.created_at
    elif pr.merged_at is not None:
        status, timestamp = BuildStatus.MERGED, pr.merged_at
    else:
        # Closed without merging.
        return None
    directive = extract_tool_directive(pr.head.ref)
    return RecentBuildEntry(
        pr_number=pr.number,
        title=pr.title,
        branch_name=pr.head.ref,
        tool_directive=directive,
        status=status,
        timestamp=_aware(timestamp),
        pr_url=pr.html_url,
        tool_route=tool_route(directive),
    )


def rank_builds(entries, max_results: int) -> list[RecentBuildEntry]:
    """Dedup by PR number, order newest first by effective timestamp, truncate."""
    by_number: dict[int, RecentBuildEntry] = {}
    for entry in entries:
        by_number.setdefault(entry.pr_number, entry)
    ranked = sorted(by_number.values(), key=lambda e: e.timestamp, reverse=True)
    return ranked[:max_results]


def list_recent_builds(client, config: dict, max_results: int | None = None) -> list[RecentBuildEntry]:
    settings = config.get("recent_builds", {})
    if max_results is None:
        max_results = settings.get("max_results", 10)

    windows = [
        ("open", "created", settings.get("open_window", 50)),
        ("closed", "updated", settings.get("closed_window", 50)),
    ]
    entries = []
    failures = []
    for state, sort, limit in windows:
        try:
            pulls = get_pull_requests(client.repo, state=state, sort=sort, limit=limit)
        except BadCredentialsException:
            raise
        except (GithubException, requests.RequestException) as e:
            logger.warning("Could not list %s PRs for the recent-builds feed: %s", state, e)
            failures.append(e)
            continue
        logger.debug("Fetched %d %s PR(s).", len(pulls), state)
        entries.extend(entry for entry in map(to_build_entry, pulls) if entry is not None)

    if len(failures) == len(windows):
        last = failures[-1]
        if isinstance(last, GithubException):
            raise UpstreamError.from_github(last, "listing recent builds") from last
        raise UpstreamError(f"listing recent builds: {last}") from last

    builds = rank_builds(entries, max_results)
    logger.info("Recent builds: %d qualifying PR(s), returning %d.", len(entries), len(builds))
    return builds
