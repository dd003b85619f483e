from __future__ import annotations

import re

from github import BadCredentialsException, GithubException

from toolpipe_core.errors import UpstreamError

GENERATED_BRANCH_PREFIX = "feat/gen-"
GENERATED_TITLE_PREFIX = "feat: Add AI Generated Tool -"

# A trailing "-<digits>" is a uniqueness suffix added when the branch is created.
_NUMERIC_SUFFIX_RE = re.compile(r"-[0-9]+$")


def extract_tool_directive(branch_name: str | None) -> str | None:
    """Return the tool directive encoded in a generation branch name, or None.

    ``feat/gen-json-tree-viewer-3`` → ``json-tree-viewer``
    ``feat/gen-color-picker``       → ``color-picker``
    """
    if not branch_name or not branch_name.startswith(GENERATED_BRANCH_PREFIX):
        return None
    directive = _NUMERIC_SUFFIX_RE.sub("", branch_name[len(GENERATED_BRANCH_PREFIX) :])
    return directive or None


def is_qualifying_tool_pr(pr) -> bool:
    """True when both the branch and the title follow the generation convention."""
    branch = pr.head.ref if pr.head is not None else None
    title = pr.title or ""
    return extract_tool_directive(branch) is not None and title.startswith(GENERATED_TITLE_PREFIX)


def get_pull(repo, pr_number: int):
    try:
        return repo.get_pull(pr_number)
    except BadCredentialsException:
        raise
    except GithubException as e:
        raise UpstreamError.from_github(e, f"PR #{pr_number}") from e


def get_pull_requests(repo, state: str, sort: str, limit: int) -> list:
    """Return at most ``limit`` PRs, newest first by ``sort``.

    The window is capped so a busy repository never triggers unbounded pagination.
    """
    pulls = repo.get_pulls(state=state, sort=sort, direction="desc")
    return list(pulls[:limit])
