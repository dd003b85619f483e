"""Tests for the recent-builds feed."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from github import GithubException

from toolpipe_core.config import DEFAULT_CONFIG
from toolpipe_core.errors import UpstreamError
from toolpipe_core.models import BuildStatus
from toolpipe_core.recent_builds import list_recent_builds, to_build_entry

T1 = datetime(2025, 5, 1, 10, 0, tzinfo=timezone.utc)
TITLE = "feat: Add AI Generated Tool - Color Picker"


def _pr(number, branch, title=TITLE, state="open", created_at=T1, merged_at=None):
    return SimpleNamespace(
        number=number,
        title=title,
        state=state,
        head=SimpleNamespace(ref=branch),
        created_at=created_at,
        merged_at=merged_at,
        html_url=f"https://github.com/o/r/pull/{number}",
    )


def _client(open_prs=(), closed_prs=()):
    repo = MagicMock()

    def get_pulls(state, sort, direction):
        return list(open_prs) if state == "open" else list(closed_prs)

    repo.get_pulls.side_effect = get_pulls
    return SimpleNamespace(repo=repo, app_login=None)


class TestToBuildEntry:
    def test_open_entry(self):
        entry = to_build_entry(_pr(1, "feat/gen-color-picker-1"))
        assert entry.status is BuildStatus.OPEN
        assert entry.tool_directive == "color-picker"
        assert entry.tool_route == "/tool/color-picker/"
        assert entry.timestamp == T1
        assert entry.to_dict()["createdAt"] == T1.isoformat()

    def test_merged_entry_uses_merged_at(self):
        merged = T1 + timedelta(days=1)
        entry = to_build_entry(_pr(2, "feat/gen-hash-generator", state="closed", merged_at=merged))
        assert entry.status is BuildStatus.MERGED
        assert entry.timestamp == merged
        assert "mergedAt" in entry.to_dict()

    def test_closed_without_merge_is_excluded(self):
        assert to_build_entry(_pr(3, "feat/gen-hash-generator", state="closed")) is None

    def test_non_generated_branch_is_excluded(self):
        assert to_build_entry(_pr(4, "fix/color-picker")) is None

    def test_manual_title_is_excluded(self):
        assert to_build_entry(_pr(5, "feat/gen-color-picker", title="Tweak color picker")) is None

    def test_naive_timestamps_are_treated_as_utc(self):
        entry = to_build_entry(_pr(6, "feat/gen-color-picker", created_at=datetime(2025, 5, 1, 10, 0)))
        assert entry.timestamp == T1


class TestListRecentBuilds:
    def test_merged_after_open_is_first(self):
        client = _client(
            open_prs=[_pr(1, "feat/gen-color-picker-1", created_at=T1)],
            closed_prs=[
                _pr(2, "feat/gen-json-tree-viewer-3", state="closed", merged_at=T1 + timedelta(hours=2)),
            ],
        )
        builds = list_recent_builds(client, DEFAULT_CONFIG)
        assert [b.pr_number for b in builds] == [2, 1]
        assert [b.status for b in builds] == [BuildStatus.MERGED, BuildStatus.OPEN]

    def test_deduplicated_by_pr_number(self):
        pr = _pr(1, "feat/gen-color-picker-1")
        builds = list_recent_builds(_client(open_prs=[pr], closed_prs=[]), DEFAULT_CONFIG)
        assert len(builds) == 1
        merged = _pr(1, "feat/gen-color-picker-1", state="closed", merged_at=T1)
        builds = list_recent_builds(_client(open_prs=[pr], closed_prs=[merged]), DEFAULT_CONFIG)
        assert len(builds) == 1

    def test_truncated_to_max_results(self):
        prs = [_pr(n, f"feat/gen-tool-{n}", created_at=T1 + timedelta(minutes=n)) for n in range(1, 16)]
        builds = list_recent_builds(_client(open_prs=prs), DEFAULT_CONFIG, max_results=5)
        assert [b.pr_number for b in builds] == [15, 14, 13, 12, 11]

    def test_default_max_results_from_config(self):
        prs = [_pr(n, f"feat/gen-tool-{n}", created_at=T1 + timedelta(minutes=n)) for n in range(1, 16)]
        assert len(list_recent_builds(_client(open_prs=prs), DEFAULT_CONFIG)) == 10

    def test_queries_are_bounded(self):
        client = _client()
        list_recent_builds(client, DEFAULT_CONFIG)
        client.repo.get_pulls.assert_any_call(state="open", sort="created", direction="desc")
        client.repo.get_pulls.assert_any_call(state="closed", sort="updated", direction="desc")

    def test_one_failing_window_is_skipped(self):
        client = _client(open_prs=[_pr(1, "feat/gen-color-picker")])

        def get_pulls(state, sort, direction):
            if state == "closed":
                raise GithubException(500, {"message": "boom"}, None)
            return [_pr(1, "feat/gen-color-picker")]

        client.repo.get_pulls.side_effect = get_pulls
        assert [b.pr_number for b in list_recent_builds(client, DEFAULT_CONFIG)] == [1]

    def test_both_windows_failing_raise(self):
        client = _client()
        client.repo.get_pulls.side_effect = GithubException(403, {"message": "rate limited"}, None)
        with pytest.raises(UpstreamError) as exc_info:
            list_recent_builds(client, DEFAULT_CONFIG)
        assert exc_info.value.status == 403
