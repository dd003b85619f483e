"""Tests for the CI status aggregator."""

import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from github import GithubException

from toolpipe_core.ci import (
    categorize_runs,
    categorize_workflow,
    classify_comment_author,
    find_candidate_runs,
    get_check_suites,
    get_tool_generation_info,
    summarize,
    summarize_run,
)
from toolpipe_core.config import DEFAULT_CONFIG
from toolpipe_core.errors import NotFoundError
from toolpipe_core.models import WorkflowCategory

HEAD_SHA = "abc1234def5678"
T0 = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)
IDENTITIES = DEFAULT_CONFIG["bot_identities"]


def _run(run_id, path, head_sha=HEAD_SHA, pr_numbers=(), created_at=T0, conclusion="success"):
    run = MagicMock()
    run.id = run_id
    run.name = path.split("/")[-1]
    run.path = path
    run.status = "completed"
    run.conclusion = conclusion
    run.head_sha = head_sha
    run.created_at = created_at
    run.html_url = f"https://github.com/o/r/actions/runs/{run_id}"
    run.event = "pull_request"
    run.pull_requests = [SimpleNamespace(number=n) for n in pr_numbers]
    run.jobs.return_value = [
        SimpleNamespace(
            id=run_id * 10,
            name="1. Validate",
            status="completed",
            conclusion=conclusion,
            html_url=None,
            started_at=created_at,
            completed_at=created_at,
            steps=[SimpleNamespace(name="checkout", status="completed", conclusion="success")],
        )
    ]
    run.get_artifacts.return_value = [
        SimpleNamespace(id=1, name="lint-failure-data", size_in_bytes=120, expired=False, expires_at=None)
    ]
    return run


def _comment(comment_id, login, body, user_type="User"):
    return SimpleNamespace(
        id=comment_id,
        user=SimpleNamespace(login=login, type=user_type),
        body=body,
        created_at=T0,
        html_url=f"https://github.com/o/r/pull/7#issuecomment-{comment_id}",
    )


def _pr(number=7, branch="feat/gen-color-picker-2", comments=()):
    pr = MagicMock()
    pr.number = number
    pr.title = "feat: Add AI Generated Tool - Color Picker"
    pr.state = "open"
    pr.merged_at = None
    pr.head = SimpleNamespace(ref=branch, sha=HEAD_SHA)
    pr.base = SimpleNamespace(ref="main")
    pr.html_url = f"https://github.com/o/r/pull/{number}"
    pr.created_at = T0
    pr.updated_at = T0
    pr.user = SimpleNamespace(login="OET Bot")
    pr.get_issue_comments.return_value.reversed = list(reversed(comments))
    return pr


def _suite(suite_id, slug, status, conclusion):
    return SimpleNamespace(id=suite_id, app=SimpleNamespace(slug=slug), status=status, conclusion=conclusion, url=None)


def _workflow_runs(recent, by_sha):
    def get_workflow_runs(**kwargs):
        return by_sha if "head_sha" in kwargs else recent

    return get_workflow_runs


class TestCategorize:
    @pytest.mark.parametrize(
        "file_name, category",
        [
            ("validate_generated_tool_pr.yml", WorkflowCategory.VPR),
            ("ai_dependency_manager.yml", WorkflowCategory.ADM),
            ("ai_lint_fixer.yml", WorkflowCategory.ALF),
            ("deploy.yml", WorkflowCategory.OTHER),
            ("", WorkflowCategory.OTHER),
        ],
    )
    def test_lookup(self, file_name, category):
        assert categorize_workflow(file_name) is category

    def test_unknown_runs_are_kept_and_sorted(self):
        runs = [
            summarize_run(_run(1, ".github/workflows/deploy.yml", created_at=T0)),
            summarize_run(_run(2, ".github/workflows/deploy.yml", created_at=T0 + timedelta(hours=1))),
            summarize_run(_run(3, ".github/workflows/validate_generated_tool_pr.yml")),
        ]
        categorized = categorize_runs(runs)
        assert [r.id for r in categorized[WorkflowCategory.OTHER]] == [2, 1]
        assert [r.id for r in categorized[WorkflowCategory.VPR]] == [3]
        assert categorized[WorkflowCategory.ALF] == []


class TestFindCandidateRuns:
    def test_union_deduplicated_by_id(self):
        repo = MagicMock()
        linked = _run(1, ".github/workflows/validate_generated_tool_pr.yml", head_sha="old", pr_numbers=[7])
        same_sha = _run(2, ".github/workflows/ai_lint_fixer.yml")
        unrelated = _run(3, ".github/workflows/deploy.yml", head_sha="zzz", pr_numbers=[8])
        repo.get_workflow_runs.side_effect = _workflow_runs([linked, same_sha, unrelated], [same_sha])
        runs = find_candidate_runs(repo, 7, HEAD_SHA, 75)
        assert sorted(r.id for r in runs) == [1, 2]

    def test_one_strategy_failing_degrades(self):
        repo = MagicMock()
        by_sha = _run(2, ".github/workflows/ai_lint_fixer.yml")

        def get_workflow_runs(**kwargs):
            if "head_sha" in kwargs:
                return [by_sha]
            raise GithubException(500, {"message": "boom"}, None)

        repo.get_workflow_runs.side_effect = get_workflow_runs
        assert [r.id for r in find_candidate_runs(repo, 7, HEAD_SHA, 75)] == [2]

    def test_window_is_bounded(self):
        repo = MagicMock()
        runs = [_run(i, ".github/workflows/deploy.yml", head_sha="other", pr_numbers=[7]) for i in range(10)]
        repo.get_workflow_runs.side_effect = _workflow_runs(runs, [])
        assert len(find_candidate_runs(repo, 7, HEAD_SHA, 4)) == 4


class TestSummarizeRun:
    def test_maps_jobs_steps_and_artifacts(self):
        run = summarize_run(_run(5, ".github/workflows/validate_generated_tool_pr.yml"))
        assert run.workflow_file_name == "validate_generated_tool_pr.yml"
        assert run.jobs[0].steps[0].name == "checkout"
        assert run.artifacts[0].size_bytes == 120
        assert run.detail_error is None

    def test_jobs_failure_marks_detail_error(self):
        raw = _run(5, ".github/workflows/validate_generated_tool_pr.yml")
        raw.jobs.side_effect = GithubException(502, {"message": "Bad Gateway"}, None)
        run = summarize_run(raw)
        assert run.jobs == []
        assert run.artifacts == []
        assert run.detail_error


class TestClassifyCommentAuthor:
    def test_marker_disambiguates_shared_login(self):
        body = "## 🤖 AI Lint Fixer Results\nDone."
        assert classify_comment_author("github-actions[bot]", body, True, IDENTITIES) == "ALF"

    def test_login_is_case_insensitive(self):
        assert classify_comment_author("Netlify[bot]", "Deploy Preview ready", True, IDENTITIES) == "Netlify"

    def test_app_login(self):
        assert classify_comment_author("OET-Bot[bot]", "hi", True, IDENTITIES, app_login="oet-bot[bot]") == "APP"

    def test_unknown_bot(self):
        assert classify_comment_author("dependabot[bot]", "bump", True, IDENTITIES) == "OtherBot"

    def test_human(self):
        assert classify_comment_author("octocat", "looks good", False, IDENTITIES) is None


class TestCheckSuites:
    def test_keyed_by_slug_without_github_actions(self):
        repo = MagicMock()
        repo.get_commit.return_value.get_check_suites.return_value = [
            _suite(1, "github-actions", "completed", "success"),
            _suite(2, "netlify", "in_progress", None),
        ]
        suites = get_check_suites(repo, HEAD_SHA)
        assert list(suites) == ["netlify"]
        assert suites["netlify"].status == "in_progress"

    def test_failure_degrades_to_empty(self):
        repo = MagicMock()
        repo.get_commit.side_effect = GithubException(500, {"message": "boom"}, None)
        assert get_check_suites(repo, HEAD_SHA) == {}


class TestToolGenerationInfo:
    def test_found(self):
        repo = MagicMock()
        repo.get_contents.return_value = SimpleNamespace(
            decoded_content=json.dumps({"npmDependenciesFulfilled": "absent"}).encode()
        )
        info = get_tool_generation_info(repo, "color-picker", HEAD_SHA)
        assert info.status == "found"
        assert info.content == {"npmDependenciesFulfilled": "absent"}
        repo.get_contents.assert_called_once_with("app/tool/color-picker/tool-generation-info.json", ref=HEAD_SHA)

    def test_missing_file(self):
        repo = MagicMock()
        repo.get_contents.side_effect = GithubException(404, {"message": "Not Found"}, None)
        info = get_tool_generation_info(repo, "color-picker", HEAD_SHA)
        assert info.status == "error_fetching"
        assert "File not found" in info.error

    def test_no_directive(self):
        assert get_tool_generation_info(MagicMock(), None, HEAD_SHA).status == "not_applicable"


class TestSummarize:
    def _client(self, pr, runs=(), suites=()):
        repo = MagicMock()
        repo.get_pull.return_value = pr
        repo.get_workflow_runs.side_effect = _workflow_runs(list(runs), [])
        repo.get_commit.return_value.get_check_suites.return_value = list(suites)
        repo.get_contents.side_effect = GithubException(404, {"message": "Not Found"}, None)
        return SimpleNamespace(repo=repo, app_login="oet-bot[bot]")

    def test_full_summary(self):
        comments = [
            _comment(1, "octocat", "User Feedback: 👍 \n\nNice tool"),
            _comment(
                2,
                "netlify[bot]",
                "Deploy Preview ready! https://deploy-preview-7--oet-tools.netlify.app",
                "Bot",
            ),
            _comment(
                3,
                "github-actions[bot]",
                "OET Tool PR Validation Status\n(Direct Imgur Link: https://i.imgur.com/AbC123.png)",
                "Bot",
            ),
        ]
        pr = _pr(comments=comments)
        runs = [_run(11, ".github/workflows/validate_generated_tool_pr.yml", pr_numbers=[7])]
        suites = [_suite(9, "netlify", "completed", "success")]

        summary = summarize(self._client(pr, runs, suites), 7, DEFAULT_CONFIG)

        assert summary.pr.branch == "feat/gen-color-picker-2"
        assert [r.id for r in summary.workflow_runs[WorkflowCategory.VPR]] == [11]
        assert summary.deploy_preview.conclusion == "success"
        assert summary.deploy_preview_url == "https://deploy-preview-7--oet-tools.netlify.app/tool/color-picker/"
        assert summary.screenshot_url == "https://i.imgur.com/AbC123.png"
        assert summary.tool_generation_info.status == "error_fetching"
        assert [c.bot_type for c in summary.recent_comments] == ["VPR", "Netlify", None]

        data = summary.to_dict()
        assert data["prInfo"]["number"] == 7
        assert set(data["githubActions"]) == {"vpr", "adm", "alf", "other"}
        assert data["recentComments"][2]["body"].startswith("User Feedback:")

    def test_missing_pr_is_not_found(self):
        client = self._client(_pr())
        client.repo.get_pull.side_effect = GithubException(404, {"message": "Not Found"}, None)
        with pytest.raises(NotFoundError):
            summarize(client, 404, DEFAULT_CONFIG)

    def test_comment_failure_degrades(self):
        pr = _pr()
        pr.get_issue_comments.side_effect = GithubException(500, {"message": "boom"}, None)
        summary = summarize(self._client(pr), 7, DEFAULT_CONFIG)
        assert summary.recent_comments == []
