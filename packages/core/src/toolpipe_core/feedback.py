"""User feedback comments on generated-tool PRs.

Feedback is an ordinary issue comment whose body starts with a fixed header:

    User Feedback: <emoji>

    <free text>

Anything else on the PR (bot reports, discussion) is not feedback.
"""

from __future__ import annotations

import logging
import re

from github import BadCredentialsException, GithubException

from toolpipe_core.errors import UpstreamError, ValidationError
from toolpipe_core.models import PrFeedbackComment

logger = logging.getLogger(__name__)

DEFAULT_EMOJI = "💬"
FEEDBACK_HEADER = "User Feedback:"

# Anchored at the start of the body: a quoted header further down is not feedback.
_FEEDBACK_RE = re.compile(r"\AUser Feedback: ([^\r\n]+?)[ \t]*\r?\n\r?\n(.*)\Z", re.DOTALL)


def format_feedback_body(emoji: str, text: str) -> str:
    return f"{FEEDBACK_HEADER} {emoji} \n\n{text}"


def parse_feedback(body: str | None) -> tuple[str, str] | None:
    """Return ``(emoji, text)`` for a feedback-shaped body, otherwise None."""
    if not body:
        return None
    match = _FEEDBACK_RE.match(body)
    if not match:
        return None
    return match.group(1).strip(), match.group(2).strip()


def validate_feedback_input(pr_number, emoji, text) -> tuple[int, str, str]:
    """Check caller input and return normalized ``(pr_number, emoji, text)``.

    Runs before any authentication or network call.
    """
    if isinstance(pr_number, str) and pr_number.strip().isdigit():
        pr_number = int(pr_number)
    if isinstance(pr_number, bool) or not isinstance(pr_number, int) or pr_number <= 0:
        raise ValidationError("Valid PR number is required.")
    if emoji is None or (isinstance(emoji, str) and not emoji.strip()):
        emoji = DEFAULT_EMOJI
    if not isinstance(emoji, str):
        raise ValidationError("Emoji must be a string.")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Comment text cannot be empty.")
    return pr_number, emoji.strip(), text.strip()


def _is_app_author(login: str | None, app_login: str | None) -> bool:
    if not login or not app_login:
        return False
    return login.lower() == app_login.lower()


def to_feedback_comment(comment, app_login: str | None) -> PrFeedbackComment | None:
    """Map a PyGithub IssueComment to a PrFeedbackComment, or None if it is not feedback."""
    parsed = parse_feedback(comment.body)
    if parsed is None:
        return None
    emoji, text = parsed
    login = comment.user.login if comment.user is not None else None
    return PrFeedbackComment(
        id=comment.id,
        author_login=login,
        is_app_author=_is_app_author(login, app_login),
        emoji=emoji,
        text=text,
        created_at=comment.created_at,
        html_url=comment.html_url,
    )


def list_feedback(client, pr_number: int) -> list[PrFeedbackComment]:
    """Return the feedback comments of a PR in the order they were posted."""
    try:
        comments = list(client.repo.get_issue(pr_number).get_comments())
    except BadCredentialsException:
        raise
    except GithubException as e:
        raise UpstreamError.from_github(e, f"comments of PR #{pr_number}") from e

    feedback = []
    for comment in comments:
        item = to_feedback_comment(comment, client.app_login)
        if item is not None:
            feedback.append(item)
    logger.info("PR #%d: %d of %d comment(s) are feedback.", pr_number, len(feedback), len(comments))
    return feedback


def post_feedback(client, pr_number: int, emoji: str | None, text: str) -> PrFeedbackComment:
    pr_number, emoji, text = validate_feedback_input(pr_number, emoji, text)
    body = format_feedback_body(emoji, text)
    try:
        comment = client.repo.get_issue(pr_number).create_comment(body)
    except BadCredentialsException:
        raise
    except GithubException as e:
        raise UpstreamError.from_github(e, f"posting feedback to PR #{pr_number}") from e

    logger.info("Posted feedback comment %s on PR #%d.", comment.id, pr_number)
    login = comment.user.login if comment.user is not None else None
    return PrFeedbackComment(
        id=comment.id,
        author_login=login,
        is_app_author=_is_app_author(login, client.app_login),
        emoji=emoji,
        text=text,
        created_at=comment.created_at,
        html_url=comment.html_url,
    )
