"""AI-assisted lint repair for generated source files.

Each file moves through a small state machine and ends as exactly one of
Unchanged / Fixed / Failed:

    scope → prompt → generate → normalize → accept-or-discard

Files are independent: a failure for one file is recorded in its outcome
and never affects the others. The batch status is graded from the outcomes
(see batch_status()) so a partially successful run is still a success.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field

from toolpipe_core.config import load_lint_prompt_template
from toolpipe_core.errors import PartialBatchFailure, SafetyBlockedError, ValidationError
from toolpipe_core.models import BatchStatus, FileFixOutcome, FileFixRequest, OutcomeKind
from toolpipe_core.providers.anthropic import AnthropicFixer
from toolpipe_core.providers.openai import OpenAIFixer

logger = logging.getLogger(__name__)

_LEADING_FENCE_RE = re.compile(r"^```[\w.+#-]*")
_TRAILING_FENCE_RE = re.compile(r"```$")
_SAFETY_SIGNATURE_RE = re.compile(r"safety|blocked|content[ _-]?filter|refusal", re.IGNORECASE)

_STATUS_MESSAGES = {
    BatchStatus.SUCCESS: "Lint fixing process completed successfully. AI proposed fixes for one or more files.",
    BatchStatus.NO_CHANGES_PROPOSED: "Lint fixing process completed. No changes were proposed for any file.",
    BatchStatus.PARTIAL_FAILURE: (
        "Lint fixing completed with partial success. Some files could not be processed by the AI."
    ),
    BatchStatus.ALL_FAILED: "Lint fixing failed. The AI could not process any of the files.",
}


@dataclass
class RepairResult:
    outcomes: dict[str, FileFixOutcome] = field(default_factory=dict)
    status: BatchStatus = BatchStatus.NO_CHANGES_PROPOSED
    message: str = ""

    @property
    def failed_paths(self) -> list[str]:
        return [path for path, o in self.outcomes.items() if o.kind is OutcomeKind.FAILED]

    def raise_for_status(self) -> None:
        """Raise PartialBatchFailure when any file failed."""
        failed = self.failed_paths
        if failed:
            raise PartialBatchFailure(failed, len(self.outcomes))


def get_fixer(config: dict, model_name: str | None = None):
    model = config["model"]
    model_name = model_name or config.get("model_name")
    timeout = config.get("model_timeout", 120)
    if model == "anthropic":
        return AnthropicFixer(api_key=config["anthropic_api_key"], model_name=model_name, timeout=timeout)
    if model == "openai":
        return OpenAIFixer(api_key=config["openai_api_key"], model_name=model_name, timeout=timeout)
    raise ValueError(f"Unknown model provider: {model!r}. Choose 'anthropic' or 'openai'.")


def parse_fix_requests(files_to_fix) -> list[FileFixRequest]:
    """Validate the raw ``filesToFix`` payload and build FileFixRequests."""
    if not isinstance(files_to_fix, list) or not files_to_fix:
        raise ValidationError('Missing or empty "filesToFix" array.')
    fix_requests = []
    for item in files_to_fix:
        if (
            not isinstance(item, dict)
            or not isinstance(item.get("path"), str)
            or not item["path"]
            or not isinstance(item.get("currentContent"), str)
        ):
            raise ValidationError(
                'Invalid structure in "filesToFix". Each item must have "path" (string) '
                'and "currentContent" (string).'
            )
        if any(r.path == item["path"] for r in fix_requests):
            raise ValidationError(f'Duplicate path in "filesToFix": {item["path"]}')
        fix_requests.append(FileFixRequest(path=item["path"], current_content=item["currentContent"]))
    return fix_requests


def scope_lint_report(lint_report: str, path: str) -> list[str]:
    """Return the lines of the lint report that mention ``path``."""
    return [line for line in lint_report.replace("\r\n", "\n").split("\n") if path in line]


def build_prompt(template: str, path: str, content: str, error_lines: list[str]) -> str:
    return (
        template.replace("{{FILE_PATH}}", path)
        .replace("{{LINT_ERRORS}}", "\n".join(error_lines))
        .replace("{{FILE_CONTENT}}", content)
    )


def normalize_response(raw: str) -> str:
    """Trim the response and strip one outer fenced code block, if present."""
    text = raw.strip()
    text = _LEADING_FENCE_RE.sub("", text, count=1)
    text = _TRAILING_FENCE_RE.sub("", text, count=1)
    return text.strip()


def is_safety_block(error: Exception) -> bool:
    return isinstance(error, SafetyBlockedError) or bool(_SAFETY_SIGNATURE_RE.search(str(error)))


def batch_status(outcomes: dict[str, FileFixOutcome]) -> BatchStatus:
    kinds = [o.kind for o in outcomes.values()]
    failed = kinds.count(OutcomeKind.FAILED)
    if kinds and failed == len(kinds):
        return BatchStatus.ALL_FAILED
    if failed:
        return BatchStatus.PARTIAL_FAILURE
    if all(kind is OutcomeKind.UNCHANGED for kind in kinds):
        return BatchStatus.NO_CHANGES_PROPOSED
    return BatchStatus.SUCCESS


def repair_file(fixer, template: str, request: FileFixRequest, lint_report: str) -> FileFixOutcome:
    error_lines = scope_lint_report(lint_report, request.path)
    if not error_lines:
        logger.info("No lint errors reference %s; skipping AI processing.", request.path)
        return FileFixOutcome.unchanged(request.current_content)

    prompt = build_prompt(template, request.path, request.current_content, error_lines)
    logger.info(
        "Sending %s to the model (%d error line(s), prompt ~%d chars).", request.path, len(error_lines), len(prompt)
    )
    try:
        raw = fixer.generate(prompt)
    except Exception as e:
        # Any model failure, timeouts included, is scoped to this file.
        blocked = is_safety_block(e)
        if blocked:
            logger.warning("Model output for %s was blocked by safety filters: %s", request.path, e)
        else:
            logger.error("AI analysis failed for %s: %s", request.path, e)
        return FileFixOutcome.failed(str(e), safety_blocked=blocked)

    fixed = normalize_response(raw)
    if not fixed or fixed == request.current_content.strip():
        logger.info("AI proposed no changes for %s.", request.path)
        return FileFixOutcome.unchanged(request.current_content)
    return FileFixOutcome.fixed(fixed)


def repair(files: list[FileFixRequest], lint_report: str, fixer, template: str | None = None) -> RepairResult:
    """Repair each file against its slice of the lint report, one at a time.

    Never raises for a per-file failure; inspect the returned outcomes (or
    call RepairResult.raise_for_status()) to find files that need resubmission.
    """
    if template is None:
        template = load_lint_prompt_template({})

    outcomes: dict[str, FileFixOutcome] = {}
    for request in files:
        started = time.monotonic()
        outcomes[request.path] = repair_file(fixer, template, request, lint_report)
        logger.info(
            "Finished %s in %dms: %s",
            request.path,
            (time.monotonic() - started) * 1000,
            outcomes[request.path].kind.value,
        )

    status = batch_status(outcomes)
    message = _STATUS_MESSAGES[status]
    logger.info("Overall outcome: %s", message)
    return RepairResult(outcomes=outcomes, status=status, message=message)
