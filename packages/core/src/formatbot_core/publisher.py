"""Markdown rendering of workflow outcomes and posting them to the pull request.

Every WorkflowResult has exactly one comment. Checked-and-clean gets an
explicit comment of its own: a missing comment would be indistinguishable
from "not checked yet".
"""

from __future__ import annotations

import asyncio
import logging

from formatbot_core.errors import CommentError
from formatbot_core.models import Finding, WorkflowOutcome, WorkflowResult

logger = logging.getLogger(__name__)

COMMENT_TEMPLATES: dict[WorkflowResult, str] = {
    WorkflowResult.NO_ISSUES: "**✔️ No checkstyle conflicts found.**",
    WorkflowResult.ISSUES_FOUND: "{findings}",
    WorkflowResult.DONE: "**✨ Formatted code was built, committed and pushed.**",
    WorkflowResult.BUILD_GOAL_FAILED: "**❗ A required maven goal failed. Will stop now.**",
    WorkflowResult.NOTHING_TO_COMMIT: "**👌 Nothing to format.**",
    WorkflowResult.PUSH_FAILED_AND_STASHED: "**⚠️ Could not push changes.**",
    WorkflowResult.CHECKOUT_FAILED: "**❗ Could not check out the source branch. Will stop now.**",
    WorkflowResult.TIMED_OUT: "**⏱️ The bot timed out working on this pull request. Will stop now.**",
    WorkflowResult.DIFF_UNAVAILABLE: "**❗ Could not fetch the changes of this pull request. Will stop now.**",
    WorkflowResult.PUSH_FAILED: "**⚠️ Could not push changes, and they could not be stashed either.**",
}


def render_findings(findings, root: str | None = None) -> str:
    return "\n".join(f.to_markdown(root) for f in findings)


def render_comment(outcome: WorkflowOutcome, root: str | None = None) -> str:
    template = COMMENT_TEMPLATES[outcome.result]
    if outcome.result is WorkflowResult.ISSUES_FOUND:
        return template.format(findings=render_findings(outcome.findings, root))
    return template


def outcome_for_findings(findings: list[Finding]) -> WorkflowOutcome:
    if findings:
        return WorkflowOutcome(WorkflowResult.ISSUES_FOUND, tuple(findings))
    return WorkflowOutcome(WorkflowResult.NO_ISSUES)


class CommentPublisher:
    """Posts comments, retrying with exponential backoff and dropping after the last attempt."""

    def __init__(self, client, max_retries: int = 3, root: str | None = None, base_delay: float = 1.0):
        self._client = client
        self.max_retries = max_retries
        self.root = root
        self.base_delay = base_delay

    async def post(self, markdown: str, pr_id: int) -> bool:
        """Return True once the comment is posted, False if it was dropped."""
        for attempt in range(self.max_retries):
            try:
                await self._client.comment_pull_request(markdown, pr_id)
                return True
            except CommentError as e:
                if attempt == self.max_retries - 1:
                    logger.error("Dropping comment for PR #%d after %d attempts: %s", pr_id, self.max_retries, e)
                    return False
                delay = self.base_delay * 2**attempt
                logger.warning(
                    "Comment on PR #%d failed (attempt %d/%d): %s. Retrying in %ss...",
                    pr_id,
                    attempt + 1,
                    self.max_retries,
                    e,
                    delay,
                )
                await asyncio.sleep(delay)
        return False

    async def publish(self, outcome: WorkflowOutcome, pr_id: int) -> bool:
        posted = await self.post(render_comment(outcome, self.root), pr_id)
        if posted:
            logger.info("Commented %s on PR #%d", outcome.result.value, pr_id)
        return posted
