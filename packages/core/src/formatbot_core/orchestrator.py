"""Event-driven orchestration of the two pull request workflows.

on-create:  fetch diff -> [lock: checkout, pull, style check] -> comment
on-update:  (rising edge of approvals only)
            fetch diff -> [lock: checkout, format, build, commit, push | stash] -> comment

The working tree is shared by every workflow, so everything between checkout
and the last git operation runs while holding the WorkingTreeLock. Remote
reads and comment posting stay outside it. Blocking calls (git, the tools)
run on worker threads.

Events for the same PR are handled one at a time in detection order; events
for different PRs run concurrently and only meet at the working-tree lock.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from formatbot_core.config import BotConfig
from formatbot_core.errors import (
    BuildGoalFailure,
    CommitError,
    LockTimeout,
    PushError,
    RemoteFetchError,
    StashError,
    WorkingTreeError,
)
from formatbot_core.lock import WorkingTreeLock
from formatbot_core.models import (
    Closed,
    Created,
    Event,
    Heartbeat,
    PullRequestSnapshot,
    Updated,
    WorkflowOutcome,
    WorkflowResult,
    WorkflowState,
)
from formatbot_core.publisher import CommentPublisher, outcome_for_findings
from formatbot_core.review_gate import approval_count, crossed_threshold
from formatbot_core.utils.code import filter_by_extension

logger = logging.getLogger(__name__)

COMMIT_BODY = "This action was performed automatically by a bot."


class Orchestrator:
    def __init__(
        self,
        config: BotConfig,
        client,
        tree,
        style_checker,
        formatter,
        builder,
        publisher: CommentPublisher,
        lock: Optional[WorkingTreeLock] = None,
        retry_delay: float = 1.0,
    ):
        self.config = config
        self._client = client
        self._tree = tree
        self._style_checker = style_checker
        self._formatter = formatter
        self._builder = builder
        self._publisher = publisher
        self.lock = lock or WorkingTreeLock(config.lock_timeout)
        self.retry_delay = retry_delay
        self._pr_locks: dict[int, asyncio.Lock] = {}
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------ #
    # Event dispatch                                                       #
    # ------------------------------------------------------------------ #

    async def run(self, events: asyncio.Queue) -> None:
        """Consume events forever, in the order they were detected."""
        while True:
            event = await events.get()
            try:
                self.dispatch(event)
            finally:
                events.task_done()

    def dispatch(self, event: Event) -> Optional[asyncio.Task]:
        if isinstance(event, Heartbeat):
            logger.debug("Heartbeat #%d", event.tick)
            return None
        if isinstance(event, Closed):
            logger.info("Pull Request #%d was closed", event.snapshot.id)
            pr_lock = self._pr_locks.get(event.snapshot.id)
            if pr_lock is not None and not pr_lock.locked():
                del self._pr_locks[event.snapshot.id]
            return None
        if isinstance(event, Created):
            logger.info("Pull Request #%d was created", event.snapshot.id)
            return self._spawn(event.snapshot.id, self.on_created(event.snapshot))
        if isinstance(event, Updated):
            logger.info("Pull Request #%d was updated", event.new.id)
            return self._spawn(event.new.id, self.on_updated(event.old, event.new))
        raise TypeError(f"Unknown event: {event!r}")

    def _spawn(self, pr_id: int, workflow) -> asyncio.Task:
        task = asyncio.create_task(self._in_pr_order(pr_id, workflow), name=f"pr-{pr_id}")
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    async def _in_pr_order(self, pr_id: int, workflow):
        pr_lock = self._pr_locks.setdefault(pr_id, asyncio.Lock())
        async with pr_lock:
            return await workflow

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Workflow %s failed unexpectedly", task.get_name(), exc_info=exc)

    async def drain(self) -> None:
        """Wait until every workflow started so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Shared steps                                                         #
    # ------------------------------------------------------------------ #

    async def _fetch_diff_sources(self, pr_id: int) -> Optional[list[str]]:
        """Return the absolute paths of the PR's changed files, or None once every attempt failed."""
        attempts = self.config.fetch_retries
        for attempt in range(attempts):
            try:
                relative = await self._client.fetch_diff(pr_id)
                return self._tree.extend_repo_paths(relative)
            except RemoteFetchError as e:
                if attempt == attempts - 1:
                    logger.error("Could not fetch the diff of PR #%d after %d attempts: %s", pr_id, attempts, e)
                    return None
                delay = self.retry_delay * 2**attempt
                logger.warning(
                    "Fetching the diff of PR #%d failed (attempt %d/%d): %s. Retrying in %ss...",
                    pr_id,
                    attempt + 1,
                    attempts,
                    e,
                    delay,
                )
                await asyncio.sleep(delay)
        return None

    async def _blocking(self, func, *args):
        """Run ``func`` on a worker thread.

        If the workflow is cancelled meanwhile (workflow timeout), wait for the
        thread to return before letting the cancellation through, so the
        working tree stays held until nothing touches it anymore.
        """
        name = getattr(func, "__name__", repr(func))
        step = asyncio.ensure_future(asyncio.to_thread(func, *args))
        try:
            return await asyncio.shield(step)
        except asyncio.CancelledError:
            logger.warning("Waiting for %s to return before releasing the working tree", name)
            await asyncio.wait({step})
            if step.exception() is not None:
                logger.warning("Abandoned %s failed: %s", name, step.exception())
            raise

    async def _with_tree(self, pr: PullRequestSnapshot, locked_steps) -> WorkflowOutcome:
        """Run ``locked_steps`` while holding the working tree, bounded by the workflow timeout."""
        try:
            async with self.lock.hold(pr.id):
                return await asyncio.wait_for(locked_steps(), self.config.workflow_timeout)
        except LockTimeout as e:
            logger.error("%s", e)
            return WorkflowOutcome(WorkflowResult.TIMED_OUT)
        except asyncio.TimeoutError:
            logger.error("Workflow for PR #%d exceeded %ss and was abandoned", pr.id, self.config.workflow_timeout)
            return WorkflowOutcome(WorkflowResult.TIMED_OUT)

    async def _checkout(self, pr: PullRequestSnapshot, pull: bool) -> bool:
        try:
            await self._blocking(self._tree.force_checkout, pr.branch)
            if pull:
                await self._blocking(self._tree.pull)
        except WorkingTreeError as e:
            logger.warning("Could not check out %s for PR #%d: %s %s", pr.branch, pr.id, e, e.stderr.strip())
            return False
        return True

    # ------------------------------------------------------------------ #
    # on-create: style check                                               #
    # ------------------------------------------------------------------ #

    async def on_created(self, pr: PullRequestSnapshot) -> Optional[WorkflowOutcome]:
        sources = await self._fetch_diff_sources(pr.id)
        if sources is None:
            outcome = WorkflowOutcome(WorkflowResult.DIFF_UNAVAILABLE)
            await self._publisher.publish(outcome, pr.id)
            return outcome

        async def locked_steps() -> WorkflowOutcome:
            if not await self._checkout(pr, pull=True):
                return WorkflowOutcome(WorkflowResult.CHECKOUT_FAILED)
            logger.info("Checking %d modified file(s) of PR #%d for style conflicts", len(sources), pr.id)
            findings = await self._blocking(self._style_checker.run_checks, sources)
            return outcome_for_findings(findings)

        outcome = await self._with_tree(pr, locked_steps)
        await self._publisher.publish(outcome, pr.id)
        return outcome

    # ------------------------------------------------------------------ #
    # on-update: format once the approval quorum is first reached          #
    # ------------------------------------------------------------------ #

    async def on_updated(self, old: PullRequestSnapshot, new: PullRequestSnapshot) -> Optional[WorkflowOutcome]:
        threshold = self.config.approvals_until_format
        logger.debug(
            "Approvals for PR #%d went from %d to %d (threshold %d)",
            new.id,
            approval_count(old),
            approval_count(new),
            threshold,
        )
        if not crossed_threshold(old, new, threshold):
            return None

        logger.info("PR #%d reached %d approval(s), starting the formatter", new.id, threshold)
        sources = await self._fetch_diff_sources(new.id)
        if sources is None:
            outcome = WorkflowOutcome(WorkflowResult.DIFF_UNAVAILABLE)
            await self._publisher.publish(outcome, new.id)
            return outcome
        logger.debug("Found diffs: %s", " ".join(sources))

        outcome = await self._with_tree(new, lambda: self._format_build_commit_push(new, sources))
        await self._publisher.publish(outcome, new.id)
        return outcome

    def _enter(self, pr: PullRequestSnapshot, state: WorkflowState) -> None:
        logger.info("PR #%d: %s", pr.id, state.value)

    async def _format_build_commit_push(self, pr: PullRequestSnapshot, sources: list[str]) -> WorkflowOutcome:
        if not await self._checkout(pr, pull=False):
            return WorkflowOutcome(WorkflowResult.CHECKOUT_FAILED)

        self._enter(pr, WorkflowState.FORMATTING)
        formattable = filter_by_extension(sources, self.config.format_extensions)
        logger.debug("Filtered diffs: %s", " ".join(formattable))
        await self._blocking(self._formatter.format, formattable)

        self._enter(pr, WorkflowState.BUILDING)
        try:
            await self._blocking(self._builder.execute_goals, list(self.config.build_goals))
        except BuildGoalFailure as e:
            # Formatter edits stay in the tree; the next force checkout discards them.
            logger.error("PR #%d: %s", pr.id, e)
            return WorkflowOutcome(WorkflowResult.BUILD_GOAL_FAILED)

        self._enter(pr, WorkflowState.COMMITTING)
        try:
            await self._blocking(self._tree.commit_all, f"Auto-Reformat PR#{pr.id}", COMMIT_BODY)
        except CommitError as e:
            if e.nothing_staged:
                logger.info("PR #%d: found nothing to commit", pr.id)
            else:
                logger.warning("PR #%d: commit failed: %s %s", pr.id, e, e.stderr.strip())
            return WorkflowOutcome(WorkflowResult.NOTHING_TO_COMMIT)

        self._enter(pr, WorkflowState.PUSHING)
        try:
            await self._blocking(self._tree.push)
        except PushError as e:
            logger.warning("PR #%d: could not push formatted code: %s", pr.id, e.stderr.strip() or e)
            try:
                await self._blocking(self._tree.stash)
            except StashError as stash_error:
                # The unpushed commit stays on the branch until the next force checkout resets it.
                logger.error(
                    "PR #%d: could not stash unpushed changes: %s %s", pr.id, stash_error, stash_error.stderr.strip()
                )
                return WorkflowOutcome(WorkflowResult.PUSH_FAILED)
            return WorkflowOutcome(WorkflowResult.PUSH_FAILED_AND_STASHED)

        self._enter(pr, WorkflowState.DONE)
        return WorkflowOutcome(WorkflowResult.DONE)
