"""Exception hierarchy for formatbot.

Each class maps onto one failure category the orchestrator knows how to
handle. Anything outside this hierarchy is unexpected: it is logged with a
traceback (which raises an alert) and aborts only the workflow it occurred in.
"""

from __future__ import annotations


class FormatBotError(Exception):
    """Base class for all formatbot errors."""


class RemoteFetchError(FormatBotError):
    """A read from the hosting service failed. Transient; retried on the next tick."""


class CommentError(FormatBotError):
    """Posting a comment to a pull request failed."""


class WorkingTreeError(FormatBotError):
    """A git operation on the shared working tree failed."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class CheckoutError(WorkingTreeError):
    pass


class PullError(WorkingTreeError):
    pass


class CommitError(WorkingTreeError):
    def __init__(self, message: str, stderr: str = "", nothing_staged: bool = False):
        super().__init__(message, stderr)
        self.nothing_staged = nothing_staged


class PushError(WorkingTreeError):
    pass


class StashError(WorkingTreeError):
    pass


class BuildGoalFailure(FormatBotError):
    """A required build goal exited unsuccessfully."""

    def __init__(self, goal: str):
        super().__init__(f"Required build goal failed: {goal}")
        self.goal = goal


class StyleCheckError(FormatBotError):
    pass


class FormatterError(FormatBotError):
    pass


class LockTimeout(FormatBotError):
    """The working-tree lock could not be acquired in time."""
