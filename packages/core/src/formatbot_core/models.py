"""Data models shared by the poller, the orchestrator and the tools.

Snapshots and events are frozen dataclasses: a snapshot is captured once per
poll tick and never mutated, so comparing two of them is enough to detect a
change.
"""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Reviewer:
    name: str
    approved: bool = False


@dataclass(frozen=True)
class PullRequestSnapshot:
    """State of one pull request as observed on a single poll tick."""

    id: int
    branch: str
    reviewers: tuple[Reviewer, ...] = ()
    open: bool = True


@dataclass(frozen=True)
class Created:
    snapshot: PullRequestSnapshot


@dataclass(frozen=True)
class Updated:
    old: PullRequestSnapshot
    new: PullRequestSnapshot


@dataclass(frozen=True)
class Closed:
    snapshot: PullRequestSnapshot


@dataclass(frozen=True)
class Heartbeat:
    tick: int


Event = Union[Created, Updated, Closed, Heartbeat]


@dataclass(frozen=True)
class Finding:
    """A single style violation reported by the style checker."""

    path: str
    line: int
    message: str
    severity: str = "warning"
    column: int | None = None
    source: str = ""

    def to_markdown(self, root: str | None = None) -> str:
        path = os.path.relpath(self.path, root) if root else self.path
        path = path.replace(os.sep, "/")
        location = f"{path}:{self.line}" + (f":{self.column}" if self.column else "")
        check = self.source.rsplit(".", 1)[-1]
        if check.endswith("Check"):
            check = check[: -len("Check")]
        suffix = f" _({check})_" if check else ""
        return f"- **{self.severity.upper()}** `{location}` {self.message}{suffix}"


class WorkflowState(str, enum.Enum):
    FORMATTING = "formatting"
    BUILDING = "building"
    COMMITTING = "committing"
    PUSHING = "pushing"
    DONE = "done"


class WorkflowResult(str, enum.Enum):
    """Every way a workflow can end. Each value maps onto exactly one comment."""

    NO_ISSUES = "no_issues"
    ISSUES_FOUND = "issues_found"
    DONE = "done"
    BUILD_GOAL_FAILED = "build_goal_failed"
    NOTHING_TO_COMMIT = "nothing_to_commit"
    PUSH_FAILED_AND_STASHED = "push_failed_and_stashed"
    CHECKOUT_FAILED = "checkout_failed"
    TIMED_OUT = "timed_out"
    DIFF_UNAVAILABLE = "diff_unavailable"
    PUSH_FAILED = "push_failed"


@dataclass(frozen=True)
class WorkflowOutcome:
    result: WorkflowResult
    findings: tuple[Finding, ...] = ()
