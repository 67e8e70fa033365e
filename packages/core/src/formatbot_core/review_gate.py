"""Approval counting and threshold-crossing policy. Pure functions, no I/O."""

from __future__ import annotations

from formatbot_core.models import PullRequestSnapshot


def approval_count(snapshot: PullRequestSnapshot) -> int:
    return sum(1 for reviewer in snapshot.reviewers if reviewer.approved)


def crossed_threshold(old: PullRequestSnapshot, new: PullRequestSnapshot, threshold: int) -> bool:
    """True only on the rising edge: ``old`` was below the quorum and ``new`` meets it.

    A PR that already had enough approvals never crosses again, however its
    approvals change afterwards.
    """
    return approval_count(old) < threshold <= approval_count(new)
