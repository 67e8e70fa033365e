"""Tests for approval counting and the rising-edge trigger."""

import pytest

from formatbot_core.models import PullRequestSnapshot, Reviewer
from formatbot_core.review_gate import approval_count, crossed_threshold


def pr_with(approved: int, total: int = 5) -> PullRequestSnapshot:
    reviewers = tuple(Reviewer(name=f"user{i}", approved=i < approved) for i in range(total))
    return PullRequestSnapshot(id=7, branch="feature", reviewers=reviewers)


class TestApprovalCount:
    def test_no_reviewers(self):
        assert approval_count(PullRequestSnapshot(id=1, branch="b")) == 0

    def test_counts_only_approved(self):
        assert approval_count(pr_with(2, total=4)) == 2


class TestCrossedThreshold:
    @pytest.mark.parametrize(
        "old, new, expected",
        [
            (1, 3, True),  # rises past the quorum
            (2, 3, True),  # rises exactly onto it
            (0, 2, False),  # still below
            (3, 4, False),  # already met before
            (3, 3, False),  # unchanged at the quorum
            (4, 2, False),  # falling edge
            (2, 2, False),
        ],
    )
    def test_rising_edge_only(self, old, new, expected):
        assert crossed_threshold(pr_with(old), pr_with(new), threshold=3) is expected

    def test_approval_revoked_and_regranted_crosses_again(self):
        # 3 -> 2 is not a trigger, but a later 2 -> 3 is a new rising edge.
        assert crossed_threshold(pr_with(3), pr_with(2), 3) is False
        assert crossed_threshold(pr_with(2), pr_with(3), 3) is True
