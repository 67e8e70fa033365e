"""Tests for poll-diff change detection and the polling event source."""

import asyncio

import pytest

from formatbot_core.errors import RemoteFetchError
from formatbot_core.events import EventSource, detect_changes
from formatbot_core.models import Closed, Created, Heartbeat, PullRequestSnapshot, Reviewer, Updated


def snap(pr_id, branch="feature", approved=()):
    reviewers = tuple(Reviewer(name=n, approved=n in approved) for n in ("alice", "bob", "carol"))
    return PullRequestSnapshot(id=pr_id, branch=branch, reviewers=reviewers)


class FakeClient:
    repo_name = "acme/widgets"

    def __init__(self, *responses):
        self._responses = list(responses)

    async def fetch_open_pull_requests(self):
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def drain(queue: asyncio.Queue) -> list:
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


# ---------------------------------------------------------------------------
# detect_changes
# ---------------------------------------------------------------------------


class TestDetectChanges:
    def test_new_pr_emits_created(self):
        events, known = detect_changes({}, [snap(1)])
        assert events == [Created(snap(1))]
        assert known == {1: snap(1)}

    def test_unchanged_pr_emits_nothing(self):
        events, known = detect_changes({1: snap(1)}, [snap(1)])
        assert events == []
        assert known == {1: snap(1)}

    def test_approval_change_emits_updated(self):
        old, new = snap(1), snap(1, approved=("alice",))
        events, known = detect_changes({1: old}, [new])
        assert events == [Updated(old, new)]
        assert known[1] == new

    def test_branch_change_emits_updated(self):
        old, new = snap(1), snap(1, branch="renamed")
        events, _ = detect_changes({1: old}, [new])
        assert events == [Updated(old, new)]

    def test_reviewer_roster_change_without_approval_emits_nothing(self):
        old = snap(1, approved=("alice",))
        new = PullRequestSnapshot(
            id=1,
            branch="feature",
            reviewers=old.reviewers + (Reviewer(name="dave", approved=False),),
        )
        events, known = detect_changes({1: old}, [new])
        assert events == []
        assert known[1] == new

    def test_approval_moving_between_reviewers_emits_updated(self):
        old, new = snap(1, approved=("alice",)), snap(1, approved=("bob",))
        events, _ = detect_changes({1: old}, [new])
        assert events == [Updated(old, new)]

    def test_missing_pr_emits_closed_and_is_dropped(self):
        events, known = detect_changes({1: snap(1), 2: snap(2)}, [snap(2)])
        assert events == [Closed(snap(1))]
        assert known == {2: snap(2)}

    def test_detection_order(self):
        known = {1: snap(1), 2: snap(2)}
        current = [snap(3), snap(2, approved=("bob",))]
        events, _ = detect_changes(known, current)
        assert [type(e) for e in events] == [Created, Updated, Closed]

    def test_duplicate_listing_counted_once(self):
        events, known = detect_changes({}, [snap(1), snap(1)])
        assert events == [Created(snap(1))]
        assert len(known) == 1

    def test_input_mapping_not_mutated(self):
        known = {1: snap(1)}
        detect_changes(known, [])
        assert known == {1: snap(1)}


# ---------------------------------------------------------------------------
# EventSource
# ---------------------------------------------------------------------------


class TestEventSource:
    @pytest.mark.asyncio
    async def test_heartbeat_every_tick_even_without_changes(self):
        queue = asyncio.Queue()
        source = EventSource(FakeClient([], []), queue, interval=0)
        await source.tick()
        await source.tick()
        assert drain(queue) == [Heartbeat(1), Heartbeat(2)]

    @pytest.mark.asyncio
    async def test_events_follow_heartbeat(self):
        queue = asyncio.Queue()
        source = EventSource(FakeClient([snap(5)]), queue, interval=0)
        emitted = await source.tick()
        assert emitted == [Created(snap(5))]
        assert drain(queue) == [Heartbeat(1), Created(snap(5))]

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_state_and_emits_no_event(self):
        queue = asyncio.Queue()
        old, new = snap(7), snap(7, approved=("alice",))
        client = FakeClient([old], RemoteFetchError("boom"), [new])
        source = EventSource(client, queue, interval=0)

        await source.tick()
        assert await source.tick() == []
        assert source.tracked == {7: old}
        assert await source.tick() == [Updated(old, new)]

        events = [e for e in drain(queue) if not isinstance(e, Heartbeat)]
        assert events == [Created(old), Updated(old, new)]

    @pytest.mark.asyncio
    async def test_skip_existing_seeds_without_created(self):
        queue = asyncio.Queue()
        client = FakeClient([snap(1)], [snap(1), snap(2)])
        source = EventSource(client, queue, interval=0, skip_existing=True)

        assert await source.tick() == []
        assert source.tracked == {1: snap(1)}
        assert await source.tick() == [Created(snap(2))]

    @pytest.mark.asyncio
    async def test_skip_existing_waits_for_first_successful_fetch(self):
        queue = asyncio.Queue()
        client = FakeClient(RemoteFetchError("down"), [snap(1)], [snap(1), snap(2)])
        source = EventSource(client, queue, interval=0, skip_existing=True)

        await source.tick()
        assert await source.tick() == []
        assert await source.tick() == [Created(snap(2))]

    @pytest.mark.asyncio
    async def test_run_survives_fetch_errors(self):
        queue = asyncio.Queue()
        client = FakeClient(RemoteFetchError("a"), RemoteFetchError("b"), [snap(1)], *([[snap(1)]] * 50))
        source = EventSource(client, queue, interval=0)

        task = asyncio.create_task(source.run())
        while source.ticks < 4:
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        events = [e for e in drain(queue) if not isinstance(e, Heartbeat)]
        assert events == [Created(snap(1))]
