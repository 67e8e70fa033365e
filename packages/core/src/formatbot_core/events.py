"""Polling event source.

Each tick fetches the open pull requests, compares them against the snapshots
seen on the previous tick and puts one event per detected transition on the
queue. A heartbeat is emitted on every tick, whether or not anything changed.
"""

from __future__ import annotations

import asyncio
import logging

from formatbot_core.errors import RemoteFetchError
from formatbot_core.models import Closed, Created, Event, Heartbeat, PullRequestSnapshot, Updated

logger = logging.getLogger(__name__)


def _approved_by(snapshot: PullRequestSnapshot) -> frozenset:
    return frozenset(r.name for r in snapshot.reviewers if r.approved)


def _changed(old: PullRequestSnapshot, new: PullRequestSnapshot) -> bool:
    return _approved_by(old) != _approved_by(new) or old.branch != new.branch


def detect_changes(
    known: dict[int, PullRequestSnapshot],
    current: list[PullRequestSnapshot],
) -> tuple[list[Event], dict[int, PullRequestSnapshot]]:
    """Diff the open PRs of this tick against the previously tracked ones.

    Returns the events in detection order (creates and updates in the order
    the PRs were listed, then closes) and the mapping to track next tick.
    """
    events: list[Event] = []
    tracked: dict[int, PullRequestSnapshot] = {}

    for snapshot in current:
        if snapshot.id in tracked:
            continue
        previous = known.get(snapshot.id)
        if previous is None:
            events.append(Created(snapshot))
        elif _changed(previous, snapshot):
            events.append(Updated(previous, snapshot))
        tracked[snapshot.id] = snapshot

    for pr_id, previous in known.items():
        if pr_id not in tracked:
            events.append(Closed(previous))

    return events, tracked


class EventSource:
    def __init__(self, client, queue: asyncio.Queue, interval: float, skip_existing: bool = False):
        self._client = client
        self._queue = queue
        self._interval = interval
        self._skip_existing = skip_existing
        self._known: dict[int, PullRequestSnapshot] = {}
        self._seeded = False
        self.ticks = 0

    @property
    def tracked(self) -> dict[int, PullRequestSnapshot]:
        return dict(self._known)

    async def tick(self) -> list[Event]:
        """Run one poll cycle and return the change events it queued."""
        self.ticks += 1
        await self._queue.put(Heartbeat(self.ticks))

        try:
            current = await self._client.fetch_open_pull_requests()
        except RemoteFetchError as e:
            logger.warning("Poll failed, will retry next tick: %s", e)
            return []

        events, self._known = detect_changes(self._known, current)
        if not self._seeded:
            self._seeded = True
            if self._skip_existing:
                logger.info("Tracking %d already open pull request(s) without checking them", len(self._known))
                return []

        for event in events:
            await self._queue.put(event)
        return events

    async def run(self) -> None:
        logger.info("Polling %s every %ss", getattr(self._client, "repo_name", "repository"), self._interval)
        while True:
            await self.tick()
            await asyncio.sleep(self._interval)
