"""Async facade over PyGithub for the one tracked repository.

PyGithub is synchronous, so every call is pushed onto a worker thread to keep
the event loop free while the network round-trip is in flight. Failures are
translated into formatbot's error types at this boundary.
"""

from __future__ import annotations

import asyncio
import logging

from github import GithubException

from formatbot_core.errors import CommentError, RemoteFetchError
from formatbot_core.gh.pull_request import (
    get_changed_paths,
    get_pull,
    get_pull_requests,
    get_repo,
    snapshot_from_pull,
)
from formatbot_core.models import PullRequestSnapshot

logger = logging.getLogger(__name__)

# requests' exceptions derive from OSError, so this covers network failures too.
_REMOTE_ERRORS = (GithubException, OSError)


class HostingClient:
    def __init__(self, repo_name: str, token: str | None, api_url: str = "https://api.github.com", repo_obj=None):
        self.repo_name = repo_name
        self._token = token
        self._api_url = api_url
        self._repo = repo_obj

    def _get_repo(self):
        if self._repo is None:
            self._repo = get_repo(self.repo_name, self._token, self._api_url)
        return self._repo

    async def fetch_repository(self) -> str:
        """Return the HTTPS clone URL of the tracked repository."""
        try:
            repo = await asyncio.to_thread(self._get_repo)
        except _REMOTE_ERRORS as e:
            raise RemoteFetchError(f"Could not fetch repository {self.repo_name}: {e}") from e
        return repo.clone_url

    def _open_snapshots(self) -> list[PullRequestSnapshot]:
        return [snapshot_from_pull(pr) for pr in get_pull_requests(self._get_repo(), state="open")]

    async def fetch_open_pull_requests(self) -> list[PullRequestSnapshot]:
        try:
            return await asyncio.to_thread(self._open_snapshots)
        except _REMOTE_ERRORS as e:
            raise RemoteFetchError(f"Could not list open pull requests: {e}") from e

    def _changed_paths(self, pr_id: int) -> list[str]:
        return get_changed_paths(get_pull(self._get_repo(), pr_id))

    async def fetch_diff(self, pr_id: int) -> list[str]:
        """Return the repository-relative paths changed by PR ``pr_id``."""
        try:
            return await asyncio.to_thread(self._changed_paths, pr_id)
        except _REMOTE_ERRORS as e:
            raise RemoteFetchError(f"Could not fetch diff of PR #{pr_id}: {e}") from e

    def _comment(self, markdown: str, pr_id: int) -> None:
        get_pull(self._get_repo(), pr_id).create_issue_comment(markdown)

    async def comment_pull_request(self, markdown: str, pr_id: int) -> None:
        try:
            await asyncio.to_thread(self._comment, markdown, pr_id)
        except _REMOTE_ERRORS as e:
            raise CommentError(f"Could not comment on PR #{pr_id}: {e}") from e
