"""Exclusive wrapper over the bot's single local clone.

Every method here mutates or reads the shared working tree and is blocking.
Callers must hold the working-tree lock and run these off the event loop.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from formatbot_core.errors import CheckoutError, CommitError, PullError, PushError, StashError, WorkingTreeError
from formatbot_core.utils.process import CommandResult, run_command

logger = logging.getLogger(__name__)

GIT_TIMEOUT = 60
NETWORK_TIMEOUT = 300


def authenticated_url(clone_url: str, token: str | None) -> str:
    """Embed a token into an HTTPS clone URL so git can push without a prompt."""
    if not token:
        return clone_url
    parts = urlsplit(clone_url)
    if parts.scheme not in ("http", "https"):
        return clone_url
    host = parts.netloc.rsplit("@", 1)[-1]
    return urlunsplit((parts.scheme, f"x-access-token:{token}@{host}", parts.path, parts.query, parts.fragment))


class WorkingTree:
    def __init__(self, path: str | Path, clone_url: str, token: str | None, name: str, email: str):
        self.path = Path(path).resolve()
        self._clone_url = clone_url
        self._token = token
        self._name = name
        self._email = email
        self.current_branch: str | None = None

    def _git(self, args: list[str], timeout: float = GIT_TIMEOUT) -> CommandResult:
        return run_command(["git", "-C", str(self.path)] + args, timeout=timeout)

    def ensure_clone(self) -> None:
        """Clone the repository into ``path`` unless a checkout already exists there."""
        if (self.path / ".git").exists():
            logger.info("Using existing clone at %s", self.path)
        else:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            logger.info("Cloning %s into %s", self._clone_url, self.path)
            result = run_command(
                ["git", "clone", authenticated_url(self._clone_url, self._token), str(self.path)],
                timeout=NETWORK_TIMEOUT,
            )
            if not result.success:
                # stderr may echo the remote URL; keep the token out of the logs
                stderr = result.stderr.replace(self._token, "***") if self._token else result.stderr
                raise WorkingTreeError(f"Could not clone {self._clone_url}", stderr)
        for key, value in (("user.name", self._name), ("user.email", self._email)):
            self._git(["config", key, value])

    def force_checkout(self, ref: str) -> None:
        """Discard local modifications and switch to ``ref`` as it is on the remote."""
        fetch = self._git(["fetch", "--prune", "origin"], timeout=NETWORK_TIMEOUT)
        if not fetch.success:
            raise CheckoutError("git fetch failed", fetch.stderr)

        checkout = self._git(["checkout", "--force", "-B", ref, f"origin/{ref}"])
        if not checkout.success:
            raise CheckoutError(f"Could not check out {ref!r}", checkout.stderr)

        clean = self._git(["clean", "-fd"])
        if not clean.success:
            raise CheckoutError("git clean failed", clean.stderr)

        self.current_branch = ref
        logger.debug("Checked out %s", ref)

    def pull(self) -> None:
        result = self._git(["pull", "--ff-only"], timeout=NETWORK_TIMEOUT)
        if not result.success:
            raise PullError("git pull --ff-only failed", result.stderr)

    def extend_repo_paths(self, paths: list[str]) -> list[str]:
        """Resolve repository-relative paths to absolute paths inside the working tree."""
        return [os.path.join(str(self.path), *p.split("/")) for p in paths]

    def commit_all(self, summary: str, body: str) -> None:
        add = self._git(["add", "-A"])
        if not add.success:
            raise CommitError("git add failed", add.stderr)

        # --quiet exits 0 when the index matches HEAD
        staged = self._git(["diff", "--cached", "--quiet"])
        if staged.returncode == 0:
            raise CommitError("Nothing staged to commit", nothing_staged=True)

        commit = self._git(["commit", "-m", summary, "-m", body])
        if not commit.success:
            raise CommitError("git commit failed", commit.stderr)

    def push(self) -> None:
        result = self._git(["push", "origin", "HEAD"], timeout=NETWORK_TIMEOUT)
        if not result.success:
            raise PushError("git push was rejected", result.stderr)

    def stash(self) -> None:
        """Set aside uncommitted and unpushed work so the tree matches its upstream again.

        Unpushed commits are soft-reset into the index first, so a single stash
        entry holds everything and ``git stash pop`` brings it back.
        """
        ahead = self._git(["rev-list", "--count", "@{u}..HEAD"])
        if ahead.success and ahead.stdout.strip() not in ("", "0"):
            reset = self._git(["reset", "--soft", "@{u}"])
            if not reset.success:
                raise StashError("Could not reset unpushed commits", reset.stderr)

        label = f"formatbot: unpushed changes on {self.current_branch or 'HEAD'}"
        result = self._git(["stash", "push", "--include-untracked", "-m", label])
        if not result.success:
            raise StashError("git stash failed", result.stderr)
        logger.info("Stashed local changes (%s)", label)

    def is_clean(self) -> bool:
        result = self._git(["status", "--porcelain"])
        return result.success and not result.stdout.strip()
