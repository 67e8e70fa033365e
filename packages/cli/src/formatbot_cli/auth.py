"""GitHub token resolution with gh CLI fallback.

Resolution order (stops at first success):
  1. GITHUB_TOKEN environment variable (deployment / explicit override)
  2. `gh auth token` for the host the bot talks to (GitHub CLI session on
     the machine running the bot; GitHub Enterprise hosts are passed with
     --hostname)
"""

from __future__ import annotations

import logging
import os
import subprocess
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

_PUBLIC_API_HOSTS = {"api.github.com", "github.com"}


def gh_hostname(api_url: str | None) -> str | None:
    """Return the host to pass to `gh --hostname`, or None for github.com."""
    if not api_url:
        return None
    host = urlsplit(api_url).hostname
    if not host or host in _PUBLIC_API_HOSTS:
        return None
    return host


def resolve_github_token(api_url: str | None = None) -> str | None:
    """Return a GitHub token or None if no valid source is available.

    Never raises; callers should check for None and emit a UsageError.
    """
    token = os.environ.get("GITHUB_TOKEN", "").strip()
    if token:
        return token

    cmd = ["gh", "auth", "token"]
    host = gh_hostname(api_url)
    if host:
        cmd += ["--hostname", host]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=5)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None

    if result.returncode != 0:
        logger.debug("gh auth token exited with %d", result.returncode)
        return None
    return result.stdout.strip() or None
