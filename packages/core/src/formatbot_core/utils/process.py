"""Subprocess runner with timeout handling, shared by git and the build tools."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60


@dataclass
class CommandResult:
    """Result of an external command."""

    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out


def run_command(
    args: list[str],
    cwd: Path | str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> CommandResult:
    """Run a command and capture its output. Never raises on timeout or a missing binary.

    A timed-out command is reported with returncode -1 and ``timed_out`` set.
    """
    try:
        result = subprocess.run(
            args,
            cwd=str(cwd) if cwd is not None else None,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.warning("%s timed out after %ss", args[0], timeout)
        return CommandResult(
            returncode=-1,
            stdout="",
            stderr=f"Command timed out after {timeout}s",
            timed_out=True,
        )
    except FileNotFoundError:
        return CommandResult(returncode=127, stdout="", stderr=f"Executable not found: {args[0]}")
    return CommandResult(returncode=result.returncode, stdout=result.stdout, stderr=result.stderr)
