from __future__ import annotations

import logging
import os

from formatbot_core.errors import FormatterError
from formatbot_core.utils.process import run_command

logger = logging.getLogger(__name__)


class IntelliJFormatter:
    """Formats files in place with IntelliJ IDEA's command-line formatter."""

    def __init__(self, idea_path: str, timeout: float = 600):
        self.idea_path = idea_path
        self.timeout = timeout

    @property
    def executable(self) -> str:
        script = "format.bat" if os.name == "nt" else "format.sh"
        return os.path.join(self.idea_path, "bin", script)

    def format(self, paths: list[str]) -> None:
        if not paths:
            logger.debug("Nothing to hand to the formatter")
            return
        result = run_command([self.executable, "-allowDefaults"] + list(paths), timeout=self.timeout)
        if not result.success:
            raise FormatterError(f"Formatter failed (exit {result.returncode}): {result.stderr.strip()[:500]}")
        logger.debug("Formatted %d file(s)", len(paths))
