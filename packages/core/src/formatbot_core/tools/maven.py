from __future__ import annotations

import logging
import shlex

from formatbot_core.config import GoalConfig
from formatbot_core.errors import BuildGoalFailure
from formatbot_core.utils.process import run_command

logger = logging.getLogger(__name__)


class MavenExecutor:
    """Runs configured Maven goals one after another inside the working tree."""

    def __init__(self, cmd: str, cwd: str, timeout: float = 1800):
        self.cmd = shlex.split(cmd)
        self.cwd = cwd
        self.timeout = timeout

    def execute_goals(self, goals: list[GoalConfig]) -> None:
        """Run ``goals`` in order, stopping at the first required goal that fails.

        Raises BuildGoalFailure naming that goal. Optional goals may fail
        without stopping the run.
        """
        for goal in goals:
            logger.info("Executing goal %r", goal.name)
            result = run_command(self.cmd + shlex.split(goal.name), cwd=self.cwd, timeout=self.timeout)
            if result.success:
                continue
            if goal.required:
                logger.warning("Required goal %r failed (exit %d)", goal.name, result.returncode)
                raise BuildGoalFailure(goal.name)
            logger.warning("Optional goal %r failed (exit %d); continuing", goal.name, result.returncode)
