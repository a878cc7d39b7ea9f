# artisan/tasks/recovery.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Respawn runners for tasks that were live when the supervisor stopped."""

import logging
import os
import subprocess
import sys
from enum import Enum
from typing import Callable, Optional

from ..client import cooldown
from ..client.actions import ActionClient
from ..client.errors import TransportError
from ..models.task import CharacterTask
from .lifecycle import TaskManager


logger = logging.getLogger(__name__)

RECOVERY_DELAY_SECONDS = 1.0

Spawner = Callable[[CharacterTask, bool], int]


class RecoveryOutcome(str, Enum):
    """What recovery did with one task."""
    RECOVERED = "recovered"
    FAILED = "failed"
    SKIPPED = "skipped"


def process_alive(pid: Optional[int]) -> bool:
    """True if a process with ``pid`` exists on this host."""
    if not pid:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by another user.
        return True
    return True


def build_runner_command(
    task: CharacterTask,
    recovering: bool = False,
    python: Optional[str] = None,
) -> list[str]:
    """Command line that runs ``task``'s runner.

    The character is the first argument, followed by the stored arguments
    and the task id.
    """
    script_name, script_args = task.runner_ref
    command = [python or sys.executable, "-m", script_name, task.character, *script_args]
    command += ["--task-id", str(task.id)]
    if recovering:
        command.append("--recovering")
    return command


def spawn_runner(task: CharacterTask, recovering: bool = False) -> int:
    """Start the runner in its own session and return its pid.

    Raises:
        OSError: If the process cannot be started.
    """
    env = {**os.environ, "control_character": task.character}
    process = subprocess.Popen(
        build_runner_command(task, recovering),
        env=env,
        stdin=subprocess.DEVNULL,
        start_new_session=True,
    )
    logger.info(f"Spawned runner for task {task.id} ({task.character}) as pid {process.pid}")
    return process.pid


class TaskRecovery:
    """Brings live tasks back after a supervisor restart.

    Tasks are handled one at a time with a pause in between, so a restart
    does not burst the game API.

    Args:
        tasks: Task manager.
        actions: Action client used to check each character.
        spawner: Starts a runner and returns its pid.
        delay_seconds: Pause between tasks.
        is_alive: Checks whether a recorded runner pid is still running.
            Defaults to ``process_alive``.
    """

    def __init__(
        self,
        tasks: TaskManager,
        actions: ActionClient,
        spawner: Spawner = spawn_runner,
        delay_seconds: float = RECOVERY_DELAY_SECONDS,
        is_alive: Optional[Callable[[Optional[int]], bool]] = None,
    ):
        self.tasks = tasks
        self.actions = actions
        self.spawner = spawner
        self.delay_seconds = delay_seconds
        self.is_alive = is_alive or process_alive

    async def recover_task(self, task: CharacterTask) -> RecoveryOutcome:
        """Check the character and respawn the task's runner.

        A task whose recorded runner is still alive is left to it.

        Returns:
            The outcome for this task.
        """
        if self.is_alive(task.process_id):
            logger.info(
                f"Task {task.id}: runner pid {task.process_id} for {task.character} "
                f"is still alive, leaving it"
            )
            return RecoveryOutcome.SKIPPED

        try:
            details = await self.actions.fetch_details(task.character)
        except TransportError as e:
            logger.error(f"Task {task.id}: {task.character} unreachable: {e}")
            self.tasks.fail_task(task.id, f"Character unreachable during recovery: {e}")
            return RecoveryOutcome.FAILED

        if details.is_dead:
            logger.error(f"Task {task.id}: {task.character} is dead")
            self.tasks.fail_task(task.id, "Character is dead")
            return RecoveryOutcome.FAILED

        logger.info(
            f"Task {task.id}: {task.character} at ({details.x}, {details.y}), "
            f"HP {details.hp}/{details.max_hp}, {details.total_items()} items"
        )

        try:
            pid = self.spawner(task, True)
        except OSError as e:
            logger.error(f"Task {task.id}: spawn failed: {e}")
            self.tasks.fail_task(task.id, f"Failed to spawn runner: {e}")
            return RecoveryOutcome.FAILED

        self.tasks.resume_task(task.id, pid)
        return RecoveryOutcome.RECOVERED

    async def recover_all(self) -> dict[str, int]:
        """Recover every pending, running, or paused task.

        Returns:
            Counts of ``recovered``, ``failed``, ``skipped``, and ``total`` tasks.
        """
        pending = self.tasks.get_tasks_for_recovery()
        summary = {"recovered": 0, "failed": 0, "skipped": 0, "total": len(pending)}
        if not pending:
            logger.info("No tasks to recover")
            return summary

        logger.info(f"Recovering {len(pending)} tasks")
        for index, task in enumerate(pending):
            if index:
                await cooldown.sleep(self.delay_seconds * 1000)
            outcome = await self.recover_task(task)
            summary[outcome.value] += 1

        logger.info(
            f"Recovery done: {summary['recovered']} recovered, {summary['failed']} failed, "
            f"{summary['skipped']} still running"
        )
        return summary
