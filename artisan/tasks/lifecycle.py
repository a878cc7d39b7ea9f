# artisan/tasks/lifecycle.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Persistent task records and their state machine."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

from sqlalchemy import and_, delete, func, insert, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from ..db import character_tasks
from ..exceptions import StateMachineError, TaskNotFoundError
from ..models.task import (
    ACTIVE_STATES,
    RECOVERABLE_STATES,
    TERMINAL_STATES,
    TRANSITIONS,
    CharacterTask,
    TaskState,
    TaskType,
)


logger = logging.getLogger(__name__)

_ACTIVE = [s.value for s in ACTIVE_STATES]
_RECOVERABLE = [s.value for s in RECOVERABLE_STATES]
_TERMINAL = [s.value for s in TERMINAL_STATES]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TaskManager:
    """Create, update, and query character tasks.

    At most one task per character may be outside a terminal state. Terminal
    states (completed, failed) are absorbing.

    Args:
        engine: SQLAlchemy engine with the schema created.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def _fetch(self, conn: Connection, task_id: int) -> CharacterTask:
        row = conn.execute(
            select(character_tasks).where(character_tasks.c.id == task_id)
        ).mappings().first()
        if row is None:
            raise TaskNotFoundError(f"Task {task_id} not found")
        return CharacterTask.from_row(row)

    def create_task(
        self,
        character: str,
        task_type: Union[TaskType, str],
        script_name: str,
        script_args: Optional[list[str]] = None,
        task_data: Optional[dict[str, Any]] = None,
    ) -> int:
        """Register a new task in the pending state.

        Args:
            character: Character the task drives.
            task_type: Category tag.
            script_name: Runner module to spawn.
            script_args: Arguments passed after the character name.
            task_data: Initial opaque data.

        Returns:
            The new task id.

        Raises:
            StateMachineError: If the character already has a live task.
        """
        task_type = task_type.value if isinstance(task_type, TaskType) else str(task_type)
        now = _now()
        try:
            with self.engine.begin() as conn:
                existing = conn.execute(
                    select(character_tasks.c.id, character_tasks.c.state).where(and_(
                        character_tasks.c.character == character,
                        character_tasks.c.state.in_(_ACTIVE),
                    ))
                ).first()
                if existing is not None:
                    raise StateMachineError(
                        f"{character} already has task {existing.id} ({existing.state})"
                    )
                result = conn.execute(insert(character_tasks).values(
                    character=character,
                    task_type=task_type,
                    script_name=script_name,
                    script_args=list(script_args or []),
                    task_data=dict(task_data or {}),
                    state=TaskState.PENDING.value,
                    created_at=now,
                    updated_at=now,
                ))
                task_id = result.inserted_primary_key[0]
        except IntegrityError as e:
            raise StateMachineError(f"{character} already has a live task") from e

        logger.info(f"Created task {task_id} ({task_type}) for {character}")
        return task_id

    def update_task_state(
        self,
        task_id: int,
        new_state: Union[TaskState, str],
        process_id: Optional[int] = None,
        error_message: Optional[str] = None,
        task_data: Optional[dict[str, Any]] = None,
        resuming: bool = False,
    ) -> CharacterTask:
        """Move a task to ``new_state``.

        ``task_data`` is merged into the stored data. Entering RUNNING sets
        ``start_time`` unless ``resuming``.

        Returns:
            The updated task.

        Raises:
            TaskNotFoundError: If the task does not exist.
            StateMachineError: If the transition is not allowed, or the task
                changed state concurrently.
        """
        new_state = TaskState(new_state)
        now = _now()

        with self.engine.begin() as conn:
            task = self._fetch(conn, task_id)
            if new_state not in TRANSITIONS[task.state]:
                raise StateMachineError(
                    f"Task {task_id} cannot go from {task.state.value} to {new_state.value}"
                )

            values: dict[str, Any] = {"state": new_state.value, "updated_at": now}
            if process_id is not None:
                values["process_id"] = process_id
            if error_message is not None:
                values["error_message"] = error_message
            if task_data is not None:
                values["task_data"] = {**task.task_data, **task_data}
            if new_state is TaskState.RUNNING and not resuming:
                values["start_time"] = now

            result = conn.execute(
                update(character_tasks)
                .where(and_(
                    character_tasks.c.id == task_id,
                    character_tasks.c.state == task.state.value,
                ))
                .values(**values)
            )
            if result.rowcount != 1:
                raise StateMachineError(f"Task {task_id} changed state concurrently")
            updated = self._fetch(conn, task_id)

        logger.info(f"Task {task_id}: {task.state.value} -> {new_state.value}")
        return updated

    def update_task_data(self, task_id: int, task_data: dict[str, Any]) -> CharacterTask:
        """Merge progress data into a live task without changing its state.

        Raises:
            StateMachineError: If the task is already terminal.
        """
        with self.engine.begin() as conn:
            task = self._fetch(conn, task_id)
            if task.state.is_terminal:
                raise StateMachineError(f"Task {task_id} is {task.state.value}")
            conn.execute(
                update(character_tasks)
                .where(character_tasks.c.id == task_id)
                .values(task_data={**task.task_data, **task_data}, updated_at=_now())
            )
            return self._fetch(conn, task_id)

    def get_task(self, task_id: int) -> Optional[CharacterTask]:
        with self.engine.connect() as conn:
            try:
                return self._fetch(conn, task_id)
            except TaskNotFoundError:
                return None

    def get_running_task(self, character: str) -> Optional[CharacterTask]:
        """The character's live task (idle, pending, running, or paused), if any."""
        with self.engine.connect() as conn:
            row = conn.execute(
                select(character_tasks)
                .where(and_(
                    character_tasks.c.character == character,
                    character_tasks.c.state.in_(_ACTIVE),
                ))
                .order_by(character_tasks.c.id.desc())
                .limit(1)
            ).mappings().first()
        return CharacterTask.from_row(row) if row is not None else None

    def get_character_tasks(self, character: Optional[str] = None, limit: int = 10) -> list[CharacterTask]:
        """Most recent tasks first, optionally for one character."""
        query = select(character_tasks).order_by(character_tasks.c.id.desc()).limit(limit)
        if character is not None:
            query = query.where(character_tasks.c.character == character)
        with self.engine.connect() as conn:
            return [CharacterTask.from_row(row) for row in conn.execute(query).mappings()]

    def get_tasks_for_recovery(self) -> list[CharacterTask]:
        """Every task that is pending, running, or paused, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(character_tasks)
                .where(character_tasks.c.state.in_(_RECOVERABLE))
                .order_by(character_tasks.c.id)
            ).mappings()
            return [CharacterTask.from_row(row) for row in rows]

    def check_character_status(self, character: str) -> dict[str, Any]:
        """Summary of a character's live and most recent task."""
        recent = self.get_character_tasks(character, limit=1)
        return {
            "character": character,
            "running_task": self.get_running_task(character),
            "latest_task": recent[0] if recent else None,
        }

    def start_task(self, task_id: int, process_id: int) -> CharacterTask:
        return self.update_task_state(task_id, TaskState.RUNNING, process_id=process_id)

    def complete_task(self, task_id: int, task_data: Optional[dict[str, Any]] = None) -> CharacterTask:
        return self.update_task_state(task_id, TaskState.COMPLETED, task_data=task_data)

    def fail_task(self, task_id: int, error_message: Optional[str] = None) -> CharacterTask:
        return self.update_task_state(
            task_id, TaskState.FAILED, error_message=error_message or "unknown error",
        )

    def pause_task(self, task_id: int) -> CharacterTask:
        return self.update_task_state(task_id, TaskState.PAUSED)

    def resume_task(self, task_id: int, process_id: Optional[int] = None) -> CharacterTask:
        """Set RUNNING again, recording the runner's new process id."""
        return self.update_task_state(
            task_id, TaskState.RUNNING, process_id=process_id, resuming=True,
        )

    def cancel_task(self, task_id: int) -> CharacterTask:
        """Operator stop: completed, flagged as canceled."""
        return self.update_task_state(
            task_id,
            TaskState.COMPLETED,
            task_data={"canceled": True, "cancel_time": _now().isoformat()},
        )

    def cleanup_old_tasks(self, days_to_keep: int = 7) -> int:
        """Delete terminal tasks not updated for ``days_to_keep`` days.

        The newest task of each character is always kept.

        Returns:
            Number of tasks deleted.
        """
        cutoff = _now() - timedelta(days=days_to_keep)
        latest = (
            select(func.max(character_tasks.c.id))
            .group_by(character_tasks.c.character)
        )
        with self.engine.begin() as conn:
            removed = conn.execute(
                delete(character_tasks).where(and_(
                    character_tasks.c.state.in_(_TERMINAL),
                    character_tasks.c.updated_at < cutoff,
                    character_tasks.c.id.not_in(latest),
                ))
            ).rowcount
        logger.info(f"Removed {removed} tasks older than {days_to_keep} days")
        return removed
