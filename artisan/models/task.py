# artisan/models/task.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Task records persisted in the character_tasks table."""

from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field


class TaskState(str, Enum):
    """Lifecycle state of a character task."""
    IDLE = "idle"
    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


class TaskType(str, Enum):
    """Category tag of a task."""
    MINING = "mining"
    WOODCUTTING = "woodcutting"
    FISHING = "fishing"
    ALCHEMY = "alchemy"
    COMBAT = "combat"
    CRAFTING = "crafting"


TERMINAL_STATES = frozenset({TaskState.COMPLETED, TaskState.FAILED})
RECOVERABLE_STATES = frozenset({TaskState.PENDING, TaskState.RUNNING, TaskState.PAUSED})
ACTIVE_STATES = frozenset({TaskState.IDLE, TaskState.PENDING, TaskState.RUNNING, TaskState.PAUSED})

# Allowed moves of the lifecycle. RUNNING -> RUNNING is a resume with a new process.
TRANSITIONS: dict[TaskState, frozenset[TaskState]] = {
    TaskState.IDLE: frozenset({TaskState.PENDING, TaskState.RUNNING, TaskState.COMPLETED, TaskState.FAILED}),
    TaskState.PENDING: frozenset({TaskState.RUNNING, TaskState.PAUSED, TaskState.COMPLETED, TaskState.FAILED}),
    TaskState.RUNNING: frozenset({TaskState.RUNNING, TaskState.PAUSED, TaskState.COMPLETED, TaskState.FAILED}),
    TaskState.PAUSED: frozenset({TaskState.RUNNING, TaskState.COMPLETED, TaskState.FAILED}),
    TaskState.COMPLETED: frozenset(),
    TaskState.FAILED: frozenset(),
}


class CharacterTask(BaseModel):
    """A goal assigned to a character and the runner executing it."""
    id: int
    character: str
    task_type: str
    script_name: str
    script_args: list[str] = Field(default_factory=list)
    task_data: dict[str, Any] = Field(default_factory=dict)
    state: TaskState = TaskState.PENDING
    process_id: Optional[int] = None
    error_message: Optional[str] = None
    start_time: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def runner_ref(self) -> tuple[str, list[str]]:
        """Entry point module and its arguments."""
        return self.script_name, list(self.script_args)

    @property
    def canceled(self) -> bool:
        return bool(self.task_data.get("canceled"))

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "CharacterTask":
        data = dict(row)
        data["script_args"] = data.get("script_args") or []
        data["task_data"] = data.get("task_data") or {}
        return cls.model_validate(data)
