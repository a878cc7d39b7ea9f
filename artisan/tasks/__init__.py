# artisan/tasks/__init__.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Task lifecycle and recovery."""

from .lifecycle import TaskManager
from .recovery import (
    RecoveryOutcome,
    TaskRecovery,
    build_runner_command,
    process_alive,
    spawn_runner,
)

__all__ = [
    "TaskManager",
    "RecoveryOutcome",
    "TaskRecovery",
    "build_runner_command",
    "process_alive",
    "spawn_runner",
]
