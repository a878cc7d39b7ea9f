# artisan/models/__init__.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Pydantic models for characters, tasks, and cycle descriptions."""

from .character import Character, InventorySlot
from .cycle import (
    Coords,
    CraftCycleSpec,
    CycleShape,
    FightCycleSpec,
    GatherCycleSpec,
    Material,
    Processing,
)
from .task import (
    ACTIVE_STATES,
    RECOVERABLE_STATES,
    TERMINAL_STATES,
    TRANSITIONS,
    CharacterTask,
    TaskState,
    TaskType,
)

__all__ = [
    # Character
    "Character",
    "InventorySlot",
    # Cycles
    "Coords",
    "CraftCycleSpec",
    "CycleShape",
    "FightCycleSpec",
    "GatherCycleSpec",
    "Material",
    "Processing",
    # Tasks
    "ACTIVE_STATES",
    "RECOVERABLE_STATES",
    "TERMINAL_STATES",
    "TRANSITIONS",
    "CharacterTask",
    "TaskState",
    "TaskType",
]
