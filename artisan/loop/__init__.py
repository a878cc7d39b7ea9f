# artisan/loop/__init__.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Cycle framework and the gather, craft, and fight cycles."""

from .base import BaseLoop, LoopStopped
from .cycles import (
    CraftCycle,
    FightCycle,
    GatherCycle,
    GatherPhase,
    InsufficientMaterials,
    build_cycle,
    describe,
)
from .presets import PresetTable, get_preset, load_presets

__all__ = [
    "BaseLoop",
    "LoopStopped",
    "CraftCycle",
    "FightCycle",
    "GatherCycle",
    "GatherPhase",
    "InsufficientMaterials",
    "build_cycle",
    "describe",
    "PresetTable",
    "get_preset",
    "load_presets",
]
