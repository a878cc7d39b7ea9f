# artisan/models/cycle.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Cycle descriptions: the parameters of a gather, craft, or fight goal."""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .task import TaskType


COORDS_PATTERN = re.compile(r"^\(?\s*(-?\d+)\s*,\s*(-?\d+)\s*\)?$")


class CycleShape(str, Enum):
    """The three kinds of goal cycle."""
    GATHER = "gather"
    CRAFT = "craft"
    FIGHT = "fight"


class Coords(BaseModel):
    """A map tile."""
    x: int
    y: int

    @classmethod
    def parse(cls, text: str) -> "Coords":
        """Parse ``"(x,y)"`` or ``"x,y"``.

        Raises:
            ValueError: If the text is not a coordinate pair.
        """
        match = COORDS_PATTERN.match(text.strip())
        if match is None:
            raise ValueError(f'Invalid coordinate format {text!r}, expected "(x,y)"')
        return cls(x=int(match.group(1)), y=int(match.group(2)))

    def as_tuple(self) -> tuple[int, int]:
        return (self.x, self.y)

    def __str__(self) -> str:
        return f"({self.x},{self.y})"


class Material(BaseModel):
    """An item code and the quantity a recipe needs."""
    code: str
    quantity: int = Field(gt=0)


class Processing(BaseModel):
    """Turn gathered material into a product at a workshop.

    ``ratio`` units of ``material_code`` make one ``product_code``.
    """
    product_code: str
    material_code: str
    ratio: int = Field(default=10, gt=0)
    workshop: Coords


class GatherCycleSpec(BaseModel):
    """Gather until a target count, optionally process, then deposit."""
    task_type: TaskType = TaskType.MINING
    source: Coords
    bank: Coords
    target_item: str
    target_quantity: int = Field(default=100, gt=0)
    processing: Optional[Processing] = None
    skip_processing: bool = False
    max_cycles: int = Field(default=0, ge=0)


class CraftCycleSpec(BaseModel):
    """Withdraw materials, craft at a workshop, deposit the result."""
    task_type: TaskType = TaskType.CRAFTING
    materials: list[Material]
    workshop: Coords
    bank: Coords
    product_code: str
    product_quantity: int = Field(default=1, gt=0)
    recycle_after: bool = False
    max_crafts: int = Field(default=0, ge=0)

    @field_validator("materials")
    @classmethod
    def materials_not_empty(cls, value: list[Material]) -> list[Material]:
        if not value:
            raise ValueError("a craft cycle needs at least one material")
        return value


class FightCycleSpec(BaseModel):
    """Fight a monster repeatedly, healing in between."""
    task_type: TaskType = TaskType.COMBAT
    monster: Coords
    bank: Optional[Coords] = None
    max_fights: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def bank_is_not_monster_tile(self) -> "FightCycleSpec":
        if self.bank is not None and self.bank.as_tuple() == self.monster.as_tuple():
            raise ValueError("bank and monster tiles must differ")
        return self
