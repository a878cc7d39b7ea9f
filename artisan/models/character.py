# artisan/models/character.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Character state as reported by the game API."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class InventorySlot(BaseModel):
    """One inventory slot. An empty slot has an empty ``code``."""
    model_config = ConfigDict(extra="ignore")

    slot: int = 0
    code: str = ""
    quantity: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.code or self.quantity <= 0


class Character(BaseModel):
    """Public details of a character.

    Only the fields artisan acts on are typed; everything else the server
    sends is kept as extra attributes.
    """
    model_config = ConfigDict(extra="allow")

    name: str
    level: int = 1
    x: int = 0
    y: int = 0
    hp: int = 0
    max_hp: int = 0
    cooldown: int = 0
    cooldown_expiration: Optional[datetime] = None
    inventory_max_items: int = 100
    inventory: list[InventorySlot] = Field(default_factory=list)

    @property
    def position(self) -> tuple[int, int]:
        return (self.x, self.y)

    @property
    def is_dead(self) -> bool:
        return self.hp <= 0

    def filled_slots(self) -> list[InventorySlot]:
        return [slot for slot in self.inventory if not slot.is_empty]

    def total_items(self) -> int:
        return sum(slot.quantity for slot in self.filled_slots())

    def count_of(self, code: str) -> int:
        """Total quantity of ``code`` across all slots."""
        return sum(slot.quantity for slot in self.filled_slots() if slot.code == code)

    @property
    def inventory_full(self) -> bool:
        """True when the item cap is reached or no slot is free."""
        if self.inventory_max_items and self.total_items() >= self.inventory_max_items:
            return True
        return bool(self.inventory) and len(self.filled_slots()) >= len(self.inventory)
