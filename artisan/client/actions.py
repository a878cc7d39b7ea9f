# artisan/client/actions.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Typed wrappers for each in-game verb.

Every verb except ``fetch_details`` waits out the character's cooldown
before calling the transport. Results are returned as the server sent them.
"""

import logging
from typing import Any, Optional

from ..models.character import Character, InventorySlot
from . import cooldown
from .errors import CharacterDead, TransportError
from .executor import execute_with_cooldown
from .transport import Transport


logger = logging.getLogger(__name__)

DEPOSIT_ENDPOINT = "action/bank/deposit"
DEPOSIT_METHODS = ("PUT", "POST")
DEPOSIT_SPACING_MS = 500
HTTP_METHOD_NOT_ALLOWED = 405


class ActionClient:
    """Game verbs for any character, over one transport.

    The character is passed to every call; the client holds no notion of a
    current character.

    Args:
        transport: Connected or connectable Transport.
        cooldown_buffer: Seconds added to each pre-wait.
    """

    execute_with_cooldown = staticmethod(execute_with_cooldown)

    def __init__(self, transport: Transport, cooldown_buffer: float = cooldown.BUFFER_SECONDS):
        self.transport = transport
        self.cooldown_buffer = cooldown_buffer
        self.deposit_method: Optional[str] = None

    async def fetch_details(self, character: str) -> Character:
        """Read the character's public state. Never causes a cooldown."""
        data = await self.transport.get_character(character)
        return Character.model_validate(data)

    async def _act(
        self,
        character: str,
        endpoint: str,
        body: Optional[dict[str, Any]] = None,
        method: str = "POST",
    ) -> Any:
        await cooldown.handle_cooldown(self, character, self.cooldown_buffer)
        return await self.transport.request(endpoint, method, body, character)

    async def move(self, character: str, x: int, y: int) -> Any:
        logger.info(f"[{character}] Moving to ({x}, {y})")
        return await self._act(character, "action/move", {"x": x, "y": y})

    async def gather(self, character: str) -> Any:
        return await self._act(character, "action/gathering")

    # Mining, woodcutting and fishing are all gathering on the server.
    mine = gather

    async def fight(self, character: str) -> Any:
        """Fight the monster on the character's tile.

        Raises:
            CharacterDead: If the fight was lost.
        """
        result = await self._act(character, "action/fight")
        fight = result.get("fight") if isinstance(result, dict) else None
        if isinstance(fight, dict) and fight.get("result") == "loss":
            raise CharacterDead(
                f"{character} lost the fight", status=200, endpoint="action/fight",
            )
        return result

    async def rest(self, character: str) -> Any:
        return await self._act(character, "action/rest")

    async def craft(
        self,
        character: str,
        code: str,
        quantity: int = 1,
        material: Optional[str] = None,
    ) -> Any:
        body: dict[str, Any] = {"code": code, "quantity": quantity}
        if material:
            body["material"] = material
        logger.info(f"[{character}] Crafting {quantity} x {code}")
        return await self._act(character, "action/crafting", body)

    async def smelt(self, character: str, code: str, quantity: int = 1) -> Any:
        """Smelt bars. The server models smelting as crafting at a forge."""
        return await self.craft(character, code, quantity)

    async def recycle(self, character: str, code: str, quantity: int = 1) -> Any:
        logger.info(f"[{character}] Recycling {quantity} x {code}")
        return await self._act(character, "action/recycling", {"code": code, "quantity": quantity})

    async def equip(self, character: str, code: str, slot: str, quantity: int = 1) -> Any:
        return await self._act(
            character, "action/equip", {"code": code, "slot": slot, "quantity": quantity},
        )

    async def unequip(self, character: str, slot: str) -> Any:
        return await self._act(character, "action/unequip", {"slot": slot})

    async def bank_withdraw(self, character: str, code: str, quantity: int) -> Any:
        logger.info(f"[{character}] Withdrawing {quantity} x {code}")
        return await self._act(
            character, "action/bank/withdraw", {"code": code, "quantity": quantity},
        )

    async def bank_deposit(self, character: str, code: str, quantity: int) -> Any:
        """Deposit one item type.

        The server has answered deposits on both PUT and POST. The first
        deposit tries PUT and falls back to POST on 405; the method that
        works is reused for the rest of the client's life.
        """
        await cooldown.handle_cooldown(self, character, self.cooldown_buffer)
        body = {"code": code, "quantity": quantity}
        methods = (self.deposit_method,) if self.deposit_method else DEPOSIT_METHODS

        for index, method in enumerate(methods):
            try:
                result = await self.transport.request(DEPOSIT_ENDPOINT, method, body, character)
            except TransportError as e:
                if e.status == HTTP_METHOD_NOT_ALLOWED and index + 1 < len(methods):
                    logger.info(f"Bank deposit rejected {method}, trying {methods[index + 1]}")
                    continue
                raise
            if self.deposit_method != method:
                logger.info(f"Bank deposit uses {method}")
                self.deposit_method = method
            return result

    async def heal(self, character: str) -> Character:
        """Rest until HP is full.

        Returns:
            The character's details once healed.
        """
        details = await self.fetch_details(character)
        while details.hp < details.max_hp:
            logger.info(f"[{character}] Resting ({details.hp}/{details.max_hp} HP)")
            result = await self.rest(character)
            if isinstance(result, dict) and isinstance(result.get("character"), dict):
                details = Character.model_validate(result["character"])
            else:
                details = await self.fetch_details(character)
        return details

    async def deposit_all(self, character: str) -> list[InventorySlot]:
        """Deposit every non-empty inventory slot, one item type at a time.

        A failed deposit is logged and skipped. Deposits are spaced by 500 ms.

        Returns:
            The slots that were deposited.
        """
        details = await self.fetch_details(character)
        slots = details.filled_slots()
        if not slots:
            logger.info(f"[{character}] Nothing to deposit")
            return []

        deposited: list[InventorySlot] = []
        for index, slot in enumerate(slots):
            if index:
                await cooldown.sleep(DEPOSIT_SPACING_MS)
            try:
                await self.bank_deposit(character, slot.code, slot.quantity)
            except TransportError as e:
                logger.warning(f"[{character}] Could not deposit {slot.quantity} x {slot.code}: {e}")
                continue
            logger.info(f"[{character}] Deposited {slot.quantity} x {slot.code}")
            deposited.append(slot)
        return deposited
