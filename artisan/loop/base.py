# artisan/loop/base.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Skeleton shared by every goal cycle."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..client import cooldown
from ..client.actions import ActionClient
from ..client.errors import AlreadyAtDestination
from ..client.executor import run_action
from ..models.character import Character, InventorySlot
from ..models.cycle import Coords
from ..telemetry.buffer import TelemetryBuffer
from ..telemetry.store import TelemetryStore


logger = logging.getLogger(__name__)

Gate = Callable[[], Awaitable[bool]]


class LoopStopped(Exception):
    """The hold refused an action; the cycle ends where it is."""


class BaseLoop:
    """Runs a cycle body over and over for one character.

    Subclasses implement ``run_cycle``. Everything else (movement, deposits,
    pacing, telemetry) lives here.

    Args:
        character: Character name.
        actions: Action client.
        telemetry: Buffer for loop-start rows and inventory snapshots.
        store: Store to prune on initialize.
        pacing_seconds: Pause after each successful action.
        gate: Awaited before each cycle. Returning False ends the run.
        hold: Awaited before each action. It may wait (a paused task);
            returning False stops the cycle before the action is sent.
        max_retries: Generic failures retried per action.
    """

    def __init__(
        self,
        character: str,
        actions: ActionClient,
        telemetry: Optional[TelemetryBuffer] = None,
        store: Optional[TelemetryStore] = None,
        pacing_seconds: float = 0.5,
        gate: Optional[Gate] = None,
        hold: Optional[Gate] = None,
        max_retries: int = 5,
    ):
        self.character = character
        self.actions = actions
        self.telemetry = telemetry
        self.store = store
        self.pacing_seconds = pacing_seconds
        self.gate = gate
        self.hold = hold
        self.max_retries = max_retries

        self.loop_count = 0
        self.running = False
        self.details: Optional[Character] = None

    @property
    def start_coords(self) -> Optional[Coords]:
        return None

    @property
    def cycle_limit(self) -> int:
        return 0

    def progress(self) -> dict[str, Any]:
        """Counters worth persisting with the task."""
        return {"loop_count": self.loop_count}

    # Character state

    async def refresh(self) -> Character:
        self.details = await self.actions.fetch_details(self.character)
        return self.details

    def _absorb(self, result: Any) -> None:
        if isinstance(result, dict) and isinstance(result.get("character"), dict):
            self.details = Character.model_validate(result["character"])

    def count_of(self, code: str) -> int:
        return self.details.count_of(code) if self.details else 0

    @property
    def inventory_full(self) -> bool:
        return bool(self.details and self.details.inventory_full)

    # Actions

    async def check_hold(self, action_name: str) -> None:
        """Consult the hold before an action.

        Raises:
            LoopStopped: If the hold refuses the action.
        """
        if self.hold is not None and not await self.hold():
            self.running = False
            raise LoopStopped(f"[{self.character}] {action_name} not sent, loop stopped")

    async def handle_action(self, action_fn: Callable[[], Awaitable[Any]], action_name: str) -> Any:
        """Perform one action under the retry policy, then pace.

        The verb itself waits out any known cooldown first. A cooldown
        reported anyway is waited and retried once.

        Args:
            action_fn: Coroutine function performing the action.
            action_name: Label for logs.

        Returns:
            The action result.

        Raises:
            LoopStopped: If the hold refuses the action.
        """
        await self.check_hold(action_name)
        result = await run_action(action_fn, name=f"[{self.character}] {action_name}", max_retries=self.max_retries)
        logger.info(f"[{self.character}] {action_name} successful")
        self._absorb(result)
        await cooldown.sleep(self.pacing_seconds * 1000)
        return result

    async def move_to(self, coords: Coords) -> bool:
        """Move to ``coords`` unless the character is already there.

        Returns:
            True if a move was performed.
        """
        details = await self.refresh()
        if details.position == coords.as_tuple():
            logger.info(f"[{self.character}] Already at {coords}")
            return False
        try:
            await self.handle_action(
                lambda: self.actions.move(self.character, coords.x, coords.y),
                f"Move to {coords}",
            )
        except AlreadyAtDestination:
            logger.info(f"[{self.character}] Already at destination {coords}")
            return False
        return True

    async def heal(self) -> Character:
        self.details = await self.handle_action(lambda: self.actions.heal(self.character), "Heal")
        return self.details

    # Lifecycle

    async def initialize(self, start_coords: Optional[Coords] = None) -> None:
        """Prune old telemetry and move to the starting tile."""
        if self.store is not None:
            try:
                await asyncio.to_thread(self.store.prune_old_logs)
            except SQLAlchemyError as e:
                logger.error(f"Could not prune logs: {e}")
        if start_coords is not None:
            await self.move_to(start_coords)

    async def start_loop(self) -> None:
        """Count a new cycle and record where it starts."""
        self.loop_count += 1
        logger.info(f"[{self.character}] Starting loop #{self.loop_count}")
        details = await self.refresh()
        if self.telemetry is not None:
            self.telemetry.enqueue_action_log(
                self.character,
                "loop_start",
                details.position,
                {"loop_count": self.loop_count, "timestamp": datetime.now(timezone.utc).isoformat()},
            )

    async def snapshot_inventory(self) -> None:
        if self.telemetry is not None and self.details is not None:
            self.telemetry.enqueue_inventory_snapshot(self.character, self.details.filled_slots())

    async def check_and_deposit(self) -> bool:
        """Snapshot the inventory and deposit everything if it is full.

        Returns:
            True if a deposit was made.
        """
        await self.refresh()
        await self.snapshot_inventory()
        if self.inventory_full:
            logger.info(f"[{self.character}] Inventory full, depositing items")
            await self.deposit_items()
            return True
        return False

    async def deposit_items(self) -> list[InventorySlot]:
        """Deposit every item type the character carries."""
        await self.check_hold("Deposit")
        deposited = await self.actions.deposit_all(self.character)
        await self.refresh()
        await self.snapshot_inventory()
        return deposited

    async def run_cycle(self) -> None:
        raise NotImplementedError

    async def run(self) -> int:
        """Initialize, then run cycles until stopped, gated, or at the limit.

        Returns:
            Number of completed cycles.
        """
        self.running = True
        completed = 0
        try:
            await self.initialize(self.start_coords)
        except LoopStopped as e:
            logger.info(str(e))
            self.running = False

        while self.running:
            if self.gate is not None and not await self.gate():
                logger.info(f"[{self.character}] Gate closed, stopping")
                break
            await self.start_loop()
            try:
                await self.run_cycle()
            except LoopStopped as e:
                logger.info(str(e))
                break
            completed += 1
            if self.cycle_limit and completed >= self.cycle_limit:
                logger.info(f"[{self.character}] Reached {completed} cycles, done")
                break

        self.running = False
        return completed

    def stop(self) -> None:
        self.running = False
