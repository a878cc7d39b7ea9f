# artisan/loop/cycles.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Concrete goal cycles.

Each cycle is driven entirely by its description, so one class covers every
resource or recipe of its shape.
"""

import logging
from enum import Enum
from typing import Any, Optional, Union

from ..client.errors import CharacterDead, InventoryFull, MissingItem, MonsterNotFound, NoResource
from ..exceptions import ConfigurationError, StateMachineError
from ..models.cycle import Coords, CraftCycleSpec, CycleShape, FightCycleSpec, GatherCycleSpec
from .base import BaseLoop


logger = logging.getLogger(__name__)


class GatherPhase(str, Enum):
    """Where a gather cycle is in its body."""
    MOVING_TO_SOURCE = "moving_to_source"
    GATHERING = "gathering"
    MOVING_TO_BANK_INTERRUPT = "moving_to_bank_interrupt"
    MOVING_TO_WORKSHOP = "moving_to_workshop"
    PROCESSING = "processing"
    MOVING_TO_BANK = "moving_to_bank"
    DEPOSITING = "depositing"


class GatherCycle(BaseLoop):
    """Gather at a source until the target count, process, then deposit.

    Items of the target that were banked during an inventory-full
    excursion count toward the target of the current cycle.
    """

    MAX_STALLED_EXCURSIONS = 3

    def __init__(self, character: str, actions, spec: GatherCycleSpec, **kwargs):
        super().__init__(character, actions, **kwargs)
        self.spec = spec
        self.phase = GatherPhase.MOVING_TO_SOURCE
        self.phase_history: list[GatherPhase] = []
        self.banked = 0
        self.gathered_total = 0
        self.excursions = 0
        self.stalled_excursions = 0

    @property
    def start_coords(self) -> Coords:
        return self.spec.source

    @property
    def cycle_limit(self) -> int:
        return self.spec.max_cycles

    def progress(self) -> dict[str, Any]:
        return {
            "loop_count": self.loop_count,
            "gathered_total": self.gathered_total,
            "excursions": self.excursions,
        }

    def _enter(self, phase: GatherPhase) -> None:
        logger.debug(f"[{self.character}] {self.phase.value} -> {phase.value}")
        self.phase = phase
        self.phase_history.append(phase)

    def collected(self) -> int:
        return self.count_of(self.spec.target_item) + self.banked

    async def deposit_excursion(self) -> None:
        """Bank everything and come back to the source.

        Raises:
            StateMachineError: If several excursions in a row free no space.
        """
        self.excursions += 1
        self._enter(GatherPhase.MOVING_TO_BANK_INTERRUPT)
        target_before = self.count_of(self.spec.target_item)
        await self.move_to(self.spec.bank)
        carried_before = self.details.total_items()
        await self.deposit_items()
        self.banked += target_before - self.count_of(self.spec.target_item)

        if self.details.total_items() >= carried_before:
            self.stalled_excursions += 1
            logger.warning(
                f"[{self.character}] Excursion freed no space "
                f"({self.stalled_excursions}/{self.MAX_STALLED_EXCURSIONS})"
            )
            if self.stalled_excursions >= self.MAX_STALLED_EXCURSIONS:
                raise StateMachineError(
                    f"Bank accepted nothing after {self.stalled_excursions} excursions"
                )
        else:
            self.stalled_excursions = 0
        self._enter(GatherPhase.MOVING_TO_SOURCE)
        await self.move_to(self.spec.source)
        self._enter(GatherPhase.GATHERING)

    async def gather_until_target(self) -> bool:
        """Accumulate the target item.

        Returns:
            False if the resource ran out, True otherwise.
        """
        self._enter(GatherPhase.GATHERING)
        while self.running and self.collected() < self.spec.target_quantity:
            if self.inventory_full:
                logger.info(f"[{self.character}] Inventory full before gathering")
                await self.deposit_excursion()
                continue
            before = self.count_of(self.spec.target_item)
            try:
                await self.handle_action(lambda: self.actions.gather(self.character), "Gather")
            except InventoryFull:
                logger.info(f"[{self.character}] Inventory full while gathering")
                await self.deposit_excursion()
                continue
            except NoResource as e:
                logger.warning(f"[{self.character}] Resource depleted: {e.message}")
                return False
            self.gathered_total += max(0, self.count_of(self.spec.target_item) - before)
            logger.info(
                f"[{self.character}] {self.spec.target_item}: "
                f"{self.collected()}/{self.spec.target_quantity}"
            )
        return True

    async def process(self) -> int:
        """Craft the product from gathered material.

        Returns:
            Quantity crafted, 0 when there was not enough material.
        """
        processing = self.spec.processing
        self._enter(GatherPhase.MOVING_TO_WORKSHOP)
        await self.move_to(processing.workshop)
        self._enter(GatherPhase.PROCESSING)
        await self.refresh()
        quantity = self.count_of(processing.material_code) // processing.ratio
        if quantity <= 0:
            logger.warning(
                f"[{self.character}] Not enough {processing.material_code} "
                f"to make {processing.product_code}"
            )
            return 0
        await self.handle_action(
            lambda: self.actions.craft(
                self.character, processing.product_code, quantity, processing.material_code,
            ),
            f"Craft {quantity} x {processing.product_code}",
        )
        return quantity

    async def run_cycle(self) -> None:
        self.banked = 0
        self._enter(GatherPhase.MOVING_TO_SOURCE)
        await self.move_to(self.spec.source)

        depleted = not await self.gather_until_target()
        if not self.running:
            return

        if depleted:
            logger.info(f"[{self.character}] Skipping processing, resource depleted")
        elif self.spec.processing is not None and not self.spec.skip_processing:
            await self.process()

        self._enter(GatherPhase.MOVING_TO_BANK)
        await self.move_to(self.spec.bank)
        self._enter(GatherPhase.DEPOSITING)
        await self.deposit_items()


class InsufficientMaterials(Exception):
    """The bank could not supply a recipe's materials this cycle."""

    def __init__(self, missing: dict[str, int]):
        super().__init__(f"Bank could not supply {missing}")
        self.missing = missing


class CraftCycle(BaseLoop):
    """Withdraw missing materials, craft, optionally recycle, deposit."""

    MAX_SHORT_CYCLES = 3

    def __init__(self, character: str, actions, spec: CraftCycleSpec, **kwargs):
        super().__init__(character, actions, **kwargs)
        self.spec = spec
        self.crafted_total = 0
        self.short_cycles = 0

    @property
    def start_coords(self) -> Coords:
        return self.spec.bank

    @property
    def cycle_limit(self) -> int:
        return self.spec.max_crafts

    def progress(self) -> dict[str, Any]:
        return {"loop_count": self.loop_count, "crafted_total": self.crafted_total}

    def missing_materials(self) -> dict[str, int]:
        """Quantity still needed of each material, skipping satisfied ones."""
        missing = {}
        for material in self.spec.materials:
            needed = max(0, material.quantity - self.count_of(material.code))
            if needed > 0:
                missing[material.code] = needed
        return missing

    async def withdraw_materials(self) -> None:
        await self.refresh()
        missing = self.missing_materials()
        if not missing:
            return
        await self.move_to(self.spec.bank)
        for code, quantity in missing.items():
            try:
                await self.handle_action(
                    lambda code=code, quantity=quantity: self.actions.bank_withdraw(self.character, code, quantity),
                    f"Withdraw {quantity} x {code}",
                )
            except MissingItem as e:
                logger.warning(f"[{self.character}] Bank is short of {code}: {e.message}")

        await self.refresh()
        still_missing = self.missing_materials()
        if still_missing:
            self.short_cycles += 1
            if self.short_cycles >= self.MAX_SHORT_CYCLES:
                raise StateMachineError(
                    f"Materials still missing after {self.short_cycles} cycles: {still_missing}"
                )
            raise InsufficientMaterials(still_missing)
        self.short_cycles = 0

    async def run_cycle(self) -> None:
        try:
            await self.withdraw_materials()
        except InsufficientMaterials as e:
            logger.warning(f"[{self.character}] {e}")
            return

        await self.move_to(self.spec.workshop)
        await self.handle_action(
            lambda: self.actions.craft(self.character, self.spec.product_code, self.spec.product_quantity),
            f"Craft {self.spec.product_quantity} x {self.spec.product_code}",
        )
        self.crafted_total += self.spec.product_quantity

        if self.spec.recycle_after:
            await self.handle_action(
                lambda: self.actions.recycle(self.character, self.spec.product_code, self.spec.product_quantity),
                f"Recycle {self.spec.product_quantity} x {self.spec.product_code}",
            )

        await self.move_to(self.spec.bank)
        await self.deposit_items()


class FightCycle(BaseLoop):
    """Fight at a tile, healing before each fight and after a loss."""

    def __init__(self, character: str, actions, spec: FightCycleSpec, **kwargs):
        super().__init__(character, actions, **kwargs)
        self.spec = spec
        self.wins = 0
        self.losses = 0

    @property
    def start_coords(self) -> Coords:
        return self.spec.monster

    @property
    def cycle_limit(self) -> int:
        return self.spec.max_fights

    def progress(self) -> dict[str, Any]:
        return {"loop_count": self.loop_count, "wins": self.wins, "losses": self.losses}

    async def run_cycle(self) -> None:
        await self.move_to(self.spec.monster)
        if self.details.hp < self.details.max_hp:
            await self.heal()

        try:
            await self.handle_action(lambda: self.actions.fight(self.character), "Fight")
        except CharacterDead as e:
            self.losses += 1
            logger.warning(f"[{self.character}] {e.message}, healing")
            await self.heal()
            await self.move_to(self.spec.monster)
            return
        except MonsterNotFound as e:
            logger.warning(f"[{self.character}] No monster here: {e.message}")
            return
        except InventoryFull:
            if self.spec.bank is None:
                raise
            logger.info(f"[{self.character}] Inventory full, banking loot")
            await self.move_to(self.spec.bank)
            await self.deposit_items()
            return

        self.wins += 1
        if self.spec.bank is not None and self.inventory_full:
            await self.move_to(self.spec.bank)
            await self.deposit_items()


CycleSpec = Union[GatherCycleSpec, CraftCycleSpec, FightCycleSpec]

_CYCLES = {
    CycleShape.GATHER: (GatherCycle, GatherCycleSpec),
    CycleShape.CRAFT: (CraftCycle, CraftCycleSpec),
    CycleShape.FIGHT: (FightCycle, FightCycleSpec),
}


def build_cycle(
    shape: Union[CycleShape, str],
    spec: CycleSpec,
    character: str,
    actions,
    **kwargs,
) -> BaseLoop:
    """Instantiate the cycle class for ``shape``.

    Raises:
        ConfigurationError: If the shape is unknown or ``spec`` does not
            match it.
    """
    try:
        shape = CycleShape(shape)
    except ValueError:
        raise ConfigurationError(f"Unknown cycle shape: {shape!r}")
    cycle_cls, spec_cls = _CYCLES[shape]
    if not isinstance(spec, spec_cls):
        raise ConfigurationError(f"{shape.value} cycle needs a {spec_cls.__name__}")
    return cycle_cls(character, actions, spec, **kwargs)


def describe(cycle: BaseLoop) -> Optional[str]:
    """One-line summary of a cycle's goal for logs."""
    spec = getattr(cycle, "spec", None)
    if isinstance(spec, GatherCycleSpec):
        return f"gather {spec.target_quantity} x {spec.target_item} at {spec.source}"
    if isinstance(spec, CraftCycleSpec):
        return f"craft {spec.product_quantity} x {spec.product_code} at {spec.workshop}"
    if isinstance(spec, FightCycleSpec):
        return f"fight at {spec.monster}"
    return None
