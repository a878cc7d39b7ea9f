# tests/unit/test_models.py
"""Unit tests for the artisan data models."""

import pytest
from pydantic import ValidationError

from artisan.models.character import Character, InventorySlot
from artisan.models.cycle import Coords, CraftCycleSpec, FightCycleSpec, GatherCycleSpec
from artisan.models.task import CharacterTask, TaskState, TaskType


def slots(*items):
    return [InventorySlot(slot=i, code=code, quantity=qty) for i, (code, qty) in enumerate(items, 1)]


class TestCoords:
    @pytest.mark.parametrize("text", ["(3,-2)", "3,-2", " ( 3 , -2 ) "])
    def test_parse(self, text):
        assert Coords.parse(text) == Coords(x=3, y=-2)

    @pytest.mark.parametrize("text", ["", "3", "(a,b)", "1,2,3"])
    def test_parse_rejects(self, text):
        with pytest.raises(ValueError):
            Coords.parse(text)

    def test_str(self):
        assert str(Coords(x=-1, y=4)) == "(-1,4)"


class TestCharacter:
    """Inventory arithmetic on Character."""

    def test_counts_ignore_empty_slots(self):
        character = Character(
            name="Alice",
            inventory=slots(("copper_ore", 7), ("", 0), ("copper_ore", 3), ("feather", 1)),
        )
        assert character.count_of("copper_ore") == 10
        assert character.total_items() == 11
        assert len(character.filled_slots()) == 3

    def test_full_by_item_cap(self):
        character = Character(name="Alice", inventory_max_items=10, inventory=slots(("ash_wood", 10), ("", 0)))
        assert character.inventory_full

    def test_full_by_slots(self):
        character = Character(name="Alice", inventory_max_items=100, inventory=slots(("a", 1), ("b", 1)))
        assert character.inventory_full

    def test_not_full(self):
        character = Character(name="Alice", inventory=slots(("a", 1), ("", 0)))
        assert not character.inventory_full

    def test_dead_and_extra_fields(self):
        character = Character.model_validate({"name": "Alice", "hp": 0, "skin": "men1"})
        assert character.is_dead
        assert character.skin == "men1"


class TestCycleSpecs:
    def test_gather_target_must_be_positive(self):
        with pytest.raises(ValidationError):
            GatherCycleSpec(source={"x": 0, "y": 0}, bank={"x": 4, "y": 1}, target_item="x", target_quantity=0)

    def test_craft_needs_materials(self):
        with pytest.raises(ValidationError):
            CraftCycleSpec(materials=[], workshop={"x": 1, "y": 5}, bank={"x": 4, "y": 1}, product_code="copper")

    def test_fight_bank_differs_from_monster(self):
        with pytest.raises(ValidationError):
            FightCycleSpec(monster={"x": 0, "y": 1}, bank={"x": 0, "y": 1})
        assert FightCycleSpec(monster={"x": 0, "y": 1}).task_type is TaskType.COMBAT


class TestCharacterTask:
    def test_from_row_fills_nulls(self):
        task = CharacterTask.from_row({
            "id": 1,
            "character": "Alice",
            "task_type": "mining",
            "script_name": "artisan.app.runner",
            "script_args": None,
            "task_data": None,
            "state": "paused",
        })
        assert task.state is TaskState.PAUSED
        assert task.script_args == []
        assert not task.canceled

    def test_terminal_states(self):
        assert {s for s in TaskState if s.is_terminal} == {TaskState.COMPLETED, TaskState.FAILED}
