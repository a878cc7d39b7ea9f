# tests/unit/client/test_actions.py
"""Unit tests for artisan/client/actions.py"""

from datetime import datetime, timedelta, timezone

import pytest

from artisan.client.errors import CharacterDead, MonsterNotFound, TransportError


class TestVerbs:
    """Each verb hits its endpoint with the expected body."""

    @pytest.mark.asyncio
    async def test_fetch_details(self, actions, game_server):
        game_server.add_character("Alice", x=3, y=-1, inventory={"copper_ore": 4})

        details = await actions.fetch_details("Alice")

        assert details.position == (3, -1)
        assert details.count_of("copper_ore") == 4
        assert game_server.action_calls() == []

    @pytest.mark.asyncio
    async def test_move_and_gather(self, actions, game_server):
        game_server.add_character("Alice")
        game_server.resources[(2, 6)] = "spruce_wood"

        await actions.move("Alice", 2, 6)
        result = await actions.gather("Alice")

        assert result["character"]["inventory"][0]["code"] == "spruce_wood"
        assert game_server.trace("Alice") == ["move(2,6)", "gathering"]

    @pytest.mark.asyncio
    async def test_mine_is_gathering(self, actions, game_server):
        game_server.add_character("Alice", x=2, y=0)
        game_server.resources[(2, 0)] = "copper_ore"

        await actions.mine("Alice")

        assert game_server.trace("Alice") == ["gathering"]

    @pytest.mark.asyncio
    async def test_craft_with_material(self, actions, game_server):
        game_server.add_character("Alice", inventory={"copper_ore": 20})
        game_server.recipes["copper"] = {"copper_ore": 10}

        await actions.craft("Alice", "copper", 2, material="copper_ore")

        assert game_server.action_calls("Alice") == [
            ("crafting", {"code": "copper", "quantity": 2, "material": "copper_ore"}),
        ]
        assert game_server.count("Alice", "copper") == 2

    @pytest.mark.asyncio
    async def test_smelt_goes_through_crafting(self, actions, game_server):
        game_server.add_character("Alice", inventory={"iron_ore": 10})
        game_server.recipes["iron"] = {"iron_ore": 10}

        await actions.smelt("Alice", "iron")

        assert game_server.trace("Alice") == ["crafting(iron,1)"]

    @pytest.mark.asyncio
    async def test_equipment(self, actions, game_server):
        game_server.add_character("Alice")

        await actions.equip("Alice", "copper_dagger", "weapon")
        await actions.unequip("Alice", "weapon")

        assert game_server.action_calls("Alice") == [
            ("equip", {"code": "copper_dagger", "slot": "weapon", "quantity": 1}),
            ("unequip", {"slot": "weapon"}),
        ]

    @pytest.mark.asyncio
    async def test_withdraw_then_deposit_restores_bank(self, actions, game_server):
        game_server.add_character("Alice", inventory={"copper_ore": 5})
        game_server.bank["copper_ore"] = 30

        await actions.bank_withdraw("Alice", "copper_ore", 10)
        await actions.bank_deposit("Alice", "copper_ore", 10)

        assert game_server.bank["copper_ore"] == 30
        assert game_server.count("Alice", "copper_ore") == 5

    @pytest.mark.asyncio
    async def test_verbs_wait_out_cooldown_first(self, actions, game_server, sleeps):
        """An unexpired cooldown is slept off before the action."""
        character = game_server.add_character("Alice")
        character["cooldown_expiration"] = (datetime.now(timezone.utc) + timedelta(seconds=3)).isoformat()

        await actions.rest("Alice")

        assert len(sleeps) == 1
        assert 2500 < sleeps[0] <= 3500


class TestFight:
    @pytest.mark.asyncio
    async def test_win_returns_result(self, actions, game_server):
        game_server.add_character("Alice", x=0, y=1)
        game_server.monsters.add((0, 1))

        result = await actions.fight("Alice")

        assert result["fight"]["result"] == "win"

    @pytest.mark.asyncio
    async def test_loss_raises_character_dead(self, actions, game_server):
        game_server.add_character("Alice", x=0, y=1)
        game_server.monsters.add((0, 1))
        game_server.fight_results.append("loss")

        with pytest.raises(CharacterDead):
            await actions.fight("Alice")

    @pytest.mark.asyncio
    async def test_no_monster(self, actions, game_server):
        game_server.add_character("Alice")
        with pytest.raises(MonsterNotFound):
            await actions.fight("Alice")


class TestBankDeposit:
    """Tests for the deposit method fallback."""

    @pytest.mark.asyncio
    async def test_put_is_tried_first(self, actions, game_server):
        game_server.add_character("Alice", inventory={"ash_wood": 3})

        await actions.bank_deposit("Alice", "ash_wood", 3)

        assert [c[0] for c in game_server.calls if c[1].endswith("deposit")] == ["PUT"]
        assert actions.deposit_method == "PUT"

    @pytest.mark.asyncio
    async def test_falls_back_to_post_on_405_and_remembers(self, actions, game_server):
        game_server.add_character("Alice", inventory={"ash_wood": 3, "feather": 1})
        game_server.deposit_methods = {"POST"}

        await actions.bank_deposit("Alice", "ash_wood", 3)
        await actions.bank_deposit("Alice", "feather", 1)

        methods = [c[0] for c in game_server.calls if c[1].endswith("deposit")]
        assert methods == ["PUT", "POST", "POST"]
        assert actions.deposit_method == "POST"
        assert game_server.bank == {"ash_wood": 3, "feather": 1}

    @pytest.mark.asyncio
    async def test_other_errors_are_raised(self, actions, game_server):
        game_server.add_character("Alice")
        with pytest.raises(TransportError) as exc:
            await actions.bank_deposit("Alice", "ash_wood", 3)
        assert exc.value.code == 478


class TestHeal:
    @pytest.mark.asyncio
    async def test_rests_until_full(self, actions, game_server):
        game_server.add_character("Alice", hp=20, max_hp=100)

        details = await actions.heal("Alice")

        assert details.hp == 100
        assert game_server.trace("Alice") == ["rest"]

    @pytest.mark.asyncio
    async def test_full_hp_does_nothing(self, actions, game_server):
        game_server.add_character("Alice")

        await actions.heal("Alice")

        assert game_server.trace("Alice") == []


class TestDepositAll:
    """Tests for deposit_all."""

    @pytest.mark.asyncio
    async def test_deposits_every_slot_spaced(self, actions, game_server, sleeps):
        game_server.add_character("Alice", inventory={"ash_wood": 3, "feather": 2, "egg": 1})

        deposited = await actions.deposit_all("Alice")

        assert [s.code for s in deposited] == ["ash_wood", "feather", "egg"]
        assert game_server.total("Alice") == 0
        assert sleeps == [500, 500]
        details = await actions.fetch_details("Alice")
        assert details.filled_slots() == []

    @pytest.mark.asyncio
    async def test_failed_slot_is_skipped(self, actions, game_server):
        game_server.add_character("Alice", inventory={"ash_wood": 3, "feather": 2})
        game_server.fail_next("bank/deposit", 500, "Internal error")

        deposited = await actions.deposit_all("Alice")

        assert [s.code for s in deposited] == ["feather"]
        assert game_server.count("Alice", "ash_wood") == 3

    @pytest.mark.asyncio
    async def test_empty_inventory(self, actions, game_server):
        game_server.add_character("Alice")
        assert await actions.deposit_all("Alice") == []
        assert game_server.action_calls() == []
