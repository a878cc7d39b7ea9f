# tests/conftest.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
Pytest configuration for artisan tests.

Philosophy: real objects with the external services faked. The game API is
an in-process FakeGameServer behind httpx.MockTransport, the store is an
in-memory SQLite database, and every wait goes through a recorded no-op
sleep.
"""

import json
import sys
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

import httpx
import pytest
import pytest_asyncio

# Make the artisan package importable without installing it
root_path = Path(__file__).parent.parent
if str(root_path) not in sys.path:
    sys.path.insert(0, str(root_path))

from artisan.client import cooldown
from artisan.client.actions import ActionClient
from artisan.client.transport import Transport
from artisan.db import create_engine_from_url, init_db
from artisan.telemetry.buffer import TelemetryBuffer
from artisan.telemetry.store import TelemetryStore


BASE_URL = "https://api.test"
TOKEN = "test-token"


def _past() -> str:
    return (datetime.now(timezone.utc) - timedelta(seconds=5)).isoformat()


class FakeGameServer:
    """Just enough of the game API to drive cycles end to end.

    Attributes:
        characters: Character state by name, in the server's JSON shape.
        bank: Item quantities held in the bank.
        resources: Item gathered on each tile.
        monsters: Tiles with a monster.
        recipes: Materials per unit of each craftable item.
        calls: Every request as (method, path, body).
        deposit_methods: HTTP methods the deposit endpoint accepts.
    """

    def __init__(self):
        self.characters: dict[str, dict[str, Any]] = {}
        self.bank: dict[str, int] = defaultdict(int)
        self.resources: dict[tuple[int, int], str] = {}
        self.monsters: set[tuple[int, int]] = set()
        self.recipes: dict[str, dict[str, int]] = {}
        self.gather_yield = 1
        self.fight_results: list[str] = []
        self.deposit_methods = {"PUT", "POST"}
        self.calls: list[tuple[str, str, Optional[dict[str, Any]]]] = []
        self._errors: dict[str, list[tuple[int, Optional[int], str]]] = defaultdict(list)

    # Setup helpers

    def add_character(
        self,
        name: str,
        x: int = 0,
        y: int = 0,
        hp: int = 100,
        max_hp: int = 100,
        inventory: Optional[dict[str, int]] = None,
        inventory_max_items: int = 100,
        slots: int = 20,
    ) -> dict[str, Any]:
        character = {
            "name": name,
            "level": 1,
            "x": x,
            "y": y,
            "hp": hp,
            "max_hp": max_hp,
            "cooldown": 0,
            "cooldown_expiration": _past(),
            "inventory_max_items": inventory_max_items,
            "inventory": [{"slot": i + 1, "code": "", "quantity": 0} for i in range(slots)],
        }
        self.characters[name] = character
        for code, quantity in (inventory or {}).items():
            self._add_item(character, code, quantity)
        return character

    def fail_next(self, action: str, status: int, message: str, code: Optional[int] = None) -> None:
        """Queue an error response for the next call to ``action``."""
        self._errors[action].append((status, code, message))

    def count(self, name: str, code: str) -> int:
        return sum(s["quantity"] for s in self.characters[name]["inventory"] if s["code"] == code)

    def total(self, name: str) -> int:
        return sum(s["quantity"] for s in self.characters[name]["inventory"] if s["code"])

    def action_calls(self, name: Optional[str] = None) -> list[tuple[str, Optional[dict[str, Any]]]]:
        """Account-scoped calls as (action, body), in order."""
        out = []
        for method, path, body in self.calls:
            parts = path.strip("/").split("/")
            if parts[0] != "my" or (name is not None and parts[1] != name):
                continue
            out.append(("/".join(parts[3:]), body))
        return out

    def trace(self, name: Optional[str] = None) -> list[str]:
        """Compact action trace such as ``move(2,6)`` or ``bank/deposit(spruce_wood,5)``."""
        out = []
        for action, body in self.action_calls(name):
            if action == "move":
                out.append(f"move({body['x']},{body['y']})")
            elif body and "code" in body:
                out.append(f"{action}({body['code']},{body.get('quantity')})")
            else:
                out.append(action)
        return out

    # Inventory helpers

    def _free_slot(self, character: dict[str, Any], code: str) -> Optional[dict[str, Any]]:
        for slot in character["inventory"]:
            if slot["code"] == code:
                return slot
        for slot in character["inventory"]:
            if not slot["code"]:
                return slot
        return None

    def _can_carry(self, character: dict[str, Any], code: str, quantity: int) -> bool:
        total = sum(s["quantity"] for s in character["inventory"] if s["code"])
        return total + quantity <= character["inventory_max_items"] and self._free_slot(character, code) is not None

    def _add_item(self, character: dict[str, Any], code: str, quantity: int) -> None:
        slot = self._free_slot(character, code)
        slot["code"] = code
        slot["quantity"] += quantity

    def _remove_item(self, character: dict[str, Any], code: str, quantity: int) -> bool:
        have = sum(s["quantity"] for s in character["inventory"] if s["code"] == code)
        if have < quantity:
            return False
        for slot in character["inventory"]:
            if slot["code"] != code or quantity == 0:
                continue
            taken = min(slot["quantity"], quantity)
            slot["quantity"] -= taken
            quantity -= taken
            if slot["quantity"] == 0:
                slot["code"] = ""
        return True

    # HTTP

    @staticmethod
    def _error(status: int, message: str, code: Optional[int] = None) -> httpx.Response:
        return httpx.Response(status, json={"error": {"code": code or status, "message": message}})

    def _ok(self, character: dict[str, Any], **extra: Any) -> httpx.Response:
        data = {
            "cooldown": {"total_seconds": 0, "remaining_seconds": 0, "expiration": _past()},
            "character": json.loads(json.dumps(character)),
        }
        data.update(extra)
        return httpx.Response(200, json={"data": data})

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, request.url.path, body))

        if request.headers.get("Authorization") != f"Bearer {TOKEN}":
            return self._error(401, "Invalid token")

        parts = request.url.path.strip("/").split("/")
        if parts[0] == "characters":
            character = self.characters.get(parts[1])
            if character is None:
                return self._error(404, "Character not found.")
            return httpx.Response(200, json={"data": json.loads(json.dumps(character))})

        name, action = parts[1], "/".join(parts[3:])
        character = self.characters.get(name)
        if character is None:
            return self._error(498, "Character not found.")

        if self._errors[action]:
            status, code, message = self._errors[action].pop(0)
            return self._error(status, message, code)

        return getattr(self, "_do_" + action.replace("/", "_"))(request, character, body or {})

    def _do_move(self, request, character, body):
        if (character["x"], character["y"]) == (body["x"], body["y"]):
            return self._error(490, "Character already at destination.")
        character["x"], character["y"] = body["x"], body["y"]
        return self._ok(character)

    def _do_gathering(self, request, character, body):
        code = self.resources.get((character["x"], character["y"]))
        if code is None:
            return self._error(598, "Resource not found on this map.")
        if not self._can_carry(character, code, self.gather_yield):
            return self._error(497, "Character inventory is full.")
        self._add_item(character, code, self.gather_yield)
        return self._ok(character, details={"items": [{"code": code, "quantity": self.gather_yield}]})

    def _do_crafting(self, request, character, body):
        recipe = self.recipes.get(body["code"], {})
        quantity = body.get("quantity", 1)
        for code, per_unit in recipe.items():
            if self.count(character["name"], code) < per_unit * quantity:
                return self._error(478, "Missing item or insufficient quantity.")
        for code, per_unit in recipe.items():
            self._remove_item(character, code, per_unit * quantity)
        self._add_item(character, body["code"], quantity)
        return self._ok(character)

    def _do_recycling(self, request, character, body):
        if not self._remove_item(character, body["code"], body.get("quantity", 1)):
            return self._error(478, "Missing item or insufficient quantity.")
        return self._ok(character)

    def _do_rest(self, request, character, body):
        character["hp"] = character["max_hp"]
        return self._ok(character)

    def _do_fight(self, request, character, body):
        if (character["x"], character["y"]) not in self.monsters:
            return self._error(598, "Monster not found on this map.")
        result = self.fight_results.pop(0) if self.fight_results else "win"
        if result == "loss":
            character["hp"] = 0
            character["x"], character["y"] = 0, 0
        else:
            character["hp"] = max(1, character["hp"] - 10)
        return self._ok(character, fight={"result": result})

    def _do_bank_deposit(self, request, character, body):
        if request.method not in self.deposit_methods:
            return self._error(405, "Method Not Allowed")
        if not self._remove_item(character, body["code"], body["quantity"]):
            return self._error(478, "Missing item or insufficient quantity.")
        self.bank[body["code"]] += body["quantity"]
        return self._ok(character, bank=[{"code": k, "quantity": v} for k, v in self.bank.items()])

    def _do_bank_withdraw(self, request, character, body):
        if self.bank.get(body["code"], 0) < body["quantity"]:
            return self._error(478, "Missing item or insufficient quantity.")
        self.bank[body["code"]] -= body["quantity"]
        self._add_item(character, body["code"], body["quantity"])
        return self._ok(character)

    def _do_equip(self, request, character, body):
        return self._ok(character)

    def _do_unequip(self, request, character, body):
        return self._ok(character)


@pytest.fixture(autouse=True)
def sleeps(monkeypatch):
    """Record every wait (in ms) instead of sleeping."""
    recorded: list[float] = []

    async def fake_sleep(ms: float) -> None:
        recorded.append(ms)

    monkeypatch.setattr(cooldown, "sleep", fake_sleep)
    return recorded


@pytest.fixture
def game_server() -> FakeGameServer:
    return FakeGameServer()


@pytest.fixture
def engine():
    """In-memory SQLite store with the schema created."""
    engine = create_engine_from_url("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def telemetry_store(engine) -> TelemetryStore:
    return TelemetryStore(engine)


@pytest.fixture
def telemetry(telemetry_store, tmp_path) -> TelemetryBuffer:
    return TelemetryBuffer(telemetry_store, str(tmp_path / "data"), flush_interval=3600)


@pytest_asyncio.fixture
async def transport(game_server, telemetry):
    transport = Transport(
        TOKEN,
        BASE_URL,
        telemetry=telemetry,
        transport=httpx.MockTransport(game_server.handler),
    )
    await transport.connect()
    yield transport
    await transport.close()


@pytest_asyncio.fixture
async def actions(transport) -> ActionClient:
    return ActionClient(transport)
