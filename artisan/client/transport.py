# artisan/client/transport.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Authenticated HTTP conduit to the game API.

The transport never sleeps and never retries. It returns the ``data`` of a
successful response or raises a typed error, and records one action log per
account-scoped call.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx

from ..config import DEFAULT_SERVER, validate_character_name
from .errors import TransportError, classify_error


logger = logging.getLogger(__name__)


def action_type_for(endpoint: str) -> str:
    """Telemetry tag of an endpoint: ``action/bank/deposit`` -> ``bank_deposit``."""
    path = endpoint.strip("/")
    if path.startswith("action/"):
        path = path[len("action/"):]
    return path.replace("/", "_")


class Transport:
    """Issues requests to the game API on behalf of characters.

    Requests for the same character are serialized with a per-character
    lock. The last position reported for each character is kept so action
    logs can be tagged with coordinates.

    Args:
        token: Bearer token.
        base_url: API root URL.
        telemetry: Optional sink with ``enqueue_action_log``.
        timeout: HTTP timeout in seconds.
        transport: Optional httpx transport, used to fake the API in tests.
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_SERVER,
        telemetry: Any = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.telemetry = telemetry
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._locks: dict[str, asyncio.Lock] = {}
        self.positions: dict[str, tuple[int, int]] = {}

    async def __aenter__(self) -> "Transport":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
                transport=self._transport,
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Transport is not connected. Call connect() first.")
        return self._client

    def _lock_for(self, character: str) -> asyncio.Lock:
        lock = self._locks.get(character)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[character] = lock
        return lock

    async def request(
        self,
        endpoint: str,
        method: str = "POST",
        body: Optional[dict[str, Any]] = None,
        character: Optional[str] = None,
    ) -> Any:
        """Perform an action for a character.

        Args:
            endpoint: Path below ``/my/{character}/``, e.g. ``action/move``.
            method: HTTP verb.
            body: JSON body, if any.
            character: Character name.

        Returns:
            The ``data`` field of the response.

        Raises:
            ConfigurationError: If the character name is invalid.
            TransportError: On any non-2xx response or network failure.
        """
        name = validate_character_name(character)
        await self.connect()
        path = f"/my/{name}/{endpoint.strip('/')}"

        async with self._lock_for(name):
            logger.debug(f"[{name}] {method} {path} {body or ''}")
            try:
                response = await self.client.request(method, path, json=body)
            except httpx.HTTPError as e:
                error = TransportError(f"{type(e).__name__}: {e}", status=0, endpoint=endpoint)
                logger.error(f"[{name}] {method} {endpoint} failed: {error.message}")
                self._record(name, endpoint, error=error)
                raise error from e

        payload = self._decode(response)
        if response.is_success:
            data = payload.get("data", payload) if isinstance(payload, dict) else payload
            self._remember_position(name, data)
            logger.info(f"[{name}] {action_type_for(endpoint)} ok")
            self._record(name, endpoint, result=data)
            return data

        error = classify_error(response.status_code, endpoint, payload)
        logger.warning(f"[{name}] {action_type_for(endpoint)} failed: {error}")
        self._record(name, endpoint, error=error)
        raise error

    async def get_character(self, name: str) -> dict[str, Any]:
        """Fetch public character details.

        This is the only read path. It never triggers a cooldown and is not
        recorded as an action.
        """
        name = validate_character_name(name)
        await self.connect()
        endpoint = f"characters/{name}"
        try:
            response = await self.client.get(f"/{endpoint}")
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}", status=0, endpoint=endpoint) from e

        payload = self._decode(response)
        if not response.is_success:
            raise classify_error(response.status_code, endpoint, payload)
        data = payload.get("data", payload) if isinstance(payload, dict) else payload
        if isinstance(data, dict):
            self._remember_position(name, {"character": data})
        return data

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"error": {"message": response.text}}

    def _remember_position(self, name: str, data: Any) -> None:
        if not isinstance(data, dict):
            return
        character = data.get("character")
        if isinstance(character, dict) and "x" in character and "y" in character:
            self.positions[name] = (int(character["x"]), int(character["y"]))

    def _record(
        self,
        name: str,
        endpoint: str,
        result: Any = None,
        error: Optional[TransportError] = None,
    ) -> None:
        if self.telemetry is None:
            return
        self.telemetry.enqueue_action_log(
            name,
            action_type_for(endpoint),
            self.positions.get(name),
            result,
            error=str(error) if error is not None else None,
        )
