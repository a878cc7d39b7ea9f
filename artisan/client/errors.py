# artisan/client/errors.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Typed errors raised by the transport.

Consumers switch on ``ErrorKind`` (or the exception class). The only place
an error message is inspected is ``parse_cooldown_seconds``, which reads the
remaining cooldown out of the server's text.
"""

import re
from enum import Enum
from typing import Any, Optional

from ..exceptions import ArtisanError


COOLDOWN_PATTERN = re.compile(r"Character in cooldown: (\d+(?:\.\d+)?) seconds? left")

# Server error codes
CODE_NOT_FOUND = 404
CODE_RATE_LIMITED = 429
CODE_MISSING_ITEM = 478
CODE_ACTION_IN_PROGRESS = 486
CODE_ALREADY_AT_DESTINATION = 490
CODE_INVENTORY_FULL = 497
CODE_CHARACTER_NOT_FOUND = 498
CODE_COOLDOWN = 499
CODE_NOTHING_ON_MAP = 598


class ErrorKind(str, Enum):
    """Policy-relevant category of a transport failure."""
    COOLDOWN = "cooldown"
    RATE_LIMITED = "rate_limited"
    ALREADY_AT_DESTINATION = "already_at_destination"
    INVENTORY_FULL = "inventory_full"
    NO_RESOURCE = "no_resource"
    CHARACTER_DEAD = "character_dead"
    MONSTER_NOT_FOUND = "monster_not_found"
    CHARACTER_NOT_FOUND = "character_not_found"
    MISSING_ITEM = "missing_item"
    TRANSPORT = "transport"


class TransportError(ArtisanError):
    """A failed call to the game API.

    Attributes:
        message: Server message, or the client error for network failures.
        status: HTTP status, 0 when no response was received.
        endpoint: Endpoint that was called.
        code: Error code from the response body, when present.
    """

    kind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        status: int = 0,
        endpoint: str = "",
        code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.endpoint = endpoint
        self.code = code

    def __str__(self) -> str:
        return f"API error ({self.code or self.status}) on {self.endpoint or '?'}: {self.message}"


class CooldownError(TransportError):
    """The character is still cooling down.

    ``remaining_seconds`` is None when the server message did not say how
    long the cooldown has left.
    """

    kind = ErrorKind.COOLDOWN

    def __init__(
        self,
        message: str,
        status: int = CODE_COOLDOWN,
        endpoint: str = "",
        code: Optional[int] = None,
        remaining_seconds: Optional[float] = None,
    ):
        super().__init__(message, status=status, endpoint=endpoint, code=code)
        self.remaining_seconds = remaining_seconds


class RateLimited(TransportError):
    """Too many requests."""
    kind = ErrorKind.RATE_LIMITED


class AlreadyAtDestination(TransportError):
    """A move targeted the tile the character is standing on."""
    kind = ErrorKind.ALREADY_AT_DESTINATION


class InventoryFull(TransportError):
    """The character cannot carry any more items."""
    kind = ErrorKind.INVENTORY_FULL


class NoResource(TransportError):
    """Nothing to gather on the character's tile."""
    kind = ErrorKind.NO_RESOURCE


ResourceNotFound = NoResource


class CharacterDead(TransportError):
    """The character lost a fight."""
    kind = ErrorKind.CHARACTER_DEAD


class MonsterNotFound(TransportError):
    """No monster on the character's tile."""
    kind = ErrorKind.MONSTER_NOT_FOUND


class CharacterNotFound(TransportError):
    """The character does not exist on this account."""
    kind = ErrorKind.CHARACTER_NOT_FOUND


class MissingItem(TransportError):
    """The character or bank does not hold enough of an item."""
    kind = ErrorKind.MISSING_ITEM


_CODE_KINDS = {
    CODE_RATE_LIMITED: ErrorKind.RATE_LIMITED,
    CODE_MISSING_ITEM: ErrorKind.MISSING_ITEM,
    CODE_ALREADY_AT_DESTINATION: ErrorKind.ALREADY_AT_DESTINATION,
    CODE_INVENTORY_FULL: ErrorKind.INVENTORY_FULL,
    CODE_CHARACTER_NOT_FOUND: ErrorKind.CHARACTER_NOT_FOUND,
    CODE_COOLDOWN: ErrorKind.COOLDOWN,
}

_KIND_CLASSES = {
    ErrorKind.RATE_LIMITED: RateLimited,
    ErrorKind.ALREADY_AT_DESTINATION: AlreadyAtDestination,
    ErrorKind.INVENTORY_FULL: InventoryFull,
    ErrorKind.NO_RESOURCE: NoResource,
    ErrorKind.CHARACTER_DEAD: CharacterDead,
    ErrorKind.MONSTER_NOT_FOUND: MonsterNotFound,
    ErrorKind.CHARACTER_NOT_FOUND: CharacterNotFound,
    ErrorKind.MISSING_ITEM: MissingItem,
    ErrorKind.TRANSPORT: TransportError,
}


def parse_cooldown_seconds(message: Optional[str]) -> Optional[float]:
    """Read the remaining cooldown out of a server message.

    Args:
        message: Error text such as
            ``"Character in cooldown: 3.50 seconds left."``.

    Returns:
        Seconds left, or None when the text has no cooldown duration.
    """
    if not message:
        return None
    match = COOLDOWN_PATTERN.search(message)
    if match is None:
        return None
    return float(match.group(1))


def _error_body(payload: Any) -> tuple[Optional[int], str]:
    if not isinstance(payload, dict):
        return None, str(payload or "")
    error = payload.get("error")
    if isinstance(error, dict):
        code = error.get("code")
        return (code if isinstance(code, int) else None), str(error.get("message") or "")
    if isinstance(error, str):
        return None, error
    return None, str(payload.get("message") or "")


def classify_error(status: int, endpoint: str, payload: Any) -> TransportError:
    """Build the typed error for a non-2xx response.

    The body's error code is preferred over the HTTP status, since the game
    API reports most semantic failures through both.

    Args:
        status: HTTP status code.
        endpoint: Endpoint that was called (e.g. ``action/fight``).
        payload: Decoded response body.

    Returns:
        The matching TransportError subclass instance.
    """
    code, message = _error_body(payload)
    message = message or f"HTTP {status}"
    effective = code if code is not None else status

    remaining = parse_cooldown_seconds(message)
    if effective == CODE_COOLDOWN or remaining is not None:
        return CooldownError(
            message, status=status, endpoint=endpoint, code=code, remaining_seconds=remaining,
        )

    if effective == CODE_NOTHING_ON_MAP:
        kind = ErrorKind.MONSTER_NOT_FOUND if endpoint.endswith("fight") else ErrorKind.NO_RESOURCE
    else:
        kind = _CODE_KINDS.get(effective) or _CODE_KINDS.get(status) or ErrorKind.TRANSPORT

    return _KIND_CLASSES[kind](message, status=status, endpoint=endpoint, code=code)
