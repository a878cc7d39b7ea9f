# artisan/client/cooldown.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Cooldown clock.

Every wait in artisan goes through ``sleep`` in this module, so callers
reference it as ``cooldown.sleep`` rather than importing the name.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Union

from .errors import CooldownError, TransportError, parse_cooldown_seconds


logger = logging.getLogger(__name__)

BUFFER_SECONDS = 0.5


async def sleep(ms: float) -> None:
    """Sleep for ``ms`` milliseconds. Non-positive values return at once."""
    if ms <= 0:
        return
    await asyncio.sleep(ms / 1000)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware datetime."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def remaining_seconds_from(
    expiration: Union[str, datetime, None],
    now: Optional[datetime] = None,
) -> float:
    """Seconds until ``expiration``, never negative.

    Args:
        expiration: Absolute cooldown expiration.
        now: Reference time. Defaults to the current UTC time.
    """
    expires_at = parse_timestamp(expiration)
    if expires_at is None:
        return 0.0
    now = now or datetime.now(timezone.utc)
    return max(0.0, (expires_at - now).total_seconds())


def extract_cooldown_seconds(error: Union[BaseException, str, None]) -> Optional[float]:
    """Remaining cooldown carried by an error or error text, if any."""
    if isinstance(error, CooldownError) and error.remaining_seconds is not None:
        return error.remaining_seconds
    if isinstance(error, TransportError):
        return parse_cooldown_seconds(error.message)
    if error is None:
        return None
    return parse_cooldown_seconds(str(error))


async def handle_cooldown(client: Any, character: str, buffer_seconds: float = BUFFER_SECONDS) -> float:
    """Wait out the character's current cooldown.

    Fetches the character's public details and sleeps until its cooldown
    expires plus ``buffer_seconds``. A failed fetch is logged and treated as
    no cooldown.

    Args:
        client: Anything with an async ``fetch_details(character)``.
        character: Character name.
        buffer_seconds: Extra wait after the expiration.

    Returns:
        Seconds of cooldown that were remaining, 0.0 if none.
    """
    try:
        details = await client.fetch_details(character)
    except TransportError as e:
        logger.warning(f"[{character}] Could not fetch cooldown state: {e}")
        return 0.0

    if details.cooldown_expiration is not None:
        remaining = remaining_seconds_from(details.cooldown_expiration)
    else:
        remaining = float(details.cooldown or 0)

    if remaining <= 0:
        return 0.0

    logger.info(f"[{character}] Waiting {remaining:.1f}s for cooldown")
    await sleep((remaining + buffer_seconds) * 1000)
    return remaining
