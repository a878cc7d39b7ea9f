# artisan/client/executor.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Cooldown-aware execution of actions.

Two entry points:

- ``execute_with_cooldown`` repeats an action, handing each outcome to
  callbacks that decide whether to keep going.
- ``run_action`` performs one action under the retry policy: one retry after
  a cooldown, 30 s waits on rate limits, exponential backoff for generic
  transport failures. Semantic failures are raised at once for the caller
  to handle.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from . import cooldown
from .errors import CooldownError, ErrorKind, TransportError


logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY = 10.0
RATE_LIMIT_DELAY = 30.0
DEFAULT_COOLDOWN_WAIT = 1.0

# Raised immediately by run_action so the cycle can decide what to do.
SEMANTIC_KINDS = frozenset({
    ErrorKind.ALREADY_AT_DESTINATION,
    ErrorKind.INVENTORY_FULL,
    ErrorKind.NO_RESOURCE,
    ErrorKind.CHARACTER_DEAD,
    ErrorKind.MONSTER_NOT_FOUND,
    ErrorKind.CHARACTER_NOT_FOUND,
    ErrorKind.MISSING_ITEM,
})


@dataclass
class ErrorDecision:
    """What ``execute_with_cooldown`` should do after a failure.

    Attributes:
        continue_execution: Keep looping when True.
        retry_delay: Seconds to wait before the next attempt.
    """
    continue_execution: bool = True
    retry_delay: Optional[float] = None


Action = Callable[[], Awaitable[Any]]
OnSuccess = Callable[[Any], Any]
OnError = Callable[[BaseException, int], Any]


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _as_decision(value: Union[bool, ErrorDecision, dict, None]) -> ErrorDecision:
    if isinstance(value, ErrorDecision):
        return value
    if isinstance(value, dict):
        return ErrorDecision(
            continue_execution=bool(value.get("continue_execution", value.get("continueExecution", False))),
            retry_delay=value.get("retry_delay", value.get("retryDelay")),
        )
    return ErrorDecision(continue_execution=bool(value))


def result_cooldown_seconds(result: Any) -> float:
    """Cooldown announced in an action result, 0.0 if none."""
    if not isinstance(result, dict):
        return 0.0
    window = result.get("cooldown")
    if not isinstance(window, dict):
        return 0.0
    if window.get("expiration"):
        return cooldown.remaining_seconds_from(window["expiration"])
    return float(window.get("remaining_seconds") or window.get("total_seconds") or 0)


async def execute_with_cooldown(
    action: Action,
    on_success: Optional[OnSuccess] = None,
    on_error: Optional[OnError] = None,
    max_attempts: int = 0,
    retry_delay: float = DEFAULT_RETRY_DELAY,
) -> int:
    """Run ``action`` repeatedly, waiting out cooldowns between attempts.

    After a success the executor waits the cooldown announced in the
    result. After a failure ``on_error(error, attempts)`` returns a bool or
    an ``ErrorDecision``. A ``CooldownError`` is always retried after its
    remaining duration and does not use up an attempt, whatever
    ``on_error`` says.

    Args:
        action: Coroutine function performing one action.
        on_success: Called with each result. Returning False stops the loop.
        on_error: Called with each failure. Without it, failures other than
            cooldowns are raised.
        max_attempts: Attempts before stopping. 0 means unbounded.
        retry_delay: Default seconds to wait after a failure.

    Returns:
        Number of successful attempts.
    """
    attempts = 0
    successes = 0

    while max_attempts == 0 or attempts < max_attempts:
        try:
            result = await action()
        except TransportError as error:
            if isinstance(error, CooldownError):
                if on_error is not None:
                    await _resolve(on_error(error, attempts))
                wait = error.remaining_seconds
                if wait is None:
                    wait = retry_delay
                logger.info(f"Cooldown: retrying in {wait:.2f}s")
                await cooldown.sleep(wait * 1000)
                continue

            attempts += 1
            if on_error is None:
                raise
            decision = _as_decision(await _resolve(on_error(error, attempts)))
            if not decision.continue_execution:
                logger.info(f"Stopping after {attempts} attempts: {error}")
                break
            delay = decision.retry_delay if decision.retry_delay is not None else retry_delay
            await cooldown.sleep(delay * 1000)
            continue

        attempts += 1
        successes += 1
        if on_success is not None:
            if await _resolve(on_success(result)) is False:
                break
        if max_attempts and attempts >= max_attempts:
            break
        wait = result_cooldown_seconds(result)
        if wait > 0:
            logger.debug(f"Next action in {wait:.2f}s")
            await cooldown.sleep(wait * 1000)

    return successes


async def run_action(
    action: Action,
    name: str = "action",
    max_retries: int = 5,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    rate_limit_delay: float = RATE_LIMIT_DELAY,
    buffer_seconds: float = cooldown.BUFFER_SECONDS,
) -> Any:
    """Perform one action under the retry policy.

    Args:
        action: Coroutine function performing the action.
        name: Label for log lines.
        max_retries: Generic failures retried before giving up.
        initial_delay: First backoff delay in seconds.
        max_delay: Backoff cap in seconds.
        rate_limit_delay: Wait after a rate limit.
        buffer_seconds: Extra wait added to a cooldown.

    Returns:
        The action's result.

    Raises:
        TransportError: Semantic failures immediately, a second cooldown,
            or a generic failure once retries are exhausted.
    """
    failures = 0
    cooldown_retried = False

    while True:
        try:
            return await action()
        except TransportError as error:
            kind = error.kind

            if kind in SEMANTIC_KINDS:
                raise

            if kind is ErrorKind.COOLDOWN:
                if cooldown_retried:
                    logger.error(f"{name}: still in cooldown after waiting, giving up")
                    raise
                cooldown_retried = True
                wait = cooldown.extract_cooldown_seconds(error)
                if wait is None:
                    wait = DEFAULT_COOLDOWN_WAIT
                logger.info(f"{name}: cooldown {wait:.2f}s, retrying once")
                await cooldown.sleep((wait + buffer_seconds) * 1000)
                continue

            if kind is ErrorKind.RATE_LIMITED:
                logger.warning(f"{name}: rate limited, waiting {rate_limit_delay:.0f}s")
                await cooldown.sleep(rate_limit_delay * 1000)
                continue

            failures += 1
            if failures > max_retries:
                logger.error(f"{name}: failed after {max_retries} retries: {error}")
                raise
            delay = min(initial_delay * 2 ** (failures - 1), max_delay)
            logger.warning(f"{name}: {error}; retry {failures}/{max_retries} in {delay:.1f}s")
            await cooldown.sleep(delay * 1000)
