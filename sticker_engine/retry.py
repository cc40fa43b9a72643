"""Retry with exponential backoff for model service calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, TypeVar

from .exceptions import ClientError, GenerationEmpty

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]

DEFAULT_RETRIES = 2
DEFAULT_INITIAL_DELAY = 1.0

# Substrings marking a client-side condition that a retry cannot fix.
NON_RETRYABLE_MARKERS = ("400", "403", "404", "not found", "API key")


def error_message(exc: BaseException) -> str:
    return str(exc) or repr(exc)


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, (ClientError, GenerationEmpty)):
        return False
    message = error_message(exc)
    return not any(marker in message for marker in NON_RETRYABLE_MARKERS)


def backoff_delays(retries: int = DEFAULT_RETRIES, initial_delay: float = DEFAULT_INITIAL_DELAY) -> List[float]:
    """Delays (seconds) slept before each retry: ``initial_delay`` doubling per retry."""

    return [initial_delay * (2 ** attempt) for attempt in range(max(0, retries))]


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    retries: int = DEFAULT_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    sleep: SleepFunc = asyncio.sleep,
) -> T:
    """Await ``operation`` up to ``retries + 1`` times.

    Client errors abort immediately. When every attempt fails the last error
    is raised unchanged.
    """

    delays = backoff_delays(retries, initial_delay)
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            if not is_retryable(exc) or attempt >= len(delays):
                raise
            delay = delays[attempt]
            attempt += 1
            logger.warning(
                "Operation failed, retrying in %.1fs (%d attempts left): %s",
                delay,
                len(delays) - attempt + 1,
                error_message(exc),
            )
            await sleep(delay)
