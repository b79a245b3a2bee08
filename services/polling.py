import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
from loguru import logger

from services.errors import TranscriptNotReady

T = TypeVar("T")

MIN_TRANSCRIPT_LENGTH = 50


def is_transcript_ready(transcript: Any) -> bool:
    """Reject empty and placeholder responses: a real transcript is longer than 50 chars."""
    return (
        isinstance(transcript, str)
        and bool(transcript.strip())
        and len(transcript) > MIN_TRANSCRIPT_LENGTH
    )


def backoff_delay(attempt: int, base_delay: float, max_delay: Optional[float] = None) -> float:
    """Delay after the 1-based ``attempt``: ``base_delay * 2**(attempt-1)``, clamped to ``max_delay``."""
    delay = base_delay * (2 ** (attempt - 1))
    if max_delay is not None:
        delay = min(delay, max_delay)
    return delay


def _is_not_found(error: Exception) -> bool:
    if isinstance(error, TranscriptNotReady):
        return True
    return isinstance(error, httpx.HTTPStatusError) and error.response.status_code == 404


async def poll_until_ready(
    fetch: Callable[[], Awaitable[T]],
    is_ready: Callable[[T], bool],
    max_attempts: int,
    base_delay: float,
    max_delay: Optional[float] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: str = "resource",
) -> Optional[T]:
    """
    Poll an eventually-consistent remote resource with exponential backoff.

    Every attempt calls ``fetch``. A result accepted by ``is_ready`` is returned
    immediately. Rejected results, not-found responses and any other fetch
    error all count as "not ready yet" and are retried; nothing aborts the loop
    early. No delay follows the final attempt.

    Args:
        fetch: Coroutine function performing one remote read
        is_ready: Validity predicate over the fetched value
        max_attempts: Total number of fetch calls allowed
        base_delay: Delay in seconds after the first failed attempt
        max_delay: Upper clamp on any single delay, in seconds
        sleep: Awaitable delay function (injectable for tests)
        label: Name used in log lines

    Returns:
        The first accepted value, or None once the attempts are exhausted
    """
    for attempt in range(1, max_attempts + 1):
        logger.info(f"Polling {label} attempt {attempt}/{max_attempts}")

        try:
            result = await fetch()
            if is_ready(result):
                logger.info(f"{label} ready on attempt {attempt}")
                return result
            logger.info(f"{label} not ready yet")

        except Exception as e:
            if _is_not_found(e):
                logger.warning(f"{label} not found, may not be ready")
            else:
                status = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
                logger.error(f"{label} fetch failed (status={status}): {e!r}")

        if attempt < max_attempts:
            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.info(f"Waiting {delay:g}s before next attempt")
            await sleep(delay)

    logger.warning(f"{label} unavailable after {max_attempts} attempts")
    return None
