"""Retry loop around a single classification call.

Only failures that can succeed on a second attempt are retried: rate
limits, overload/5xx responses and transport errors. A 4xx from a bad
request or bad credentials fails the stage immediately so its fallback
kicks in without burning the backoff schedule.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from anthropic import APIError, APIStatusError

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAYS = [2, 4, 8]

T = TypeVar("T")


def is_transient(error: APIError) -> bool:
    """Whether a Claude error is worth retrying."""
    if isinstance(error, APIStatusError):
        return error.status_code == 429 or error.status_code >= 500
    return True


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    stage: str,
    tool_name: str,
) -> T:
    """Run one classification stage with backoff on transient Claude errors.

    Args:
        fn: Zero-arg async callable that performs the Messages API call.
        stage: Classification stage for logs (e.g. "Theme clustering").
        tool_name: Tool the call forces, so retries can be traced per schema.

    Raises:
        The last APIError once retries are exhausted, or the first
        non-transient one.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await fn()
        except APIError as e:
            if not is_transient(e):
                logger.warning(f"[classifier] {stage} ({tool_name}) rejected, not retrying: {e}")
                raise
            if attempt == MAX_RETRIES:
                logger.error(
                    f"[classifier] {stage} ({tool_name}) gave up after {MAX_RETRIES} attempts: {e}"
                )
                raise
            delay = RETRY_DELAYS[attempt - 1]
            logger.warning(
                f"[classifier] {stage} ({tool_name}) attempt {attempt}/{MAX_RETRIES} "
                f"failed, retrying in {delay}s: {e}"
            )
            await asyncio.sleep(delay)
