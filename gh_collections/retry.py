"""Opt-in retry for write conflicts.

The collection protocol never retries on its own. Callers that want
"re-fetch and try again" semantics wrap the whole operation:

    >>> await retry_on_conflict(lambda: tasks.insert(task), max_attempts=5)

Each attempt re-runs the full fetch/modify/put cycle, so the retried write
is always applied on top of the latest remote state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .exceptions import ConflictError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_on_conflict(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    delay: float = 0.0,
) -> T:
    """Run ``operation``, re-running it while it raises ConflictError.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        max_attempts: Total attempts including the first
        delay: Seconds to sleep between attempts

    Returns:
        The operation's result

    Raises:
        ConflictError: The last conflict, once attempts are exhausted
    """
    if max_attempts < 1:
        raise ValidationError("max_attempts", "must be at least 1", str(max_attempts))

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except ConflictError as e:
            if attempt == max_attempts:
                raise
            logger.info(f"Conflict on {e.path} (attempt {attempt}/{max_attempts}), retrying")
            if delay > 0:
                await asyncio.sleep(delay)

    raise RuntimeError("Unexpected retry failure")
