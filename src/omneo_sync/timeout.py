"""Deadline enforcement for individual Omneo API calls.

A timed-out call is abandoned by the caller but not cancelled: the request
keeps running in the background, so the remote side may still apply it.
Callers get at-most-once from their own point of view, never exactly-once.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

from .config import DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Abandoned calls still in flight. The event loop only holds weak references
# to tasks, so they are kept here until they finish.
_abandoned: set[asyncio.Future[Any]] = set()


class OperationTimeoutError(TimeoutError):
    """Raised when a remote call exceeds its deadline."""

    def __init__(self, operation_name: str, timeout_seconds: float) -> None:
        super().__init__(f"{operation_name} timed out after {timeout_seconds}s")
        self.operation_name = operation_name
        self.timeout_seconds = timeout_seconds


def _forget(future: asyncio.Future[Any]) -> None:
    _abandoned.discard(future)
    if not future.cancelled() and future.exception() is not None:
        logger.debug(
            "Abandoned call finished with error",
            extra={"error": str(future.exception())},
        )


async def with_timeout(
    awaitable: Awaitable[T],
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    operation_name: str = "Omneo API call",
) -> T:
    """Await a remote call with a deadline.

    Args:
        awaitable: The call to wait for.
        timeout_seconds: Maximum time to wait.
        operation_name: Human-readable name for logging.

    Returns:
        The result of the call.

    Raises:
        OperationTimeoutError: If the deadline expires first.
    """
    inner = asyncio.ensure_future(awaitable)
    try:
        return await asyncio.wait_for(asyncio.shield(inner), timeout=timeout_seconds)
    except TimeoutError as e:
        _abandoned.add(inner)
        inner.add_done_callback(_forget)
        logger.error(
            f"{operation_name} timed out",
            extra={"timeout_seconds": timeout_seconds},
        )
        raise OperationTimeoutError(operation_name, timeout_seconds) from e


def pending_abandoned_calls() -> int:
    """Number of timed-out calls that are still running."""
    return len(_abandoned)
