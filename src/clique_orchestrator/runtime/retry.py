"""
Bounded retry with exponential backoff.

The engine may report a resource as "removal in progress" for a short time
after a delete, and the socket may briefly refuse connections while the
daemon restarts. Both are retried here, at the boundary, and never inside
business logic.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import Field

from clique_orchestrator.types import (
    CleanupTimeout,
    FrozenModel,
    ResourceBusy,
    RuntimeUnavailable,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]

CLEANUP_RETRY_ON: tuple[type[Exception], ...] = (ResourceBusy, RuntimeUnavailable)
"""Failures a cleanup call waits out."""

CREATE_RETRY_ON: tuple[type[Exception], ...] = (RuntimeUnavailable,)
"""Failures a create call waits out. Rejections are surfaced immediately."""


class RetryPolicy(FrozenModel):
    """Attempt count and backoff bounds."""

    attempts: int = Field(default=5, ge=1)
    """Total attempts, including the first."""

    base_delay: float = Field(default=0.5, ge=0)
    """Delay after the first failure, in seconds."""

    max_delay: float = Field(default=4.0, ge=0)
    """Upper bound on any single delay."""

    def delay(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt: base * 2^(n-1), capped."""
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    retry_on: tuple[type[Exception], ...],
    *,
    description: str = "operation",
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    Run an operation until it succeeds or the policy is spent.

    Args:
        operation: Zero-argument coroutine factory. Called once per attempt.
        policy: Attempt count and backoff.
        retry_on: Exception types that trigger another attempt.
        description: Used in log lines.
        sleep: Injected for tests.

    Returns:
        The operation's result.

    Raises:
        The last retryable exception once attempts run out. Anything not in
        `retry_on` propagates immediately.
    """
    for attempt in range(1, policy.attempts + 1):
        try:
            return await operation()
        except retry_on as exc:
            if attempt == policy.attempts:
                raise
            delay = policy.delay(attempt)
            logger.debug(
                "%s failed (attempt %d/%d): %s; retrying in %.2fs",
                description,
                attempt,
                policy.attempts,
                exc,
                delay,
            )
            await sleep(delay)

    raise AssertionError("unreachable")


async def retry_cleanup(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    description: str,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    Retry a cleanup call on busy or unreachable runtimes.

    Raises:
        CleanupTimeout: If the call still fails after every attempt.
    """
    try:
        return await retry_async(
            operation, policy, CLEANUP_RETRY_ON, description=description, sleep=sleep
        )
    except CLEANUP_RETRY_ON as exc:
        raise CleanupTimeout(description, policy.attempts, exc) from exc
