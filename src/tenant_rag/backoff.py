"""Retry-with-backoff helper shared by every rate-limited network call."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from tenant_rag.errors import RateLimited, is_rate_limited

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How to retry a rate-limited operation.

    Attributes
    ----------
    max_attempts:
        Total number of attempts, including the first one.
    base_delay:
        Delay in seconds before the first retry; doubled for each further retry.
    classifier:
        Predicate deciding whether an error is worth retrying.
    sleep:
        Awaitable sleep function (injectable for tests).
    """

    max_attempts: int = 5
    base_delay: float = 1.0
    classifier: Callable[[BaseException], bool] = is_rate_limited
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number *attempt* (0-based)."""
        return self.base_delay * (2**attempt)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    label: str = "operation",
) -> T:
    """Await *operation*, retrying with exponential delay on rate limiting.

    Errors the policy's classifier rejects propagate immediately.  When the
    final attempt is still rate limited, :class:`RateLimited` is raised
    chained to the last error.
    """
    policy = policy or RetryPolicy()
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            if not policy.classifier(exc):
                raise
            if attempt >= policy.max_attempts - 1:
                raise RateLimited(
                    f"{label} still rate limited after {policy.max_attempts} attempts"
                ) from exc
            wait = policy.delay_for(attempt)
            logger.warning(
                "Rate limit hit during %s, waiting %.1fs before retry %d/%d",
                label,
                wait,
                attempt + 1,
                policy.max_attempts - 1,
            )
            await policy.sleep(wait)
            attempt += 1
