"""Retrying transport for outbound provider calls (email delivery).

Connection errors and transient statuses are retried with jittered
exponential backoff. A 429 carrying Retry-After waits as long as the
provider asks, capped at the policy's max_delay.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 4.0
    retry_statuses: frozenset[int] = field(default=DEFAULT_RETRY_STATUSES)

    def backoff(self, attempt: int) -> float:
        """Delay before retry number attempt + 1; 0 disables sleeping."""
        delay = min(self.max_delay, self.base_delay * (2**attempt))
        if delay:
            delay += random.uniform(0, delay / 2)
        return delay

    def delay_for(self, response: httpx.Response, attempt: int) -> float:
        retry_after = retry_after_seconds(response)
        if retry_after is not None:
            return min(self.max_delay, retry_after)
        return self.backoff(attempt)


def retry_after_seconds(response: httpx.Response) -> float | None:
    """Retry-After in seconds, or None when absent or not numeric."""
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


async def request_with_retries(
    request_fn: Callable[[], Awaitable[httpx.Response]],
    *,
    policy: RetryPolicy | None = None,
    label: str = "HTTP",
) -> httpx.Response:
    """
    Call request_fn until it returns a non-retryable response.

    The last response is returned even when its status is retryable; the
    caller decides what a failed status means. Connection errors on the
    final attempt are raised.
    """
    policy = policy or RetryPolicy()

    for attempt in range(policy.max_attempts):
        last_attempt = attempt >= policy.max_attempts - 1
        try:
            response = await request_fn()
        except httpx.RequestError as exc:
            if last_attempt:
                raise
            logger.warning("%s request failed (attempt %d), retrying", label, attempt + 1, exc_info=exc)
            delay = policy.backoff(attempt)
        else:
            if response.status_code not in policy.retry_statuses or last_attempt:
                return response
            delay = policy.delay_for(response, attempt)
            logger.warning(
                "%s request returned %s (attempt %d), retrying in %.2fs",
                label,
                response.status_code,
                attempt + 1,
                delay,
            )

        if delay:
            await asyncio.sleep(delay)

    raise ValueError("RetryPolicy.max_attempts must be at least 1")
