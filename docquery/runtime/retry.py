"""Bounded retries for transient partition failures.

Backoff doubles per attempt, is capped, and carries +/- jitter so that
partitions failing together do not retry in lockstep.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from ..core.constants import (
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_RETRY_JITTER,
    DEFAULT_RETRY_MAX_DELAY,
)
from ..core.exceptions import ConfigurationError, PartitionUnavailableError
from .telemetry import log_partition_retry, log_partition_unavailable

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings for partition round trips.

    Attributes:
        max_attempts: Total attempts including the first (>= 1)
        base_delay: Delay before the second attempt, in seconds
        max_delay: Upper bound on any single delay
        jitter: Relative jitter applied to each delay (0.2 = +/-20%)
    """

    max_attempts: int = DEFAULT_RETRY_ATTEMPTS
    base_delay: float = DEFAULT_RETRY_BASE_DELAY
    max_delay: float = DEFAULT_RETRY_MAX_DELAY
    jitter: float = DEFAULT_RETRY_JITTER

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ConfigurationError("retry delays must be >= 0")
        if not 0 <= self.jitter < 1:
            raise ConfigurationError("jitter must be in [0, 1)")

    def delay(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay *= random.uniform(1 - self.jitter, 1 + self.jitter)
        return delay


async def call_with_retry(
    policy: RetryPolicy,
    partition_id: str,
    operation: Callable[[], Awaitable[T]],
) -> tuple[T, int]:
    """Run ``operation`` retrying PartitionUnavailableError.

    Returns:
        The operation's result and the number of attempts used

    Raises:
        PartitionUnavailableError: Once all attempts fail, with ``attempts`` set
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation(), attempt
        except PartitionUnavailableError as e:
            if attempt < policy.max_attempts:
                delay = policy.delay(attempt)
                log_partition_retry(
                    partition_id=partition_id,
                    attempt=attempt,
                    max_attempts=policy.max_attempts,
                    delay=delay,
                    error_message=str(e),
                )
                await asyncio.sleep(delay)
                continue
            log_partition_unavailable(
                partition_id=partition_id, attempts=attempt, error_message=str(e)
            )
            raise PartitionUnavailableError(
                f"Partition '{partition_id}' unavailable after {attempt} attempts: {e}",
                partition_id=partition_id,
                attempts=attempt,
            ) from e
    raise AssertionError("unreachable")
