# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Retry execution with exponential backoff and jitter.

RetryExecutor wraps a single async operation. Each failure is classified:
non-retryable errors are re-raised immediately, retryable ones are retried
after ``min(base_delay * 2**attempt + jitter, max_delay)`` seconds until
the policy's budget runs out, at which point the last error is re-raised.

Different call sites use different policies; token exchange, for instance,
gets a short budget because an invalid credential will not heal on retry.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from ..exceptions import ConfigurationError, OperationCancelledError
from ..observability.constants import RETRY_ATTEMPTS_TOTAL
from .classification import NON_RETRYABLE_CATEGORIES, ErrorCategory, classify_error

if TYPE_CHECKING:
    from ..cancellation import CancellationToken
    from ..observability.protocols import MetricsCollectorProtocol

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRYABLE_ERRORS: tuple[str, ...] = (
    "timeout",
    "timed out",
    "503",
    "504",
    "unavailable",
    "resource_exhausted",
    "econnreset",
    "connection reset",
)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry budget and error matching rules for one call site.

    Attributes:
        max_retries: Retries after the first attempt (0 disables retrying)
        base_delay: Backoff for the first retry, in seconds
        max_delay: Upper bound for any single backoff, in seconds
        jitter_ratio: Random jitter added on top of the backoff, as a
            fraction of it (0.25 means 0-25%)
        retryable_errors: Case-insensitive message signatures that mark an
            error as retryable
        retryable_exceptions: Exception types that are always retryable
        retryable_categories: Error categories that are retryable without
            a signature match
        retry_unclassified: Whether errors of unknown category are retried
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter_ratio: float = 0.25
    retryable_errors: tuple[str, ...] = DEFAULT_RETRYABLE_ERRORS
    retryable_exceptions: tuple[type[BaseException], ...] = ()
    retryable_categories: frozenset[ErrorCategory] = field(
        default_factory=lambda: frozenset({ErrorCategory.TRANSIENT})
    )
    retry_unclassified: bool = False

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must be non-negative")
        if self.base_delay < 0:
            raise ConfigurationError("base_delay must be non-negative")
        if self.max_delay < self.base_delay:
            raise ConfigurationError("max_delay must be >= base_delay")
        if not 0 <= self.jitter_ratio <= 1.0:
            raise ConfigurationError("jitter_ratio must be between 0 and 1.0")

    def is_retryable(self, error: BaseException) -> bool:
        """
        Decide whether an error deserves another attempt under this policy.

        Auth and validation errors are never retryable, whatever the
        signatures say.
        """
        category = classify_error(error)
        if category in NON_RETRYABLE_CATEGORIES:
            return False
        if self.retryable_exceptions and isinstance(error, self.retryable_exceptions):
            return True
        if category in self.retryable_categories:
            return True
        message = str(error).lower()
        if any(signature.lower() in message for signature in self.retryable_errors):
            return True
        return category is ErrorCategory.UNKNOWN and self.retry_unclassified

    def compute_delay(self, attempt: int, rng: random.Random | None = None) -> float:
        """
        Calculate the backoff before retry number ``attempt`` (0-based).

        Args:
            attempt: Number of retries already performed
            rng: Random source for jitter (module random when None)

        Returns:
            Delay in seconds, capped at max_delay
        """
        backoff = self.base_delay * (2**attempt)
        uniform = rng.uniform if rng is not None else random.uniform
        jitter = backoff * uniform(0.0, self.jitter_ratio)  # noqa: S311  # nosec B311
        return float(min(backoff + jitter, self.max_delay))


DEFAULT_RETRY_POLICY = RetryPolicy()
"""General purpose policy for vendor API calls."""

AUTH_RETRY_POLICY = RetryPolicy(max_retries=1, base_delay=1.0, max_delay=5.0)
"""Short budget for token exchange: a bad credential does not heal."""

QUEUE_RETRY_POLICY = RetryPolicy(max_retries=2, retry_unclassified=True)
"""Item-level requeue policy used by RequestQueue."""


class RetryExecutor:
    """
    Runs async operations under a RetryPolicy.

    Example:
        >>> executor = RetryExecutor()
        >>> ideas = await executor.execute(
        ...     lambda: client.generate_keyword_ideas(customer_id, seeds)
        ... )
    """

    def __init__(
        self,
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        rng: random.Random | None = None,
        metrics_collector: "MetricsCollectorProtocol | None" = None,
    ):
        """
        Initialize the executor.

        Args:
            policy: Policy used when execute() is not given one
            sleep: Coroutine used for backoff sleeps (injectable for tests)
            rng: Random source for jitter
            metrics_collector: Optional collector for retry metrics
        """
        self.policy = policy
        self._sleep = sleep
        self._rng = rng
        self._metrics = metrics_collector

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy | None = None,
        token: "CancellationToken | None" = None,
        description: str = "operation",
    ) -> T:
        """
        Execute ``operation``, retrying retryable failures with backoff.

        Args:
            operation: Zero-argument callable returning an awaitable
            policy: Policy override for this call
            token: Optional cancellation token that aborts backoff sleeps
            description: Label used in log messages

        Returns:
            The operation's result

        Raises:
            Exception: The first non-retryable error, or the last error once
                retries are exhausted
            OperationCancelledError: If the token is cancelled during backoff
        """
        policy = policy or self.policy
        attempt = 0

        while True:
            try:
                return await operation()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not policy.is_retryable(e):
                    logger.debug(f"{description} failed with non-retryable error: {e}")
                    raise
                if attempt >= policy.max_retries:
                    logger.warning(
                        f"{description} failed after {attempt + 1} attempts: {e}"
                    )
                    raise

                delay = policy.compute_delay(attempt, self._rng)
                attempt += 1
                logger.warning(
                    f"{description} failed ({e}); retry {attempt}/{policy.max_retries} "
                    f"in {delay:.2f}s"
                )
                if self._metrics is not None:
                    self._metrics.inc_counter(
                        RETRY_ATTEMPTS_TOTAL,
                        labels={"reason": classify_error(e).value},
                    )
                await self._backoff(delay, token)

    async def _backoff(self, delay: float, token: "CancellationToken | None") -> None:
        if token is None:
            await self._sleep(delay)
            return
        if not await token.sleep(delay):
            raise OperationCancelledError("Retry backoff cancelled")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    token: "CancellationToken | None" = None,
) -> T:
    """Convenience wrapper running ``operation`` through a default RetryExecutor."""
    return await RetryExecutor(policy).execute(operation, token=token)


__all__ = [
    "AUTH_RETRY_POLICY",
    "DEFAULT_RETRYABLE_ERRORS",
    "DEFAULT_RETRY_POLICY",
    "QUEUE_RETRY_POLICY",
    "RetryExecutor",
    "RetryPolicy",
    "with_retry",
]
