# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Exception classes for the quota-aware scheduler.

This module defines the exception hierarchy used throughout the library.
All exceptions inherit from SchedulerError, making it easy to catch
all scheduler-related exceptions with a single except clause.

The hierarchy doubles as the error taxonomy used for retry decisions:

- TransientError: retryable with backoff
- QuotaExhaustedError: pauses the whole queue instead of retrying
- AuthenticationError: never retried, a bad credential does not heal
- RequestValidationError: never retried, the request itself is malformed
"""


class SchedulerError(Exception):
    """Base exception for all scheduler errors.

    Example:
        try:
            await scheduler.run(fetch_keywords)
        except SchedulerError as e:
            logger.error(f"Scheduler error: {e}")
    """

    pass


class TransientError(SchedulerError):
    """Raised for failures expected to heal on their own.

    Timeouts, 503/504 responses and connection resets belong here. The
    retry executor backs off and tries again up to its policy limit.

    Attributes:
        status_code: HTTP status code of the failed call, if known.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class QuotaExhaustedError(SchedulerError):
    """Raised when the remote API reports its quota is exhausted.

    Quota exhaustion is resource-wide, not item-specific: the request queue
    reacts by pausing entirely for the cooldown and requeueing the item
    that triggered it.

    Attributes:
        resource_key: The account or credential whose quota ran out.
            May be None if the key is not known at the raise site.
        retry_after: Seconds until the quota is expected to reset.
            May be None, in which case the configured cooldown applies.

    Example:
        try:
            await client.generate_keyword_ideas(customer_id, seeds)
        except QuotaExhaustedError as e:
            limiter.mark_exhausted(customer_id)
            raise
    """

    status_code = 429

    def __init__(
        self,
        message: str = "Quota exhausted",
        resource_key: str | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message)
        self.resource_key = resource_key
        self.retry_after = retry_after


class AuthenticationError(SchedulerError):
    """Raised when a credential is invalid, expired or revoked.

    Never retried: repeating the call with the same credential cannot
    succeed. Surfaced to the caller immediately.
    """

    pass


class RequestValidationError(SchedulerError):
    """Raised when the remote API rejects a request as malformed.

    Terminal for the work item; never retried.
    """

    pass


class ConfigurationError(SchedulerError, ValueError):
    """Raised when configuration is invalid.

    Subclasses ValueError so that callers validating dataclass input can
    keep catching the built-in exception.

    Example:
        try:
            config = AdaptiveDelayConfig(min_delay=5.0, max_delay=1.0)
        except ConfigurationError as e:
            logger.error(f"Invalid configuration: {e}")
    """

    pass


class OperationCancelledError(SchedulerError):
    """Raised by cancellation-aware waits once the token has been cancelled."""

    pass


class DuplicateWorkItemError(SchedulerError):
    """Raised when a work item id is enqueued twice.

    Attributes:
        item_id: The identifier that is already present in the queue.
    """

    def __init__(self, item_id: str):
        super().__init__(f"Work item already queued: {item_id}")
        self.item_id = item_id


__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "DuplicateWorkItemError",
    "OperationCancelledError",
    "QuotaExhaustedError",
    "RequestValidationError",
    "SchedulerError",
    "TransientError",
]
