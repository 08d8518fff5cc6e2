# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Error classification and retry execution.

- classify_error / ErrorCategory: map exceptions onto the error taxonomy
- RetryPolicy / RetryExecutor / with_retry: exponential backoff with jitter
"""

from .classification import (
    NON_RETRYABLE_CATEGORIES,
    ErrorCategory,
    classify_error,
    is_quota_error,
)
from .retry import (
    AUTH_RETRY_POLICY,
    DEFAULT_RETRY_POLICY,
    QUEUE_RETRY_POLICY,
    RetryExecutor,
    RetryPolicy,
    with_retry,
)

__all__ = [
    "AUTH_RETRY_POLICY",
    "DEFAULT_RETRY_POLICY",
    "NON_RETRYABLE_CATEGORIES",
    "QUEUE_RETRY_POLICY",
    "ErrorCategory",
    "RetryExecutor",
    "RetryPolicy",
    "classify_error",
    "is_quota_error",
    "with_retry",
]
