# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Per-resource scheduler.

ResourceScheduler binds one resource key to a RequestQueue, a (possibly
shared) AccountRateLimiter and a RetryExecutor.
"""

from .resource import REQUEST_RETRY_POLICY, ResourceScheduler, create_scheduler

__all__ = [
    "REQUEST_RETRY_POLICY",
    "ResourceScheduler",
    "create_scheduler",
]
