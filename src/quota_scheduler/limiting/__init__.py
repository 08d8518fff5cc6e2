# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Pacing components.

- AccountRateLimiter: per-key minimum interval, window cap and quota cooldowns
- AdaptiveDelayController: bounded inter-item delay tuned by outcomes
"""

from .account import AccountRateLimiter
from .adaptive import AdaptiveDelayController

__all__ = [
    "AccountRateLimiter",
    "AdaptiveDelayController",
]
