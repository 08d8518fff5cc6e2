# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Single-flight priority request queue."""

from .request_queue import RequestQueue

__all__ = ["RequestQueue"]
