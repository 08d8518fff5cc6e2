# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Error classification for retry and pause decisions.

Vendor SDKs raise a zoo of exception types, so classification looks at
three things in order: the exception type, a ``status_code`` attribute,
and finally the message text. Phrase signatures are matched before bare
status codes, and a code only counts as a whole number in the message
(``"after 4000ms"`` does not contain a 400).
"""

import asyncio
import re
from enum import Enum

from ..exceptions import (
    AuthenticationError,
    QuotaExhaustedError,
    RequestValidationError,
    TransientError,
)


class ErrorCategory(Enum):
    """Coarse error taxonomy driving retry and pause behaviour."""

    TRANSIENT = "transient"
    QUOTA_EXHAUSTED = "quota_exhausted"
    AUTH = "auth"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


NON_RETRYABLE_CATEGORIES = frozenset({ErrorCategory.AUTH, ErrorCategory.VALIDATION})

# Message phrases, matched case-insensitively. Quota is checked first:
# "RESOURCE_EXHAUSTED" must not be mistaken for anything else.
QUOTA_SIGNATURES: tuple[str, ...] = (
    "resource_exhausted",
    "quota",
    "exhausted",
    "too many requests",
)
AUTH_SIGNATURES: tuple[str, ...] = (
    "invalid_grant",
    "unauthenticated",
    "unauthorized",
    "permission_denied",
    "invalid credentials",
    "token has been expired or revoked",
    "token expired",
)
VALIDATION_SIGNATURES: tuple[str, ...] = (
    "invalid_argument",
    "invalid request",
    "malformed",
)
TRANSIENT_SIGNATURES: tuple[str, ...] = (
    "timeout",
    "timed out",
    "deadline_exceeded",
    "unavailable",
    "econnreset",
    "connection reset",
    "connection aborted",
)

_STATUS_CATEGORIES: dict[int, ErrorCategory] = {
    429: ErrorCategory.QUOTA_EXHAUSTED,
    401: ErrorCategory.AUTH,
    403: ErrorCategory.AUTH,
    400: ErrorCategory.VALIDATION,
    422: ErrorCategory.VALIDATION,
    500: ErrorCategory.TRANSIENT,
    502: ErrorCategory.TRANSIENT,
    503: ErrorCategory.TRANSIENT,
    504: ErrorCategory.TRANSIENT,
}

_STATUS_CODE_PATTERN = re.compile(
    r"(?<![\w.#-])("
    + "|".join(str(code) for code in _STATUS_CATEGORIES)
    + r")(?![\w.-])"
)


def _matches(message: str, signatures: tuple[str, ...]) -> bool:
    return any(signature in message for signature in signatures)


def classify_error(error: BaseException) -> ErrorCategory:
    """
    Classify an exception into an ErrorCategory.

    Args:
        error: The exception raised by an operation

    Returns:
        The matching category, or ErrorCategory.UNKNOWN
    """
    # Library exceptions carry their category in their type
    if isinstance(error, QuotaExhaustedError):
        return ErrorCategory.QUOTA_EXHAUSTED
    if isinstance(error, AuthenticationError):
        return ErrorCategory.AUTH
    if isinstance(error, RequestValidationError):
        return ErrorCategory.VALIDATION
    if isinstance(error, TransientError):
        return ErrorCategory.TRANSIENT
    if isinstance(error, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
        return ErrorCategory.TRANSIENT

    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int) and status_code in _STATUS_CATEGORIES:
        return _STATUS_CATEGORIES[status_code]

    message = str(error).lower()
    if _matches(message, QUOTA_SIGNATURES):
        return ErrorCategory.QUOTA_EXHAUSTED
    if _matches(message, AUTH_SIGNATURES):
        return ErrorCategory.AUTH
    if _matches(message, TRANSIENT_SIGNATURES):
        return ErrorCategory.TRANSIENT
    if _matches(message, VALIDATION_SIGNATURES):
        return ErrorCategory.VALIDATION

    match = _STATUS_CODE_PATTERN.search(message)
    if match:
        return _STATUS_CATEGORIES[int(match.group(1))]

    return ErrorCategory.UNKNOWN


def is_quota_error(error: BaseException) -> bool:
    """Check whether an exception signals quota exhaustion."""
    return classify_error(error) is ErrorCategory.QUOTA_EXHAUSTED


__all__ = [
    "AUTH_SIGNATURES",
    "NON_RETRYABLE_CATEGORIES",
    "QUOTA_SIGNATURES",
    "TRANSIENT_SIGNATURES",
    "VALIDATION_SIGNATURES",
    "ErrorCategory",
    "classify_error",
    "is_quota_error",
]
