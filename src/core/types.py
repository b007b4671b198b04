"""
Core types used across modules.

This module provides base enums shared across the core library and the
output plugins.
"""

from enum import Enum


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    The forwarder never retries, so categories are diagnostic: they are
    attached to delivery results and log records so operators can tell a
    flaky network from a rejected token.

    Categories:
        TRANSIENT: Temporary failures that may succeed later
                   (e.g., network timeouts, 429/503 errors)
        AUTH: Authentication failures (e.g., 401/403, revoked access token)
        PERMANENT: Failures that will not succeed on resend
                   (e.g., 400/422, serialization errors, configuration issues)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


__all__ = [
    "ErrorCategory",
]
