"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- ForwarderError hierarchy for typed exceptions
- Classification utilities for error reporting
"""

from core.errors.exceptions import (
    ConfigurationError,
    # Enums
    ErrorCategory,
    # Base classes
    ForwarderError,
    PermanentError,
    SerializationError,
    # Classification utilities
    classify_exception,
    classify_http_status,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "ForwarderError",
    "PermanentError",
    # Forwarder errors
    "ConfigurationError",
    "SerializationError",
    # Classification utilities
    "classify_http_status",
    "classify_exception",
]
