"""
Core library: shared infrastructure for the event forwarder.

Modules:
    logging     - Structured JSON/console logging with context propagation
    errors      - Error classification and exception hierarchy
    utils       - JSON serialization and worker identifiers

Design Principles:
    - No dependency on any particular output plugin
    - All modules are independently testable
"""

from .types import ErrorCategory

__all__ = [
    "ErrorCategory",
]
