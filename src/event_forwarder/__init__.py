"""
Event forwarder.

Translates structured pipeline events into collector items and delivers
them over HTTP through output plugins.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
