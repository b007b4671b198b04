"""Building blocks shared by output plugins."""

from event_forwarder.plugins.shared.base import OutputPlugin
from event_forwarder.plugins.shared.config import ForwarderConfig, load_forwarder_config
from event_forwarder.plugins.shared.connections import (
    ConnectionConfig,
    ConnectionManager,
    ConnectionResponse,
    is_http_error,
    parse_endpoint,
)

__all__ = [
    "OutputPlugin",
    "ForwarderConfig",
    "load_forwarder_config",
    "ConnectionConfig",
    "ConnectionManager",
    "ConnectionResponse",
    "is_http_error",
    "parse_endpoint",
]
