"""
Output plugin base class.

Provides the lifecycle every output follows: construct with validated
configuration, register() once at startup, receive() per event, close()
at shutdown.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from event_forwarder.event import Event


class OutputPlugin(ABC):
    """
    Base class for output plugins.

    Subclasses define:
      - name, used for lookup and as the logging context
      - default_config, merged under the configuration passed in
      - receive(), called once per routed event
    """

    # Plugin metadata
    name: str = "unnamed_output"

    # Default configuration (can be overridden)
    default_config: dict[str, Any] = {}

    def __init__(self, config: dict[str, Any] | None = None):
        """
        Initialize plugin with optional config override.

        Args:
            config: Config dict to merge with default_config
        """
        self.logger = logging.getLogger(__name__)
        self.config = {**self.default_config, **(config or {})}
        self._registered = False

    async def register(self) -> None:
        """Acquire resources (connections, sessions). Called once at startup."""
        self._registered = True

    @abstractmethod
    async def receive(self, event: Event) -> Any:
        """
        Handle one event.

        Per-event failures must be handled here and never propagate: one bad
        event may not stop the events after it.

        Args:
            event: Event routed to this output

        Returns:
            Plugin-specific result describing what happened to the event
        """
        pass

    async def close(self) -> None:
        """Release resources acquired by register()."""
        self._registered = False

    @property
    def is_registered(self) -> bool:
        return self._registered

    async def __aenter__(self) -> "OutputPlugin":
        await self.register()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
