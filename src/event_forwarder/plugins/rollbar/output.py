"""
Rollbar output plugin.

Translates each received event into a Rollbar item and posts it to the
configured endpoint.

Example config:

    outputs:
      rollbar:
        access_token: ${ROLLBAR_ACCESS_TOKEN}
        environment: staging
        level: warning
        format: "%{[service]}: %{message}"
"""

import logging
import uuid
from typing import Any

from core.logging.context import set_log_context
from core.logging.setup import log_forwarder_startup
from core.logging.utilities import log_exception, log_with_context
from core.types import ErrorCategory
from event_forwarder.event import Event
from event_forwarder.plugins.rollbar.config import RollbarConfig
from event_forwarder.plugins.rollbar.delivery import DeliveryClient, DeliveryOutcome, DeliveryResult
from event_forwarder.plugins.rollbar.item_builder import build_item
from event_forwarder.plugins.shared.base import OutputPlugin


class RollbarOutput(OutputPlugin):
    """Forward events to the Rollbar item API."""

    name = "rollbar"

    def __init__(
        self,
        config: dict[str, Any] | RollbarConfig | None = None,
        delivery_client: DeliveryClient | None = None,
    ):
        if isinstance(config, RollbarConfig):
            super().__init__()
            self.settings = config
        else:
            super().__init__(config)
            self.settings = RollbarConfig.from_mapping(self.config)

        self.logger = logging.getLogger(__name__)
        self.client = delivery_client or DeliveryClient.from_config(self.settings)

    async def register(self) -> None:
        set_log_context(plugin=self.name)
        log_forwarder_startup(
            self.logger,
            self.name,
            endpoint=self.client.endpoint,
            extra_config={
                "Environment": self.settings.environment,
                "Default level": self.settings.level,
                "Format": self.settings.format,
                "Verify SSL": self.client.verify_ssl,
                "Pool size": self.settings.pool_size,
            },
        )
        await self.client.start()
        await super().register()

    async def receive(self, event: Event) -> DeliveryResult:
        set_log_context(plugin=self.name, trace_id=uuid.uuid4().hex)

        try:
            item = build_item(self.settings, event)
        except RecursionError as e:
            log_exception(
                self.logger,
                e,
                "Event too deeply nested to build a Rollbar item",
                level=logging.WARNING,
                include_traceback=False,
                outcome=DeliveryOutcome.SERIALIZATION_ERROR.value,
                error_category=ErrorCategory.PERMANENT.value,
            )
            return DeliveryResult(
                outcome=DeliveryOutcome.SERIALIZATION_ERROR,
                error=str(e) or type(e).__name__,
                error_category=ErrorCategory.PERMANENT,
            )

        log_with_context(
            self.logger,
            logging.DEBUG,
            "Rollbar item",
            rollbar_item=item,
            item_level=item["data"]["level"],
            environment=item["data"]["environment"],
        )

        return await self.client.deliver(item)

    async def close(self) -> None:
        await self.client.close()
        await super().close()
