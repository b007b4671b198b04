"""Rollbar output: item construction and delivery."""

from event_forwarder.plugins.rollbar.config import RollbarConfig
from event_forwarder.plugins.rollbar.delivery import (
    DeliveryClient,
    DeliveryOutcome,
    DeliveryResult,
)
from event_forwarder.plugins.rollbar.item_builder import build_item
from event_forwarder.plugins.rollbar.output import RollbarOutput

__all__ = [
    "RollbarConfig",
    "DeliveryClient",
    "DeliveryOutcome",
    "DeliveryResult",
    "RollbarOutput",
    "build_item",
]
