"""
Rollbar item construction.

Pure translation of (configuration, event) into a Rollbar item:

    {
      "access_token": ...,
      "data": {
        "timestamp": <epoch seconds>,
        "level": ...,
        "environment": ...,
        "body": {"message": {"body": ...}, "custom": <rest of the event>},
        "notifier": {"name": "event-forwarder", "version": ...},
        ... keys lifted from the event's "rollbar" field ...
      }
    }

Keys are only created when assigned; nothing is ever set to None.
"""

from collections.abc import Mapping
from typing import Any

from event_forwarder import __version__
from event_forwarder.event import Event
from event_forwarder.plugins.rollbar.config import RollbarConfig

NOTIFIER_NAME = "event-forwarder"

# Event field holding per-event overrides
OVERRIDE_FIELD = "rollbar"

# Keys lifted from the override field into item data; everything else is dropped
MERGE_KEYS = (
    "platform",
    "language",
    "framework",
    "context",
    "request",
    "person",
    "server",
    "client",
    "fingerprint",
    "title",
    "uuid",
    "level",
    "format",
    "access_token",
    "environment",
)


def _is_set(value: Any) -> bool:
    # Only None and False count as unset; 0 and "" are real values
    return value is not None and value is not False


def lift_overrides(overrides: Any) -> dict[str, Any]:
    """Copy allow-listed keys out of an override mapping.

    A non-mapping value is treated as if no overrides were given.
    """
    if not isinstance(overrides, Mapping):
        return {}
    return {key: overrides[key] for key in MERGE_KEYS if _is_set(overrides.get(key))}


def build_item(config: RollbarConfig, event: Event) -> dict[str, Any]:
    """
    Build a Rollbar item for one event.

    Precedence: values from the event's "rollbar" field win over the
    configured level, environment, format and access_token. The timestamp
    always comes from the event itself.

    Args:
        config: Validated output configuration
        event: Event to translate; never modified

    Returns:
        Item ready for serialization
    """
    custom = event.to_dict()
    data = lift_overrides(custom.pop(OVERRIDE_FIELD, None))

    data["timestamp"] = event.epoch_seconds
    data.setdefault("level", config.level)
    data.setdefault("environment", config.environment)

    template = data.get("format")
    if not isinstance(template, str):
        template = config.format

    data["body"] = {
        "message": {"body": event.sprintf(template)},
        "custom": custom,
    }
    data["notifier"] = {"name": NOTIFIER_NAME, "version": __version__}

    # The token travels once, at the top level
    if "access_token" in data:
        access_token = data.pop("access_token")
    else:
        access_token = config.access_token.get_secret_value()

    return {"access_token": access_token, "data": data}
