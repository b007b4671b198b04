"""Output registry for mapping configuration names to output plugin classes."""

from typing import Any

from core.errors.exceptions import ConfigurationError
from event_forwarder.plugins.rollbar.output import RollbarOutput
from event_forwarder.plugins.shared.base import OutputPlugin

# Output registry mapping the names used under "outputs:" to plugin classes
OUTPUT_REGISTRY: dict[str, type[OutputPlugin]] = {
    "rollbar": RollbarOutput,
}


def list_outputs() -> list[str]:
    return sorted(OUTPUT_REGISTRY)


def create_output(name: str, options: dict[str, Any] | None = None) -> OutputPlugin:
    """
    Instantiate a registered output.

    Raises:
        ConfigurationError: If no output is registered under name, or the
            output rejects its options
    """
    if name not in OUTPUT_REGISTRY:
        raise ConfigurationError(
            f"Unknown output '{name}'. Available: {', '.join(list_outputs())}",
            context={"output": name},
        )
    return OUTPUT_REGISTRY[name](options or {})
