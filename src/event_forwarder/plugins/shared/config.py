"""Forwarder configuration loading.

Loads the YAML configuration file that names the outputs to run and their
options. Environment variables are supported using ${VAR_NAME} and
${VAR_NAME:-default} syntax so secrets such as access tokens stay out of
the file.

Example:
    outputs:
      rollbar:
        access_token: ${ROLLBAR_ACCESS_TOKEN}
        environment: staging
        format: "%{[service]}: %{message}"
    logging:
      json_format: true
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from core.errors.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def load_yaml_config(path: Path) -> dict:
    """Load YAML configuration file.

    Args:
        path: Path to YAML file

    Returns:
        Parsed YAML contents as dict

    Raises:
        FileNotFoundError: If path does not exist
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info("Loading configuration from %s", path)
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def expand_env_var_string(value: str) -> str:
    """Expand ${VAR} and ${VAR:-default} references in a string.

    References to unset variables without a default are left untouched so
    they can be reported by _find_unexpanded().
    """

    def replacer(match):
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else match.group(0)
        return os.getenv(var_name, default_value)

    return _ENV_VAR_PATTERN.sub(replacer, value)


def expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variable references in config data."""
    if isinstance(data, dict):
        return {key: expand_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [expand_env_vars(item) for item in data]
    if isinstance(data, str):
        return expand_env_var_string(data)
    return data


def _find_unexpanded(data: Any, path: str = "") -> list[str]:
    """Return dotted paths of string values still holding a ${VAR} reference."""
    found = []
    if isinstance(data, dict):
        for key, value in data.items():
            found.extend(_find_unexpanded(value, f"{path}.{key}" if path else str(key)))
    elif isinstance(data, list):
        for i, item in enumerate(data):
            found.extend(_find_unexpanded(item, f"{path}[{i}]"))
    elif isinstance(data, str) and _ENV_VAR_PATTERN.search(data):
        found.append(path)
    return found


@dataclass
class ForwarderConfig:
    """Top-level forwarder configuration.

    Attributes:
        outputs: Output plugin name -> raw plugin options
        logging: Options passed through to core.logging.setup_logging
    """

    outputs: dict[str, dict[str, Any]] = field(default_factory=dict)
    logging: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ForwarderConfig":
        """Validate the raw structure and expand environment variables.

        Raises:
            ConfigurationError: If the structure is invalid or an environment
                variable reference could not be expanded
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration root must be a mapping")

        outputs = data.get("outputs") or {}
        if not isinstance(outputs, dict) or not outputs:
            raise ConfigurationError("Configuration must define at least one entry under 'outputs'")

        expanded_outputs = {}
        for name, options in outputs.items():
            if options is None:
                options = {}
            if not isinstance(options, dict):
                raise ConfigurationError(f"Options for output '{name}' must be a mapping")

            expanded = expand_env_vars(options)
            unexpanded = _find_unexpanded(expanded)
            if unexpanded:
                raise ConfigurationError(
                    f"Environment variable not expanded in {', '.join(unexpanded)} for output '{name}'. "
                    f"Check that the required environment variables are set or that defaults are configured.",
                    context={"output": name, "fields": unexpanded},
                )
            expanded_outputs[name] = expanded

        logging_options = data.get("logging") or {}
        if not isinstance(logging_options, dict):
            raise ConfigurationError("'logging' must be a mapping")

        return cls(outputs=expanded_outputs, logging=expand_env_vars(logging_options))


def load_forwarder_config(config_path: Path) -> ForwarderConfig:
    """Load and validate the forwarder configuration file.

    Raises:
        ConfigurationError: If the file is missing, unparseable or invalid
    """
    try:
        data = load_yaml_config(config_path)
    except FileNotFoundError as e:
        raise ConfigurationError(str(e), cause=e) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}", cause=e) from e

    config = ForwarderConfig.from_dict(data)
    logger.info(
        "Loaded forwarder configuration",
        extra={"outputs": sorted(config.outputs)},
    )
    return config
