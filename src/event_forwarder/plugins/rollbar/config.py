"""
Rollbar output configuration.

Every option applies to all events. level, environment, format and
access_token can also be overridden per event through the event's
"rollbar" field (see item_builder).
"""

from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)

from core.errors.exceptions import ConfigurationError
from event_forwarder.plugins.shared.connections import parse_endpoint

DEFAULT_ENDPOINT = "https://api.rollbar.com/api/1/item/"

RollbarLevel = Literal["debug", "info", "warning", "error", "critical"]


class RollbarConfig(BaseModel):
    """Validated, immutable configuration of the Rollbar output."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    # Project access token with post_server_item permission
    access_token: SecretStr
    environment: str = "production"
    level: RollbarLevel = Field(
        default="info",
        validation_alias=AliasChoices("level", "default_level"),
    )
    # Template for the item message body, e.g. "%{[service]}: %{message}"
    format: str = "%{message}"
    endpoint: str = DEFAULT_ENDPOINT
    ssl_verify: bool = True
    timeout_seconds: float = Field(default=30, gt=0)
    connect_timeout_seconds: float = Field(default=10, gt=0)
    pool_size: int = Field(default=10, ge=1)

    @field_validator("access_token")
    @classmethod
    def _token_not_blank(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("access_token must not be empty")
        return v

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("endpoint")
    @classmethod
    def _validate_endpoint(cls, v: str) -> str:
        parse_endpoint(v)
        return v

    @classmethod
    def from_mapping(cls, options: dict[str, Any]) -> "RollbarConfig":
        """
        Validate raw plugin options.

        Raises:
            ConfigurationError: If any option is missing or invalid
        """
        try:
            return cls.model_validate(options)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(
                f"Invalid rollbar output configuration: {problems}",
                cause=e,
            ) from e
