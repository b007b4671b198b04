"""
Rollbar item delivery.

One serialized item, one POST, one DeliveryResult. Per-item failures
(serialization, timeouts, TLS, connection errors, rejections) are caught
here, logged, and reported through the result instead of raised. There is
no retry: a failed item is dropped.
"""

import asyncio
import json
import logging
import ssl
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

import aiohttp

from core.errors.exceptions import (
    ConfigurationError,
    SerializationError,
    classify_exception,
    classify_http_status,
)
from core.logging.utilities import log_exception, log_with_context
from core.types import ErrorCategory
from core.utils.json_serializers import strict_json_serializer
from event_forwarder.plugins.rollbar.config import RollbarConfig
from event_forwarder.plugins.shared.connections import ConnectionConfig, ConnectionManager

logger = logging.getLogger(__name__)

CONNECTION_NAME = "rollbar"


class DeliveryOutcome(str, Enum):
    DELIVERED = "delivered"
    REJECTED = "rejected"
    SERIALIZATION_ERROR = "serialization_error"
    TIMEOUT = "timeout"
    CONNECTION_ERROR = "connection_error"
    TLS_ERROR = "tls_error"
    CLIENT_ERROR = "client_error"
    NOT_STARTED = "not_started"


@dataclass
class DeliveryResult:
    """What happened to one item."""

    outcome: DeliveryOutcome
    status_code: int | None = None
    response_body: str | None = None
    error: str | None = None
    error_category: ErrorCategory | None = None
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.outcome is DeliveryOutcome.DELIVERED


def serialize_item(item: dict[str, Any]) -> bytes:
    """
    Encode an item as UTF-8 JSON.

    Raises:
        SerializationError: If the item holds values JSON cannot represent
    """
    try:
        return json.dumps(
            item,
            default=strict_json_serializer,
            ensure_ascii=False,
            allow_nan=False,
        ).encode("utf-8")
    except (TypeError, ValueError, RecursionError) as e:
        raise SerializationError(f"Item is not JSON serializable: {e}", cause=e) from e


class DeliveryClient:
    """
    Posts Rollbar items to one endpoint over a pooled session.

    Concurrent deliver() calls are safe: each uses its own pooled
    connection, bounded by pool_size.
    """

    def __init__(
        self,
        endpoint: str,
        verify_ssl: bool = True,
        timeout_seconds: float = 30,
        connect_timeout_seconds: float = 10,
        pool_size: int = 10,
        connection_manager: ConnectionManager | None = None,
    ):
        try:
            self._connection = ConnectionConfig(
                name=CONNECTION_NAME,
                url=endpoint,
                method="POST",
                verify_ssl=verify_ssl,
                timeout_seconds=timeout_seconds,
                connect_timeout_seconds=connect_timeout_seconds,
                pool_size=pool_size,
            )
        except ValueError as e:
            raise ConfigurationError(str(e), cause=e) from e

        self._manager = connection_manager or ConnectionManager()
        self._manager.add_connection(self._connection)
        self._in_flight = 0

    @classmethod
    def from_config(cls, config: RollbarConfig) -> "DeliveryClient":
        return cls(
            endpoint=config.endpoint,
            verify_ssl=config.ssl_verify,
            timeout_seconds=config.timeout_seconds,
            connect_timeout_seconds=config.connect_timeout_seconds,
            pool_size=config.pool_size,
        )

    @property
    def endpoint(self) -> str:
        return str(self._connection.parsed_url)

    @property
    def verify_ssl(self) -> bool:
        return self._connection.verify_ssl

    @property
    def in_flight(self) -> int:
        """Number of deliver() calls currently sending."""
        return self._in_flight

    @property
    def is_started(self) -> bool:
        return self._manager.is_started

    async def start(self) -> None:
        if self._connection.uses_tls and not self._connection.verify_ssl:
            logger.warning(
                "TLS certificate verification is disabled for %s",
                self._connection.parsed_url.origin(),
                extra={"endpoint": self.endpoint, "verify_ssl": False},
            )
        await self._manager.start()

    async def close(self) -> None:
        await self._manager.close()

    async def deliver(self, item: dict[str, Any]) -> DeliveryResult:
        """
        Serialize and POST one item.

        Never raises for per-item failures; inspect the returned result.
        """
        if not self._manager.is_started:
            logger.warning(
                "Delivery client not started, dropping item",
                extra={"outcome": DeliveryOutcome.NOT_STARTED.value},
            )
            return DeliveryResult(
                outcome=DeliveryOutcome.NOT_STARTED,
                error="Delivery client not started",
                error_category=ErrorCategory.PERMANENT,
            )

        start = time.perf_counter()
        self._in_flight += 1
        try:
            return await self._send(item, start)
        finally:
            self._in_flight -= 1

    async def _send(self, item: dict[str, Any], start: float) -> DeliveryResult:
        try:
            body = serialize_item(item)
        except SerializationError as e:
            return self._failed(DeliveryOutcome.SERIALIZATION_ERROR, e, start, include_traceback=False)

        log_with_context(
            logger,
            logging.DEBUG,
            "Rollbar request",
            endpoint=self.endpoint,
            request_body=body.decode("utf-8"),
        )

        try:
            response = await self._manager.request(CONNECTION_NAME, data=body)
        except asyncio.TimeoutError as e:
            return self._failed(DeliveryOutcome.TIMEOUT, e, start, include_traceback=False)
        except (aiohttp.ClientSSLError, ssl.SSLError) as e:
            return self._failed(DeliveryOutcome.TLS_ERROR, e, start)
        except (aiohttp.ClientConnectionError, OSError) as e:
            return self._failed(DeliveryOutcome.CONNECTION_ERROR, e, start, include_traceback=False)
        except Exception as e:
            return self._failed(DeliveryOutcome.CLIENT_ERROR, e, start)

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        log_with_context(
            logger,
            logging.DEBUG,
            "Rollbar response",
            http_status=response.status,
            response_body=response.body,
            duration_ms=duration_ms,
        )

        if response.is_error:
            category = classify_http_status(response.status)
            log_with_context(
                logger,
                logging.WARNING,
                f"Rollbar rejected item with HTTP {response.status}",
                outcome=DeliveryOutcome.REJECTED.value,
                http_status=response.status,
                response_body=response.body,
                error_category=category.value,
                duration_ms=duration_ms,
            )
            return DeliveryResult(
                outcome=DeliveryOutcome.REJECTED,
                status_code=response.status,
                response_body=response.body,
                error=f"HTTP {response.status}",
                error_category=category,
                duration_ms=duration_ms,
            )

        return DeliveryResult(
            outcome=DeliveryOutcome.DELIVERED,
            status_code=response.status,
            response_body=response.body,
            duration_ms=duration_ms,
        )

    def _failed(
        self,
        outcome: DeliveryOutcome,
        exc: Exception,
        start: float,
        include_traceback: bool = True,
    ) -> DeliveryResult:
        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        category = classify_exception(exc)
        log_exception(
            logger,
            exc,
            f"Rollbar delivery failed ({outcome.value})",
            level=logging.WARNING,
            include_traceback=include_traceback,
            outcome=outcome.value,
            error_category=category.value,
            endpoint=self.endpoint,
            duration_ms=duration_ms,
        )
        return DeliveryResult(
            outcome=outcome,
            error=str(exc) or type(exc).__name__,
            error_category=category,
            duration_ms=duration_ms,
        )
