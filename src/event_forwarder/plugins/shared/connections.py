"""
Output Connection Management

Provides infrastructure for the outgoing HTTP connections used by output
plugins. Each named connection points at one endpoint and owns its own
pooled aiohttp session, so concurrent requests to the same endpoint use
separate pooled sockets instead of contending for a single one.
"""

import asyncio
import logging
from dataclasses import dataclass, field

import aiohttp
from yarl import URL

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMES = ("http", "https")


def is_http_error(status_code: int) -> bool:
    """Check if HTTP status code represents an error.

    Args:
        status_code: HTTP status code to check

    Returns:
        True if status code is outside the 2xx success range (< 200 or >= 300)
    """
    return status_code < 200 or status_code >= 300


def parse_endpoint(url: str) -> URL:
    """Parse and validate an endpoint URL.

    Raises:
        ValueError: If the URL has no host or an unsupported scheme
    """
    try:
        parsed = URL(url)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid endpoint URL {url!r}: {e}") from e

    if parsed.scheme not in SUPPORTED_SCHEMES:
        raise ValueError(
            f"Endpoint URL {url!r} must use one of {SUPPORTED_SCHEMES}, got {parsed.scheme!r}"
        )
    if not parsed.host:
        raise ValueError(f"Endpoint URL {url!r} has no host")
    return parsed


@dataclass
class ConnectionConfig:
    """Configuration for a named HTTP connection.

    Attributes:
        name: Unique identifier for this connection
        url: Full endpoint URL; requests go to its path
        method: HTTP method used for requests on this connection
        verify_ssl: Verify the peer certificate for https endpoints
        timeout_seconds: Total request timeout in seconds
        connect_timeout_seconds: Socket connect timeout in seconds
        pool_size: Maximum concurrent connections to the endpoint host
        headers: Additional headers to include in all requests
    """

    name: str
    url: str
    method: str = "POST"
    verify_ssl: bool = True
    timeout_seconds: float = 30
    connect_timeout_seconds: float = 10
    pool_size: int = 10
    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        """Validate and normalize configuration."""
        self.parsed_url = parse_endpoint(self.url)
        self.method = self.method.upper()

        if self.pool_size < 1:
            raise ValueError(f"Connection '{self.name}' pool_size must be >= 1")
        if self.timeout_seconds <= 0 or self.connect_timeout_seconds <= 0:
            raise ValueError(f"Connection '{self.name}' timeouts must be positive")

    @property
    def uses_tls(self) -> bool:
        return self.parsed_url.scheme == "https"


@dataclass
class ConnectionResponse:
    """Status and body of a completed request."""

    status: int
    body: str

    @property
    def is_error(self) -> bool:
        return is_http_error(self.status)


class ConnectionManager:
    """Manages HTTP client sessions for output plugins.

    Usage:
        manager = ConnectionManager()
        manager.add_connection(ConnectionConfig(
            name="rollbar",
            url="https://api.rollbar.com/api/1/item/",
        ))

        await manager.start()

        response = await manager.request("rollbar", data=b'{"access_token": "..."}')

        await manager.close()
    """

    def __init__(self):
        self._connections: dict[str, ConnectionConfig] = {}
        self._sessions: dict[str, aiohttp.ClientSession] = {}
        self._started = False

    def add_connection(self, config: ConnectionConfig) -> None:
        """Register a named connection configuration.

        Args:
            config: Connection configuration

        Raises:
            ValueError: If connection with same name already exists
            RuntimeError: If the manager is already started
        """
        if config.name in self._connections:
            raise ValueError(f"Connection '{config.name}' already exists")
        if self._started:
            raise RuntimeError("Cannot add connections after ConnectionManager.start()")

        logger.info(
            f"Registered connection '{config.name}' -> {config.parsed_url.origin()} "
            f"(tls: {config.uses_tls}, verify_ssl: {config.verify_ssl})"
        )
        self._connections[config.name] = config

    def get_connection(self, name: str) -> ConnectionConfig:
        """Get connection configuration by name.

        Raises:
            KeyError: If connection not found
        """
        if name not in self._connections:
            raise KeyError(
                f"Connection '{name}' not found. Available: {list(self._connections.keys())}"
            )
        return self._connections[name]

    async def start(self) -> None:
        """Create one pooled session per registered connection.

        Must be called before making requests.
        """
        if self._started:
            logger.warning("ConnectionManager already started")
            return

        for name, config in self._connections.items():
            connector = aiohttp.TCPConnector(
                limit=config.pool_size,
                limit_per_host=config.pool_size,
                ssl=config.verify_ssl if config.uses_tls else False,
                enable_cleanup_closed=True,
            )
            self._sessions[name] = aiohttp.ClientSession(
                connector=connector,
                raise_for_status=False,  # We handle status codes ourselves
                timeout=aiohttp.ClientTimeout(
                    total=config.timeout_seconds,
                    sock_connect=config.connect_timeout_seconds,
                ),
            )

        self._started = True
        logger.info("ConnectionManager started with %d connections", len(self._connections))

    async def close(self) -> None:
        """Close all sessions and cleanup resources."""
        if not self._started:
            return

        for session in self._sessions.values():
            await session.close()
        self._sessions.clear()
        # Give time for connections to close
        await asyncio.sleep(0.250)

        self._started = False
        logger.info("ConnectionManager closed")

    async def request(
        self,
        connection_name: str,
        data: bytes | str | None = None,
    ) -> ConnectionResponse:
        """Send one request to a named connection's endpoint.

        No retry: exactly one attempt is made and any transport error
        propagates to the caller.

        Args:
            connection_name: Name of connection to use
            data: Raw body to send

        Returns:
            ConnectionResponse with status and decoded body

        Raises:
            RuntimeError: If manager not started
            KeyError: If connection not found
            aiohttp.ClientError, asyncio.TimeoutError: If the request fails
        """
        if not self._started:
            raise RuntimeError("ConnectionManager not started. Call start() first.")

        config = self.get_connection(connection_name)
        session = self._sessions[connection_name]

        logger.debug(f"Request {config.method} {config.parsed_url.path}")
        async with session.request(
            method=config.method,
            url=config.parsed_url,
            data=data,
            headers=config.headers or None,
        ) as response:
            body = await response.text(errors="replace")
            logger.debug(f"Response {response.status} from {config.method} {config.parsed_url.path}")
            return ConnectionResponse(status=response.status, body=body)

    @property
    def is_started(self) -> bool:
        """Check if manager is started."""
        return self._started
