"""Tests for Rollbar item delivery."""

import asyncio
import logging
import ssl
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from core.errors.exceptions import ConfigurationError, SerializationError
from core.types import ErrorCategory
from event_forwarder.plugins.rollbar.config import RollbarConfig
from event_forwarder.plugins.rollbar.delivery import (
    DeliveryClient,
    DeliveryOutcome,
    DeliveryResult,
    serialize_item,
)

ITEM = {"access_token": "secret-token", "data": {"level": "info", "body": {"message": {"body": "hé"}}}}


@pytest.fixture
async def client(collector):
    client = DeliveryClient(collector.url, timeout_seconds=5, pool_size=4)
    await client.start()
    yield client
    await client.close()


def _mocked_client(side_effect=None, return_value=None):
    manager = MagicMock()
    manager.is_started = True
    manager.request = AsyncMock(side_effect=side_effect, return_value=return_value)
    return DeliveryClient("https://api.rollbar.com/api/1/item/", connection_manager=manager), manager


class TestSerializeItem:
    def test_utf8_json(self):
        body = serialize_item(ITEM)
        assert isinstance(body, bytes)
        assert "hé".encode() in body

    def test_unserializable_value(self):
        with pytest.raises(SerializationError, match="not JSON serializable"):
            serialize_item({"data": {"x": object()}})

    def test_nan_is_rejected(self):
        with pytest.raises(SerializationError):
            serialize_item({"data": {"x": float("nan")}})


class TestDeliveryResult:
    def test_ok(self):
        assert DeliveryResult(outcome=DeliveryOutcome.DELIVERED).ok is True
        assert DeliveryResult(outcome=DeliveryOutcome.REJECTED).ok is False

    def test_outcome_values(self):
        assert {o.value for o in DeliveryOutcome} == {
            "delivered",
            "rejected",
            "serialization_error",
            "timeout",
            "connection_error",
            "tls_error",
            "client_error",
            "not_started",
        }


class TestDeliveryClientSetup:
    def test_from_config(self):
        config = RollbarConfig(
            access_token="abc",
            endpoint="https://rollbar.internal/api/1/item/",
            ssl_verify=False,
            pool_size=3,
        )

        client = DeliveryClient.from_config(config)

        assert client.endpoint == "https://rollbar.internal/api/1/item/"
        assert client.verify_ssl is False
        assert client.in_flight == 0
        assert client.is_started is False

    def test_invalid_endpoint(self):
        with pytest.raises(ConfigurationError):
            DeliveryClient("ftp://api.rollbar.com/")

    async def test_warns_when_verification_disabled(self, caplog):
        client = DeliveryClient("https://api.rollbar.com/api/1/item/", verify_ssl=False)
        with caplog.at_level(logging.WARNING):
            await client.start()
        await client.close()

        assert "verification is disabled" in caplog.text

    async def test_no_warning_by_default(self, caplog):
        client = DeliveryClient("https://api.rollbar.com/api/1/item/")
        with caplog.at_level(logging.WARNING):
            await client.start()
        await client.close()

        assert "verification is disabled" not in caplog.text

    async def test_not_started(self):
        client = DeliveryClient("https://api.rollbar.com/api/1/item/")

        result = await client.deliver(ITEM)

        assert result.outcome is DeliveryOutcome.NOT_STARTED
        assert result.ok is False


class TestDeliver:
    async def test_delivered(self, client, collector):
        result = await client.deliver(ITEM)

        assert result.outcome is DeliveryOutcome.DELIVERED
        assert result.ok is True
        assert result.status_code == 200
        assert '"uuid": "u-1"' in result.response_body
        assert result.error is None
        assert result.duration_ms >= 0
        assert collector.items == [ITEM]

    async def test_body_is_utf8_json_without_custom_headers(self, client, collector):
        await client.deliver(ITEM)

        headers, raw = collector.requests[0]
        assert raw.decode("utf-8") == serialize_item(ITEM).decode("utf-8")
        assert "Authorization" not in headers
        assert "X-Rollbar-Access-Token" not in headers

    @pytest.mark.parametrize(
        "status, category",
        [
            (400, ErrorCategory.PERMANENT),
            (401, ErrorCategory.AUTH),
            (429, ErrorCategory.TRANSIENT),
            (500, ErrorCategory.TRANSIENT),
        ],
    )
    async def test_rejected(self, client, collector, status, category, caplog):
        collector.status = status
        collector.body = {"err": 1, "message": "nope"}

        with caplog.at_level(logging.WARNING):
            result = await client.deliver(ITEM)

        assert result.outcome is DeliveryOutcome.REJECTED
        assert result.status_code == status
        assert '"message": "nope"' in result.response_body
        assert result.error_category is category
        assert f"HTTP {status}" in caplog.text

    async def test_serialization_error_sends_nothing(self, client, collector, caplog):
        with caplog.at_level(logging.WARNING):
            result = await client.deliver({"access_token": "t", "data": {"bad": object()}})

        assert result.outcome is DeliveryOutcome.SERIALIZATION_ERROR
        assert result.error_category is ErrorCategory.PERMANENT
        assert collector.requests == []
        assert "serialization_error" in caplog.text

    async def test_timeout(self, collector):
        collector.delay = 1
        client = DeliveryClient(collector.url, timeout_seconds=0.2)
        await client.start()
        try:
            result = await client.deliver(ITEM)
        finally:
            await client.close()

        assert result.outcome is DeliveryOutcome.TIMEOUT
        assert result.error_category is ErrorCategory.TRANSIENT

    async def test_connection_refused(self, unused_tcp_port):
        client = DeliveryClient(f"http://127.0.0.1:{unused_tcp_port}/api/1/item/")
        await client.start()
        try:
            result = await client.deliver(ITEM)
            in_flight_after_failure = client.in_flight
            second = await client.deliver(ITEM)
        finally:
            await client.close()

        assert result.outcome is DeliveryOutcome.CONNECTION_ERROR
        assert result.error_category is ErrorCategory.TRANSIENT
        assert result.status_code is None
        assert in_flight_after_failure == 0
        assert second.outcome is DeliveryOutcome.CONNECTION_ERROR
        assert client.in_flight == 0

    async def test_next_call_succeeds_after_connection_refused(self):
        response = MagicMock(status=200, body="{}", is_error=False)
        client, manager = _mocked_client(side_effect=[ConnectionRefusedError(), response])

        first = await client.deliver(ITEM)
        second = await client.deliver(ITEM)

        assert first.outcome is DeliveryOutcome.CONNECTION_ERROR
        assert second.outcome is DeliveryOutcome.DELIVERED
        assert second.ok
        assert manager.request.await_count == 2
        assert client.in_flight == 0

    async def test_tls_error(self):
        client, _ = _mocked_client(side_effect=ssl.SSLCertVerificationError("certificate verify failed"))

        result = await client.deliver(ITEM)

        assert result.outcome is DeliveryOutcome.TLS_ERROR
        assert result.error_category is ErrorCategory.PERMANENT

    async def test_asyncio_timeout(self):
        client, _ = _mocked_client(side_effect=asyncio.TimeoutError())

        result = await client.deliver(ITEM)

        assert result.outcome is DeliveryOutcome.TIMEOUT
        assert result.error == "TimeoutError"
        assert result.error_category is ErrorCategory.TRANSIENT

    async def test_other_client_error(self, caplog):
        client, _ = _mocked_client(side_effect=aiohttp.ClientPayloadError("truncated"))

        with caplog.at_level(logging.WARNING):
            result = await client.deliver(ITEM)

        assert result.outcome is DeliveryOutcome.CLIENT_ERROR
        assert result.error == "truncated"
        assert result.error_category is ErrorCategory.UNKNOWN
        assert caplog.records[-1].exc_info is not None

    async def test_unexpected_exception_is_contained(self):
        client, _ = _mocked_client(side_effect=RuntimeError("boom"))

        result = await client.deliver(ITEM)

        assert result.outcome is DeliveryOutcome.CLIENT_ERROR
        assert result.error == "boom"
        assert result.error_category is ErrorCategory.UNKNOWN
        assert client.in_flight == 0

    async def test_request_uses_serialized_body(self):
        response = MagicMock(status=200, body="{}", is_error=False)
        client, manager = _mocked_client(return_value=response)

        await client.deliver(ITEM)

        manager.request.assert_awaited_once_with("rollbar", data=serialize_item(ITEM))

    async def test_logs_request_and_response_at_debug(self, client, caplog):
        with caplog.at_level(logging.DEBUG, logger="event_forwarder.plugins.rollbar.delivery"):
            await client.deliver(ITEM)

        messages = {r.getMessage(): r for r in caplog.records}
        assert "secret-token" in messages["Rollbar request"].request_body
        assert messages["Rollbar response"].http_status == 200


class TestConcurrentDelivery:
    async def test_concurrent_calls_use_separate_connections(self, client, collector):
        collector.release = asyncio.Event()

        tasks = [asyncio.create_task(client.deliver(ITEM)) for _ in range(3)]

        async def all_in_handler():
            while collector.in_handler < 3:
                await asyncio.sleep(0.01)

        await asyncio.wait_for(all_in_handler(), timeout=5)
        assert client.in_flight == 3

        collector.release.set()
        results = await asyncio.gather(*tasks)

        assert all(r.ok for r in results)
        assert client.in_flight == 0
        assert len(collector.requests) == 3
