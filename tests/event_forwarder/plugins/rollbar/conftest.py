"""Fixtures for Rollbar output tests: a local collector that records items."""

import asyncio
import json
from dataclasses import dataclass, field

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer


@dataclass
class FakeCollector:
    """Recorded requests and the response the collector will give."""

    status: int = 200
    body: dict = field(default_factory=lambda: {"err": 0, "result": {"id": None, "uuid": "u-1"}})
    delay: float = 0.0
    requests: list = field(default_factory=list)
    in_handler: int = 0
    release: asyncio.Event | None = None
    url: str = ""

    @property
    def items(self) -> list[dict]:
        return [json.loads(raw) for _, raw in self.requests]


@pytest.fixture
async def collector():
    state = FakeCollector()

    async def handle(request: web.Request) -> web.Response:
        state.requests.append((dict(request.headers), await request.read()))
        state.in_handler += 1
        try:
            if state.release is not None:
                await state.release.wait()
            if state.delay:
                await asyncio.sleep(state.delay)
        finally:
            state.in_handler -= 1
        return web.json_response(state.body, status=state.status)

    app = web.Application()
    app.router.add_post("/api/1/item/", handle)

    async with TestServer(app) as server:
        state.url = str(server.make_url("/api/1/item/"))
        yield state
