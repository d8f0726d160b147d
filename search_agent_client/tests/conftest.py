"""
Shared fixtures: a testing config and a throwaway aiohttp backend that plays
the agent endpoint (JSON replies, chunked NDJSON streams, error statuses).
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from search_agent_client.config import TestingConfig
from search_agent_client.models import Notification
from search_agent_client.notifier import Notifier


@pytest.fixture
def cfg() -> TestingConfig:
    c = TestingConfig()
    c.LOG_PAYLOADS = True
    c.DISCARD_STALE_RESPONSES = False
    return c


@pytest.fixture
def received() -> List[Dict[str, Any]]:
    """Request bodies (plus headers) seen by the fake backend."""
    return []


@pytest.fixture
def agent_server(received):
    """Factory: agent_server(handler) -> TestServer serving POST /chat."""

    def _make(handler) -> TestServer:
        async def recording(request: web.Request) -> web.StreamResponse:
            received.append({"body": await request.json(), "headers": dict(request.headers)})
            return await handler(request)

        app = web.Application()
        app.router.add_post("/chat", recording)
        return TestServer(app)

    return _make


@pytest.fixture
def json_reply():
    def _make(data: Any, status: int = 200):
        async def handler(request: web.Request) -> web.Response:
            return web.json_response(data, status=status)

        return handler

    return _make


@pytest.fixture
def stream_reply():
    """Factory: a handler writing each chunk as its own write() call."""

    def _make(chunks: List[str], content_type: str = "application/x-ndjson", abort_after: int | None = None):
        async def handler(request: web.Request) -> web.StreamResponse:
            resp = web.StreamResponse()
            resp.content_type = content_type
            await resp.prepare(request)
            for i, chunk in enumerate(chunks):
                if abort_after is not None and i == abort_after:
                    request.transport.close()
                    return resp
                await resp.write(chunk.encode("utf-8"))
                await asyncio.sleep(0)
            await resp.write_eof()
            return resp

        return handler

    return _make


def ndjson(*records: Any) -> str:
    return "".join(json.dumps(r) + "\n" for r in records)


@pytest.fixture
def to_ndjson():
    return ndjson


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.seen: List[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.seen.append(notification)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


def pytest_configure(config):
    """Pytest configuration."""
    config.addinivalue_line("markers", "integration: talks to a local fake agent server")
