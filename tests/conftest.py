"""Pytest configuration and fixtures for moltbot_widgets tests."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from moltbot_widgets.transport.ws_client import GatewayWsMessage, GatewayWsMessageType


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    import aiohttp

    return MagicMock(spec=aiohttp.ClientSession)


def create_mock_response(
    status: int = 200,
    json_data: dict[str, Any] | None = None,
    text_data: str | None = None,
    read_data: bytes | None = None,
) -> AsyncMock:
    """Create a configured mock response.

    Args:
        status: HTTP status code
        json_data: Data to return from json() call
        text_data: Data to return from text() call
        read_data: Data to return from read() call

    Returns:
        Configured AsyncMock response
    """
    response = AsyncMock()
    response.status = status

    if json_data is not None:
        response.json.return_value = json_data
    if text_data is not None:
        response.text.return_value = text_data
    if read_data is not None:
        response.read.return_value = read_data

    response.__aenter__.return_value = response
    response.__aexit__.return_value = None

    return response


# ----- Scripted gateway transport -----


@dataclass
class Reply:
    """A ``res`` frame; answers the most recently sent request unless call_id is set."""

    ok: bool = True
    payload: Any = None
    error: dict[str, Any] | None = None
    call_id: str | None = None


def challenge(nonce: str = "n-1") -> dict[str, Any]:
    return {"type": "event", "event": "connect.challenge", "payload": {"nonce": nonce}}


def hello(version: str = "2026.1.5", uptime_ms: int = 3_600_000) -> Reply:
    return Reply(
        payload={
            "type": "hello-ok",
            "server": {"version": version},
            "snapshot": {"uptimeMs": uptime_ms},
        }
    )


class FakeWsClient:
    """In-memory stand-in for GatewayWsClient driven by a script.

    Script items: dicts (sent as TEXT JSON), Reply, GatewayWsMessage, or an
    exception to raise. An exhausted script blocks forever.
    """

    def __init__(self, script: list[Any] | None = None) -> None:
        self.script = list(script or [])
        self.sent: list[dict[str, Any]] = []
        self.connect_calls: list[tuple[str, int, dict[str, Any]]] = []
        self.connect_error: Exception | None = None
        self.close_calls = 0
        self.receive_calls = 0

    async def connect(self, host: str, port: int, **kwargs: Any) -> None:
        self.connect_calls.append((host, port, kwargs))
        if self.connect_error is not None:
            raise self.connect_error

    async def close(self) -> None:
        self.close_calls += 1

    async def send_json(self, payload: dict[str, Any]) -> None:
        self.sent.append(payload)

    async def receive(self, timeout: float | None = None) -> GatewayWsMessage:
        self.receive_calls += 1
        if not self.script:
            await asyncio.Event().wait()
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, GatewayWsMessage):
            return item
        if isinstance(item, Reply):
            frame: dict[str, Any] = {
                "type": "res",
                "id": item.call_id if item.call_id is not None else self.sent[-1]["id"],
                "ok": item.ok,
            }
            if item.payload is not None:
                frame["payload"] = item.payload
            if item.error is not None:
                frame["error"] = item.error
            item = frame
        return GatewayWsMessage(GatewayWsMessageType.TEXT, json.dumps(item))

    def sent_methods(self) -> list[str]:
        return [frame["method"] for frame in self.sent]
