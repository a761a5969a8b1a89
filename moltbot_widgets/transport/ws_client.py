"""WebSocket client wrapper for the gateway."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed

from ..errors import (
    GatewayClientError,
    GatewayConnectionError,
    GatewayInvalidResponse,
    GatewayTimeout,
)
from .ws import connect_websocket

_LOGGER = logging.getLogger(__name__)


class GatewayWsMessageType(Enum):
    """Normalized WebSocket message types."""

    TEXT = "text"
    BINARY = "binary"
    CLOSED = "closed"


@dataclass(frozen=True)
class GatewayWsMessage:
    """Normalized WebSocket message payload."""

    type: GatewayWsMessageType
    data: str | bytes | None = None


class GatewayWsClient:
    """Wrapper around the websockets library for one gateway connection."""

    def __init__(self) -> None:
        self._ws: ClientConnection | None = None

    @property
    def is_open(self) -> bool:
        return self._ws is not None

    async def connect(
        self,
        host: str,
        port: int,
        *,
        secure: bool = False,
        ping_interval: int | None = 20,
        timeout: float = 15.0,
    ) -> None:
        """Connect to the gateway websocket."""
        self._ws = await connect_websocket(
            host,
            port,
            secure=secure,
            ping_interval=ping_interval,
            timeout=timeout,
        )

    async def close(self) -> None:
        """Close the websocket connection. Safe to call more than once."""
        ws, self._ws = self._ws, None
        if ws is None:
            return
        try:
            await ws.close()
        except (OSError, ConnectionClosed) as err:
            _LOGGER.debug("Error while closing WebSocket: %s", err)

    async def send_json(self, payload: dict[str, Any]) -> None:
        """Send a JSON payload to the websocket."""
        if self._ws is None:
            raise GatewayConnectionError("WebSocket is not connected")
        try:
            text = json.dumps(payload)
        except (TypeError, ValueError) as err:
            raise GatewayInvalidResponse("Request could not be serialized") from err
        try:
            await self._ws.send(text)
        except ConnectionClosed as err:
            raise GatewayConnectionError("WebSocket closed while sending") from err
        except OSError as err:
            raise GatewayConnectionError(str(err) or "send failed") from err

    async def receive(self, timeout: float | None = None) -> GatewayWsMessage:
        """Wait for the next whole message.

        Raises:
            GatewayConnectionError: If not connected.
            GatewayTimeout: If no message arrives within ``timeout`` seconds.
        """
        if self._ws is None:
            raise GatewayConnectionError("WebSocket is not connected")
        try:
            msg = await asyncio.wait_for(self._ws.recv(), timeout=timeout)
        except TimeoutError as err:
            raise GatewayTimeout("Timed out waiting for gateway message") from err
        except ConnectionClosed:
            return GatewayWsMessage(type=GatewayWsMessageType.CLOSED)
        except OSError as err:
            raise GatewayConnectionError(str(err) or "receive failed") from err
        return self._normalize_message(msg)

    @staticmethod
    def _normalize_message(msg: Any) -> GatewayWsMessage:
        """Normalize backend frames into GatewayWsMessage."""
        if isinstance(msg, (bytes, bytearray, memoryview)):
            return GatewayWsMessage(GatewayWsMessageType.BINARY, bytes(msg))
        return GatewayWsMessage(GatewayWsMessageType.TEXT, str(msg))

    @staticmethod
    def decode_json(message: GatewayWsMessage) -> Any:
        """Decode a TEXT message payload into JSON."""
        if message.type is not GatewayWsMessageType.TEXT:
            raise GatewayClientError("Only TEXT messages can be decoded")
        if not isinstance(message.data, str):
            raise GatewayInvalidResponse("Message data is not a string")
        try:
            return json.loads(message.data)
        except ValueError as err:
            raise GatewayInvalidResponse("Gateway sent malformed JSON") from err
