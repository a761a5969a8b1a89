"""WebSocket helpers for gateway transport."""

from __future__ import annotations

import asyncio

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)

from ..errors import (
    GatewayConnectionError,
    GatewayInvalidURL,
    GatewayTimeout,
    GatewayUpgradeError,
)


def build_ws_url(host: str, port: int, *, secure: bool = False, path: str = "") -> str:
    """Return ``ws://host:port`` (``wss`` when secure) after basic validation.

    Raises:
        GatewayInvalidURL: If host is blank or port is outside 1-65535.
    """
    host = host.strip()
    if not host or any(ch in host for ch in "/?# "):
        raise GatewayInvalidURL(f"Invalid gateway host: {host!r}")
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise GatewayInvalidURL(f"Invalid gateway port: {port!r}")
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    scheme = "wss" if secure else "ws"
    return f"{scheme}://{host}:{port}{path}"


async def connect_websocket(
    host: str,
    port: int,
    *,
    secure: bool = False,
    path: str = "",
    ping_interval: int | None = 20,
    timeout: float = 15.0,
) -> ClientConnection:
    """Connect to the gateway WebSocket endpoint.

    Args:
        host: Gateway host
        port: Gateway port
        secure: Use ``wss`` instead of ``ws``
        path: WebSocket path (default: root)
        ping_interval: Interval for ping frames
        timeout: Connection timeout
    """
    ws_url = build_ws_url(host, port, secure=secure, path=path)
    try:
        return await asyncio.wait_for(
            websockets.connect(
                ws_url,
                ping_interval=ping_interval,
                close_timeout=5,
                max_size=None,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise GatewayTimeout("Connection timed out") from err
    except InvalidURI as err:
        raise GatewayInvalidURL(f"Invalid URL: {ws_url}") from err
    except InvalidHandshake as err:
        raise GatewayUpgradeError(f"WebSocket handshake failed: {err}") from err
    except (OSError, WebSocketException) as err:
        raise GatewayConnectionError(str(err) or type(err).__name__) from err
