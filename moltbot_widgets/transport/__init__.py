"""Transport layer for the gateway client.

Components:
- ws: WebSocket connection management
- ws_client: single-connection send/receive wrapper
"""

from .ws import build_ws_url, connect_websocket
from .ws_client import GatewayWsClient, GatewayWsMessage, GatewayWsMessageType

__all__ = [
    "GatewayWsClient",
    "GatewayWsMessage",
    "GatewayWsMessageType",
    "build_ws_url",
    "connect_websocket",
]
