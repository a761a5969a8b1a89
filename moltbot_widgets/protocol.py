"""Frame builders and parsers for the gateway RPC protocol.

Outbound frames are ``req`` envelopes. Inbound frames are either ``event``
(server push) or ``res`` (answer to a ``req``); any other ``type`` is
ignored by the caller.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .errors import GatewayInvalidResponse

PROTOCOL_VERSION = 3
CONNECT_METHOD = "connect"
CONNECT_CHALLENGE_EVENT = "connect.challenge"
NOT_PAIRED_CODE = "NOT_PAIRED"

DEFAULT_ROLE = "operator"
DEFAULT_SCOPES: tuple[str, ...] = ("operator.read",)

# Lower-cased fragments of rejection messages that mean "pair or authenticate first"
_AUTH_REQUIRED_MARKERS: tuple[str, ...] = (
    "device identity",
    "not paired",
    "pairing required",
    "unauthorized",
)


@dataclass(frozen=True)
class ClientInfo:
    """Client descriptor sent with the connect request."""

    id: str = "gateway-client"
    version: str = "1.0.0"
    platform: str = "darwin"
    mode: str = "backend"

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "version": self.version,
            "platform": self.platform,
            "mode": self.mode,
        }


@dataclass(frozen=True)
class GatewayErrorShape:
    """Structured error carried by a failed ``res`` frame."""

    code: str
    message: str


@dataclass(frozen=True)
class GatewayEvent:
    """Server-pushed ``event`` frame."""

    event: str
    payload: dict[str, Any] = field(default_factory=lambda: {})


@dataclass(frozen=True)
class GatewayResponse:
    """``res`` frame answering an earlier request.

    ``ok`` and ``payload`` are kept as received; call ``validate()`` once the
    frame is known to answer the pending request.
    """

    id: str | None
    ok: Any
    payload: Any = None
    error: GatewayErrorShape | None = None

    def validate(self) -> None:
        """Raise GatewayInvalidResponse unless ``ok`` is a bool and ``payload`` an object."""
        if not isinstance(self.ok, bool):
            raise GatewayInvalidResponse("Response frame is missing a boolean 'ok'")
        if self.payload is not None and not isinstance(self.payload, dict):
            raise GatewayInvalidResponse("Response payload is not an object")


def new_call_id() -> str:
    """Return a fresh request identifier."""
    return str(uuid.uuid4())


def build_request(
    *,
    method: str,
    params: Mapping[str, Any] | None = None,
    call_id: str | None = None,
) -> dict[str, Any]:
    """Build a ``req`` envelope.

    Args:
        method: Gateway method name (e.g. "cron.status").
        params: JSON-serializable parameter mapping.
        call_id: Optional caller-supplied identifier. Generated when omitted.

    Returns:
        Envelope dict ready for ``json.dumps``.
    """
    return {
        "type": "req",
        "id": call_id or new_call_id(),
        "method": method,
        "params": dict(params or {}),
    }


def build_connect_params(
    token: str | None = None,
    *,
    client: ClientInfo | None = None,
    role: str = DEFAULT_ROLE,
    scopes: tuple[str, ...] = DEFAULT_SCOPES,
) -> dict[str, Any]:
    """Build ``connect`` params; ``auth`` is only present for a non-empty token."""
    params: dict[str, Any] = {
        "minProtocol": PROTOCOL_VERSION,
        "maxProtocol": PROTOCOL_VERSION,
        "client": (client or ClientInfo()).to_dict(),
        "caps": [],
        "role": role,
        "scopes": list(scopes),
    }
    if token:
        params["auth"] = {"token": token}
    return params


def parse_frame(data: Any) -> GatewayEvent | GatewayResponse | None:
    """Parse a decoded JSON frame.

    Returns None for frames the client does not act on (unknown ``type``).

    Raises:
        GatewayInvalidResponse: If the frame is not a JSON object.
    """
    if not isinstance(data, dict):
        raise GatewayInvalidResponse("Gateway frame is not a JSON object")

    frame_type = data.get("type")

    if frame_type == "event":
        event = data.get("event")
        if not isinstance(event, str):
            return None
        payload = data.get("payload")
        return GatewayEvent(event=event, payload=payload if isinstance(payload, dict) else {})

    if frame_type == "res":
        frame_id = data.get("id")
        return GatewayResponse(
            id=frame_id if isinstance(frame_id, str) else None,
            ok=data.get("ok"),
            payload=data.get("payload"),
            error=_parse_error(data.get("error")),
        )

    return None


def _parse_error(raw: Any) -> GatewayErrorShape | None:
    if not isinstance(raw, dict):
        return None
    code = raw.get("code")
    message = raw.get("message")
    return GatewayErrorShape(
        code=code if isinstance(code, str) else "",
        message=message if isinstance(message, str) else "",
    )


def is_auth_required(error: GatewayErrorShape | None) -> bool:
    """Return True when a connect rejection means pairing/auth is needed."""
    if error is None:
        return False
    if error.code == NOT_PAIRED_CODE:
        return True
    message = error.message.lower()
    return any(marker in message for marker in _AUTH_REQUIRED_MARKERS)
