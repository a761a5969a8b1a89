"""Single-use gateway session: connect handshake plus one RPC call.

A session owns one WebSocket connection for exactly one logical call:

1. connect the socket
2. wait for the ``connect.challenge`` event
3. send the ``connect`` request and wait for its response
4. send the method request and wait for its response
5. close the socket

Frames that do not answer the pending request (other events, responses with
an unknown id) are ignored. A receive-attempt cap and an overall timeout
bound the wait; either one firing raises GatewayTimeout. The socket is
closed on every path before the call returns or raises.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import (
    GatewayApiError,
    GatewayAuthenticationRequired,
    GatewayClientError,
    GatewayConnectionError,
    GatewayTimeout,
)
from .protocol import (
    CONNECT_CHALLENGE_EVENT,
    CONNECT_METHOD,
    ClientInfo,
    GatewayEvent,
    GatewayResponse,
    build_connect_params,
    build_request,
    is_auth_required,
    new_call_id,
    parse_frame,
)
from .transport.ws import build_ws_url
from .transport.ws_client import GatewayWsClient, GatewayWsMessageType

_LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
DEFAULT_MAX_ATTEMPTS = 20
DEFAULT_CLOSE_GRACE = 0.05


@dataclass(frozen=True)
class GatewayEndpoint:
    """Where and how to reach the gateway."""

    host: str
    port: int
    token: str | None = None
    secure: bool = False

    @property
    def url(self) -> str:
        return build_ws_url(self.host, self.port, secure=self.secure)

    @property
    def label(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class HandshakeInfo:
    """Server details captured from a successful connect response."""

    server_version: str | None = None
    uptime_ms: int | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> HandshakeInfo:
        server = payload.get("server")
        snapshot = payload.get("snapshot")
        version = server.get("version") if isinstance(server, dict) else None
        uptime = snapshot.get("uptimeMs") if isinstance(snapshot, dict) else None
        if isinstance(uptime, bool) or not isinstance(uptime, (int, float)):
            uptime = None
        return cls(
            server_version=version if isinstance(version, str) else None,
            uptime_ms=int(uptime) if uptime is not None else None,
        )


@dataclass(frozen=True)
class GatewayCallResult:
    """Payload of a successful call plus handshake details."""

    payload: dict[str, Any]
    server_version: str | None = None
    uptime_ms: int | None = None


class SessionState(Enum):
    """Lifecycle of a single-use session."""

    IDLE = "idle"
    AWAITING_CHALLENGE = "awaiting_challenge"
    HANDSHAKE_SENT = "handshake_sent"
    AUTHENTICATED = "authenticated"
    METHOD_SENT = "method_sent"
    COMPLETED = "completed"
    FAILED = "failed"


_TERMINAL_STATES = frozenset({SessionState.COMPLETED, SessionState.FAILED})

_NEXT_STATE: dict[SessionState, SessionState] = {
    SessionState.IDLE: SessionState.AWAITING_CHALLENGE,
    SessionState.AWAITING_CHALLENGE: SessionState.HANDSHAKE_SENT,
    SessionState.HANDSHAKE_SENT: SessionState.AUTHENTICATED,
    SessionState.AUTHENTICATED: SessionState.METHOD_SENT,
    SessionState.METHOD_SENT: SessionState.COMPLETED,
}


@dataclass(slots=True)
class PendingCall:
    """Request waiting for its response."""

    call_id: str
    method: str
    params: dict[str, Any] = field(default_factory=lambda: {})


class RequestCorrelator:
    """Issue request ids and match responses to the one pending request."""

    def __init__(self, id_factory: Callable[[], str] = new_call_id) -> None:
        self._id_factory = id_factory
        self._pending: PendingCall | None = None
        self._issued: set[str] = set()

    @property
    def pending(self) -> PendingCall | None:
        return self._pending

    def issue(self, method: str, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Register a new pending call and return its request frame.

        Raises:
            RuntimeError: If a call is already pending or the id factory
                repeats an id already used in this session.
        """
        if self._pending is not None:
            raise RuntimeError(
                f"Cannot issue {method}: {self._pending.method} is still pending"
            )
        call_id = self._id_factory()
        if call_id in self._issued:
            raise RuntimeError(f"Call id reused: {call_id}")
        self._issued.add(call_id)
        self._pending = PendingCall(call_id=call_id, method=method, params=dict(params or {}))
        return build_request(method=method, params=self._pending.params, call_id=call_id)

    def resolve(self, response: GatewayResponse) -> PendingCall | None:
        """Pop and return the pending call answered by ``response``, if any."""
        if self._pending is None or response.id != self._pending.call_id:
            return None
        pending, self._pending = self._pending, None
        return pending


class GatewaySession:
    """One connection, one handshake, one call.

    Usage:
        session = GatewaySession(GatewayEndpoint("127.0.0.1", 18789, token="secret"))
        result = await session.call("cron.status")
    """

    def __init__(
        self,
        endpoint: GatewayEndpoint,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        close_grace: float = DEFAULT_CLOSE_GRACE,
        client_info: ClientInfo | None = None,
        ws_client: GatewayWsClient | None = None,
    ) -> None:
        """Initialize session.

        Args:
            endpoint: Gateway address and credential
            timeout: Bound on the whole connect, handshake and call sequence (seconds)
            max_attempts: Maximum number of inbound messages consulted
            close_grace: Pause after a successful call so the server can tear down (seconds)
            client_info: Client descriptor for the connect request
            ws_client: Transport to use; a fresh GatewayWsClient when omitted
        """
        self.endpoint = endpoint
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._close_grace = close_grace
        self._client_info = client_info or ClientInfo()
        self._ws = ws_client or GatewayWsClient()

        self._correlator = RequestCorrelator()
        self._state = SessionState.IDLE
        self._handshake: HandshakeInfo | None = None
        self._attempts = 0
        self._closed = False

    async def __aenter__(self) -> GatewaySession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def handshake(self) -> HandshakeInfo | None:
        return self._handshake

    @property
    def attempts(self) -> int:
        """Inbound messages consulted so far."""
        return self._attempts

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def call(
        self, method: str, params: Mapping[str, Any] | None = None
    ) -> GatewayCallResult:
        """Run the handshake, send ``method`` and return its payload.

        Raises:
            GatewayClientError: Any subclass; the session is closed first.
        """
        if self._state is not SessionState.IDLE or self._closed:
            raise GatewayClientError("Gateway session has already been used")

        try:
            result = await asyncio.wait_for(
                self._run(method, dict(params or {})), timeout=self._timeout
            )
        except TimeoutError as err:
            self._fail(f"timed out after {self._timeout}s")
            raise GatewayTimeout(
                f"No response to {method} within {self._timeout:g}s"
            ) from err
        except BaseException as err:
            self._fail(str(err) or type(err).__name__)
            raise
        finally:
            await self.close()

        if self._close_grace > 0:
            await asyncio.sleep(self._close_grace)
        return result

    async def close(self) -> None:
        """Close the underlying connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self._ws.close()
        _LOGGER.debug("[%s] Connection closed", self.endpoint.label)

    # -------------------------------------------------------------------------
    # Internal: Protocol Flow
    # -------------------------------------------------------------------------

    async def _run(self, method: str, params: dict[str, Any]) -> GatewayCallResult:
        _LOGGER.info("[%s] Connecting to %s", self.endpoint.label, self.endpoint.url)
        await self._ws.connect(
            self.endpoint.host,
            self.endpoint.port,
            secure=self.endpoint.secure,
            timeout=self._timeout,
        )
        self._transition(SessionState.AWAITING_CHALLENGE)

        while True:
            frame = await self._next_frame()
            if frame is None:
                continue

            if self._state is SessionState.AWAITING_CHALLENGE:
                if isinstance(frame, GatewayEvent) and frame.event == CONNECT_CHALLENGE_EVENT:
                    await self._send(CONNECT_METHOD, self._connect_params())
                    self._transition(SessionState.HANDSHAKE_SENT)
                else:
                    _LOGGER.debug("[%s] Ignoring frame before challenge", self.endpoint.label)
                continue

            if isinstance(frame, GatewayEvent):
                _LOGGER.debug("[%s] Ignoring event %s", self.endpoint.label, frame.event)
                continue

            if self._correlator.resolve(frame) is None:
                _LOGGER.debug(
                    "[%s] Ignoring response for unknown id %s", self.endpoint.label, frame.id
                )
                continue
            frame.validate()

            if self._state is SessionState.HANDSHAKE_SENT:
                self._handle_connect_response(frame)
                await self._send(method, params)
                self._transition(SessionState.METHOD_SENT)
            else:
                return self._handle_method_response(method, frame)

    async def _next_frame(self) -> GatewayEvent | GatewayResponse | None:
        if self._attempts >= self._max_attempts:
            raise GatewayTimeout(
                f"No answer from gateway after {self._max_attempts} messages"
            )
        self._attempts += 1

        message = await self._ws.receive(timeout=self._timeout)
        if message.type is GatewayWsMessageType.CLOSED:
            raise GatewayConnectionError("Gateway closed the connection")
        if message.type is not GatewayWsMessageType.TEXT:
            return None
        return parse_frame(GatewayWsClient.decode_json(message))

    async def _send(self, method: str, params: Mapping[str, Any]) -> None:
        frame = self._correlator.issue(method, params)
        await self._ws.send_json(frame)
        _LOGGER.debug("[%s] Sent %s (%s)", self.endpoint.label, method, frame["id"])

    def _connect_params(self) -> dict[str, Any]:
        return build_connect_params(self.endpoint.token, client=self._client_info)

    def _handle_connect_response(self, frame: GatewayResponse) -> None:
        if frame.ok:
            self._handshake = HandshakeInfo.from_payload(frame.payload or {})
            self._transition(SessionState.AUTHENTICATED)
            _LOGGER.info(
                "[%s] Authenticated (server %s)",
                self.endpoint.label,
                self._handshake.server_version or "unknown",
            )
            return

        error = frame.error
        if is_auth_required(error):
            raise GatewayAuthenticationRequired(
                error.message if error and error.message else "Authentication required"
            )
        raise GatewayApiError(
            error.message if error and error.message else "Gateway rejected connect",
            code=error.code if error and error.code else None,
        )

    def _handle_method_response(
        self, method: str, frame: GatewayResponse
    ) -> GatewayCallResult:
        if not frame.ok:
            error = frame.error
            raise GatewayApiError(
                error.message if error and error.message else "Gateway request failed",
                code=error.code if error and error.code else None,
            )

        self._transition(SessionState.COMPLETED)
        _LOGGER.info("[%s] %s completed", self.endpoint.label, method)
        handshake = self._handshake or HandshakeInfo()
        return GatewayCallResult(
            payload=frame.payload or {},
            server_version=handshake.server_version,
            uptime_ms=handshake.uptime_ms,
        )

    # -------------------------------------------------------------------------
    # Internal: State Machine
    # -------------------------------------------------------------------------

    def _transition(self, state: SessionState) -> None:
        """Move one step forward through the session lifecycle."""
        if _NEXT_STATE.get(self._state) is not state:
            raise RuntimeError(f"Illegal session transition {self._state.value} → {state.value}")
        _LOGGER.debug(
            "[%s] State: %s → %s", self.endpoint.label, self._state.value, state.value
        )
        self._state = state

    def _fail(self, reason: str) -> None:
        if self._state in _TERMINAL_STATES:
            return
        _LOGGER.warning(
            "[%s] Call failed in %s: %s", self.endpoint.label, self._state.value, reason
        )
        self._state = SessionState.FAILED
