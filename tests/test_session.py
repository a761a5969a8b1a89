"""Tests for GatewaySession handshake and call flow."""

from __future__ import annotations

from itertools import count

import pytest

from moltbot_widgets.errors import (
    GatewayApiError,
    GatewayAuthenticationRequired,
    GatewayClientError,
    GatewayConnectionError,
    GatewayInvalidResponse,
    GatewayTimeout,
)
from moltbot_widgets.protocol import GatewayResponse
from moltbot_widgets.session import (
    GatewayEndpoint,
    GatewaySession,
    HandshakeInfo,
    RequestCorrelator,
    SessionState,
)
from moltbot_widgets.transport.ws_client import GatewayWsMessage, GatewayWsMessageType

from .conftest import FakeWsClient, Reply, challenge, hello

ENDPOINT = GatewayEndpoint("127.0.0.1", 18789, token="secret")


def make_session(ws: FakeWsClient, endpoint: GatewayEndpoint = ENDPOINT, **kwargs) -> GatewaySession:
    kwargs.setdefault("close_grace", 0)
    return GatewaySession(endpoint, ws_client=ws, **kwargs)


class TestGatewayEndpoint:
    """Tests for GatewayEndpoint."""

    def test_url(self):
        assert GatewayEndpoint("127.0.0.1", 18789).url == "ws://127.0.0.1:18789"
        assert GatewayEndpoint("gw", 443, secure=True).url == "wss://gw:443"

    def test_label(self):
        assert ENDPOINT.label == "127.0.0.1:18789"


class TestHandshakeInfo:
    """Tests for HandshakeInfo.from_payload()."""

    def test_reads_version_and_uptime(self):
        info = HandshakeInfo.from_payload(
            {"server": {"version": "1.2.3"}, "snapshot": {"uptimeMs": 5000}}
        )
        assert info == HandshakeInfo(server_version="1.2.3", uptime_ms=5000)

    def test_tolerates_missing_sections(self):
        assert HandshakeInfo.from_payload({}) == HandshakeInfo()
        assert HandshakeInfo.from_payload({"snapshot": {"uptimeMs": True}}).uptime_ms is None


class TestRequestCorrelator:
    """Tests for RequestCorrelator."""

    def test_issue_and_resolve(self):
        ids = count(1)
        correlator = RequestCorrelator(id_factory=lambda: str(next(ids)))
        frame = correlator.issue("health", {"probe": True})

        assert frame == {"type": "req", "id": "1", "method": "health", "params": {"probe": True}}
        assert correlator.resolve(GatewayResponse(id="2", ok=True)) is None
        pending = correlator.resolve(GatewayResponse(id="1", ok=True))
        assert pending is not None
        assert pending.method == "health"
        assert correlator.pending is None

    def test_only_one_pending_call(self):
        correlator = RequestCorrelator()
        correlator.issue("connect")
        with pytest.raises(RuntimeError, match="still pending"):
            correlator.issue("health")

    def test_ids_are_never_reused(self):
        correlator = RequestCorrelator(id_factory=lambda: "same")
        correlator.issue("connect")
        correlator.resolve(GatewayResponse(id="same", ok=True))
        with pytest.raises(RuntimeError, match="reused"):
            correlator.issue("health")


class TestSessionCall:
    """Tests for a complete handshake plus method call."""

    async def test_happy_path(self):
        """Test challenge, connect, then method call in order."""
        ws = FakeWsClient([challenge(), hello(), Reply(payload={"jobs": 3})])
        session = make_session(ws)

        result = await session.call("cron.status")

        assert result.payload == {"jobs": 3}
        assert result.server_version == "2026.1.5"
        assert result.uptime_ms == 3_600_000
        assert ws.sent_methods() == ["connect", "cron.status"]
        assert ws.connect_calls[0][:2] == ("127.0.0.1", 18789)
        assert session.state is SessionState.COMPLETED
        assert ws.close_calls == 1

    async def test_connect_request_carries_token(self):
        ws = FakeWsClient([challenge(), hello(), Reply(payload={})])
        await make_session(ws).call("health")

        connect = ws.sent[0]
        assert connect["type"] == "req"
        assert connect["params"]["auth"] == {"token": "secret"}

    async def test_connect_request_without_token(self):
        ws = FakeWsClient([challenge(), hello(), Reply(payload={})])
        await make_session(ws, GatewayEndpoint("127.0.0.1", 18789)).call("health")

        assert "auth" not in ws.sent[0]["params"]

    async def test_request_ids_are_distinct(self):
        ws = FakeWsClient([challenge(), hello(), Reply(payload={})])
        await make_session(ws).call("health")

        assert ws.sent[0]["id"] != ws.sent[1]["id"]

    async def test_method_params_are_sent(self):
        ws = FakeWsClient([challenge(), hello(), Reply(payload={})])
        await make_session(ws).call("usage.cost", {"days": 7})

        assert ws.sent[1]["params"] == {"days": 7}

    async def test_ok_without_payload_is_empty(self):
        ws = FakeWsClient([challenge(), hello(), Reply()])
        result = await make_session(ws).call("cron.status")
        assert result.payload == {}

    async def test_ignores_noise(self):
        """Unrelated events, unknown ids and binary frames do not end the call."""
        ws = FakeWsClient(
            [
                {"type": "event", "event": "tick", "payload": {}},
                challenge(),
                {"type": "event", "event": "presence", "payload": {}},
                Reply(call_id="stale", ok=False, error={"code": "X", "message": "nope"}),
                hello(),
                GatewayWsMessage(GatewayWsMessageType.BINARY, b"\x00"),
                {"type": "something-else"},
                Reply(payload={"ok": True}),
            ]
        )
        session = make_session(ws)

        result = await session.call("health")

        assert result.payload == {"ok": True}
        assert session.attempts == 8

    async def test_ignores_malformed_unmatched_responses(self):
        """Malformed ``res`` frames for other ids are skipped, not fatal."""
        ws = FakeWsClient(
            [
                {"type": "res", "id": "early", "ok": "yes"},
                challenge(),
                {"type": "res", "id": "stale"},
                hello(),
                {"type": "res", "id": "stale", "ok": True, "payload": [1]},
                Reply(payload={"jobs": 3}),
            ]
        )

        result = await make_session(ws).call("cron.status")

        assert result.payload == {"jobs": 3}

    async def test_method_not_sent_before_handshake(self):
        """A response arriving before the challenge does not advance the session."""
        ws = FakeWsClient([Reply(call_id="x"), challenge(), hello(), Reply(payload={})])
        await make_session(ws).call("health")

        assert ws.sent_methods() == ["connect", "health"]

    async def test_session_is_single_use(self):
        ws = FakeWsClient([challenge(), hello(), Reply(payload={})])
        session = make_session(ws)
        await session.call("health")

        with pytest.raises(GatewayClientError, match="already been used"):
            await session.call("health")

    async def test_context_manager_closes(self):
        ws = FakeWsClient()
        async with make_session(ws):
            pass
        assert ws.close_calls == 1


class TestSessionFailures:
    """Tests for error propagation; the session is always closed once."""

    async def test_no_challenge_hits_attempt_cap(self):
        ws = FakeWsClient([{"type": "event", "event": "tick"}] * 5)
        session = make_session(ws, max_attempts=3)

        with pytest.raises(GatewayTimeout, match="3 messages"):
            await session.call("health")

        assert ws.sent == []
        assert ws.receive_calls == 3
        assert ws.close_calls == 1
        assert session.state is SessionState.FAILED

    async def test_silent_server_times_out(self):
        ws = FakeWsClient([])
        session = make_session(ws, timeout=0.05)

        with pytest.raises(GatewayTimeout, match="health"):
            await session.call("health")

        assert ws.close_calls == 1
        assert session.state is SessionState.FAILED

    async def test_not_paired(self):
        ws = FakeWsClient(
            [
                challenge(),
                Reply(ok=False, error={"code": "NOT_PAIRED", "message": "device identity unknown"}),
            ]
        )
        session = make_session(ws)

        with pytest.raises(GatewayAuthenticationRequired, match="device identity unknown"):
            await session.call("health")

        assert ws.sent_methods() == ["connect"]
        assert ws.close_calls == 1

    async def test_handshake_api_error(self):
        ws = FakeWsClient(
            [challenge(), Reply(ok=False, error={"code": "INVALID", "message": "protocol mismatch"})]
        )

        with pytest.raises(GatewayApiError) as exc_info:
            await make_session(ws).call("health")

        assert exc_info.value.message == "protocol mismatch"
        assert exc_info.value.code == "INVALID"
        assert ws.close_calls == 1

    async def test_method_api_error(self):
        ws = FakeWsClient(
            [challenge(), hello(), Reply(ok=False, error={"code": "E", "message": "unknown job"})]
        )

        with pytest.raises(GatewayApiError, match="unknown job"):
            await make_session(ws).call("cron.runs", {"id": "x"})

        assert ws.close_calls == 1

    async def test_method_error_without_details(self):
        ws = FakeWsClient([challenge(), hello(), Reply(ok=False)])

        with pytest.raises(GatewayApiError, match="Gateway request failed"):
            await make_session(ws).call("health")

    async def test_peer_closes(self):
        ws = FakeWsClient([challenge(), GatewayWsMessage(GatewayWsMessageType.CLOSED)])

        with pytest.raises(GatewayConnectionError, match="closed the connection"):
            await make_session(ws).call("health")

        assert ws.close_calls == 1

    async def test_malformed_frame(self):
        ws = FakeWsClient([GatewayWsMessage(GatewayWsMessageType.TEXT, "{oops")])

        with pytest.raises(GatewayInvalidResponse):
            await make_session(ws).call("health")

        assert ws.close_calls == 1

    async def test_malformed_matching_response(self):
        ws = FakeWsClient([challenge(), hello(), Reply(payload=[1, 2])])
        session = make_session(ws)

        with pytest.raises(GatewayInvalidResponse, match="not an object"):
            await session.call("health")

        assert session.state is SessionState.FAILED
        assert ws.close_calls == 1

    async def test_connect_failure(self):
        ws = FakeWsClient()
        ws.connect_error = GatewayConnectionError("Connection refused")
        session = make_session(ws)

        with pytest.raises(GatewayConnectionError, match="refused"):
            await session.call("health")

        assert ws.close_calls == 1
        assert session.state is SessionState.FAILED

    async def test_close_is_idempotent(self):
        ws = FakeWsClient([challenge(), hello(), Reply(payload={})])
        session = make_session(ws)
        await session.call("health")

        await session.close()
        await session.close()

        assert ws.close_calls == 1
