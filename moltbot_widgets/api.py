"""Typed gateway operations.

Every operation opens its own GatewaySession, runs the connect handshake,
sends one request and decodes the payload. Independent operations can run
concurrently (e.g. with ``asyncio.gather``); they share no state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from .models import CronJobList, CronRunHistory, CronStatus, HealthStatus, UsageCost
from .protocol import ClientInfo
from .session import (
    DEFAULT_CLOSE_GRACE,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_TIMEOUT,
    GatewayCallResult,
    GatewayEndpoint,
    GatewaySession,
)

_LOGGER = logging.getLogger(__name__)

SessionFactory = Callable[[GatewayEndpoint], GatewaySession]


class GatewayApi:
    """Client for the gateway's read-only operator methods."""

    def __init__(
        self,
        host: str,
        port: int,
        token: str | None = None,
        *,
        secure: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        close_grace: float = DEFAULT_CLOSE_GRACE,
        client_info: ClientInfo | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self.endpoint = GatewayEndpoint(host=host, port=port, token=token, secure=secure)
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._close_grace = close_grace
        self._client_info = client_info
        self._session_factory = session_factory or self._default_session

    @classmethod
    def from_endpoint(cls, endpoint: GatewayEndpoint, **kwargs: Any) -> GatewayApi:
        return cls(
            endpoint.host,
            endpoint.port,
            endpoint.token,
            secure=endpoint.secure,
            **kwargs,
        )

    def _default_session(self, endpoint: GatewayEndpoint) -> GatewaySession:
        return GatewaySession(
            endpoint,
            timeout=self._timeout,
            max_attempts=self._max_attempts,
            close_grace=self._close_grace,
            client_info=self._client_info,
        )

    async def call(
        self, method: str, params: Mapping[str, Any] | None = None
    ) -> GatewayCallResult:
        """Run one raw method call on a fresh session."""
        _LOGGER.debug("Calling %s on %s", method, self.endpoint.label)
        session = self._session_factory(self.endpoint)
        async with session:
            return await session.call(method, params)

    async def get_cron_status(self) -> CronStatus:
        result = await self.call("cron.status")
        return CronStatus.from_payload(result.payload)

    async def list_cron_jobs(self, include_disabled: bool = False) -> CronJobList:
        result = await self.call("cron.list", {"includeDisabled": include_disabled})
        return CronJobList.from_payload(result.payload)

    async def get_cron_runs(self, job_id: str, limit: int = 20) -> CronRunHistory:
        result = await self.call("cron.runs", {"id": job_id, "limit": limit})
        return CronRunHistory.from_payload(result.payload)

    async def get_health(self, probe: bool = False) -> HealthStatus:
        """Query ``health``; ``probe`` asks the gateway to actively check channels."""
        params: dict[str, Any] = {"probe": True} if probe else {}
        result = await self.call("health", params)
        return HealthStatus.from_payload(
            result.payload,
            version=result.server_version,
            uptime_ms=result.uptime_ms,
        )

    async def get_usage_cost(self, days: int = 30) -> UsageCost:
        result = await self.call("usage.cost", {"days": days})
        return UsageCost.from_payload(result.payload, requested_days=days)
