"""Moltbot gateway client and custom widget tooling."""

__version__ = "0.1.0"

from .api import GatewayApi
from .errors import (
    GatewayApiError,
    GatewayAuthenticationRequired,
    GatewayClientError,
    GatewayConnectionError,
    GatewayInvalidResponse,
    GatewayInvalidURL,
    GatewayProtocolError,
    GatewayTimeout,
    GatewayUpgradeError,
)
from .models import (
    CronJob,
    CronJobList,
    CronRunEntry,
    CronRunHistory,
    CronStatus,
    HealthStatus,
    UsageCost,
)
from .protocol import PROTOCOL_VERSION, ClientInfo
from .session import GatewayCallResult, GatewayEndpoint, GatewaySession
from .settings import GatewaySettings, load_settings

__all__ = [
    "PROTOCOL_VERSION",
    "ClientInfo",
    "CronJob",
    "CronJobList",
    "CronRunEntry",
    "CronRunHistory",
    "CronStatus",
    "GatewayApi",
    "GatewayApiError",
    "GatewayAuthenticationRequired",
    "GatewayCallResult",
    "GatewayClientError",
    "GatewayConnectionError",
    "GatewayEndpoint",
    "GatewayInvalidResponse",
    "GatewayInvalidURL",
    "GatewayProtocolError",
    "GatewaySession",
    "GatewaySettings",
    "GatewayTimeout",
    "GatewayUpgradeError",
    "HealthStatus",
    "UsageCost",
    "load_settings",
]
