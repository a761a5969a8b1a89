"""Error types for gateway and widget interactions."""

from __future__ import annotations


class GatewayClientError(Exception):
    """Base error for gateway client failures."""


class GatewayInvalidURL(GatewayClientError):
    """Endpoint could not be turned into a connectable WebSocket URL."""


class GatewayConnectionError(GatewayClientError):
    """Network connection to the gateway failed."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Connection failed: {reason}")
        self.reason = reason


class GatewayUpgradeError(GatewayConnectionError):
    """Gateway refused the WebSocket upgrade."""


class GatewayInvalidResponse(GatewayClientError):
    """Frame or payload did not match the expected shape."""


class GatewayTimeout(GatewayClientError):
    """Timeout while waiting on the gateway."""


class GatewayAuthenticationRequired(GatewayClientError):
    """Gateway rejected the connect handshake for pairing or auth reasons."""


class GatewayApiError(GatewayClientError):
    """Gateway reported a failure for a request."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class GatewayProtocolError(GatewayClientError):
    """Wire protocol version mismatch."""


class WidgetConfigError(Exception):
    """Base error for widget configuration storage."""


class WidgetNotFoundError(WidgetConfigError):
    """No widget with the given id."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Widget not found: {identifier}")
        self.identifier = identifier


class DuplicateWidgetNameError(WidgetConfigError):
    """Another widget already uses the name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"A widget named '{name}' already exists")
        self.name = name


class WidgetConfigSaveError(WidgetConfigError):
    """Configuration file could not be written."""


class WidgetFetchError(Exception):
    """Base error for widget data fetches."""


class WidgetInvalidURLError(WidgetFetchError):
    """Widget URL is not a usable absolute URL."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid URL: {url}")
        self.url = url


class WidgetHttpError(WidgetFetchError):
    """Widget endpoint answered with a non-2xx status."""

    def __init__(self, status: int) -> None:
        super().__init__(f"HTTP error: {status}")
        self.status = status


class WidgetInvalidJSONError(WidgetFetchError):
    """Widget endpoint body is not a valid widget response."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid JSON: {detail}")
        self.detail = detail


class WidgetNetworkError(WidgetFetchError):
    """Widget endpoint could not be reached."""


class SettingsError(Exception):
    """Gateway settings could not be loaded or saved."""
