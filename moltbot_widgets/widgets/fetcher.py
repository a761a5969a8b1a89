"""HTTP client for custom widget endpoints."""

from __future__ import annotations

import base64
import logging

import aiohttp
from yarl import URL

from ..errors import (
    WidgetHttpError,
    WidgetInvalidURLError,
    WidgetNetworkError,
)
from .config import BasicAuth, CustomWidgetConfig, HeaderAuth, QueryAuth, WidgetAuth
from .response import WidgetResponse

_LOGGER = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 30.0


def build_url(url: str, auth: WidgetAuth | None = None) -> URL:
    """Parse ``url`` and append query auth parameters, if any."""
    try:
        parsed = URL(url)
    except (TypeError, ValueError) as err:
        raise WidgetInvalidURLError(url) from err
    if not parsed.is_absolute() or parsed.scheme not in ("http", "https"):
        raise WidgetInvalidURLError(url)
    if isinstance(auth, QueryAuth) and auth.params:
        parsed = parsed.extend_query(auth.params)
    return parsed


def auth_headers(auth: WidgetAuth | None) -> dict[str, str]:
    if isinstance(auth, HeaderAuth):
        return dict(auth.headers)
    if isinstance(auth, BasicAuth):
        credentials = f"{auth.username}:{auth.password}".encode()
        return {"Authorization": f"Basic {base64.b64encode(credentials).decode('ascii')}"}
    return {}


class WidgetFetcher:
    """Fetch and decode widget JSON over a shared aiohttp session."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
    ) -> None:
        self._session = session
        self._timeout = timeout

    async def fetch(self, config: CustomWidgetConfig) -> WidgetResponse:
        """Fetch the widget described by ``config``."""
        _, response = await self.fetch_raw(config.url, config.auth)
        return response

    async def fetch_raw(
        self, url: str, auth: WidgetAuth | None = None
    ) -> tuple[bytes, WidgetResponse]:
        """Fetch ``url`` and return the raw body alongside the decoded response.

        Raises:
            WidgetInvalidURLError: URL has no scheme or host.
            WidgetHttpError: Endpoint answered outside 200-299.
            WidgetInvalidJSONError: Body is not a widget response.
            WidgetNetworkError: Request timed out or failed to connect.
        """
        target = build_url(url, auth)
        _LOGGER.debug("Fetching widget data from %s", target.with_query(None))
        try:
            async with self._session.get(
                target,
                headers=auth_headers(auth),
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if not 200 <= resp.status < 300:
                    raise WidgetHttpError(resp.status)
                body = await resp.read()
        except TimeoutError as err:
            raise WidgetNetworkError(f"Request to {url} timed out") from err
        except aiohttp.ClientError as err:
            raise WidgetNetworkError(f"Request to {url} failed: {err}") from err

        return body, WidgetResponse.from_json(body)
