"""Custom widget configuration models."""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ..errors import WidgetConfigError

DEFAULT_INTERVAL_MINUTES = 5


@dataclass(frozen=True)
class HeaderAuth:
    """Extra HTTP headers sent with each fetch."""

    headers: dict[str, str]

    def to_dict(self) -> dict[str, Any]:
        return {"type": "header", "headers": dict(self.headers)}

    def describe(self) -> str:
        return f"Headers ({len(self.headers)})"


@dataclass(frozen=True)
class BasicAuth:
    """HTTP Basic credentials."""

    username: str
    password: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "basic", "username": self.username, "password": self.password}

    def describe(self) -> str:
        return "Basic Auth"


@dataclass(frozen=True)
class QueryAuth:
    """Query parameters appended to the widget URL."""

    params: dict[str, str]

    def to_dict(self) -> dict[str, Any]:
        return {"type": "query", "params": dict(self.params)}

    def describe(self) -> str:
        return f"Query Params ({len(self.params)})"


WidgetAuth = HeaderAuth | BasicAuth | QueryAuth


def _string_map(data: Mapping[str, Any], key: str) -> dict[str, str]:
    value = data.get(key)
    if not isinstance(value, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        raise WidgetConfigError(f"Auth field '{key}' must map strings to strings")
    return dict(value)


def auth_from_dict(data: Mapping[str, Any]) -> WidgetAuth:
    """Decode an auth descriptor tagged by ``type``."""
    auth_type = data.get("type")
    if auth_type == "header":
        return HeaderAuth(headers=_string_map(data, "headers"))
    if auth_type == "basic":
        username = data.get("username")
        password = data.get("password")
        if not isinstance(username, str) or not isinstance(password, str):
            raise WidgetConfigError("Basic auth requires username and password")
        return BasicAuth(username=username, password=password)
    if auth_type == "query":
        return QueryAuth(params=_string_map(data, "params"))
    raise WidgetConfigError(f"Unknown auth type: {auth_type}")


def auth_from_cli(
    headers: Iterable[str] = (),
    basic_auth: str | None = None,
    query_params: Iterable[str] = (),
) -> WidgetAuth | None:
    """Build auth from CLI options.

    Basic auth wins, then ``"Key: Value"`` headers, then ``key=value`` query
    parameters. Malformed entries are skipped.
    """
    if basic_auth:
        username, sep, password = basic_auth.partition(":")
        if sep:
            return BasicAuth(username=username, password=password)

    header_map: dict[str, str] = {}
    for header in headers:
        key, sep, value = header.partition(":")
        if sep and key.strip():
            header_map[key.strip()] = value.strip()
    if header_map:
        return HeaderAuth(headers=header_map)

    param_map: dict[str, str] = {}
    for param in query_params:
        key, sep, value = param.partition("=")
        if sep and key:
            param_map[key] = value
    if param_map:
        return QueryAuth(params=param_map)

    return None


def utcnow() -> datetime:
    return datetime.now(tz=UTC).replace(microsecond=0)


def _parse_timestamp(value: Any, key: str) -> datetime:
    if not isinstance(value, str):
        raise WidgetConfigError(f"Widget field '{key}' must be an ISO-8601 string")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as err:
        raise WidgetConfigError(f"Widget field '{key}' is not ISO-8601: {value}") from err
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _format_timestamp(value: datetime) -> str:
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


@dataclass
class CustomWidgetConfig:
    """Stored configuration for one user-defined HTTP widget."""

    name: str
    url: str
    auth: WidgetAuth | None = None
    interval_minutes: int = DEFAULT_INTERVAL_MINUTES
    id: str = field(default_factory=lambda: str(uuid.uuid4()).upper())
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "intervalMinutes": self.interval_minutes,
            "createdAt": _format_timestamp(self.created_at),
            "updatedAt": _format_timestamp(self.updated_at),
        }
        if self.auth is not None:
            data["auth"] = self.auth.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CustomWidgetConfig:
        if not isinstance(data, Mapping):
            raise WidgetConfigError("Widget entry must be an object")
        for key in ("id", "name", "url"):
            if not isinstance(data.get(key), str):
                raise WidgetConfigError(f"Widget field '{key}' must be a string")
        interval = data.get("intervalMinutes", DEFAULT_INTERVAL_MINUTES)
        if isinstance(interval, bool) or not isinstance(interval, int):
            raise WidgetConfigError("Widget field 'intervalMinutes' must be an integer")
        raw_auth = data.get("auth")
        if raw_auth is not None and not isinstance(raw_auth, dict):
            raise WidgetConfigError("Widget field 'auth' must be an object")
        return cls(
            id=data["id"],
            name=data["name"],
            url=data["url"],
            auth=auth_from_dict(raw_auth) if raw_auth is not None else None,
            interval_minutes=interval,
            created_at=_parse_timestamp(data.get("createdAt"), "createdAt"),
            updated_at=_parse_timestamp(data.get("updatedAt"), "updatedAt"),
        )

    @property
    def auth_description(self) -> str:
        return self.auth.describe() if self.auth is not None else "None"
