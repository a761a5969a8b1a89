"""Gateway connection settings.

Settings come from a YAML file, then environment overrides. When no token
is configured, the gateway's own config file is consulted for
``gateway.auth.token``.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml

from .errors import SettingsError
from .session import GatewayEndpoint

_LOGGER = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 18789

ENV_HOST = "MOLTBOT_GATEWAY_HOST"
ENV_PORT = "MOLTBOT_GATEWAY_PORT"
ENV_TOKEN = "MOLTBOT_GATEWAY_TOKEN"
ENV_SECURE = "MOLTBOT_GATEWAY_SECURE"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


def default_settings_path() -> Path:
    return Path.home() / ".config" / "moltbot-widgets" / "settings.yaml"


def gateway_config_path() -> Path:
    return Path.home() / ".clawdbot" / "clawdbot.json"


@dataclass(frozen=True)
class GatewaySettings:
    """Where the widgets find the gateway.

    Attributes:
        host: Gateway hostname or IP.
        port: Gateway port.
        token: Bearer credential sent in the connect handshake.
        use_secure: Connect with ``wss`` instead of ``ws``.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    token: str | None = None
    use_secure: bool = False

    def endpoint(self) -> GatewayEndpoint:
        return GatewayEndpoint(
            host=self.host,
            port=self.port,
            token=self.token or None,
            secure=self.use_secure,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "use_secure": self.use_secure,
        }
        if self.token:
            data["token"] = self.token
        return data


def _parse_port(value: Any) -> int:
    if isinstance(value, bool):
        raise SettingsError(f"Invalid port: {value!r}")
    try:
        port = int(str(value).strip())
    except ValueError as err:
        raise SettingsError(f"Invalid port: {value!r}") from err
    if not 0 < port < 65536:
        raise SettingsError(f"Port out of range: {port}")
    return port


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise SettingsError(f"Invalid boolean: {value!r}")


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file with error handling; a missing file is empty."""
    if not path.exists():
        return {}
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as err:
        raise SettingsError(f"Could not read settings from {path}: {err}") from err
    if not isinstance(data, dict):
        raise SettingsError(f"Settings file {path} must contain a mapping")
    return data


def read_gateway_token(path: Path | None = None) -> str | None:
    """Read ``gateway.auth.token`` from the gateway config file, if present."""
    config_path = path or gateway_config_path()
    try:
        data = json.loads(config_path.read_text())
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as err:
        _LOGGER.debug("Ignoring unreadable gateway config %s: %s", config_path, err)
        return None

    gateway = data.get("gateway") if isinstance(data, dict) else None
    auth = gateway.get("auth") if isinstance(gateway, dict) else None
    token = auth.get("token") if isinstance(auth, dict) else None
    return token if isinstance(token, str) and token else None


def load_file_settings(path: Path | None = None) -> GatewaySettings:
    """Load only what the settings file says, without env or token fallback.

    Raises:
        SettingsError: If the file is malformed or a value is invalid.
    """
    data = _load_yaml(path or default_settings_path())
    token = data.get("token")
    if token is not None and not isinstance(token, str):
        raise SettingsError("Token must be a string")
    return GatewaySettings(
        host=str(data.get("host") or DEFAULT_HOST),
        port=_parse_port(data.get("port") or DEFAULT_PORT),
        token=token or None,
        use_secure=_parse_bool(data.get("use_secure", False)),
    )


def load_settings(
    path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    gateway_config: Path | None = None,
) -> GatewaySettings:
    """Load settings from YAML and environment.

    Args:
        path: Settings file. Defaults to ``~/.config/moltbot-widgets/settings.yaml``.
        environ: Environment mapping. Defaults to ``os.environ``.
        gateway_config: Gateway config consulted for a fallback token.

    Raises:
        SettingsError: If the file is malformed or a value is invalid.
    """
    env = os.environ if environ is None else environ
    base = load_file_settings(path)

    host = env.get(ENV_HOST) or base.host
    port = _parse_port(env[ENV_PORT]) if env.get(ENV_PORT) else base.port
    secure_raw = env.get(ENV_SECURE)
    use_secure = _parse_bool(secure_raw) if secure_raw is not None else base.use_secure

    token = env.get(ENV_TOKEN) or base.token or read_gateway_token(gateway_config)
    return GatewaySettings(host=host, port=port, token=token or None, use_secure=use_secure)


def save_settings(settings: GatewaySettings, path: Path | None = None) -> Path:
    """Write settings as YAML and return the path written."""
    target = path or default_settings_path()
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w") as f:
            yaml.safe_dump(settings.to_dict(), f, sort_keys=True)
    except OSError as err:
        raise SettingsError(f"Could not write settings to {target}: {err}") from err
    return target


def update_settings(settings: GatewaySettings, **changes: Any) -> GatewaySettings:
    """Return a copy with validated changes applied."""
    if "port" in changes:
        changes["port"] = _parse_port(changes["port"])
    if "use_secure" in changes:
        changes["use_secure"] = _parse_bool(changes["use_secure"])
    return replace(settings, **changes)
