"""
Moltbot Widgets CLI - create and manage custom widgets, and query the gateway.

Widget commands edit the shared widget configuration file. Gateway commands
open a WebSocket session per query using the saved gateway settings.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiohttp

from . import __version__
from .api import GatewayApi
from .errors import (
    GatewayAuthenticationRequired,
    GatewayClientError,
    SettingsError,
    WidgetConfigError,
    WidgetFetchError,
    WidgetInvalidJSONError,
    WidgetNotFoundError,
)
from .settings import (
    GatewaySettings,
    default_settings_path,
    load_file_settings,
    load_settings,
    save_settings,
    update_settings,
)
from .skill import install_skill, installed_skill_path, uninstall_skill
from .widgets.config import (
    DEFAULT_INTERVAL_MINUTES,
    CustomWidgetConfig,
    WidgetAuth,
    auth_from_cli,
)
from .widgets.fetcher import WidgetFetcher
from .widgets.response import WidgetResponse, WidgetType
from .widgets.schema import OVERVIEW, SCHEMA_URL, json_schema, type_doc
from .widgets.store import WidgetConfigStore

_LOGGER = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
PAIRING_HINT = (
    "Pair this device with the gateway, or save a token with:\n"
    "  moltbot-widgets gateway configure --token <token>"
)

FetcherFactory = Callable[[aiohttp.ClientSession], WidgetFetcher]
ApiFactory = Callable[[GatewaySettings], GatewayApi]


# ----- Output helpers -----


def _success(message: str) -> None:
    print(f"✓ {message}")


def _error(message: str) -> None:
    print(f"✗ {message}", file=sys.stderr)


def _info(message: str = "") -> None:
    print(message)


def _warning(message: str) -> None:
    print(f"⚠ {message}")


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


def _format_ms(epoch_ms: int | None) -> str:
    if epoch_ms is None:
        return "-"
    return datetime.fromtimestamp(epoch_ms / 1000, tz=UTC).strftime("%Y-%m-%d %H:%M:%S UTC")


class WidgetsCLI:
    """Command handlers; each returns the process exit code."""

    def __init__(
        self,
        store: WidgetConfigStore | None = None,
        *,
        settings_path: Path | None = None,
        home: Path | None = None,
        fetcher_factory: FetcherFactory | None = None,
        api_factory: ApiFactory | None = None,
        prompt: Callable[[str], str] = input,
    ) -> None:
        self.store = store or WidgetConfigStore()
        self.settings_path = settings_path or default_settings_path()
        self.home = home
        self._fetcher_factory = fetcher_factory or WidgetFetcher
        self._api_factory = api_factory or self._default_api
        self._prompt = prompt

    @staticmethod
    def _default_api(settings: GatewaySettings) -> GatewayApi:
        return GatewayApi.from_endpoint(settings.endpoint())

    def _require_widget(self, identifier: str) -> CustomWidgetConfig:
        widget = self.store.find(identifier)
        if widget is None:
            raise WidgetNotFoundError(identifier)
        return widget

    async def _fetch_raw(
        self, url: str, auth: WidgetAuth | None
    ) -> tuple[bytes, WidgetResponse]:
        async with aiohttp.ClientSession() as session:
            return await self._fetcher_factory(session).fetch_raw(url, auth)

    async def _fetch_all(self, widgets: list[CustomWidgetConfig]) -> list[Any]:
        async with aiohttp.ClientSession() as session:
            fetcher = self._fetcher_factory(session)
            return await asyncio.gather(
                *(fetcher.fetch(widget) for widget in widgets),
                return_exceptions=True,
            )

    # ----- Widget commands -----

    def create_widget(
        self,
        name: str,
        url: str,
        *,
        headers: Sequence[str] = (),
        basic_auth: str | None = None,
        queries: Sequence[str] = (),
        interval: int = DEFAULT_INTERVAL_MINUTES,
    ) -> int:
        """Validate the URL by fetching it, then store a new widget."""
        _info(f"Fetching {url}...")
        auth = auth_from_cli(headers, basic_auth, queries)
        try:
            _, response = asyncio.run(self._fetch_raw(url, auth))
        except WidgetFetchError as err:
            _error("Failed to fetch URL")
            _error(str(err))
            return 1
        _success(f'Valid "{response.type.value}" widget response')

        widget = CustomWidgetConfig(name=name, url=url, auth=auth, interval_minutes=interval)
        self.store.add_widget(widget)

        _info()
        _success(f'Created widget "{name}"')
        _info(f"  ID:       {widget.id}")
        _info(f"  URL:      {url}")
        _info(f"  Interval: {interval} minutes")
        return 0

    def list_widgets(self, *, as_json: bool = False) -> int:
        widgets = self.store.load_widgets()
        if as_json:
            _print_json([widget.to_dict() for widget in widgets])
            return 0

        if not widgets:
            _info("No widgets configured.")
            _info()
            _info("Create one with:")
            _info('  moltbot-widgets create --name "My Widget" --url "https://..." --interval 5')
            return 0

        _info("Configured widgets:")
        _info()
        for widget in widgets:
            _info(f"  {widget.name}")
            _info(f"    ID:       {widget.id}")
            _info(f"    URL:      {widget.url}")
            _info(f"    Auth:     {widget.auth_description}")
            _info(f"    Interval: {widget.interval_minutes} min")
            _info()
        _info(f"Total: {len(widgets)} widget(s)")
        return 0

    def update_widget(
        self,
        identifier: str,
        *,
        name: str | None = None,
        url: str | None = None,
        interval: int | None = None,
        headers: Sequence[str] = (),
        basic_auth: str | None = None,
        queries: Sequence[str] = (),
        remove_auth: bool = False,
    ) -> int:
        """Apply the given changes; a new URL is re-validated before saving."""
        widget = self._require_widget(identifier)
        changes: list[str] = []

        if name is not None:
            widget = replace(widget, name=name)
            changes.append(f"name → {name}")
        if url is not None:
            widget = replace(widget, url=url)
            changes.append(f"url → {url}")
        if interval is not None:
            widget = replace(widget, interval_minutes=interval)
            changes.append(f"interval → {interval} min")
        if remove_auth:
            widget = replace(widget, auth=None)
            changes.append("auth → removed")
        else:
            new_auth = auth_from_cli(headers, basic_auth, queries)
            if new_auth is not None:
                widget = replace(widget, auth=new_auth)
                changes.append("auth → updated")

        if not changes:
            _warning("No changes specified")
            return 0

        if url is not None:
            _info("Validating new URL...")
            try:
                asyncio.run(self._fetch_raw(widget.url, widget.auth))
            except WidgetFetchError as err:
                _error(f"Failed to validate URL: {err}")
                return 1
            _success("URL is valid")

        stored = self.store.update_widget(widget)
        _success(f'Updated widget "{stored.name}"')
        for change in changes:
            _info(f"  {change}")
        return 0

    def delete_widget(self, identifier: str, *, yes: bool = False) -> int:
        widget = self._require_widget(identifier)
        if not yes:
            try:
                answer = self._prompt(f'Delete widget "{widget.name}" ({widget.id})? [y/N] ')
            except EOFError:
                answer = ""
            if answer.strip().lower() not in ("y", "yes"):
                _info("Cancelled")
                return 0

        self.store.delete_widget(widget.id)
        _success(f'Deleted widget "{widget.name}"')
        return 0

    def validate_url(
        self,
        url: str,
        *,
        headers: Sequence[str] = (),
        basic_auth: str | None = None,
        queries: Sequence[str] = (),
        show_json: bool = False,
    ) -> int:
        _info(f"Fetching {url}...")
        auth = auth_from_cli(headers, basic_auth, queries)
        try:
            body, response = asyncio.run(self._fetch_raw(url, auth))
        except WidgetInvalidJSONError as err:
            _error("Invalid widget response")
            _info()
            _error("JSON parsing error:")
            _error(f"  {err.detail}")
            _info()
            _info(f"Schema: {SCHEMA_URL}")
            return 1
        except WidgetFetchError as err:
            _error(str(err))
            return 1

        _success(f'Valid "{response.type.value}" widget response')
        if show_json:
            _info()
            _print_json(json.loads(body))

        _info()
        _info(f"Widget type: {response.type.value}")
        for line in response.summary_lines():
            _info(f"  {line}")
        return 0

    def refresh_widgets(self, identifier: str | None = None) -> int:
        """Fetch one widget (or all) now and print what each returned."""
        if identifier is not None:
            widgets = [self._require_widget(identifier)]
            _info(f'Refreshing widget "{widgets[0].name}"...')
        else:
            widgets = self.store.load_widgets()
            if not widgets:
                _info("No widgets configured.")
                return 0
            _info("Refreshing all widgets...")

        outcomes = asyncio.run(self._fetch_all(widgets))
        failures = 0
        for widget, outcome in zip(widgets, outcomes, strict=True):
            if isinstance(outcome, WidgetFetchError):
                failures += 1
                _error(f"{widget.name}: {outcome}")
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            _success(f'{widget.name}: "{outcome.type.value}" widget')
            for line in outcome.summary_lines():
                _info(f"  {line}")
        return 1 if failures else 0

    def show_schema(self, widget_type: str | None = None, *, as_json: bool = False) -> int:
        if as_json:
            _print_json(json_schema())
            _info()
            _info(f"Full schema: {SCHEMA_URL}")
            return 0

        if widget_type is None:
            print(OVERVIEW, end="")
            return 0

        doc = type_doc(widget_type)
        if doc is None:
            _error(f"Unknown widget type: {widget_type}")
            _info(f"Valid types: {', '.join(t.value for t in WidgetType)}")
            return 1
        print(doc, end="")
        return 0

    # ----- Skill commands -----

    def skill(self, action: str = "status") -> int:
        if action == "install":
            _info("Installing moltbot-widgets skill...")
            path = install_skill(self.home)
            _success(f"Created {path}")
            _info()
            _info("Skill installed! Moltbot can now help you create widgets.")
            return 0

        if action == "uninstall":
            removed = uninstall_skill(self.home)
            for directory in removed:
                _success(f"Removed {directory}")
            if removed:
                _info("Skill uninstalled.")
            else:
                _warning("Skill was not installed.")
            return 0

        path = installed_skill_path(self.home)
        if path is not None:
            _success(f"Skill installed at {path.parent}")
        else:
            _warning("Skill not installed")
            _info()
            _info("Install with: moltbot-widgets skill install")
        return 0

    # ----- Gateway commands -----

    def _query_gateway(self, operation: Callable[[GatewayApi], Awaitable[Any]]) -> Any:
        settings = load_settings(self.settings_path)
        _LOGGER.debug("Using gateway %s:%s", settings.host, settings.port)
        return asyncio.run(operation(self._api_factory(settings)))

    def gateway_status(self, *, as_json: bool = False) -> int:
        status = self._query_gateway(lambda api: api.get_cron_status())
        if as_json:
            _print_json(status.to_dict())
            return 0
        _info(f"Scheduler: {'enabled' if status.enabled else 'disabled'}")
        _info(f"Jobs:      {status.jobs}")
        _info(f"Next wake: {_format_ms(status.next_wake_at_ms)}")
        if status.store_path:
            _info(f"Store:     {status.store_path}")
        return 0

    def gateway_jobs(self, *, include_disabled: bool = False, as_json: bool = False) -> int:
        job_list = self._query_gateway(lambda api: api.list_cron_jobs(include_disabled))
        if as_json:
            _print_json(job_list.to_dict())
            return 0
        if not job_list.jobs:
            _info("No cron jobs.")
            return 0

        _info("Cron jobs:")
        _info()
        for job in job_list.jobs:
            _info(f"  {job.name}")
            _info(f"    ID:       {job.id}")
            _info(f"    Enabled:  {'yes' if job.enabled else 'no'}")
            if job.schedule:
                _info(f"    Schedule: {job.schedule}")
            if job.last_run_at_ms is not None:
                result = job.last_result or "unknown"
                _info(f"    Last run: {_format_ms(job.last_run_at_ms)} ({result})")
            _info()
        _info(f"Total: {len(job_list)} job(s)")
        return 0

    def gateway_runs(self, job_id: str, *, limit: int = 20, as_json: bool = False) -> int:
        history = self._query_gateway(lambda api: api.get_cron_runs(job_id, limit))
        if as_json:
            _print_json(history.to_dict())
            return 0
        if not history.entries:
            _info(f"No runs recorded for {job_id}.")
            return 0

        for entry in history.entries:
            duration = f"{entry.duration_ms} ms" if entry.duration_ms is not None else "-"
            _info(f"  {_format_ms(entry.started_at_ms)}  {entry.status:<8}  {duration}")
            if entry.error:
                _info(f"    {entry.error}")
        return 0

    def gateway_health(self, *, probe: bool = False, as_json: bool = False) -> int:
        health = self._query_gateway(lambda api: api.get_health(probe))
        if as_json:
            _print_json(health.to_dict())
            return 0
        if health.ok:
            _success("Gateway healthy")
        else:
            _warning("Gateway reports unhealthy")
        if health.version:
            _info(f"  Version:  {health.version}")
        if health.uptime_display:
            _info(f"  Uptime:   {health.uptime_display}")
        if health.channels_total is not None:
            _info(f"  Channels: {health.channels_connected}/{health.channels_total} connected")
        return 0

    def gateway_usage(self, *, days: int = 30, as_json: bool = False) -> int:
        usage = self._query_gateway(lambda api: api.get_usage_cost(days))
        if as_json:
            _print_json(usage.to_dict())
            return 0
        _info(f"Last {usage.days} days")
        _info(f"  Cost:   {usage.cost_display}")
        _info(f"  Tokens: {usage.tokens_display}")
        _info(
            f"    input {usage.input}, output {usage.output}, "
            f"cache read {usage.cache_read}, cache write {usage.cache_write}"
        )
        return 0

    def gateway_configure(
        self,
        *,
        host: str | None = None,
        port: int | None = None,
        token: str | None = None,
        clear_token: bool = False,
        secure: bool | None = None,
    ) -> int:
        """Show or edit the saved settings file."""
        current = load_file_settings(self.settings_path)
        changes: dict[str, Any] = {}
        if host is not None:
            changes["host"] = host
        if port is not None:
            changes["port"] = port
        if token is not None:
            changes["token"] = token
        if clear_token:
            changes["token"] = None
        if secure is not None:
            changes["use_secure"] = secure

        if changes:
            current = update_settings(current, **changes)
            path = save_settings(current, self.settings_path)
            _success(f"Saved settings to {path}")
        else:
            _info(f"Settings file: {self.settings_path}")

        _info(f"  Host:   {current.host}")
        _info(f"  Port:   {current.port}")
        _info(f"  Secure: {'yes' if current.use_secure else 'no'}")
        _info(f"  Token:  {'configured' if current.token else 'none'}")
        return 0


# ----- Parser -----


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as err:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from err
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _add_auth_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--header",
        dest="headers",
        action="append",
        default=[],
        help="HTTP header (format: 'Key: Value'). Can be repeated.",
    )
    parser.add_argument(
        "--basic-auth", help="Basic authentication (format: 'username:password')"
    )
    parser.add_argument(
        "--query",
        dest="queries",
        action="append",
        default=[],
        help="Query parameter (format: 'key=value'). Can be repeated.",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="moltbot-widgets",
        description="Create and manage dynamic desktop widgets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  moltbot-widgets create --name "CPU" --url https://example.com/cpu
  moltbot-widgets list                      # List widgets
  moltbot-widgets validate https://example.com/cpu --show-json
  moltbot-widgets refresh CPU               # Fetch one widget now
  moltbot-widgets gateway health --probe    # Query the local gateway
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level", choices=LOG_LEVELS, default="WARNING", help="Logging level"
    )

    json_option = argparse.ArgumentParser(add_help=False)
    json_option.add_argument("--json", action="store_true", help="Output as JSON")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    create_parser_ = subparsers.add_parser("create", help="Create a new widget from a URL")
    create_parser_.add_argument("--name", required=True, help="Display name for the widget")
    create_parser_.add_argument("--url", required=True, help="URL to fetch widget data from")
    _add_auth_options(create_parser_)
    create_parser_.add_argument(
        "--interval",
        type=_positive_int,
        default=DEFAULT_INTERVAL_MINUTES,
        help="Refresh interval in minutes",
    )

    subparsers.add_parser(
        "list", aliases=["ls"], parents=[json_option], help="List all configured widgets"
    )

    update_parser = subparsers.add_parser("update", help="Update a widget configuration")
    update_parser.add_argument("identifier", help="Widget ID or name")
    update_parser.add_argument("--name", help="New display name")
    update_parser.add_argument("--url", help="New URL")
    update_parser.add_argument(
        "--interval", type=_positive_int, help="New refresh interval in minutes"
    )
    _add_auth_options(update_parser)
    update_parser.add_argument("--remove-auth", action="store_true", help="Remove authentication")

    delete_parser = subparsers.add_parser(
        "delete", aliases=["rm", "remove"], help="Delete a widget"
    )
    delete_parser.add_argument("identifier", help="Widget ID or name")
    delete_parser.add_argument("-y", "--yes", action="store_true", help="Skip confirmation")

    validate_parser = subparsers.add_parser(
        "validate", help="Validate a URL returns valid widget JSON"
    )
    validate_parser.add_argument("url", help="URL to validate")
    _add_auth_options(validate_parser)
    validate_parser.add_argument(
        "--show-json", action="store_true", help="Show raw JSON response"
    )

    refresh_parser = subparsers.add_parser("refresh", help="Fetch widgets now")
    refresh_parser.add_argument(
        "identifier", nargs="?", help="Widget ID or name (default: all widgets)"
    )

    schema_parser = subparsers.add_parser("schema", help="Show widget schema documentation")
    schema_parser.add_argument(
        "--type", dest="widget_type", help="Show schema for one widget type"
    )
    schema_parser.add_argument("--json", action="store_true", help="Output raw JSON schema")

    skill_parser = subparsers.add_parser("skill", help="Manage Moltbot skill integration")
    skill_parser.add_argument(
        "action",
        nargs="?",
        choices=("install", "uninstall", "status"),
        default="status",
        help="Skill action (default: status)",
    )

    gateway_parser = subparsers.add_parser("gateway", help="Query the Moltbot gateway")
    gateway_subparsers = gateway_parser.add_subparsers(dest="gateway_command")

    gateway_subparsers.add_parser(
        "status", parents=[json_option], help="Show cron scheduler status"
    )
    jobs_parser = gateway_subparsers.add_parser(
        "jobs", parents=[json_option], help="List cron jobs"
    )
    jobs_parser.add_argument("--all", action="store_true", help="Include disabled jobs")
    runs_parser = gateway_subparsers.add_parser(
        "runs", parents=[json_option], help="Show run history of a cron job"
    )
    runs_parser.add_argument("job_id", help="Cron job ID")
    runs_parser.add_argument(
        "--limit", type=_positive_int, default=20, help="Maximum runs to show"
    )
    health_parser = gateway_subparsers.add_parser(
        "health", parents=[json_option], help="Show gateway health"
    )
    health_parser.add_argument(
        "--probe", action="store_true", help="Ask the gateway to probe its channels"
    )
    usage_parser = gateway_subparsers.add_parser(
        "usage", parents=[json_option], help="Show usage cost"
    )
    usage_parser.add_argument(
        "--days", type=_positive_int, default=30, help="Number of days to cover"
    )

    configure_parser = gateway_subparsers.add_parser(
        "configure", help="Show or edit gateway connection settings"
    )
    configure_parser.add_argument("--host", help="Gateway host")
    configure_parser.add_argument("--port", type=int, help="Gateway port")
    configure_parser.add_argument("--token", help="Gateway auth token")
    configure_parser.add_argument(
        "--clear-token", action="store_true", help="Remove the saved token"
    )
    configure_parser.add_argument(
        "--secure",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Connect with wss:// instead of ws://",
    )

    return parser


def _dispatch(
    cli: WidgetsCLI, parser: argparse.ArgumentParser, args: argparse.Namespace
) -> int:
    command = args.command

    if command in (None, "list", "ls"):
        return cli.list_widgets(as_json=getattr(args, "json", False))

    elif command == "create":
        return cli.create_widget(
            args.name,
            args.url,
            headers=args.headers,
            basic_auth=args.basic_auth,
            queries=args.queries,
            interval=args.interval,
        )

    elif command == "update":
        return cli.update_widget(
            args.identifier,
            name=args.name,
            url=args.url,
            interval=args.interval,
            headers=args.headers,
            basic_auth=args.basic_auth,
            queries=args.queries,
            remove_auth=args.remove_auth,
        )

    elif command in ("delete", "rm", "remove"):
        return cli.delete_widget(args.identifier, yes=args.yes)

    elif command == "validate":
        return cli.validate_url(
            args.url,
            headers=args.headers,
            basic_auth=args.basic_auth,
            queries=args.queries,
            show_json=args.show_json,
        )

    elif command == "refresh":
        return cli.refresh_widgets(args.identifier)

    elif command == "schema":
        return cli.show_schema(args.widget_type, as_json=args.json)

    elif command == "skill":
        return cli.skill(args.action)

    elif command == "gateway":
        sub = args.gateway_command
        if sub == "status":
            return cli.gateway_status(as_json=args.json)
        elif sub == "jobs":
            return cli.gateway_jobs(include_disabled=args.all, as_json=args.json)
        elif sub == "runs":
            return cli.gateway_runs(args.job_id, limit=args.limit, as_json=args.json)
        elif sub == "health":
            return cli.gateway_health(probe=args.probe, as_json=args.json)
        elif sub == "usage":
            return cli.gateway_usage(days=args.days, as_json=args.json)
        elif sub == "configure":
            return cli.gateway_configure(
                host=args.host,
                port=args.port,
                token=args.token,
                clear_token=args.clear_token,
                secure=args.secure,
            )

    parser.print_help()
    return 1


def main(argv: Sequence[str] | None = None, cli: WidgetsCLI | None = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    cli = cli or WidgetsCLI()
    try:
        return _dispatch(cli, parser, args)
    except GatewayAuthenticationRequired as err:
        _error(str(err))
        _info(PAIRING_HINT)
        return 1
    except (GatewayClientError, WidgetConfigError, WidgetFetchError, SettingsError) as err:
        _error(str(err))
        return 1
    except OSError as err:
        _error(f"Failed: {err}")
        return 1
    except KeyboardInterrupt:
        _error("Interrupted")
        return 1


if __name__ == "__main__":
    sys.exit(main())
