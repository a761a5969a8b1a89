"""Typed results for gateway methods.

Each ``from_payload`` is a pure decode of the loosely typed payload mapping:
absent (or null) fields take their documented default, fields present with
the wrong JSON type raise GatewayInvalidResponse.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any, TypeVar

from .errors import GatewayInvalidResponse

_T = TypeVar("_T")

_MISSING: Any = object()


def _field(
    payload: Mapping[str, Any],
    key: str,
    kind: type[_T] | tuple[type, ...],
    default: Any = _MISSING,
) -> Any:
    """Read ``key`` from ``payload`` checking its JSON type.

    ``bool`` is never accepted where a number is expected, and ints are
    widened to float where a float is expected.
    """
    value = payload.get(key)
    if value is None:
        if default is _MISSING:
            raise GatewayInvalidResponse(f"Missing required field '{key}'")
        return default

    kinds = kind if isinstance(kind, tuple) else (kind,)
    if isinstance(value, bool) and bool not in kinds:
        raise GatewayInvalidResponse(f"Field '{key}' has unexpected type bool")
    if float in kinds and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if not isinstance(value, kinds):
        raise GatewayInvalidResponse(
            f"Field '{key}' has unexpected type {type(value).__name__}"
        )
    return value


def _optional_int(payload: Mapping[str, Any], key: str) -> int | None:
    value = _field(payload, key, (int, float), None)
    return int(value) if value is not None else None


def _mapping(payload: Mapping[str, Any], key: str) -> dict[str, Any]:
    return _field(payload, key, dict, {})


def _list_of_mappings(payload: Mapping[str, Any], key: str) -> list[dict[str, Any]]:
    items = _field(payload, key, list, [])
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise GatewayInvalidResponse(f"Entry {idx} of '{key}' is not an object")
    return items


class _ResultMixin:
    def to_dict(self) -> dict[str, Any]:
        return asdict(self)  # type: ignore[call-overload]


# =============================================================================
# cron.status
# =============================================================================


@dataclass(frozen=True)
class CronStatus(_ResultMixin):
    """Scheduler status.

    Attributes:
        enabled: Whether the scheduler is running.
        store_path: Path of the job store on the gateway host.
        jobs: Number of configured jobs.
        next_wake_at_ms: Epoch milliseconds of the next wake-up, if scheduled.
    """

    enabled: bool = False
    store_path: str = ""
    jobs: int = 0
    next_wake_at_ms: int | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> CronStatus:
        return cls(
            enabled=_field(payload, "enabled", bool, False),
            store_path=_field(payload, "storePath", str, ""),
            jobs=int(_field(payload, "jobs", (int, float), 0)),
            next_wake_at_ms=_optional_int(payload, "nextWakeAtMs"),
        )

    @property
    def next_wake_at(self) -> datetime | None:
        if self.next_wake_at_ms is None:
            return None
        return datetime.fromtimestamp(self.next_wake_at_ms / 1000, tz=UTC)


# =============================================================================
# cron.list
# =============================================================================


@dataclass(frozen=True)
class CronJob(_ResultMixin):
    """One scheduled job."""

    id: str
    name: str
    enabled: bool = True
    label: str | None = None
    schedule: str | None = None
    last_run_at_ms: int | None = None
    last_result: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> CronJob:
        job_id = _field(payload, "id", str)
        return cls(
            id=job_id,
            name=_field(payload, "name", str, job_id),
            enabled=_field(payload, "enabled", bool, True),
            label=_field(payload, "label", str, None),
            schedule=_field(payload, "schedule", str, None),
            last_run_at_ms=_optional_int(payload, "lastRunAt"),
            last_result=_field(payload, "lastResult", str, None),
        )


@dataclass(frozen=True)
class CronJobList(_ResultMixin):
    """Jobs returned by ``cron.list``."""

    jobs: tuple[CronJob, ...] = ()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> CronJobList:
        return cls(
            jobs=tuple(CronJob.from_payload(job) for job in _list_of_mappings(payload, "jobs"))
        )

    def __len__(self) -> int:
        return len(self.jobs)


# =============================================================================
# cron.runs
# =============================================================================


@dataclass(frozen=True)
class CronRunEntry(_ResultMixin):
    """One recorded run of a job."""

    status: str = "unknown"
    started_at_ms: int | None = None
    finished_at_ms: int | None = None
    duration_ms: int | None = None
    error: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> CronRunEntry:
        return cls(
            status=_field(payload, "status", str, "unknown"),
            started_at_ms=_optional_int(payload, "startedAt"),
            finished_at_ms=_optional_int(payload, "finishedAt"),
            duration_ms=_optional_int(payload, "durationMs"),
            error=_field(payload, "error", str, None),
        )


@dataclass(frozen=True)
class CronRunHistory(_ResultMixin):
    """Run history returned by ``cron.runs``."""

    entries: tuple[CronRunEntry, ...] = ()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> CronRunHistory:
        return cls(
            entries=tuple(
                CronRunEntry.from_payload(entry)
                for entry in _list_of_mappings(payload, "entries")
            )
        )


# =============================================================================
# health
# =============================================================================


def count_channels(channels: Mapping[str, Any]) -> tuple[int, int]:
    """Return ``(total, connected)`` over channel entries.

    An entry counts when it reports a boolean ``linked`` (connected when
    true) or, failing that, a boolean ``configured``.
    """
    total = 0
    connected = 0
    for entry in channels.values():
        if not isinstance(entry, dict):
            continue
        flag = entry.get("linked")
        if not isinstance(flag, bool):
            flag = entry.get("configured")
            if not isinstance(flag, bool):
                continue
        total += 1
        if flag:
            connected += 1
    return total, connected


@dataclass(frozen=True)
class HealthStatus(_ResultMixin):
    """Gateway health summary.

    Attributes:
        ok: Whether the gateway reports itself healthy.
        uptime_ms: Uptime in milliseconds, if known.
        version: Gateway version, if known.
        channels_total: Channels reporting linked/configured; None without channel data.
        channels_connected: Of those, how many are up; None without channel data.
    """

    ok: bool = False
    uptime_ms: int | None = None
    version: str | None = None
    channels_total: int | None = None
    channels_connected: int | None = None

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        *,
        version: str | None = None,
        uptime_ms: int | None = None,
    ) -> HealthStatus:
        total, connected = count_channels(_mapping(payload, "channels"))
        if uptime_ms is None:
            uptime_ms = _optional_int(payload, "uptimeMs")
        if version is None:
            version = _field(payload, "version", str, None)
        return cls(
            ok=_field(payload, "ok", bool, False),
            uptime_ms=uptime_ms,
            version=version,
            channels_total=total if total else None,
            channels_connected=connected if total else None,
        )

    @property
    def uptime_display(self) -> str | None:
        """Compact uptime such as "2d 5h", "3h 12m" or "7m"."""
        if self.uptime_ms is None:
            return None
        seconds = self.uptime_ms // 1000
        days, rest = divmod(seconds, 86400)
        hours, rest = divmod(rest, 3600)
        minutes = rest // 60
        if days > 0:
            return f"{days}d {hours}h"
        if hours > 0:
            return f"{hours}h {minutes}m"
        return f"{minutes}m"


# =============================================================================
# usage.cost
# =============================================================================


@dataclass(frozen=True)
class UsageCost(_ResultMixin):
    """Token usage and cost totals over a window of days."""

    total_cost: float = 0.0
    total_tokens: int = 0
    input: int = 0
    output: int = 0
    cache_read: int = 0
    cache_write: int = 0
    days: int = 30

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], *, requested_days: int) -> UsageCost:
        totals = _mapping(payload, "totals")

        def tokens(key: str) -> int:
            return int(_field(totals, key, (int, float), 0))

        return cls(
            total_cost=_field(totals, "totalCost", float, 0.0),
            total_tokens=tokens("totalTokens"),
            input=tokens("input"),
            output=tokens("output"),
            cache_read=tokens("cacheRead"),
            cache_write=tokens("cacheWrite"),
            days=int(_field(payload, "days", (int, float), requested_days)),
        )

    @property
    def cost_display(self) -> str:
        return f"${self.total_cost:.2f}"

    @property
    def tokens_display(self) -> str:
        if self.total_tokens >= 1_000_000:
            return f"{self.total_tokens / 1_000_000:.1f}M"
        if self.total_tokens >= 1_000:
            return f"{self.total_tokens / 1_000:.1f}K"
        return str(self.total_tokens)
