"""Widget response models.

A widget endpoint returns ``{"type": <widget-type>, "data": {...}}`` where
``type`` selects the shape of ``data``.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import WidgetInvalidJSONError


class WidgetType(Enum):
    """Supported widget layouts."""

    STATUS = "status"
    NUMBER = "number"
    GAUGE = "gauge"
    LIST = "list"
    TEXT = "text"


class TrendDirection(Enum):
    UP = "up"
    DOWN = "down"
    NEUTRAL = "neutral"


_MISSING: Any = object()


def _get(data: Mapping[str, Any], key: str, kind: type | tuple[type, ...], default: Any = _MISSING) -> Any:
    value = data.get(key)
    if value is None:
        if default is _MISSING:
            raise WidgetInvalidJSONError(f"missing required field '{key}'")
        return default
    kinds = kind if isinstance(kind, tuple) else (kind,)
    if isinstance(value, bool) and bool not in kinds:
        raise WidgetInvalidJSONError(f"field '{key}' must not be a boolean")
    if not isinstance(value, kinds):
        raise WidgetInvalidJSONError(f"field '{key}' has unexpected type {type(value).__name__}")
    return value


def _number(data: Mapping[str, Any], key: str) -> float:
    return float(_get(data, key, (int, float)))


def _text_fields(data: Mapping[str, Any], *keys: str) -> dict[str, str | None]:
    return {key: _get(data, key, str, None) for key in keys}


@dataclass(frozen=True)
class StatusWidgetData:
    """Service status, build results, alerts."""

    title: str
    icon: str | None = None
    icon_color: str | None = None
    subtitle: str | None = None
    value: str | None = None
    footer: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StatusWidgetData:
        fields = _text_fields(data, "icon", "iconColor", "subtitle", "value", "footer")
        return cls(
            title=_get(data, "title", str),
            icon=fields["icon"],
            icon_color=fields["iconColor"],
            subtitle=fields["subtitle"],
            value=fields["value"],
            footer=fields["footer"],
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            title=self.title,
            icon=self.icon,
            iconColor=self.icon_color,
            subtitle=self.subtitle,
            value=self.value,
            footer=self.footer,
        )

    def summary_lines(self) -> list[str]:
        lines = [f"title: {self.title}"]
        if self.value is not None:
            lines.append(f"value: {self.value}")
        return lines


@dataclass(frozen=True)
class NumberWidgetData:
    """Metrics, counts, KPIs."""

    value: int | float | str
    icon: str | None = None
    icon_color: str | None = None
    unit: str | None = None
    label: str | None = None
    trend: TrendDirection | None = None
    trend_value: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NumberWidgetData:
        fields = _text_fields(data, "icon", "iconColor", "unit", "label", "trendValue")
        raw_trend = _get(data, "trend", str, None)
        try:
            trend = TrendDirection(raw_trend) if raw_trend is not None else None
        except ValueError as err:
            raise WidgetInvalidJSONError(f"unknown trend '{raw_trend}'") from err
        return cls(
            value=_get(data, "value", (int, float, str)),
            icon=fields["icon"],
            icon_color=fields["iconColor"],
            unit=fields["unit"],
            label=fields["label"],
            trend=trend,
            trend_value=fields["trendValue"],
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            value=self.value,
            icon=self.icon,
            iconColor=self.icon_color,
            unit=self.unit,
            label=self.label,
            trend=self.trend.value if self.trend else None,
            trendValue=self.trend_value,
        )

    @property
    def display_value(self) -> str:
        """Whole numbers without decimals, other floats with two."""
        if isinstance(self.value, float):
            if self.value.is_integer():
                return str(int(self.value))
            return f"{self.value:.2f}"
        return str(self.value)

    def summary_lines(self) -> list[str]:
        lines = [f"value: {self.display_value}"]
        if self.label is not None:
            lines.append(f"label: {self.label}")
        return lines


@dataclass(frozen=True)
class GaugeWidgetData:
    """Percentages, progress, utilization."""

    value: float
    max: float
    label: str | None = None
    color: str | None = None
    show_percentage: bool | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GaugeWidgetData:
        return cls(
            value=_number(data, "value"),
            max=_number(data, "max"),
            label=_get(data, "label", str, None),
            color=_get(data, "color", str, None),
            show_percentage=_get(data, "showPercentage", bool, None),
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            value=self.value,
            max=self.max,
            label=self.label,
            color=self.color,
            showPercentage=self.show_percentage,
        )

    @property
    def percentage(self) -> float:
        if self.max <= 0:
            return 0.0
        return min(100.0, max(0.0, self.value / self.max * 100))

    def summary_lines(self) -> list[str]:
        lines = [f"value: {self.value:g} / {self.max:g}"]
        if self.label is not None:
            lines.append(f"label: {self.label}")
        return lines


@dataclass(frozen=True)
class ListWidgetItem:
    title: str
    icon: str | None = None
    icon_color: str | None = None
    subtitle: str | None = None
    value: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ListWidgetItem:
        fields = _text_fields(data, "icon", "iconColor", "subtitle", "value")
        return cls(
            title=_get(data, "title", str),
            icon=fields["icon"],
            icon_color=fields["iconColor"],
            subtitle=fields["subtitle"],
            value=fields["value"],
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            title=self.title,
            icon=self.icon,
            iconColor=self.icon_color,
            subtitle=self.subtitle,
            value=self.value,
        )


@dataclass(frozen=True)
class ListWidgetData:
    """Recent items, top N, activity feeds."""

    items: tuple[ListWidgetItem, ...]
    title: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ListWidgetData:
        raw_items = _get(data, "items", list)
        items = []
        for idx, item in enumerate(raw_items):
            if not isinstance(item, dict):
                raise WidgetInvalidJSONError(f"items[{idx}] is not an object")
            items.append(ListWidgetItem.from_dict(item))
        return cls(items=tuple(items), title=_get(data, "title", str, None))

    def to_dict(self) -> dict[str, Any]:
        return _compact(title=self.title, items=[item.to_dict() for item in self.items])

    def summary_lines(self) -> list[str]:
        lines = [f"items: {len(self.items)}"]
        if self.title is not None:
            lines.append(f"title: {self.title}")
        return lines


@dataclass(frozen=True)
class TextWidgetData:
    """Messages, notes, announcements."""

    body: str
    title: str | None = None
    footer: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TextWidgetData:
        return cls(
            body=_get(data, "body", str),
            title=_get(data, "title", str, None),
            footer=_get(data, "footer", str, None),
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(title=self.title, body=self.body, footer=self.footer)

    def summary_lines(self) -> list[str]:
        lines = []
        if self.title is not None:
            lines.append(f"title: {self.title}")
        body = self.body if len(self.body) <= 50 else f"{self.body[:50]}..."
        lines.append(f"body: {body}")
        return lines


WidgetData = StatusWidgetData | NumberWidgetData | GaugeWidgetData | ListWidgetData | TextWidgetData

_DATA_TYPES: dict[WidgetType, Any] = {
    WidgetType.STATUS: StatusWidgetData,
    WidgetType.NUMBER: NumberWidgetData,
    WidgetType.GAUGE: GaugeWidgetData,
    WidgetType.LIST: ListWidgetData,
    WidgetType.TEXT: TextWidgetData,
}


def _compact(**fields: Any) -> dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None}


@dataclass(frozen=True)
class WidgetResponse:
    """Decoded widget endpoint response."""

    type: WidgetType
    data: WidgetData

    @classmethod
    def from_dict(cls, obj: Any) -> WidgetResponse:
        """Decode ``{"type": ..., "data": {...}}``.

        Raises:
            WidgetInvalidJSONError: On an unknown type or any field error.
        """
        if not isinstance(obj, dict):
            raise WidgetInvalidJSONError("response must be a JSON object")
        raw_type = _get(obj, "type", str)
        try:
            widget_type = WidgetType(raw_type)
        except ValueError as err:
            raise WidgetInvalidJSONError(f"unknown widget type '{raw_type}'") from err
        data = _get(obj, "data", dict)
        return cls(type=widget_type, data=_DATA_TYPES[widget_type].from_dict(data))

    @classmethod
    def from_json(cls, text: str | bytes) -> WidgetResponse:
        try:
            obj = json.loads(text)
        except ValueError as err:
            raise WidgetInvalidJSONError(str(err)) from err
        return cls.from_dict(obj)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "data": self.data.to_dict()}

    def summary_lines(self) -> list[str]:
        return self.data.summary_lines()
