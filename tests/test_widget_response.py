"""Tests for widget response decoding."""

from __future__ import annotations

import json

import pytest

from moltbot_widgets.errors import WidgetInvalidJSONError
from moltbot_widgets.widgets.response import (
    GaugeWidgetData,
    ListWidgetData,
    NumberWidgetData,
    StatusWidgetData,
    TextWidgetData,
    TrendDirection,
    WidgetResponse,
    WidgetType,
)


class TestDecode:
    """Tests for WidgetResponse.from_dict() and from_json()."""

    def test_status(self):
        response = WidgetResponse.from_dict(
            {
                "type": "status",
                "data": {"title": "API", "iconColor": "green", "value": "Healthy"},
            }
        )
        assert response.type is WidgetType.STATUS
        assert response.data == StatusWidgetData(title="API", icon_color="green", value="Healthy")
        assert response.summary_lines() == ["title: API", "value: Healthy"]

    def test_number(self):
        response = WidgetResponse.from_json(
            '{"type": "number", "data": {"value": 12, "trend": "up", "trendValue": "+3"}}'
        )
        assert response.data == NumberWidgetData(
            value=12, trend=TrendDirection.UP, trend_value="+3"
        )

    def test_gauge(self):
        response = WidgetResponse.from_dict(
            {"type": "gauge", "data": {"value": 73, "max": 100, "showPercentage": True}}
        )
        assert response.data == GaugeWidgetData(value=73.0, max=100.0, show_percentage=True)
        assert response.summary_lines() == ["value: 73 / 100"]

    def test_list(self):
        response = WidgetResponse.from_dict(
            {
                "type": "list",
                "data": {
                    "title": "Deploys",
                    "items": [{"title": "v2.3.1", "subtitle": "10 min ago"}, {"title": "v2.3.0"}],
                },
            }
        )
        assert isinstance(response.data, ListWidgetData)
        assert [item.title for item in response.data.items] == ["v2.3.1", "v2.3.0"]
        assert response.summary_lines() == ["items: 2", "title: Deploys"]

    def test_text_summary_truncates(self):
        body = "x" * 60
        response = WidgetResponse.from_dict({"type": "text", "data": {"body": body}})
        assert response.data == TextWidgetData(body=body)
        assert response.summary_lines() == [f"body: {'x' * 50}..."]

    @pytest.mark.parametrize(
        ("obj", "fragment"),
        [
            ([], "JSON object"),
            ({"data": {}}, "'type'"),
            ({"type": "chart", "data": {}}, "chart"),
            ({"type": "status"}, "'data'"),
            ({"type": "status", "data": {}}, "'title'"),
            ({"type": "number", "data": {"value": True}}, "'value'"),
            ({"type": "number", "data": {"value": 1, "trend": "sideways"}}, "sideways"),
            ({"type": "gauge", "data": {"value": 1}}, "'max'"),
            ({"type": "gauge", "data": {"value": "1", "max": 2}}, "'value'"),
            ({"type": "list", "data": {"items": [{}]}}, "'title'"),
            ({"type": "list", "data": {"items": ["a"]}}, "items[0]"),
            ({"type": "text", "data": {"title": "t"}}, "'body'"),
        ],
    )
    def test_invalid(self, obj, fragment):
        with pytest.raises(WidgetInvalidJSONError) as exc_info:
            WidgetResponse.from_dict(obj)
        assert fragment in str(exc_info.value)

    def test_invalid_json_text(self):
        with pytest.raises(WidgetInvalidJSONError, match="Invalid JSON"):
            WidgetResponse.from_json(b"{nope")

    def test_to_dict_is_camel_case(self):
        obj = {
            "type": "number",
            "data": {"value": 1.5, "iconColor": "red", "trend": "down", "trendValue": "-2"},
        }
        assert WidgetResponse.from_json(json.dumps(obj)).to_dict() == obj


class TestDisplayHelpers:
    """Tests for derived display values."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(12, "12"), (12.0, "12"), (3.14159, "3.14"), ("N/A", "N/A")],
    )
    def test_number_display_value(self, value, expected):
        assert NumberWidgetData(value=value).display_value == expected

    @pytest.mark.parametrize(
        ("value", "maximum", "expected"),
        [(50, 200, 25.0), (150, 100, 100.0), (-5, 100, 0.0), (5, 0, 0.0)],
    )
    def test_gauge_percentage(self, value, maximum, expected):
        assert GaugeWidgetData(value=value, max=maximum).percentage == expected
