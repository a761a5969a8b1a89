"""Human-readable and JSON schema documentation for widget responses."""

from __future__ import annotations

from typing import Any

from .response import WidgetType

SCHEMA_URL = "https://raw.githubusercontent.com/851-labs/MoltbotWidgets/main/schema/widget.v1.json"

OVERVIEW = f"""\
Widget Schema Documentation
===========================

Your API endpoint should return JSON matching this schema.

Schema URL: {SCHEMA_URL}

Response Format
---------------
{{
  "type": "<widget-type>",
  "data": {{ ... }}
}}

Widget Types
------------
• status  - Service status, build results, alerts
• number  - Metrics, counts, KPIs
• gauge   - Percentages, progress, utilization
• list    - Recent items, activity feeds
• text    - Messages, notes, announcements

Use --type <type> for detailed schema of each type.

Colors
------
Named: red, orange, yellow, green, mint, teal, cyan, blue, indigo, purple, pink, brown, gray
Hex:   #RRGGBB (e.g., #22c55e)

Icons
-----
Any SF Symbol name (e.g., checkmark.circle.fill, server.rack)
"""

TYPE_DOCS: dict[WidgetType, str] = {
    WidgetType.STATUS: """\
Status Widget
=============

Best for: service status, build results, alerts

Example:
{
  "type": "status",
  "data": {
    "icon": "checkmark.circle.fill",
    "iconColor": "green",
    "title": "API Server",
    "subtitle": "us-east-1",
    "value": "Healthy",
    "footer": "99.9% uptime"
  }
}

Fields:
• title      (required)  string
• icon       (optional)  SF Symbol name
• iconColor  (optional)  color value
• subtitle   (optional)  string
• value      (optional)  string
• footer     (optional)  string
""",
    WidgetType.NUMBER: """\
Number Widget
=============

Best for: metrics, counts, KPIs

Example:
{
  "type": "number",
  "data": {
    "icon": "arrow.triangle.pull",
    "value": 12,
    "unit": "PRs",
    "label": "Open Pull Requests",
    "trend": "up",
    "trendValue": "+3"
  }
}

Fields:
• value       (required)  string or number
• icon        (optional)  SF Symbol name
• iconColor   (optional)  color value
• unit        (optional)  string
• label       (optional)  string
• trend       (optional)  "up", "down", or "neutral"
• trendValue  (optional)  string
""",
    WidgetType.GAUGE: """\
Gauge Widget
============

Best for: percentages, progress, utilization

Example:
{
  "type": "gauge",
  "data": {
    "value": 73,
    "max": 100,
    "label": "CPU Usage",
    "color": "orange",
    "showPercentage": true
  }
}

Fields:
• value           (required)  number
• max             (required)  number
• label           (optional)  string
• color           (optional)  color value
• showPercentage  (optional)  boolean, default true
""",
    WidgetType.LIST: """\
List Widget
===========

Best for: recent items, top N, activity feeds

Example:
{
  "type": "list",
  "data": {
    "title": "Recent Deploys",
    "items": [
      { "icon": "checkmark.circle.fill", "title": "v2.3.1", "subtitle": "10 min ago" },
      { "icon": "xmark.circle.fill", "title": "v2.3.0", "value": "Failed" }
    ]
  }
}

Fields:
• items  (required)  array of items
• title  (optional)  string

Item Fields:
• title     (required)  string
• icon      (optional)  SF Symbol name
• iconColor (optional)  color value
• subtitle  (optional)  string
• value     (optional)  string
""",
    WidgetType.TEXT: """\
Text Widget
===========

Best for: messages, notes, announcements

Example:
{
  "type": "text",
  "data": {
    "title": "Daily Standup",
    "body": "Working on the widgets feature.",
    "footer": "Updated 5 min ago"
  }
}

Fields:
• body    (required)  string
• title   (optional)  string
• footer  (optional)  string
""",
}


def json_schema() -> dict[str, Any]:
    """Top-level response schema (draft 2020-12)."""
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "$id": SCHEMA_URL,
        "title": "Moltbot Widget Response",
        "type": "object",
        "required": ["type", "data"],
        "properties": {
            "type": {"type": "string", "enum": [t.value for t in WidgetType]},
            "data": {"type": "object"},
        },
    }


def type_doc(name: str) -> str | None:
    try:
        return TYPE_DOCS[WidgetType(name.lower())]
    except ValueError:
        return None
