"""Assistant skill file that teaches Moltbot to drive this CLI."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

_LOGGER = logging.getLogger(__name__)

SKILL_NAME = "moltbot-widgets"
SKILL_FILE_NAME = "SKILL.md"
CONFIG_DIR_NAMES = (".clawdbot", ".moltbot")

SKILL_CONTENT = """\
---
name: moltbot-widgets
description: Create and manage desktop widgets that display real-time data from any URL/API endpoint. Use this when the user wants to create widgets, monitor APIs, display live data on their desktop, or asks about desktop widgets.
---

# Moltbot Widgets

Create dynamic widgets that fetch and display data from any API endpoint.

## When to Use This Skill

Use this skill when the user:
- Wants to create a desktop widget
- Asks to monitor an API or service on their desktop
- Wants to display live data (build status, server health, metrics)
- Mentions dashboard, widget, or desktop monitoring

## Creating Widgets

Widgets fetch JSON from a URL at a configurable interval. The JSON must match
the widget schema (`moltbot-widgets schema`).

```bash
moltbot-widgets create \\
  --name "<display name>" \\
  --url "<api endpoint>" \\
  [--header "Key: Value"] \\
  [--basic-auth "user:pass"] \\
  [--query "key=value"] \\
  --interval <minutes>
```

Authentication options:

```bash
--header "Authorization: Bearer token"  # HTTP header (can repeat)
--basic-auth "username:password"        # Basic authentication
--query "api_key=xyz123"                # Query parameter (can repeat)
```

## Widget Types

The endpoint must return `{"type": ..., "data": {...}}`:

- `status`: service status, build results, alerts. Required: `title`
- `number`: metrics, counts, KPIs. Required: `value`
- `gauge`: percentages, progress, utilization. Required: `value`, `max`
- `list`: recent items, top N, activity feeds. Required: `items` (each needs `title`)
- `text`: messages, notes, announcements. Required: `body`

Example:

```json
{
  "type": "gauge",
  "data": {"value": 73, "max": 100, "label": "CPU Usage", "color": "orange"}
}
```

Colors: `red`, `orange`, `yellow`, `green`, `mint`, `teal`, `cyan`, `blue`,
`indigo`, `purple`, `pink`, `brown`, `gray`, `primary`, `secondary`, or hex
`#RRGGBB`. Icons are SF Symbol names such as `checkmark.circle.fill`.

## Other Commands

```bash
moltbot-widgets list
moltbot-widgets update <id> --interval 10
moltbot-widgets delete <id>
moltbot-widgets validate "https://api.example.com/widget"
moltbot-widgets refresh
moltbot-widgets gateway health
moltbot-widgets gateway usage --days 7
```

## Troubleshooting

1. Check the URL is accessible: `curl -s <url> | jq`
2. Validate the response: `moltbot-widgets validate <url> --show-json`
3. Ensure the JSON has both `type` and `data` fields
"""


def _home(home: Path | None) -> Path:
    return home if home is not None else Path.home()


def skill_dirs(home: Path | None = None) -> list[Path]:
    """All locations a skill may be installed in, in lookup order."""
    base = _home(home)
    return [base / name / "skills" / SKILL_NAME for name in CONFIG_DIR_NAMES]


def install_base(home: Path | None = None) -> Path:
    """First existing Moltbot config directory, else ``~/.moltbot``."""
    base = _home(home)
    for name in CONFIG_DIR_NAMES:
        candidate = base / name
        if candidate.is_dir():
            return candidate
    return base / CONFIG_DIR_NAMES[-1]


def installed_skill_path(home: Path | None = None) -> Path | None:
    for directory in skill_dirs(home):
        path = directory / SKILL_FILE_NAME
        if path.is_file():
            return path
    return None


def install_skill(home: Path | None = None) -> Path:
    """Write SKILL.md and return its path."""
    skill_dir = install_base(home) / "skills" / SKILL_NAME
    skill_dir.mkdir(parents=True, exist_ok=True)
    path = skill_dir / SKILL_FILE_NAME
    path.write_text(SKILL_CONTENT, encoding="utf-8")
    _LOGGER.debug("Wrote skill file %s", path)
    return path


def uninstall_skill(home: Path | None = None) -> list[Path]:
    """Remove every installed copy; returns the directories removed."""
    removed = []
    for directory in skill_dirs(home):
        if directory.exists():
            shutil.rmtree(directory)
            removed.append(directory)
    return removed
