"""JSON-file-backed store for custom widget configurations."""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from ..errors import (
    DuplicateWidgetNameError,
    WidgetConfigError,
    WidgetConfigSaveError,
    WidgetNotFoundError,
)
from .config import CustomWidgetConfig, utcnow

_LOGGER = logging.getLogger(__name__)

APP_GROUP_ID = "group.com.moltbot.widgets"
CONFIG_FILE_NAME = "custom-widgets.json"
FILE_VERSION = 1


def default_config_path() -> Path:
    """Shared app-group container on macOS, XDG config elsewhere."""
    home = Path.home()
    if sys.platform == "darwin":
        return home / "Library" / "Group Containers" / APP_GROUP_ID / CONFIG_FILE_NAME
    return home / ".config" / "moltbot-widgets" / CONFIG_FILE_NAME


class WidgetConfigStore:
    """Read and write ``{"version": 1, "widgets": [...]}`` at one path.

    Every operation re-reads the file so concurrent CLI and widget processes
    see each other's writes.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or default_config_path()

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    def load_widgets(self) -> list[CustomWidgetConfig]:
        """Return all widgets; an absent or unreadable file yields []."""
        try:
            return self._read()
        except WidgetConfigError as err:
            _LOGGER.warning("Failed to load widget config from %s: %s", self.path, err)
            return []

    def _read(self) -> list[CustomWidgetConfig]:
        """Strict read used before writing, so a corrupt file is never replaced.

        Raises:
            WidgetConfigError: If the file exists but cannot be decoded.
        """
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as err:
            raise WidgetConfigError(f"Cannot read {self.path}: {err}") from err
        if not isinstance(data, dict) or not isinstance(data.get("widgets", []), list):
            raise WidgetConfigError("widgets file must be an object with a 'widgets' list")
        return [CustomWidgetConfig.from_dict(item) for item in data.get("widgets", [])]

    def get_widget(self, widget_id: str) -> CustomWidgetConfig | None:
        return next((w for w in self.load_widgets() if w.id == widget_id), None)

    def get_widget_by_name(self, name: str) -> CustomWidgetConfig | None:
        wanted = name.lower()
        return next((w for w in self.load_widgets() if w.name.lower() == wanted), None)

    def find(self, identifier: str) -> CustomWidgetConfig | None:
        """Look a widget up by id, then by name."""
        return self.get_widget(identifier) or self.get_widget_by_name(identifier)

    # -------------------------------------------------------------------------
    # Write
    # -------------------------------------------------------------------------

    def add_widget(self, widget: CustomWidgetConfig) -> None:
        widgets = self._read()
        if any(w.name.lower() == widget.name.lower() for w in widgets):
            raise DuplicateWidgetNameError(widget.name)
        widgets.append(widget)
        self._save(widgets)

    def update_widget(self, widget: CustomWidgetConfig) -> CustomWidgetConfig:
        """Replace the widget with the same id; returns the stored copy."""
        widgets = self._read()
        index = next((i for i, w in enumerate(widgets) if w.id == widget.id), None)
        if index is None:
            raise WidgetNotFoundError(widget.id)
        if any(w.id != widget.id and w.name.lower() == widget.name.lower() for w in widgets):
            raise DuplicateWidgetNameError(widget.name)

        updated = replace(widget, updated_at=utcnow())
        widgets[index] = updated
        self._save(widgets)
        return updated

    def delete_widget(self, widget_id: str) -> None:
        widgets = self._read()
        remaining = [w for w in widgets if w.id != widget_id]
        if len(remaining) == len(widgets):
            raise WidgetNotFoundError(widget_id)
        self._save(remaining)

    def _save(self, widgets: list[CustomWidgetConfig]) -> None:
        document: dict[str, Any] = {
            "version": FILE_VERSION,
            "widgets": [w.to_dict() for w in widgets],
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(document, indent=2, sort_keys=True) + "\n")
        except OSError as err:
            raise WidgetConfigSaveError(f"Failed to save configuration: {err}") from err
