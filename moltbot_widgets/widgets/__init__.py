"""Custom HTTP widgets: configuration, storage, fetching and decoding."""

from .config import BasicAuth, CustomWidgetConfig, HeaderAuth, QueryAuth, WidgetAuth
from .fetcher import WidgetFetcher
from .response import WidgetResponse, WidgetType
from .store import WidgetConfigStore

__all__ = [
    "BasicAuth",
    "CustomWidgetConfig",
    "HeaderAuth",
    "QueryAuth",
    "WidgetAuth",
    "WidgetConfigStore",
    "WidgetFetcher",
    "WidgetResponse",
    "WidgetType",
]
