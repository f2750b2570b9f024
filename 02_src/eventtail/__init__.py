"""eventtail: live and historical tailing of build and deploy events."""

from .errors import EventTailError, HistoricalFetchError, InvalidImportanceError
from .historical import (
    HistoricalPage,
    HistoricalQuery,
    HistoricalTailPoller,
    IHistoricalPoller,
    build_query_url,
    fetch_historical_events,
)
from .live import ITailClient, TailClient, TailClientMetrics
from .models import (
    Event,
    EventFilter,
    Importance,
    compare_importance,
    create_event,
    matches_filter,
)

__all__ = [
    # Models
    "Event",
    "Importance",
    "EventFilter",
    "create_event",
    "compare_importance",
    "matches_filter",
    # Historical
    "HistoricalQuery",
    "HistoricalPage",
    "build_query_url",
    "fetch_historical_events",
    "IHistoricalPoller",
    "HistoricalTailPoller",
    # Live
    "ITailClient",
    "TailClient",
    "TailClientMetrics",
    # Errors
    "EventTailError",
    "InvalidImportanceError",
    "HistoricalFetchError",
]
