"""Historical event retrieval and polling."""

from .fetcher import (
    HistoricalPage,
    HistoricalQuery,
    build_query_url,
    fetch_historical_events,
)
from .poller import HistoricalTailPoller, IHistoricalPoller, dedup_key

__all__ = [
    "HistoricalQuery",
    "HistoricalPage",
    "build_query_url",
    "fetch_historical_events",
    "IHistoricalPoller",
    "HistoricalTailPoller",
    "dedup_key",
]
