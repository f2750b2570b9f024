"""Event and filter models."""

from .events import Event, Importance, compare_importance, create_event
from .filter import EventFilter, matches_filter

__all__ = [
    # Events
    "Event",
    "Importance",
    "create_event",
    "compare_importance",
    # Filter
    "EventFilter",
    "matches_filter",
]
