"""Event filter and matching predicate."""

from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Any

from .events import Event, Importance


@dataclass(frozen=True)
class EventFilter:
    """Filter applied to events. Unset fields match everything."""

    source: str | None = None  # exact or glob, e.g. "mdxe-*"
    type: str | None = None  # exact
    min_importance: Importance | str | None = None

    def __post_init__(self) -> None:
        if self.min_importance is not None:
            object.__setattr__(
                self, "min_importance", Importance.parse(self.min_importance)
            )

    @property
    def is_empty(self) -> bool:
        return self.source is None and self.type is None and self.min_importance is None

    def to_wire(self) -> dict[str, Any]:
        """Serialize set fields to the camelCase wire shape."""
        payload: dict[str, Any] = {}
        if self.source is not None:
            payload["source"] = self.source
        if self.type is not None:
            payload["type"] = self.type
        if self.min_importance is not None:
            payload["minImportance"] = self.min_importance.value
        return payload


def _source_matches(source: str, pattern: str) -> bool:
    if "*" not in pattern and "?" not in pattern and "[" not in pattern:
        return source == pattern
    return fnmatchcase(source, pattern)


def matches_filter(event: Event, event_filter: EventFilter | None) -> bool:
    """Return True if event satisfies every set field of event_filter."""
    if event_filter is None:
        return True

    if event_filter.source is not None and not _source_matches(
        event.source, event_filter.source
    ):
        return False

    if event_filter.type is not None and event.type != event_filter.type:
        return False

    if event_filter.min_importance is not None:
        try:
            importance = Importance.parse(event.importance)
        except ValueError:
            return False
        if importance.ordinal < event_filter.min_importance.ordinal:
            return False

    return True
