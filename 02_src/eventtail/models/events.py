"""Event data model."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import InvalidImportanceError


class Importance(str, Enum):
    """Event importance, ordered low < normal < high < critical."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def ordinal(self) -> int:
        return _ORDINALS[self]

    @classmethod
    def parse(cls, value: "Importance | str") -> "Importance":
        """Return the Importance for value, raising InvalidImportanceError."""
        if isinstance(value, Importance):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidImportanceError(value) from None


_ORDINALS = {
    Importance.LOW: 0,
    Importance.NORMAL: 1,
    Importance.HIGH: 2,
    Importance.CRITICAL: 3,
}


@dataclass(frozen=True)
class Event:
    """A single build, test or deployment event."""

    timestamp: int  # epoch millis
    source: str
    type: str
    importance: Importance
    data: dict[str, Any] = field(default_factory=dict)
    trace_id: str | None = None
    causation_id: str | None = None

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape used on the wire."""
        payload: dict[str, Any] = {
            "timestamp": self.timestamp,
            "source": self.source,
            "type": self.type,
            "importance": self.importance.value,
            "data": dict(self.data),
        }
        if self.trace_id is not None:
            payload["traceId"] = self.trace_id
        if self.causation_id is not None:
            payload["causationId"] = self.causation_id
        return payload


def create_event(
    source: str,
    type: str,
    importance: Importance | str | None = Importance.NORMAL,
    data: dict[str, Any] | None = None,
    trace_id: str | None = None,
    causation_id: str | None = None,
) -> Event:
    """
    Create an Event stamped with the current time.

    An importance of None means normal.

    Raises:
        InvalidImportanceError: If importance is not a known level.
    """
    return Event(
        timestamp=int(time.time() * 1000),
        source=source,
        type=type,
        importance=Importance.NORMAL if importance is None else Importance.parse(importance),
        data=dict(data) if data else {},
        trace_id=trace_id,
        causation_id=causation_id,
    )


def compare_importance(a: Importance | str, b: Importance | str) -> int:
    """Negative if a < b, zero if equal, positive if a > b."""
    return Importance.parse(a).ordinal - Importance.parse(b).ordinal
