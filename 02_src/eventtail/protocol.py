"""Wire schemas for the history endpoint and the live tail protocol."""

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from .logging_config import get_logger
from .models import Event, EventFilter, Importance

logger = get_logger(__name__)


class WireEvent(BaseModel):
    """Event as it appears in JSON payloads."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    timestamp: int
    source: str
    type: str
    importance: Importance = Importance.NORMAL
    data: dict[str, Any] = Field(default_factory=dict)
    trace_id: str | None = Field(None, alias="traceId")
    causation_id: str | None = Field(None, alias="causationId")

    @field_validator("data", mode="before")
    @classmethod
    def _none_data(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("importance", mode="before")
    @classmethod
    def _none_importance(cls, value: Any) -> Any:
        return Importance.NORMAL if value is None else value

    def to_event(self) -> Event:
        return Event(
            timestamp=self.timestamp,
            source=self.source,
            type=self.type,
            importance=self.importance,
            data=self.data,
            trace_id=self.trace_id,
            causation_id=self.causation_id,
        )


class WirePage(BaseModel):
    """One page returned by the history endpoint.

    Events stay raw until valid_events() checks them one by one.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    events: list[Any] = Field(default_factory=list)
    has_more: bool = Field(False, alias="hasMore")
    next_offset: int | None = Field(None, alias="nextOffset")

    @field_validator("events", mode="before")
    @classmethod
    def _none_events(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("has_more", mode="before")
    @classmethod
    def _none_has_more(cls, value: Any) -> Any:
        return False if value is None else value

    def valid_events(self) -> list[WireEvent]:
        """Events that validate, in page order. Invalid entries are logged and skipped."""
        valid = []
        for raw in self.events:
            try:
                valid.append(_wire_event_adapter.validate_python(raw))
            except ValidationError as e:
                logger.debug("Dropped malformed event %.200r: %s", raw, e)
        return valid


_wire_event_adapter: TypeAdapter[WireEvent] = TypeAdapter(WireEvent)


# Server -> client frames


class EventFrame(BaseModel):
    type: Literal["event"]
    event: WireEvent


class PongFrame(BaseModel):
    type: Literal["pong"]
    timestamp: float | None = None


class SubscribedFrame(BaseModel):
    type: Literal["subscribed"]
    filter: dict[str, Any] | None = None


class UnsubscribedFrame(BaseModel):
    type: Literal["unsubscribed"]


class ErrorFrame(BaseModel):
    type: Literal["error"]
    message: str = ""


ServerFrame = Annotated[
    Union[EventFrame, PongFrame, SubscribedFrame, UnsubscribedFrame, ErrorFrame],
    Field(discriminator="type"),
]

_server_frame_adapter: TypeAdapter[ServerFrame] = TypeAdapter(ServerFrame)


def parse_server_frame(raw: str | bytes) -> ServerFrame | None:
    """Decode a server frame; None for malformed or unknown frames."""
    try:
        return _server_frame_adapter.validate_json(raw)
    except ValidationError:
        return None


# Client -> server frames


def _encode(message: dict[str, Any]) -> str:
    return json.dumps(message, separators=(",", ":"))


def subscribe_frame(event_filter: EventFilter | None = None) -> str:
    """Encode a subscribe frame; the filter key is omitted for an empty filter."""
    message: dict[str, Any] = {"type": "subscribe"}
    if event_filter is not None and not event_filter.is_empty:
        message["filter"] = event_filter.to_wire()
    return _encode(message)


def unsubscribe_frame() -> str:
    return _encode({"type": "unsubscribe"})


def ping_frame() -> str:
    return _encode({"type": "ping"})
