"""Parsing and formatting helpers for the tail command."""

import json
import re
from datetime import datetime, timedelta, timezone

from rich.console import Console
from rich.text import Text

from ..errors import InvalidImportanceError
from ..models import Event, EventFilter, Importance

IMPORTANCE_STYLES = {
    Importance.CRITICAL: "red",
    Importance.HIGH: "yellow",
    Importance.NORMAL: "",
    Importance.LOW: "bright_black",
}

_RELATIVE_TIME = re.compile(r"^(\d+)([smhd])$")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 60 * 60, "d": 24 * 60 * 60}


def style_for_importance(importance: Importance) -> str:
    """Rich style used for an importance level."""
    return IMPORTANCE_STYLES.get(importance, "")


def parse_time(value: str, now: datetime | None = None) -> datetime | None:
    """
    Parse a relative ("30s", "15m", "1h", "2d") or ISO-8601 time.

    Returns:
        The resolved UTC datetime, or None if value is neither.
    """
    now = now or datetime.now(timezone.utc)

    match = _RELATIVE_TIME.match(value)
    if match:
        amount, unit = int(match.group(1)), match.group(2)
        return now - timedelta(seconds=amount * _UNIT_SECONDS[unit])

    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_importance(value: str | None) -> Importance | None:
    """Importance for value; None for missing or unknown values."""
    if value is None:
        return None
    try:
        return Importance.parse(value)
    except InvalidImportanceError:
        return None


def build_filter(
    source: str | None = None,
    type: str | None = None,
    importance: str | None = None,
) -> EventFilter | None:
    """EventFilter from CLI options, or None when nothing is set."""
    event_filter = EventFilter(
        source=source or None,
        type=type or None,
        min_importance=parse_importance(importance),
    )
    return None if event_filter.is_empty else event_filter


def format_timestamp(timestamp: int) -> str:
    """Epoch millis as 'YYYY-MM-DD HH:MM:SS.mmm' (UTC)."""
    moment = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%d %H:%M:%S.") + f"{moment.microsecond // 1000:03d}"


def _format_data(event: Event) -> str:
    if not event.data:
        return ""
    return json.dumps(event.data, separators=(",", ":"), default=str)


def format_event(event: Event, json_output: bool = False) -> str:
    """
    Format an event as a plain line.

    Default format:
        TIMESTAMP IMPORTANCE SOURCE TYPE [DATA]

    Example:
        2024-01-30 20:00:00.000 normal   mdxe-build build_started {"target":"production"}
    """
    if json_output:
        return json.dumps(event.to_wire(), separators=(",", ":"), default=str)

    line = (
        f"{format_timestamp(event.timestamp)} "
        f"{event.importance.value:<8} "
        f"{event.source} {event.type}"
    )
    data = _format_data(event)
    return f"{line} {data}" if data else line


def render_event(event: Event) -> Text:
    """Colored rendering of the default format."""
    text = Text()
    text.append(format_timestamp(event.timestamp), style="dim")
    text.append(" ")
    text.append(f"{event.importance.value:<8}", style=style_for_importance(event.importance))
    text.append(" ")
    text.append(event.source, style="cyan")
    text.append(" ")
    text.append(event.type)

    data = _format_data(event)
    if data:
        text.append(" ")
        text.append(data, style="dim")
    return text


class EventPrinter:
    """Writes events to stdout in the selected output mode."""

    def __init__(
        self,
        console: Console,
        json_output: bool = False,
        no_color: bool = False,
    ):
        self._console = console
        self._json_output = json_output
        self._no_color = no_color

    def print(self, event: Event) -> None:
        if self._json_output or self._no_color:
            self._console.print(
                format_event(event, json_output=self._json_output),
                markup=False,
                highlight=False,
                soft_wrap=True,
            )
        else:
            self._console.print(render_event(event), soft_wrap=True)

    def print_many(self, events: list[Event]) -> None:
        for event in events:
            self.print(event)
