"""Polling tail over the history endpoint with a moving watermark and dedup."""

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol

from ..config import DEFAULT_DEDUP_WINDOW_MS, DEFAULT_POLL_INTERVAL_MS
from ..logging_config import get_logger
from ..models import Event, EventFilter
from ..scheduling import ScheduledTask, call_every, monotonic_ms, notify
from .fetcher import HistoricalPage, HistoricalQuery, fetch_historical_events

logger = get_logger(__name__)


Fetcher = Callable[[HistoricalQuery], Awaitable[HistoricalPage]]
EventsHandler = Callable[[list[Event]], Any]
ErrorHandler = Callable[[Exception], Any]


def dedup_key(event: Event) -> str:
    """Trace id when present, else timestamp:source:type."""
    if event.trace_id:
        return event.trace_id
    return f"{event.timestamp}:{event.source}:{event.type}"


class IHistoricalPoller(Protocol):
    """Periodic history fetch that emits only events not seen recently."""

    def start(self) -> None:
        """Poll now, then every poll interval until stopped."""
        ...

    def stop(self) -> None:
        """Cancel the pending poll. Idempotent."""
        ...

    def is_polling(self) -> bool:
        """True between start() and stop()."""
        ...


class HistoricalTailPoller:
    """Follows the history endpoint, advancing a timestamp watermark."""

    def __init__(
        self,
        base_url: str,
        on_events: EventsHandler,
        filter: EventFilter | None = None,
        on_error: ErrorHandler | None = None,
        poll_interval_ms: float = DEFAULT_POLL_INTERVAL_MS,
        dedup_window_ms: float = DEFAULT_DEDUP_WINDOW_MS,
        fetcher: Fetcher | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self._base_url = base_url
        self._filter = filter
        self._on_events = on_events
        self._on_error = on_error
        self._poll_interval_ms = poll_interval_ms
        self._dedup_window_ms = dedup_window_ms
        self._fetcher = fetcher or fetch_historical_events
        self._clock = clock or monotonic_ms

        self._watermark: int | None = None
        self._seen: dict[str, float] = {}  # dedup key -> seen at (clock millis)
        self._polling = False
        self._timer: ScheduledTask | None = None

    @property
    def watermark(self) -> int | None:
        """Highest event timestamp seen so far, in epoch millis."""
        return self._watermark

    def start(self) -> None:
        """Poll now, then every poll interval until stopped."""
        if self._polling:
            return

        self._polling = True
        self._timer = call_every(
            self._poll_interval_ms,
            self._poll,
            immediate=True,
            name="historical-tail-poll",
        )
        logger.info(
            "Polling %s every %sms", self._base_url, self._poll_interval_ms
        )

    def stop(self) -> None:
        """Cancel the pending poll. Idempotent."""
        if self._timer is None:
            return

        self._polling = False
        self._timer.cancel()
        self._timer = None
        logger.info("Stopped polling %s", self._base_url)

    def is_polling(self) -> bool:
        return self._polling

    async def _poll(self) -> None:
        timer = self._timer
        self._evict_expired()

        since = None
        if self._watermark is not None:
            since = datetime.fromtimestamp(self._watermark / 1000, tz=timezone.utc)
        query = HistoricalQuery(
            base_url=self._base_url,
            since=since,
            filter=self._filter,
        )

        try:
            page = await self._fetcher(query)
        except Exception as e:
            if not self._is_current(timer):
                return
            logger.warning("Historical poll failed: %s", e)
            await notify(self._on_error, e)
            return

        if not self._is_current(timer):
            return

        new_events = self._take_unseen(page.events)
        self._advance_watermark(page.events)
        logger.debug(
            "Polled %d event(s), %d new, watermark=%s",
            len(page.events),
            len(new_events),
            self._watermark,
            extra={
                "url": self._base_url,
                "new_events": len(new_events),
                "watermark": self._watermark,
            },
        )

        await notify(self._on_events, new_events)

    def _is_current(self, timer: ScheduledTask | None) -> bool:
        return self._polling and timer is not None and self._timer is timer

    def _evict_expired(self) -> None:
        cutoff = self._clock() - self._dedup_window_ms
        expired = [key for key, seen_at in self._seen.items() if seen_at < cutoff]
        for key in expired:
            del self._seen[key]

    def _take_unseen(self, events: list[Event]) -> list[Event]:
        now = self._clock()
        new_events = []
        for event in events:
            key = dedup_key(event)
            if key in self._seen:
                continue
            self._seen[key] = now
            new_events.append(event)
        return new_events

    def _advance_watermark(self, events: list[Event]) -> None:
        # Covers duplicates as well as new events.
        if not events:
            return
        newest = max(event.timestamp for event in events)
        if self._watermark is None or newest > self._watermark:
            self._watermark = newest
