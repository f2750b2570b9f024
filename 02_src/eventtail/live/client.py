"""Live tail client over a persistent WebSocket connection.

Protocol (one JSON object per text frame):

    client -> server   {"type": "subscribe", "filter"?}, {"type": "unsubscribe"},
                       {"type": "ping"}
    server -> client   {"type": "event", "event"}, {"type": "pong", "timestamp"},
                       {"type": "subscribed"}, {"type": "unsubscribed"},
                       {"type": "error", "message"}

The client auto-subscribes on every open, keeps a ping interval running while
open, and optionally reconnects with exponential backoff after abnormal
closes.
"""

from dataclasses import dataclass
from typing import Any, Callable, Protocol, Union

from websockets.exceptions import ConnectionClosed

from ..config import (
    DEFAULT_PING_INTERVAL_MS,
    DEFAULT_RECONNECT_BASE_MS,
    DEFAULT_RECONNECT_MAX_MS,
)
from ..logging_config import get_logger
from ..models import Event, EventFilter
from ..protocol import (
    ErrorFrame,
    EventFrame,
    PongFrame,
    parse_server_frame,
    ping_frame,
    subscribe_frame,
    unsubscribe_frame,
)
from ..scheduling import ScheduledTask, call_every, call_later, monotonic_ms, notify
from .transport import (
    ABNORMAL_CLOSURE,
    NORMAL_CLOSURE,
    ITransport,
    TransportFactory,
    connect_websocket,
)

logger = get_logger(__name__)


EventHandler = Callable[[Event], Any]
ErrorHandler = Callable[[Exception], Any]


# Connection states. Timers and the transport are held only by the state
# that owns them.


@dataclass(frozen=True)
class Disconnected:
    """No socket and nothing scheduled."""


@dataclass(frozen=True)
class Connecting:
    """A socket is being opened by task."""

    task: ScheduledTask


@dataclass(frozen=True)
class Open:
    """Connected; task reads frames, keepalive sends pings."""

    transport: ITransport
    task: ScheduledTask
    keepalive: ScheduledTask


@dataclass(frozen=True)
class Reconnecting:
    """Waiting delay_ms before reconnect attempt number attempt."""

    delay_ms: float
    attempt: int
    timer: ScheduledTask


ConnectionState = Union[Disconnected, Connecting, Open, Reconnecting]


@dataclass(frozen=True)
class TailClientMetrics:
    """Connection metrics snapshot."""

    messages_received: int
    connection_attempts: int
    last_ping_latency_ms: float | None = None


def backoff_delay_ms(attempt: int, base_ms: float, max_ms: float) -> float:
    """Reconnect delay for a zero-based attempt: min(base * 2^attempt, max)."""
    return min(base_ms * (2**attempt), max_ms)


class ITailClient(Protocol):
    """Live event stream with subscribe/ping protocol."""

    def connect(self) -> None:
        """Open the connection unless one is open or opening."""
        ...

    def disconnect(self) -> None:
        """Close the connection and suppress reconnection."""
        ...

    async def subscribe(self, filter: EventFilter | None = None) -> None:
        """Subscribe with filter (no-op unless open)."""
        ...

    async def unsubscribe(self) -> None:
        """Unsubscribe (no-op unless open)."""
        ...

    def is_connected(self) -> bool:
        """True while the connection is open."""
        ...

    def get_metrics(self) -> TailClientMetrics:
        """Current metrics."""
        ...


class TailClient:
    """WebSocket client for real-time event tailing.

    Example:
        client = TailClient(
            url="ws://localhost:8000/tail",
            filter=EventFilter(source="mdxe-*", min_importance="high"),
            on_event=print,
            reconnect=True,
        )
        client.connect()
        ...
        client.disconnect()
    """

    def __init__(
        self,
        url: str,
        filter: EventFilter | None = None,
        on_event: EventHandler | None = None,
        on_connect: Callable[[], Any] | None = None,
        on_disconnect: Callable[[], Any] | None = None,
        on_error: ErrorHandler | None = None,
        reconnect: bool = False,
        reconnect_base_ms: float = DEFAULT_RECONNECT_BASE_MS,
        reconnect_max_ms: float = DEFAULT_RECONNECT_MAX_MS,
        ping_interval_ms: float = DEFAULT_PING_INTERVAL_MS,
        transport_factory: TransportFactory | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self._url = url
        self._filter = filter
        self._on_event = on_event
        self._on_connect = on_connect
        self._on_disconnect = on_disconnect
        self._on_error = on_error
        self._reconnect = reconnect
        self._reconnect_base_ms = reconnect_base_ms
        self._reconnect_max_ms = reconnect_max_ms
        self._ping_interval_ms = ping_interval_ms
        self._transport_factory = transport_factory or connect_websocket
        self._clock = clock or monotonic_ms

        self._state: ConnectionState = Disconnected()
        self._last_connection: ScheduledTask | None = None
        self._attempt = 0
        self._explicit_disconnect = False

        # Last-used filter, re-sent on every open; unsubscribe() keeps it
        self._current_filter = filter
        self._resubscribe = filter is not None

        self._last_ping_sent: float | None = None

        # Metrics
        self._messages_received = 0
        self._connection_attempts = 0
        self._last_ping_latency_ms: float | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    def connect(self) -> None:
        """Open the connection unless one is open or opening.

        Must be called with a running event loop.
        """
        if isinstance(self._state, (Connecting, Open)):
            return

        if isinstance(self._state, Reconnecting):
            self._state.timer.cancel()

        self._explicit_disconnect = False
        self._connection_attempts += 1

        task = ScheduledTask(self._run_connection(), name="tail-connection")
        self._state = Connecting(task=task)
        self._last_connection = task
        logger.info("Connecting to %s", self._url)

    def disconnect(self) -> None:
        """Close the connection and suppress reconnection. Idempotent."""
        self._explicit_disconnect = True
        state = self._state
        self._state = Disconnected()
        self._last_ping_sent = None

        if isinstance(state, Reconnecting):
            state.timer.cancel()
        elif isinstance(state, Connecting):
            state.task.cancel()
        elif isinstance(state, Open):
            state.keepalive.cancel()
            # The connection task closes the transport as it unwinds
            state.task.cancel()

        if not isinstance(state, Disconnected):
            logger.info("Disconnected from %s", self._url)

    async def subscribe(self, filter: EventFilter | None = None) -> None:
        """Subscribe with filter; remembered for re-subscription. No-op unless open."""
        if not isinstance(self._state, Open):
            return

        self._current_filter = filter
        self._resubscribe = True
        await self._send(subscribe_frame(filter))

    async def unsubscribe(self) -> None:
        """Unsubscribe from events. No-op unless open.

        The next open still subscribes with the last-used filter.
        """
        if not isinstance(self._state, Open):
            return

        await self._send(unsubscribe_frame())

    def is_connected(self) -> bool:
        return isinstance(self._state, Open)

    def get_metrics(self) -> TailClientMetrics:
        return TailClientMetrics(
            messages_received=self._messages_received,
            connection_attempts=self._connection_attempts,
            last_ping_latency_ms=self._last_ping_latency_ms,
        )

    async def wait_closed(self) -> None:
        """Wait for the most recent connection task to finish."""
        if self._last_connection is not None:
            await self._last_connection.wait()

    # Connection lifecycle

    def _resubscribe_filter(self) -> EventFilter | None:
        if self._current_filter is not None:
            return self._current_filter
        return self._filter

    def _owns_connection(self) -> bool:
        state = self._state
        return isinstance(state, (Connecting, Open)) and state.task.is_current()

    async def _run_connection(self) -> None:
        try:
            transport = await self._transport_factory(self._url)
        except Exception as e:
            if not self._owns_connection():
                return
            logger.warning("Connection to %s failed: %s", self._url, e)
            await notify(self._on_error, e)
            await self._handle_close(ABNORMAL_CLOSURE)
            return

        code = NORMAL_CLOSURE
        try:
            connecting = self._state
            if not isinstance(connecting, Connecting) or not connecting.task.is_current():
                return

            keepalive = call_every(
                self._ping_interval_ms, self._send_ping, name="tail-keepalive"
            )
            self._state = Open(
                transport=transport, task=connecting.task, keepalive=keepalive
            )
            self._attempt = 0
            logger.info("Connected to %s", self._url)

            if self._resubscribe:
                await self.subscribe(self._resubscribe_filter())
            await notify(self._on_connect)

            code = await self._read_frames(transport)
        finally:
            await transport.close()

        if self._owns_connection():
            await self._handle_close(code)

    async def _read_frames(self, transport: ITransport) -> int:
        try:
            async for raw in transport:
                await self._handle_frame(raw)
        except ConnectionClosed:
            pass
        except Exception as e:
            logger.warning("Connection to %s errored: %s", self._url, e)
            await notify(self._on_error, e)
        return transport.close_code or ABNORMAL_CLOSURE

    async def _handle_close(self, code: int) -> None:
        state = self._state
        if isinstance(state, Open):
            state.keepalive.cancel()
        self._last_ping_sent = None

        if self._reconnect and not self._explicit_disconnect and code != NORMAL_CLOSURE:
            delay_ms = backoff_delay_ms(
                self._attempt, self._reconnect_base_ms, self._reconnect_max_ms
            )
            self._attempt += 1
            timer = call_later(delay_ms, self._reconnect_now, name="tail-reconnect")
            self._state = Reconnecting(delay_ms=delay_ms, attempt=self._attempt, timer=timer)
            logger.info(
                "Connection to %s closed (code %s), reconnecting in %sms",
                self._url,
                code,
                delay_ms,
                extra={
                    "url": self._url,
                    "close_code": code,
                    "attempt": self._attempt,
                    "delay_ms": delay_ms,
                },
            )
        else:
            self._state = Disconnected()
            logger.info(
                "Connection to %s closed (code %s)",
                self._url,
                code,
                extra={"url": self._url, "close_code": code},
            )

        await notify(self._on_disconnect)

    def _reconnect_now(self) -> None:
        if not isinstance(self._state, Reconnecting) or self._explicit_disconnect:
            return
        self._state = Disconnected()
        self.connect()

    # Frames

    async def _handle_frame(self, raw: str | bytes) -> None:
        self._messages_received += 1

        frame = parse_server_frame(raw)
        if frame is None:
            logger.debug("Dropped malformed frame: %.200r", raw)
            return

        if isinstance(frame, EventFrame):
            await notify(self._on_event, frame.event.to_event())
        elif isinstance(frame, PongFrame):
            if self._last_ping_sent is not None:
                self._last_ping_latency_ms = self._clock() - self._last_ping_sent
                self._last_ping_sent = None
        elif isinstance(frame, ErrorFrame):
            logger.warning("Server error from %s: %s", self._url, frame.message)

    async def _send_ping(self) -> None:
        if not isinstance(self._state, Open):
            return
        self._last_ping_sent = self._clock()
        await self._send(ping_frame())

    async def _send(self, message: str) -> None:
        state = self._state
        if not isinstance(state, Open):
            return
        try:
            await state.transport.send(message)
        except ConnectionClosed:
            logger.debug("Send on closed connection to %s dropped", self._url)
        except Exception as e:
            logger.warning("Send to %s failed: %s", self._url, e)
            await notify(self._on_error, e)
