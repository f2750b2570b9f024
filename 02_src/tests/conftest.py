"""Pytest configuration and fixtures."""

import asyncio
import json
import sys
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from eventtail.live.transport import ABNORMAL_CLOSURE, NORMAL_CLOSURE
from eventtail.models import Event, Importance

_CLOSED = object()


class FakeTransport:
    """In-memory stand-in for a WebSocket connection."""

    def __init__(self, url: str):
        self.url = url
        self.sent: list[str] = []
        self.closed_by_client = False
        self._close_code: int | None = None
        self._incoming: asyncio.Queue = asyncio.Queue()

    @property
    def close_code(self) -> int | None:
        return self._close_code

    @property
    def sent_frames(self) -> list[dict]:
        return [json.loads(frame) for frame in self.sent]

    async def send(self, message: str) -> None:
        if self._close_code is not None:
            raise ConnectionError("transport closed")
        self.sent.append(message)

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        if self._close_code is None:
            self.closed_by_client = True
            self._close_code = code
            self._incoming.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._incoming.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    # Server-side helpers

    def server_send(self, message) -> None:
        """Deliver a frame; dicts are JSON-encoded, strings sent as-is."""
        raw = message if isinstance(message, (str, bytes)) else json.dumps(message)
        self._incoming.put_nowait(raw)

    def server_close(self, code: int = ABNORMAL_CLOSURE) -> None:
        if self._close_code is None:
            self._close_code = code
            self._incoming.put_nowait(_CLOSED)


class FakeTransportFactory:
    """Records every transport opened; can be told to fail."""

    def __init__(self):
        self.transports: list[FakeTransport] = []
        self.fail_with: Exception | None = None
        self.calls = 0

    async def __call__(self, url: str) -> FakeTransport:
        self.calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        transport = FakeTransport(url)
        self.transports.append(transport)
        return transport

    @property
    def latest(self) -> FakeTransport:
        return self.transports[-1]


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the loop until predicate() is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def transport_factory():
    """Fake transport factory for TailClient."""
    return FakeTransportFactory()


@pytest.fixture
def fake_clock():
    """Controllable millisecond clock."""
    return FakeClock(1_000_000.0)


@pytest.fixture
def make_event():
    """Factory for events with fixed defaults."""

    def _make(
        timestamp: int = 1706644800000,
        source: str = "mdxe-build",
        type: str = "build_started",
        importance: Importance | str = Importance.NORMAL,
        data: dict | None = None,
        trace_id: str | None = None,
        causation_id: str | None = None,
    ) -> Event:
        return Event(
            timestamp=timestamp,
            source=source,
            type=type,
            importance=Importance.parse(importance),
            data=data or {},
            trace_id=trace_id,
            causation_id=causation_id,
        )

    return _make


@pytest.fixture
def eventually():
    """Await a condition: `await eventually(lambda: ...)`."""
    return wait_until
