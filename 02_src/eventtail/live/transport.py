"""Persistent-connection transport used by the live tail client."""

from typing import AsyncIterator, Awaitable, Callable, Protocol

import websockets

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006


class ITransport(Protocol):
    """A connected, full-duplex text-frame channel."""

    @property
    def close_code(self) -> int | None:
        """Close code once the connection is closed, else None."""
        ...

    async def send(self, message: str) -> None:
        """Send one text frame."""
        ...

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        """Close the connection."""
        ...

    def __aiter__(self) -> AsyncIterator[str | bytes]:
        """Iterate over received frames until the connection closes."""
        ...


TransportFactory = Callable[[str], Awaitable[ITransport]]


async def connect_websocket(url: str) -> ITransport:
    """Open a WebSocket to url.

    Protocol-level pings are disabled; the client runs its own ping/pong
    frames and never drops a connection over a missed pong.
    """
    return await websockets.connect(url, ping_interval=None)
