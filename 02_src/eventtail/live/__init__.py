"""Live event tailing over a persistent connection."""

from .client import (
    Connecting,
    ConnectionState,
    Disconnected,
    ITailClient,
    Open,
    Reconnecting,
    TailClient,
    TailClientMetrics,
    backoff_delay_ms,
)
from .transport import (
    ABNORMAL_CLOSURE,
    NORMAL_CLOSURE,
    ITransport,
    TransportFactory,
    connect_websocket,
)

__all__ = [
    # Client
    "ITailClient",
    "TailClient",
    "TailClientMetrics",
    "backoff_delay_ms",
    # States
    "ConnectionState",
    "Disconnected",
    "Connecting",
    "Open",
    "Reconnecting",
    # Transport
    "ITransport",
    "TransportFactory",
    "connect_websocket",
    "NORMAL_CLOSURE",
    "ABNORMAL_CLOSURE",
]
