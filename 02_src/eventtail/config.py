"""Environment-driven settings for eventtail."""

import os
from dataclasses import dataclass

DEFAULT_TAIL_URL = "http://localhost:8000/tail"
DEFAULT_LOG_LEVEL = "WARNING"

DEFAULT_POLL_INTERVAL_MS = 2000
DEFAULT_DEDUP_WINDOW_MS = 60000
DEFAULT_RECONNECT_BASE_MS = 1000
DEFAULT_RECONNECT_MAX_MS = 30000
DEFAULT_PING_INTERVAL_MS = 30000


@dataclass(frozen=True)
class TailSettings:
    """Settings read from the environment (and .env via main.py)."""

    tail_url: str = DEFAULT_TAIL_URL
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: str | None = None

    @classmethod
    def from_env(cls) -> "TailSettings":
        """Build settings from EVENTTAIL_URL, LOG_LEVEL and LOG_FILE."""
        return cls(
            tail_url=os.getenv("EVENTTAIL_URL") or DEFAULT_TAIL_URL,
            log_level=os.getenv("LOG_LEVEL") or DEFAULT_LOG_LEVEL,
            log_file=os.getenv("LOG_FILE") or None,
        )


def to_websocket_url(url: str) -> str:
    """Rewrite an http(s) URL to ws(s); other schemes are left alone."""
    if url.startswith("http"):
        return "ws" + url[len("http"):]
    return url
