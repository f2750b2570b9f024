"""Error types raised by eventtail."""


class EventTailError(Exception):
    """Base class for eventtail errors."""


class InvalidImportanceError(EventTailError, ValueError):
    """Importance value is not one of low, normal, high, critical."""

    def __init__(self, value: object):
        super().__init__(f"Invalid importance: {value!r}")
        self.value = value


class HistoricalFetchError(EventTailError):
    """History endpoint answered with a non-2xx status."""

    def __init__(self, status_code: int, reason: str):
        super().__init__(f"Failed to fetch historical events: {status_code} {reason}")
        self.status_code = status_code
        self.reason = reason
