"""One-shot retrieval of a page of historical events over HTTP."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

import httpx

from ..errors import HistoricalFetchError
from ..logging_config import get_logger
from ..models import Event, EventFilter
from ..protocol import WirePage

logger = get_logger(__name__)


@dataclass(frozen=True)
class HistoricalQuery:
    """Time range, pagination and filter for one history request."""

    base_url: str
    since: datetime | None = None
    until: datetime | None = None
    limit: int | None = None
    offset: int | None = None
    filter: EventFilter | None = None


@dataclass(frozen=True)
class HistoricalPage:
    """A single page of history."""

    events: list[Event] = field(default_factory=list)
    has_more: bool = False
    next_offset: int | None = None


def format_timestamp(value: datetime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2024-01-15T10:00:00.000Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def build_query_url(query: HistoricalQuery) -> str:
    """Build the GET URL for query. Unset fields are left out of the query string."""
    params: list[tuple[str, str]] = []

    if query.since is not None:
        params.append(("since", format_timestamp(query.since)))
    if query.until is not None:
        params.append(("until", format_timestamp(query.until)))
    if query.limit is not None:
        params.append(("limit", str(query.limit)))
    if query.offset is not None:
        params.append(("offset", str(query.offset)))

    if query.filter is not None:
        params.extend(query.filter.to_wire().items())

    if not params:
        return query.base_url

    separator = "&" if "?" in query.base_url else "?"
    return f"{query.base_url}{separator}{httpx.QueryParams(params)}"


async def fetch_historical_events(
    query: HistoricalQuery,
    client: httpx.AsyncClient | None = None,
) -> HistoricalPage:
    """
    Fetch exactly one page of historical events.

    Args:
        query: What to fetch.
        client: Optional shared client; a short-lived one is used otherwise.

    Returns:
        The page, with missing events normalized to [] and hasMore to False.
        Events that fail validation are dropped from the page.

    Raises:
        HistoricalFetchError: On a non-2xx response.
        httpx.TransportError: On network failure, unchanged.
        pydantic.ValidationError: On a body that is not a valid page envelope.
    """
    url = build_query_url(query)
    logger.debug("Fetching historical events: %s", url)

    if client is None:
        async with httpx.AsyncClient() as owned_client:
            response = await owned_client.get(url)
    else:
        response = await client.get(url)

    if not response.is_success:
        raise HistoricalFetchError(response.status_code, response.reason_phrase)

    page = WirePage.model_validate_json(response.content)
    return HistoricalPage(
        events=[wire_event.to_event() for wire_event in page.valid_events()],
        has_more=page.has_more,
        next_offset=page.next_offset,
    )
