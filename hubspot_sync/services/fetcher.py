"""
Paginated search with retry, backoff and token refresh, plus the pure
pagination-cursor rules used by the entity syncs.

The search API refuses to page past an offset ceiling, so once `after` reaches
it the cursor rolls over: `after` is cleared and the window's lower bound moves
to the newest `updatedAt` of the page just fetched.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any

from hubspot_sync.core.config import get_settings
from hubspot_sync.core.exceptions import AuthError, FetchExhausted
from hubspot_sync.schemas.account import HubSpotAccount
from hubspot_sync.schemas.record import PaginationCursor, RawRecord
from hubspot_sync.services.credentials import TokenHolder
from hubspot_sync.services.hubspot_service import HubSpotService, HubSpotServiceError

logger = logging.getLogger(__name__)


def _epoch_ms(dt: datetime) -> str:
    return str(int(dt.timestamp() * 1000))


def last_modified_filter(
    lower: datetime | None,
    upper: datetime,
    property_name: str = "hs_lastmodifieddate",
) -> dict[str, Any] | None:
    """BETWEEN [lower, upper] on the modification property; None when there is no lower bound."""
    if lower is None:
        return None
    return {
        "filters": [
            {"propertyName": property_name, "operator": "GTE", "value": _epoch_ms(lower)},
            {"propertyName": property_name, "operator": "LTE", "value": _epoch_ms(upper)},
        ]
    }


def build_search_body(
    cursor: PaginationCursor,
    lower: datetime | None,
    upper: datetime,
    properties: list[str],
    property_name: str = "hs_lastmodifieddate",
    limit: int = 100,
) -> dict[str, Any]:
    """Search request for one page, sorted ascending by modification time."""
    window_start = cursor.last_modified_date or lower
    date_filter = last_modified_filter(window_start, upper, property_name)
    body: dict[str, Any] = {
        "filterGroups": [date_filter] if date_filter else [],
        "sorts": [{"propertyName": property_name, "direction": "ASCENDING"}],
        "properties": list(properties),
        "limit": limit,
    }
    if cursor.after is not None:
        body["after"] = str(cursor.after)
    return body


def parse_after(page: dict[str, Any]) -> int | None:
    """`paging.next.after` as an int, None when absent or not numeric."""
    raw = ((page.get("paging") or {}).get("next") or {}).get("after")
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric paging cursor %r", raw)
        return None


def next_cursor(
    cursor: PaginationCursor,
    page: dict[str, Any],
    records: list[RawRecord],
    ceiling: int = 9900,
) -> tuple[PaginationCursor, bool]:
    """
    Advance the cursor after a page. Returns (cursor, has_more).
    `has_more` is decided before the rollover, so a rolled-over cursor keeps paging.
    """
    after = parse_after(page)
    has_more = after is not None
    if after is not None and after >= ceiling:
        last_modified = max((r.updated_at for r in records), default=cursor.last_modified_date)
        return PaginationCursor(after=None, last_modified_date=last_modified), has_more
    return PaginationCursor(after=after, last_modified_date=cursor.last_modified_date), has_more


class PaginatedFetcher:
    """Runs single search calls for one account with retry and lazy token refresh."""

    def __init__(
        self,
        client: HubSpotService,
        tokens: TokenHolder,
        account: HubSpotAccount,
        backoff_base: float | None = None,
    ) -> None:
        self._client = client
        self._tokens = tokens
        self._account = account
        self._backoff_base = (
            backoff_base if backoff_base is not None else get_settings().fetch_backoff_base_seconds
        )

    async def fetch(
        self,
        object_type: str,
        search_body: dict[str, Any],
        max_retries: int = 4,
    ) -> tuple[dict[str, Any], list[RawRecord]]:
        """
        Execute one search. Returns (page metadata, records).
        Raises FetchExhausted after `max_retries` consecutive failures.
        """
        try_count = 0
        while True:
            try:
                page = await asyncio.to_thread(
                    self._client.search_objects, object_type, search_body, 0
                )
                break
            except HubSpotServiceError as e:
                try_count += 1
                logger.warning(
                    "retry-%d-%s for hub %s: %s", try_count, object_type, self._account.hub_id, e.message
                )
                if self._tokens.is_expired():
                    try:
                        await self._tokens.refresh(self._account)
                    except AuthError as auth_err:
                        logger.error("Token refresh during %s retry failed: %s", object_type, auth_err.message)
                if try_count >= max_retries:
                    raise FetchExhausted(object_type, try_count, detail=e.detail) from e
                await asyncio.sleep(self._backoff_base * 2 ** try_count)

        records = [RawRecord.model_validate(r) for r in page.get("results") or []]
        return page, records
