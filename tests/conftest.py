"""
Shared fakes for the sync tests: an in-memory HubSpot client, a recording
event sink and an in-memory domain store.
"""

import copy
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any

import pytest

from hubspot_sync.core.exceptions import PersistenceError
from hubspot_sync.schemas.account import Domain, HubSpotAccount
from hubspot_sync.services.hubspot_service import HubSpotServiceError

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
WATERMARK = datetime(2024, 4, 1, 0, 0, tzinfo=timezone.utc)


def iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


def epoch_ms(dt: datetime) -> str:
    return str(int(dt.timestamp() * 1000))


def make_record(record_id: str, created: datetime, updated: datetime, **properties: Any) -> dict[str, Any]:
    """Record in the shape returned by the HubSpot search API."""
    return {
        "id": record_id,
        "createdAt": iso(created),
        "updatedAt": iso(updated),
        "properties": properties,
        "archived": False,
    }


def make_page(records: list[dict[str, Any]], after: int | str | None = None) -> dict[str, Any]:
    page: dict[str, Any] = {"results": records}
    if after is not None:
        page["paging"] = {"next": {"after": str(after), "link": "https://api.hubapi.com/next"}}
    return page


class FakeHubSpotClient:
    """Stands in for HubSpotService; serves queued pages per object type."""

    def __init__(self) -> None:
        self.pages: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.associations: dict[tuple[str, str], list[dict[str, Any]]] = {}
        self.objects: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.search_failures: dict[str, int] = {}
        self.association_error: HubSpotServiceError | None = None
        self.token_error: HubSpotServiceError | None = None
        self.token_response: dict[str, Any] = {"access_token": "fresh-token", "expires_in": 1800}
        self.search_calls: list[tuple[str, dict[str, Any]]] = []
        self.token_calls = 0
        self._token = ""

    @property
    def access_token(self) -> str:
        return self._token

    def set_access_token(self, token: str) -> None:
        self._token = token

    def create_token(self, refresh_token: str, client_id: str, client_secret: str) -> dict[str, Any]:
        self.token_calls += 1
        if self.token_error:
            raise self.token_error
        return dict(self.token_response)

    def search_objects(self, object_type: str, body: dict[str, Any], retries: int | None = None) -> dict[str, Any]:
        self.search_calls.append((object_type, copy.deepcopy(body)))
        remaining = self.search_failures.get(object_type, 0)
        if remaining:
            if remaining > 0:
                self.search_failures[object_type] = remaining - 1
            raise HubSpotServiceError("HubSpot API error: 502", status_code=502)
        queue = self.pages[object_type]
        return queue.pop(0) if queue else {"results": []}

    def read_associations(self, from_type: str, to_type: str, ids: list[str]) -> list[dict[str, Any]]:
        if self.association_error:
            raise self.association_error
        results = self.associations.get((from_type, to_type), [])
        return [r for r in results if not r.get("from") or r["from"]["id"] in ids]

    def batch_read(self, object_type: str, ids: list[str], properties: list[str]) -> list[dict[str, Any]]:
        store = self.objects[object_type]
        return [store[i] for i in ids if i in store]

    def searches_for(self, object_type: str) -> list[dict[str, Any]]:
        return [body for t, body in self.search_calls if t == object_type]


class RecordingSink:
    """Event sink that keeps every batch it receives."""

    def __init__(self, fail: bool = False) -> None:
        self.batches: list[list[Any]] = []
        self.fail = fail

    def insert_actions(self, actions: list[Any]) -> None:
        if self.fail:
            raise RuntimeError("sink unavailable")
        self.batches.append(list(actions))

    @property
    def actions(self) -> list[Any]:
        return [a for batch in self.batches for a in batch]


class InMemoryStore:
    """Domain store keeping the domain in memory and recording saves."""

    def __init__(self, domain: Domain, fail_save: bool = False) -> None:
        self.domain = domain
        self.fail_save = fail_save
        self.saved: list[dict[str, Any]] = []
        self.sync_logs: list[Any] = []

    async def load(self) -> Domain:
        return self.domain

    async def save(self, domain: Domain) -> None:
        if self.fail_save:
            raise PersistenceError("store unreachable")
        if domain.is_modified("accounts"):
            self.saved.append({a.hub_id: a.last_pulled_dates.model_copy() for a in domain.accounts})
        domain.clear_modified()

    async def insert_sync_log(self, domain: Domain, entry: Any) -> dict[str, Any]:
        self.sync_logs.append(entry)
        return entry.model_dump()


@pytest.fixture
def fake_client() -> FakeHubSpotClient:
    return FakeHubSpotClient()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def account() -> HubSpotAccount:
    return HubSpotAccount(
        hubId="12345",
        accessToken="stale-token",
        refreshToken="refresh-token",
        lastPulledDates={"companies": WATERMARK, "contacts": WATERMARK, "meetings": WATERMARK},
    )


@pytest.fixture
def domain(account: HubSpotAccount) -> Domain:
    return Domain(id="dom-1", apiKey="api-key-1", accounts=[account])


@pytest.fixture
def store(domain: Domain) -> InMemoryStore:
    return InMemoryStore(domain)
