"""
Downstream event sink: one bulk ingest call per batch of actions.
"""

import logging
from typing import Sequence

import requests

from hubspot_sync.core.config import get_settings
from hubspot_sync.schemas.action import Action

logger = logging.getLogger(__name__)


class EventSinkError(Exception):
    """Raised when the bulk ingest call fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class EventSink:
    """Posts action batches to the ingest endpoint. Blocking; call from a worker thread."""

    def __init__(self, url: str | None = None, api_key: str | None = None, timeout: float = 60) -> None:
        settings = get_settings()
        self._url = url if url is not None else settings.event_sink_url
        self._api_key = api_key if api_key is not None else settings.event_sink_api_key
        self._timeout = timeout

    def insert_actions(self, actions: Sequence[Action]) -> None:
        if not actions:
            return
        if not self._url:
            raise EventSinkError("Event sink URL not configured. Set EVENT_SINK_URL in environment.")
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        try:
            resp = requests.post(
                self._url,
                headers=headers,
                json={"actions": [a.to_payload() for a in actions]},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise EventSinkError(f"Event sink request failed: {e!s}") from e
        if not resp.ok:
            raise EventSinkError(
                f"Event sink rejected {len(actions)} actions: {resp.status_code} {resp.text[:300]}",
                status_code=resp.status_code,
            )
        logger.debug("Sink accepted %d actions", len(actions))
