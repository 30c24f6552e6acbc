"""
HubSpot API v3 client for the incremental pull.
Uses Bearer token auth, requests library, error handling, and rate limiting awareness.
Calls are blocking; async callers run them with asyncio.to_thread.
"""

import logging
import threading
import time
from collections import deque
from typing import Any

import requests

from hubspot_sync.core.config import get_settings

logger = logging.getLogger(__name__)

# HubSpot rate limit: 100 requests per 10 seconds (Starter); we throttle to stay under.
RATE_LIMIT_WINDOW_SEC = 10
RATE_LIMIT_MAX_REQUESTS = 95  # leave small headroom

BATCH_READ_MAX_INPUTS = 100


class HubSpotServiceError(Exception):
    """Raised when a HubSpot API call fails."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: Any = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class HubSpotService:
    """
    HubSpot API v3 service. Bearer token auth, retries on 429/5xx, rate limiting awareness.
    Safe to share between worker threads: the token and the rate limit window are lock-protected.
    """

    def __init__(
        self,
        access_token: str | None = None,
        base_url: str | None = None,
        max_retries: int = 3,
    ) -> None:
        self._token = access_token or ""
        self._base_url = base_url or get_settings().hubspot_base_url
        self._max_retries = max_retries
        self._retry_status_codes = (429, 500, 502, 503)
        # Rate limiting: timestamps of recent requests (within last RATE_LIMIT_WINDOW_SEC)
        self._request_timestamps: deque[float] = deque(maxlen=RATE_LIMIT_MAX_REQUESTS + 10)
        self._lock = threading.Lock()

    @property
    def access_token(self) -> str:
        return self._token

    def set_access_token(self, token: str) -> None:
        with self._lock:
            self._token = token

    def _get_headers(self) -> dict[str, str]:
        """Build request headers with Bearer token."""
        if not self._token:
            raise HubSpotServiceError("HubSpot access token not set. Refresh the account token first.")
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

    def _rate_limit_wait(self) -> None:
        """If we've hit the request count in the window, sleep until oldest request exits the window."""
        with self._lock:
            now = time.monotonic()
            while self._request_timestamps and now - self._request_timestamps[0] >= RATE_LIMIT_WINDOW_SEC:
                self._request_timestamps.popleft()
            sleep_time = 0.0
            if len(self._request_timestamps) >= RATE_LIMIT_MAX_REQUESTS:
                sleep_time = RATE_LIMIT_WINDOW_SEC - (now - self._request_timestamps[0])
                self._request_timestamps.clear()
            self._request_timestamps.append(now + max(sleep_time, 0.0))
        if sleep_time > 0:
            logger.warning(
                "HubSpot rate limit approaching: sleeping %.1fs (limit %d/%ds)",
                sleep_time,
                RATE_LIMIT_MAX_REQUESTS,
                RATE_LIMIT_WINDOW_SEC,
            )
            time.sleep(sleep_time)

    def _handle_error(self, response: requests.Response) -> None:
        """Interpret error response and raise HubSpotServiceError with detail."""
        try:
            body = response.json()
        except ValueError:
            body = response.text or None
        msg = f"HubSpot API error: {response.status_code}"
        if isinstance(body, dict):
            detail = body.get("message") or body.get("status") or body
            if body.get("category"):
                msg += f" ({body['category']})"
            if isinstance(detail, str):
                msg += f": {detail}"
        elif isinstance(body, str) and body:
            msg += f": {body[:500]}"
        raise HubSpotServiceError(msg, status_code=response.status_code, detail=body)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | list[Any] | None = None,
        data: dict[str, Any] | None = None,
        retries: int | None = None,
        authenticated: bool = True,
    ) -> dict[str, Any] | list[Any]:
        """
        Execute HTTP request with rate limiting and retries on 429/5xx.
        path: e.g. /crm/v3/objects/contacts/search (no leading slash required).
        """
        retries = self._max_retries if retries is None else retries
        url = f"{self._base_url.rstrip('/')}/{path.lstrip('/')}"
        if authenticated:
            headers = self._get_headers()
        else:
            headers = {"Content-Type": "application/x-www-form-urlencoded"}
        last_exc: Exception | None = None

        for attempt in range(retries + 1):
            self._rate_limit_wait()

            try:
                resp = requests.request(
                    method=method,
                    url=url,
                    headers=headers,
                    params=params,
                    json=json,
                    data=data,
                    timeout=30,
                )
            except requests.RequestException as e:
                last_exc = e
                logger.warning("HubSpot request failed (attempt %d): %s", attempt + 1, e)
                if attempt < retries:
                    time.sleep(2 ** attempt)
                continue

            if resp.ok:
                if resp.status_code == 204 or not resp.content:
                    return {}
                return resp.json()

            if resp.status_code in self._retry_status_codes and attempt < retries:
                retry_after = resp.headers.get("Retry-After")
                wait = float(retry_after) if retry_after and retry_after.isdigit() else (2 ** attempt)
                logger.warning(
                    "HubSpot %s %s (attempt %d), retrying in %.1fs",
                    resp.status_code,
                    resp.reason,
                    attempt + 1,
                    wait,
                )
                time.sleep(wait)
                continue

            self._handle_error(resp)

        if last_exc:
            raise HubSpotServiceError(
                f"HubSpot request failed after {retries + 1} attempts: {last_exc!s}"
            ) from last_exc
        raise HubSpotServiceError("HubSpot request failed unexpectedly")

    # -------------------------------------------------------------------------
    # OAuth
    # -------------------------------------------------------------------------

    def create_token(
        self,
        refresh_token: str,
        client_id: str,
        client_secret: str,
    ) -> dict[str, Any]:
        """Exchange a refresh token for a new access token (refresh_token grant)."""
        data = self._request(
            "POST",
            "/oauth/v1/token",
            data={
                "grant_type": "refresh_token",
                "client_id": client_id,
                "client_secret": client_secret,
                "refresh_token": refresh_token,
            },
            retries=0,
            authenticated=False,
        )
        if not isinstance(data, dict) or not data.get("access_token"):
            raise HubSpotServiceError("Unexpected response when refreshing access token", detail=data)
        return data

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def search_objects(
        self,
        object_type: str,
        body: dict[str, Any],
        retries: int | None = None,
    ) -> dict[str, Any]:
        """
        Search CRM objects with filterGroups / sorts / properties / limit / after.
        Returns {"results": [...], "paging": {"next": {"after": ...}}}.
        """
        data = self._request(
            "POST",
            f"/crm/v3/objects/{object_type}/search",
            json=body,
            retries=retries,
        )
        if not isinstance(data, dict):
            raise HubSpotServiceError(f"Unexpected response when searching {object_type}")
        return data

    # -------------------------------------------------------------------------
    # Batch reads
    # -------------------------------------------------------------------------

    def read_associations(
        self,
        from_type: str,
        to_type: str,
        ids: list[str],
    ) -> list[dict[str, Any]]:
        """Batch read associations. Each result is {"from": {"id"}, "to": [{"id"}, ...]}."""
        if not ids:
            return []
        data = self._request(
            "POST",
            f"/crm/v3/associations/{from_type}/{to_type}/batch/read",
            json={"inputs": [{"id": i} for i in ids]},
        )
        if isinstance(data, dict):
            return data.get("results") or []
        return data

    def batch_read(
        self,
        object_type: str,
        ids: list[str],
        properties: list[str],
    ) -> list[dict[str, Any]]:
        """Batch fetch objects by IDs. HubSpot batch read up to 100 per request."""
        if not ids:
            return []
        results: list[dict[str, Any]] = []
        for start in range(0, len(ids), BATCH_READ_MAX_INPUTS):
            chunk = ids[start:start + BATCH_READ_MAX_INPUTS]
            data = self._request(
                "POST",
                f"/crm/v3/objects/{object_type}/batch/read",
                json={
                    "properties": properties,
                    "propertiesWithHistory": [],
                    "inputs": [{"id": i} for i in chunk],
                },
            )
            if isinstance(data, list):
                results.extend(data)
            elif isinstance(data, dict):
                results.extend(data.get("results") or [])
        return results


def get_hubspot_service(access_token: str | None = None) -> HubSpotService:
    """Return a HubSpotService instance bound to the configured API root."""
    return HubSpotService(access_token=access_token)
