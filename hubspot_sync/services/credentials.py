"""
Access token lifecycle shared by the concurrent entity syncs of one account.

The holder is the single owner of the current access token and its expiry.
Every component that needs the token gets the same holder, so a refresh done
by one driver is seen by the others on their next call (last write wins).
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from hubspot_sync.core.config import get_settings
from hubspot_sync.core.exceptions import AuthError
from hubspot_sync.schemas.account import HubSpotAccount
from hubspot_sync.services.hubspot_service import HubSpotService, HubSpotServiceError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenHolder:
    """Current access token plus its absolute expiry."""

    def __init__(
        self,
        client: HubSpotService,
        client_id: str | None = None,
        client_secret: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        settings = get_settings()
        self._client = client
        self._client_id = client_id if client_id is not None else settings.hubspot_client_id
        self._client_secret = client_secret if client_secret is not None else settings.hubspot_client_secret
        self._clock = clock
        self._lock = asyncio.Lock()
        self.expires_at: datetime | None = None

    @property
    def access_token(self) -> str:
        return self._client.access_token

    def use_account(self, account: HubSpotAccount) -> None:
        """Start an account with its stored token; expiry unknown until the first refresh."""
        self._client.set_access_token(account.access_token)
        self.expires_at = None

    def is_expired(self) -> bool:
        """Unknown expiry counts as expired."""
        return self.expires_at is None or self._clock() > self.expires_at

    async def refresh(self, account: HubSpotAccount) -> datetime:
        """
        Obtain a new access token with the account's refresh token.
        Updates the shared client token and `account.access_token` if it changed.
        Returns the new expiry. Raises AuthError on any failure; no retry here.
        """
        seen_expiry = self.expires_at
        async with self._lock:
            # Another driver refreshed while we waited on the lock.
            if self.expires_at is not None and self.expires_at != seen_expiry and not self.is_expired():
                return self.expires_at

            if not account.refresh_token:
                raise AuthError("Account has no refresh token", hub_id=account.hub_id)
            try:
                body = await asyncio.to_thread(
                    self._client.create_token,
                    account.refresh_token,
                    self._client_id,
                    self._client_secret,
                )
            except HubSpotServiceError as e:
                raise AuthError(
                    f"Token refresh failed for hub {account.hub_id}: {e.message}",
                    hub_id=account.hub_id,
                    detail=e.detail,
                ) from e

            new_token = body["access_token"]
            expires_in = int(body.get("expires_in") or 0)
            self.expires_at = self._clock() + timedelta(seconds=expires_in)
            self._client.set_access_token(new_token)
            if new_token != account.access_token:
                account.access_token = new_token
            logger.info("Refreshed access token for hub %s (expires %s)", account.hub_id, self.expires_at.isoformat())
            return self.expires_at
