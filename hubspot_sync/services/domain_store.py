"""
Supabase-backed domain store: loads the domain with its HubSpot accounts,
writes tokens and watermarks back, and records the sync log.
"""

import logging
from typing import Any, Dict, Optional

from supabase import Client, create_client

from hubspot_sync.core.config import get_settings
from hubspot_sync.core.exceptions import PersistenceError
from hubspot_sync.schemas.account import Domain, HubSpotAccount
from hubspot_sync.schemas.sync_log import SyncLogEntry

logger = logging.getLogger(__name__)

DOMAINS_TABLE = "domains"
ACCOUNTS_TABLE = "hubspot_accounts"
SYNC_LOG_TABLE = "sync_log"


def _account_row(domain_id: str | None, account: HubSpotAccount) -> Dict[str, Any]:
    return {
        "domain_id": domain_id,
        "hub_id": account.hub_id,
        "access_token": account.access_token,
        "refresh_token": account.refresh_token,
        "last_pulled_dates": account.last_pulled_dates.model_dump(mode="json"),
    }


class DomainStore:
    def __init__(self, client: Optional[Client] = None, domain_id: Optional[str] = None) -> None:
        settings = get_settings()
        self.client: Client = client or create_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_KEY,
        )
        self.domain_id = domain_id if domain_id is not None else settings.domain_id

    async def load(self) -> Domain:
        """Load the configured domain (or the first one) with its accounts."""
        try:
            query = self.client.table(DOMAINS_TABLE).select("id, api_key")
            if self.domain_id:
                query = query.eq("id", self.domain_id)
            response = query.limit(1).execute()
            if not response.data:
                raise PersistenceError("No domain configured")
            row = response.data[0]

            accounts = (
                self.client.table(ACCOUNTS_TABLE)
                .select("hub_id, access_token, refresh_token, last_pulled_dates")
                .eq("domain_id", row["id"])
                .order("hub_id")
                .execute()
            )
        except PersistenceError:
            raise
        except Exception as e:
            logger.error("Load domain error: %s", str(e))
            raise PersistenceError(f"Failed to load domain: {e!s}") from e

        return Domain(
            id=str(row["id"]),
            api_key=row.get("api_key") or "",
            accounts=[
                HubSpotAccount(
                    hub_id=a["hub_id"],
                    access_token=a.get("access_token") or "",
                    refresh_token=a.get("refresh_token") or "",
                    last_pulled_dates=a.get("last_pulled_dates") or {},
                )
                for a in accounts.data or []
            ],
        )

    async def save(self, domain: Domain) -> None:
        """Write back every account when the account list is marked modified."""
        if not domain.is_modified("accounts"):
            return
        rows = [_account_row(domain.id, a) for a in domain.accounts]
        if not rows:
            domain.clear_modified()
            return
        try:
            self.client.table(ACCOUNTS_TABLE).upsert(rows, on_conflict="domain_id,hub_id").execute()
        except Exception as e:
            logger.error("Save domain error: %s", str(e))
            raise PersistenceError(f"Failed to save domain {domain.id}: {e!s}") from e
        domain.clear_modified()

    async def insert_sync_log(self, domain: Domain, entry: SyncLogEntry) -> Dict[str, Any]:
        """Append a sync log entry for the domain."""
        row: Dict[str, Any] = {
            "domain_id": domain.id,
            **entry.model_dump(mode="json"),
        }
        try:
            response = self.client.table(SYNC_LOG_TABLE).insert(row).execute()
        except Exception as e:
            logger.error("Insert sync log error: %s", str(e))
            raise PersistenceError("Failed to record sync log") from e
        if response.data:
            return dict(response.data[0])
        return row


def get_domain_store() -> DomainStore:
    return DomainStore()
