# Pydantic schemas: domain store rows, raw CRM records, sink actions.

from hubspot_sync.schemas.account import Domain, HubSpotAccount, LastPulledDates
from hubspot_sync.schemas.action import Action
from hubspot_sync.schemas.record import PaginationCursor, RawRecord, filter_null_values
from hubspot_sync.schemas.sync_log import AccountSyncResult, SyncLogEntry

__all__ = [
    "Domain",
    "HubSpotAccount",
    "LastPulledDates",
    "Action",
    "PaginationCursor",
    "RawRecord",
    "filter_null_values",
    "AccountSyncResult",
    "SyncLogEntry",
]
