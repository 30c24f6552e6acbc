# Services: HubSpot client, sync components, event sink, domain store

from hubspot_sync.services.hubspot_service import (
    HubSpotService,
    HubSpotServiceError,
    get_hubspot_service,
)
from hubspot_sync.services.credentials import TokenHolder
from hubspot_sync.services.fetcher import PaginatedFetcher
from hubspot_sync.services.associations import AssociationResolver
from hubspot_sync.services.batcher import ActionBatcher
from hubspot_sync.services.event_sink import EventSink, EventSinkError
from hubspot_sync.services.sync_drivers import (
    CompanySyncDriver,
    ContactSyncDriver,
    MeetingSyncDriver,
)
from hubspot_sync.services.domain_store import DomainStore, get_domain_store
from hubspot_sync.services.orchestrator import pull_data_from_hubspot, sync_account

__all__ = [
    "HubSpotService",
    "HubSpotServiceError",
    "get_hubspot_service",
    "TokenHolder",
    "PaginatedFetcher",
    "AssociationResolver",
    "ActionBatcher",
    "EventSink",
    "EventSinkError",
    "CompanySyncDriver",
    "ContactSyncDriver",
    "MeetingSyncDriver",
    "DomainStore",
    "get_domain_store",
    "pull_data_from_hubspot",
    "sync_account",
]
