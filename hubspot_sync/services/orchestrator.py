"""
Account orchestration: for each HubSpot account of the domain, refresh the
token, run the company / contact / meeting syncs concurrently, drain the
action batcher and persist the advanced watermarks.

Failures are logged with account and operation context and never stop the
run: one entity type failing leaves its siblings and the next accounts alone.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable

from hubspot_sync.core.exceptions import AuthError, PersistenceError, SinkError
from hubspot_sync.schemas.account import Domain, HubSpotAccount
from hubspot_sync.schemas.sync_log import AccountSyncResult, SyncLogEntry
from hubspot_sync.services.associations import AssociationResolver
from hubspot_sync.services.batcher import ActionBatcher
from hubspot_sync.services.credentials import TokenHolder
from hubspot_sync.services.domain_store import DomainStore
from hubspot_sync.services.event_sink import EventSink
from hubspot_sync.services.fetcher import PaginatedFetcher
from hubspot_sync.services.hubspot_service import HubSpotService, get_hubspot_service
from hubspot_sync.services.sync_drivers import DRIVERS, EntitySyncDriver

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _run_driver(domain: Domain, driver: EntitySyncDriver) -> int | None:
    """Run one entity sync; returns the emitted action count, None if it failed."""
    operation = f"process{driver.object_type.capitalize()}"
    try:
        emitted = await driver.run()
    except Exception as e:
        logger.exception(
            "%s failed (api key %s, hub %s): %s",
            operation,
            domain.api_key,
            driver.account.hub_id,
            getattr(e, "message", str(e)),
        )
        return None
    logger.info("process %s: %d actions", driver.object_type, emitted)
    return emitted


async def sync_account(
    domain: Domain,
    account: HubSpotAccount,
    *,
    client: HubSpotService,
    tokens: TokenHolder,
    sink: EventSink,
    store: DomainStore,
    clock: Callable[[], datetime] = _utcnow,
) -> AccountSyncResult:
    """Pull one account. Never raises for sync failures; they are reported in the result."""
    result = AccountSyncResult(hub_id=account.hub_id)
    started_at = _utcnow()
    started = time.monotonic()

    tokens.use_account(account)
    try:
        await tokens.refresh(account)
    except AuthError as e:
        # Keep going on the stored token; the fetcher refreshes lazily on expiry.
        logger.error(
            "refreshAccessToken failed (api key %s, hub %s): %s", domain.api_key, account.hub_id, e.message
        )

    batcher = ActionBatcher(sink, api_key=domain.api_key)
    fetcher = PaginatedFetcher(client, tokens, account)
    resolver = AssociationResolver(client)
    drivers = [driver_cls(account, fetcher, resolver, batcher, clock=clock) for driver_cls in DRIVERS]

    outcomes = await asyncio.gather(*(_run_driver(domain, d) for d in drivers))
    for driver, emitted in zip(drivers, outcomes):
        if emitted is None:
            result.failed.append(driver.object_type)
        else:
            result.succeeded.append(driver.object_type)
            result.actions += emitted

    try:
        await batcher.drain()
        logger.info("Drained action queue for hub %s", account.hub_id)
    except SinkError as e:
        logger.error("drainQueue failed (api key %s, hub %s): %s", domain.api_key, account.hub_id, e.message)
        result.failed.append("drainQueue")

    domain.mark_modified("accounts")
    try:
        await store.save(domain)
        result.persisted = True
    except PersistenceError as e:
        logger.error("saveDomain failed (api key %s, hub %s): %s", domain.api_key, account.hub_id, e.message)

    entry = SyncLogEntry(
        status=result.status,
        started_at=started_at,
        finished_at=_utcnow(),
        duration_ms=int((time.monotonic() - started) * 1000),
        details=f"Failed: {', '.join(result.failed)}" if result.failed else None,
        metadata={"hub_id": account.hub_id, "actions": result.actions, "succeeded": result.succeeded},
    )
    try:
        await store.insert_sync_log(domain, entry)
    except PersistenceError as e:
        logger.error("Sync log not recorded for hub %s: %s", account.hub_id, e.message)

    return result


async def pull_data_from_hubspot(
    store: DomainStore,
    client: HubSpotService | None = None,
    sink: EventSink | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> list[AccountSyncResult]:
    """
    Pull every account of the domain, one account at a time.
    Raises PersistenceError only when the domain itself cannot be loaded.
    """
    logger.info("Start pulling data from HubSpot")
    domain = await store.load()

    client = client or get_hubspot_service()
    tokens = TokenHolder(client)
    sink = sink or EventSink()

    results: list[AccountSyncResult] = []
    for account in domain.accounts:
        logger.info("Start processing account %s", account.hub_id)
        result = await sync_account(
            domain,
            account,
            client=client,
            tokens=tokens,
            sink=sink,
            store=store,
            clock=clock,
        )
        results.append(result)
        logger.info(
            "Finish processing account %s (%s, %d actions)", account.hub_id, result.status, result.actions
        )
    return results
