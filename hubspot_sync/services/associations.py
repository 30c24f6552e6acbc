"""
Association resolution between CRM object types (contact -> company,
meeting -> contact), one batch call per page of records.
"""

import asyncio
import logging
from typing import Any

from hubspot_sync.core.exceptions import AssociationFetchError
from hubspot_sync.schemas.record import RawRecord
from hubspot_sync.services.hubspot_service import HubSpotService, HubSpotServiceError

logger = logging.getLogger(__name__)


def build_association_index(
    results: list[dict[str, Any]],
    ids: list[str],
) -> tuple[dict[str, str], list[str]]:
    """
    Map `from.id -> to[0].id` for every result that has a `from` side.
    Only the first target is kept (the relation is treated as functional).
    Returns (index, ids left unresolved).
    """
    index: dict[str, str] = {}
    unresolved = list(ids)
    for result in results:
        source = result.get("from")
        targets = result.get("to") or []
        if not source or not targets:
            continue
        source_id = str(source["id"])
        index[source_id] = str(targets[0]["id"])
        if source_id in unresolved:
            unresolved.remove(source_id)
    return index, unresolved


class AssociationResolver:
    """Resolves 1:1 associations and reads the associated objects' properties."""

    def __init__(self, client: HubSpotService) -> None:
        self._client = client

    async def resolve(self, from_type: str, to_type: str, ids: list[str]) -> dict[str, str]:
        if not ids:
            return {}
        try:
            results = await asyncio.to_thread(self._client.read_associations, from_type, to_type, ids)
        except HubSpotServiceError as e:
            raise AssociationFetchError(
                f"Unable to fetch {from_type} -> {to_type} associations: {e.message}", detail=e.detail
            ) from e
        index, unresolved = build_association_index(results, ids)
        if unresolved:
            logger.debug("%d %s without %s association", len(unresolved), from_type, to_type)
        return index

    async def read_objects(
        self,
        object_type: str,
        ids: list[str],
        properties: list[str],
    ) -> dict[str, RawRecord]:
        """Batch read objects by id; returns records keyed by id."""
        if not ids:
            return {}
        try:
            results = await asyncio.to_thread(self._client.batch_read, object_type, ids, properties)
        except HubSpotServiceError as e:
            raise AssociationFetchError(f"Error getting {object_type} data: {e.message}", detail=e.detail) from e
        records = (RawRecord.model_validate(r) for r in results)
        return {r.id: r for r in records}
