"""
Entity syncs: one driver per CRM object type, sharing the same page loop.

Each run reads its watermark, captures `now` once as the upper bound of the
window, pages through records modified in [watermark, now] in ascending
order, turns each usable record into an action and, only when every page
succeeded, moves the watermark to `now`. A failure anywhere leaves the
watermark untouched so the next run retries the same window.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from hubspot_sync.core.config import get_settings
from hubspot_sync.schemas.account import HubSpotAccount
from hubspot_sync.schemas.action import Action
from hubspot_sync.schemas.record import PaginationCursor, RawRecord, filter_null_values
from hubspot_sync.services.associations import AssociationResolver
from hubspot_sync.services.batcher import ActionBatcher
from hubspot_sync.services.fetcher import PaginatedFetcher, build_search_body, next_cursor

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _parse_timestamp(value: Any) -> datetime | None:
    """HubSpot timestamps come back as ISO strings or epoch milliseconds."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        if isinstance(value, (int, float)) or str(value).isdigit():
            return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
        dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _full_name(record: RawRecord) -> str | None:
    name = f"{record.prop('firstname') or ''} {record.prop('lastname') or ''}".strip()
    return name or None


def make_action(
    record: RawRecord,
    type_name: str,
    last_pulled_date: datetime | None,
    fields: dict[str, Any],
    skew_seconds: int = 2,
) -> Action:
    """
    Classify the record against the window's lower bound and build its action.
    Created when the record's own createdAt is after the lower bound, else Updated.
    """
    is_created = last_pulled_date is None or record.created_at > last_pulled_date
    source_date = record.created_at if is_created else record.updated_at
    return Action(
        action_name=f"{type_name} {'Created' if is_created else 'Updated'}",
        action_date=source_date - timedelta(seconds=skew_seconds),
        **fields,
    )


class EntitySyncDriver:
    """Page loop shared by all object types. Subclasses supply the entity specifics."""

    object_type: str = ""
    type_name: str = ""
    modified_property: str = "hs_lastmodifieddate"
    properties: list[str] = []

    def __init__(
        self,
        account: HubSpotAccount,
        fetcher: PaginatedFetcher,
        resolver: AssociationResolver,
        batcher: ActionBatcher,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        settings = get_settings()
        self.account = account
        self._fetcher = fetcher
        self._resolver = resolver
        self._batcher = batcher
        self._clock = clock
        self._limit = settings.search_page_limit
        self._ceiling = settings.paging_offset_ceiling
        self._max_retries = settings.fetch_max_retries
        self._skew_seconds = settings.action_date_skew_seconds

    async def resolve_associations(self, records: list[RawRecord]) -> dict[str, Any]:
        """Per-page lookup data keyed by record id. No associations by default."""
        return {}

    def action_fields(self, record: RawRecord, associations: dict[str, Any]) -> dict[str, Any] | None:
        """Action fields for a record, or None when the record lacks what the action needs."""
        raise NotImplementedError

    async def run(self) -> int:
        """Sync one object type for the account. Returns the number of actions emitted."""
        last_pulled_date = self.account.last_pulled_dates.get(self.object_type)
        now = self._clock()
        cursor = PaginationCursor()
        has_more = True
        emitted = 0

        while has_more:
            body = build_search_body(
                cursor,
                last_pulled_date,
                now,
                self.properties,
                self.modified_property,
                self._limit,
            )
            page, records = await self._fetcher.fetch(self.object_type, body, self._max_retries)
            logger.info("Fetched %s batch of %d for hub %s", self.object_type, len(records), self.account.hub_id)

            associations = await self.resolve_associations(records)
            for record in records:
                fields = self.action_fields(record, associations)
                if fields is None:
                    continue
                self._batcher.push(
                    make_action(record, self.type_name, last_pulled_date, fields, self._skew_seconds)
                )
                emitted += 1

            cursor, has_more = next_cursor(cursor, page, records, self._ceiling)
            if has_more and cursor.after is None:
                logger.info(
                    "Paging ceiling reached for %s, continuing from %s",
                    self.object_type,
                    cursor.last_modified_date,
                )

        self.account.last_pulled_dates.advance(self.object_type, now)
        return emitted


class CompanySyncDriver(EntitySyncDriver):
    object_type = "companies"
    type_name = "Company"
    properties = [
        "name",
        "domain",
        "country",
        "industry",
        "description",
        "annualrevenue",
        "numberofemployees",
        "hs_lead_status",
    ]

    def action_fields(self, record: RawRecord, associations: dict[str, Any]) -> dict[str, Any] | None:
        if not record.properties:
            return None
        return {
            "company_properties": filter_null_values({
                "company_id": record.id,
                "company_domain": record.prop("domain"),
                "company_industry": record.prop("industry"),
            }),
        }


class ContactSyncDriver(EntitySyncDriver):
    object_type = "contacts"
    type_name = "Contact"
    modified_property = "lastmodifieddate"
    properties = [
        "firstname",
        "lastname",
        "jobtitle",
        "email",
        "hubspotscore",
        "hs_lead_status",
        "hs_analytics_source",
        "hs_latest_source",
    ]

    async def resolve_associations(self, records: list[RawRecord]) -> dict[str, Any]:
        """contact id -> company id"""
        return await self._resolver.resolve("contacts", "companies", [r.id for r in records])

    def action_fields(self, record: RawRecord, associations: dict[str, Any]) -> dict[str, Any] | None:
        email = record.prop("email")
        if not email:
            return None
        return {
            "identity": email,
            "user_properties": filter_null_values({
                "company_id": associations.get(record.id),
                "contact_name": _full_name(record),
                "contact_title": record.prop("jobtitle"),
                "contact_source": record.prop("hs_analytics_source"),
                "contact_status": record.prop("hs_lead_status"),
                "contact_score": _parse_int(record.prop("hubspotscore")),
            }),
        }


class MeetingSyncDriver(EntitySyncDriver):
    object_type = "meetings"
    type_name = "Meeting"
    properties = ["hs_meeting_title", "hs_meeting_start_time", "hs_meeting_end_time"]
    contact_properties = ["email", "firstname", "lastname"]

    async def resolve_associations(self, records: list[RawRecord]) -> dict[str, Any]:
        """
        meeting id -> attendee contact record. One contact per meeting: only the
        first associated contact is used.
        """
        meeting_contacts = await self._resolver.resolve("meetings", "contacts", [r.id for r in records])
        contact_ids = list(dict.fromkeys(meeting_contacts.values()))
        contacts = await self._resolver.read_objects("contacts", contact_ids, self.contact_properties)
        return {
            meeting_id: contacts[contact_id]
            for meeting_id, contact_id in meeting_contacts.items()
            if contact_id in contacts
        }

    def action_fields(self, record: RawRecord, associations: dict[str, Any]) -> dict[str, Any] | None:
        contact: RawRecord | None = associations.get(record.id)
        if not record.properties or contact is None or not contact.prop("email"):
            return None

        start = _parse_timestamp(record.prop("hs_meeting_start_time"))
        end = _parse_timestamp(record.prop("hs_meeting_end_time"))
        duration = int((end - start).total_seconds() * 1000) if start and end else None

        return {
            "contact_email": contact.prop("email"),
            "meeting_properties": filter_null_values({
                "contact_id": contact.id,
                "contact_name": _full_name(contact),
                "meeting_title": record.prop("hs_meeting_title"),
                "meeting_date": start,
                "meeting_duration": duration,
            }),
        }


# Launch order for one account.
DRIVERS: tuple[type[EntitySyncDriver], ...] = (MeetingSyncDriver, ContactSyncDriver, CompanySyncDriver)
