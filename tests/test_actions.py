"""Tests for record -> action conversion."""

from datetime import timedelta

from conftest import NOW, WATERMARK, make_record
from hubspot_sync.schemas.action import Action
from hubspot_sync.schemas.record import RawRecord, filter_null_values
from hubspot_sync.services.sync_drivers import (
    CompanySyncDriver,
    ContactSyncDriver,
    MeetingSyncDriver,
    make_action,
)


def _record(created, updated=NOW, **props) -> RawRecord:
    return RawRecord.model_validate(make_record("42", created, updated, **props))


class TestClassification:
    def test_created_after_watermark(self):
        created = WATERMARK + timedelta(days=1)
        action = make_action(_record(created), "Contact", WATERMARK, {})

        assert action.action_name == "Contact Created"
        assert action.action_date == created - timedelta(seconds=2)

    def test_created_at_watermark_is_update(self):
        action = make_action(_record(WATERMARK), "Company", WATERMARK, {})

        assert action.action_name == "Company Updated"
        assert action.action_date == NOW - timedelta(seconds=2)

    def test_created_before_watermark_is_update(self):
        action = make_action(_record(WATERMARK - timedelta(days=9)), "Meeting", WATERMARK, {})
        assert action.action_name == "Meeting Updated"

    def test_no_watermark_is_created(self):
        created = WATERMARK - timedelta(days=9)
        action = make_action(_record(created), "Company", None, {})

        assert action.action_name == "Company Created"
        assert action.action_date == created - timedelta(seconds=2)


def test_filter_null_values_keeps_falsy_values():
    assert filter_null_values({"a": None, "b": 0, "c": "", "d": "x"}) == {"b": 0, "c": "", "d": "x"}


def test_action_payload_wire_names():
    action = Action(
        action_name="Contact Created",
        action_date=NOW,
        identity="a@example.com",
        user_properties={"contact_score": 3},
    )

    assert action.to_payload() == {
        "actionName": "Contact Created",
        "actionDate": int(NOW.timestamp() * 1000),
        "includeInAnalytics": 0,
        "identity": "a@example.com",
        "userProperties": {"contact_score": 3},
    }


class TestActionFields:
    # action_fields does not touch the driver's collaborators
    def _driver(self, cls, account):
        return cls(account, fetcher=None, resolver=None, batcher=None)

    def test_company_without_properties_is_skipped(self, account):
        driver = self._driver(CompanySyncDriver, account)
        record = RawRecord.model_validate({**make_record("1", WATERMARK, NOW), "properties": None})

        assert driver.action_fields(record, {}) is None

    def test_company_fields_omit_missing_values(self, account):
        driver = self._driver(CompanySyncDriver, account)
        record = _record(WATERMARK, domain="acme.com", industry=None)

        assert driver.action_fields(record, {}) == {
            "company_properties": {"company_id": "42", "company_domain": "acme.com"}
        }

    def test_contact_requires_email(self, account):
        driver = self._driver(ContactSyncDriver, account)
        assert driver.action_fields(_record(WATERMARK, firstname="Ada"), {}) is None

    def test_contact_fields(self, account):
        driver = self._driver(ContactSyncDriver, account)
        record = _record(
            WATERMARK,
            email="ada@example.com",
            firstname="Ada",
            lastname=None,
            jobtitle="CTO",
            hubspotscore="17",
            hs_lead_status="OPEN",
        )

        fields = driver.action_fields(record, {"42": "co-9"})

        assert fields == {
            "identity": "ada@example.com",
            "user_properties": {
                "company_id": "co-9",
                "contact_name": "Ada",
                "contact_title": "CTO",
                "contact_status": "OPEN",
                "contact_score": 17,
            },
        }

    def test_contact_score_defaults_to_zero(self, account):
        driver = self._driver(ContactSyncDriver, account)
        fields = driver.action_fields(_record(WATERMARK, email="x@example.com", hubspotscore="n/a"), {})
        assert fields["user_properties"]["contact_score"] == 0

    def test_meeting_without_contact_email_is_skipped(self, account):
        driver = self._driver(MeetingSyncDriver, account)
        contact = RawRecord.model_validate(make_record("c1", WATERMARK, NOW, firstname="Ada"))

        assert driver.action_fields(_record(WATERMARK, hs_meeting_title="Intro"), {}) is None
        assert driver.action_fields(_record(WATERMARK, hs_meeting_title="Intro"), {"42": contact}) is None

    def test_meeting_fields(self, account):
        driver = self._driver(MeetingSyncDriver, account)
        contact = RawRecord.model_validate(
            make_record("c1", WATERMARK, NOW, email="ada@example.com", firstname="Ada", lastname="Lovelace")
        )
        record = _record(
            WATERMARK,
            hs_meeting_title="Intro",
            hs_meeting_start_time="2024-04-10T10:00:00Z",
            hs_meeting_end_time="2024-04-10T10:30:00Z",
        )

        fields = driver.action_fields(record, {"42": contact})

        assert fields["contact_email"] == "ada@example.com"
        props = fields["meeting_properties"]
        assert props["contact_id"] == "c1"
        assert props["contact_name"] == "Ada Lovelace"
        assert props["meeting_title"] == "Intro"
        assert props["meeting_duration"] == 30 * 60 * 1000
        assert props["meeting_date"].isoformat() == "2024-04-10T10:00:00+00:00"
