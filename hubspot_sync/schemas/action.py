"""
Action schema: the normalized event sent to the downstream sink.
Serialized with the sink's wire names (actionName, actionDate, ...).
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from hubspot_sync.schemas.record import PropertyValue


class Action(BaseModel):
    """One timestamped event derived from one CRM record."""
    model_config = ConfigDict(populate_by_name=True)

    action_name: str = Field(..., serialization_alias="actionName")
    action_date: datetime = Field(..., serialization_alias="actionDate")
    include_in_analytics: int = Field(default=0, serialization_alias="includeInAnalytics")

    # Contacts are keyed by email, meetings carry the attendee's email
    identity: str | None = None
    contact_email: str | None = None

    company_properties: dict[str, PropertyValue] | None = Field(
        default=None, serialization_alias="companyProperties"
    )
    user_properties: dict[str, PropertyValue] | None = Field(
        default=None, serialization_alias="userProperties"
    )
    meeting_properties: dict[str, PropertyValue] | None = Field(
        default=None, serialization_alias="meetingProperties"
    )

    @field_serializer("action_date")
    def serialize_action_date(self, value: datetime) -> int:
        """Epoch milliseconds."""
        return int(value.timestamp() * 1000)

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
