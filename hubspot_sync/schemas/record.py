"""
Raw CRM records as returned by the HubSpot search / batch read endpoints,
plus the pagination cursor threaded through a search loop.
"""

from datetime import datetime
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hubspot_sync.schemas.account import ensure_utc_aware

# Property bags hold a small set of value kinds; None means the property is absent.
PropertyValue = str | int | float | datetime | None


def filter_null_values(values: Mapping[str, PropertyValue]) -> dict[str, PropertyValue]:
    """Drop absent properties instead of defaulting them."""
    return {k: v for k, v in values.items() if v is not None}


class RawRecord(BaseModel):
    """Single CRM object (company, contact or meeting)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    created_at: datetime = Field(..., validation_alias="createdAt")
    updated_at: datetime = Field(..., validation_alias="updatedAt")
    properties: dict[str, PropertyValue] | None = None
    archived: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v) if v is not None else v

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def to_utc(cls, v: datetime) -> datetime:
        return ensure_utc_aware(v)

    def prop(self, name: str) -> PropertyValue:
        """Property value or None when absent."""
        if not self.properties:
            return None
        return self.properties.get(name)


class PaginationCursor(BaseModel):
    """
    Search paging state: `after` is the provider offset, `last_modified_date`
    the lower bound of the time window. Immutable; each page step returns a new one.
    """
    model_config = ConfigDict(frozen=True)

    after: int | None = None
    last_modified_date: datetime | None = None
