"""
Domain / HubSpot account schema. Mirrors the domain store row layout.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

OBJECT_TYPES = ("companies", "contacts", "meetings")


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime uses datetime.timezone.utc; naive values are taken as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class LastPulledDates(BaseModel):
    """Per object type watermark: upper bound of previously synced data."""
    companies: datetime | None = None
    contacts: datetime | None = None
    meetings: datetime | None = None

    @field_validator("companies", "contacts", "meetings", mode="after")
    @classmethod
    def to_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc_aware(v)

    def get(self, object_type: str) -> datetime | None:
        if object_type not in OBJECT_TYPES:
            raise KeyError(object_type)
        return getattr(self, object_type)

    def advance(self, object_type: str, value: datetime) -> None:
        """Move one watermark forward; never moves it back."""
        current = self.get(object_type)
        value = ensure_utc_aware(value)
        if current is not None and value < current:
            return
        setattr(self, object_type, value)


class HubSpotAccount(BaseModel):
    """One connected HubSpot portal (tenant)."""
    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    hub_id: str = Field(..., validation_alias="hubId", serialization_alias="hubId")
    access_token: str = Field(default="", validation_alias="accessToken", serialization_alias="accessToken")
    refresh_token: str = Field(default="", validation_alias="refreshToken", serialization_alias="refreshToken")
    last_pulled_dates: LastPulledDates = Field(
        default_factory=LastPulledDates,
        validation_alias="lastPulledDates",
        serialization_alias="lastPulledDates",
    )

    @field_validator("hub_id", mode="before")
    @classmethod
    def coerce_hub_id(cls, v: object) -> str:
        return str(v) if v is not None else v


class Domain(BaseModel):
    """Domain record: API key of the customer plus its HubSpot accounts."""
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    api_key: str = Field(default="", validation_alias="apiKey", serialization_alias="apiKey")
    accounts: list[HubSpotAccount] = []

    _modified: set[str] = PrivateAttr(default_factory=set)

    def find_account(self, hub_id: str) -> HubSpotAccount | None:
        return next((a for a in self.accounts if a.hub_id == str(hub_id)), None)

    def mark_modified(self, path: str) -> None:
        """Flag a nested path as changed so the store writes it even if it looks equal."""
        self._modified.add(path)

    def is_modified(self, path: str) -> bool:
        return path in self._modified

    def clear_modified(self) -> None:
        self._modified.clear()
