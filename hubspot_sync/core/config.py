"""
Worker configuration from environment variables.
Settings class using pydantic-settings with optional validation.
"""

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads when running from any directory
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """
    Worker settings loaded from environment and .env.
    All fields have defaults for local runs and tests; validate before a real pull.
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase (domain store)
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_KEY: str = ""
    domain_id: str = Field(
        default="",
        description="Domain row to load; empty picks the first row",
        validation_alias="DOMAIN_ID",
    )

    # HubSpot OAuth app (explicit env names, read once per process)
    hubspot_client_id: str = Field(
        default="",
        description="HubSpot OAuth client id",
        validation_alias="HUBSPOT_CID",
    )
    hubspot_client_secret: str = Field(
        default="",
        description="HubSpot OAuth client secret",
        validation_alias="HUBSPOT_CS",
    )
    hubspot_base_url: str = Field(
        default="https://api.hubapi.com",
        validation_alias="HUBSPOT_BASE_URL",
    )

    # Downstream event sink
    event_sink_url: str = Field(
        default="",
        description="Bulk ingest endpoint for actions",
        validation_alias="EVENT_SINK_URL",
    )
    event_sink_api_key: str = Field(
        default="",
        validation_alias="EVENT_SINK_API_KEY",
    )

    # Sync tuning
    action_flush_threshold: int = Field(default=2000, validation_alias="ACTION_FLUSH_THRESHOLD")
    search_page_limit: int = Field(default=100, validation_alias="SEARCH_PAGE_LIMIT")
    paging_offset_ceiling: int = Field(default=9900, validation_alias="PAGING_OFFSET_CEILING")
    fetch_max_retries: int = Field(default=4, validation_alias="FETCH_MAX_RETRIES")
    fetch_backoff_base_seconds: float = Field(default=5.0, validation_alias="FETCH_BACKOFF_BASE_SECONDS")
    action_date_skew_seconds: int = Field(default=2, validation_alias="ACTION_DATE_SKEW_SECONDS")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("hubspot_base_url", "event_sink_url", mode="before")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> str:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "INFO"
        return str(v).strip().upper()

    def validate_for_production(self) -> None:
        """
        Call to validate that required env vars are set before a real pull.
        Raises ValueError with missing keys.
        """
        missing: List[str] = []
        if not self.hubspot_client_id:
            missing.append("HUBSPOT_CID")
        if not self.hubspot_client_secret:
            missing.append("HUBSPOT_CS")
        if not self.SUPABASE_URL:
            missing.append("SUPABASE_URL")
        if not self.SUPABASE_SERVICE_KEY:
            missing.append("SUPABASE_SERVICE_KEY")
        if not self.event_sink_url:
            missing.append("EVENT_SINK_URL")
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
