"""Sync log schema. One row per account pull, written to the domain store."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class SyncLogEntry(BaseModel):
    """Single sync log entry."""
    model_config = ConfigDict(from_attributes=True)

    source: str = "hubspot"
    action: str = "pull"
    status: str  # 'success' | 'error'
    started_at: datetime
    finished_at: datetime
    duration_ms: int
    details: str | None = None
    metadata: dict[str, Any] = {}


class AccountSyncResult(BaseModel):
    """Outcome of one account's pull."""
    hub_id: str
    succeeded: list[str] = []
    failed: list[str] = []
    actions: int = 0
    persisted: bool = False

    @property
    def status(self) -> str:
        return "success" if not self.failed and self.persisted else "error"
