from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class SyncConfig(BaseModel):
    sync_campaigns: list[int] = Field(default_factory=list)
    sync_platforms: list[str] = Field(default_factory=list)


class SyncSettingsUpdate(BaseModel):
    """Body of ``PUT /external-calendars/{provider}/settings``."""

    sync_enabled: Optional[bool] = None
    sync_campaigns: Optional[list[int]] = None
    sync_platforms: Optional[list[str]] = None

    @field_validator("sync_platforms")
    def normalize_platforms(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        if v is None:
            return v
        return [p.strip().lower() for p in v if p and p.strip()]


class CalendarConnectionStatus(BaseModel):
    provider: str
    connected: bool
    email: Optional[str] = None
    last_sync: Optional[datetime] = None
    status: str
    error_message: Optional[str] = None
    sync_enabled: bool = False
    sync_config: Optional[SyncConfig] = None


class CalendarStatusResponse(BaseModel):
    connections: list[CalendarConnectionStatus]


class ConnectUrlResponse(BaseModel):
    auth_url: str


class SyncFailure(BaseModel):
    id: Optional[int] = None
    error: str


class FullSyncResult(BaseModel):
    successful: list[int] = Field(default_factory=list)
    failed: list[SyncFailure] = Field(default_factory=list)
    total: int = 0
