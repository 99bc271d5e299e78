import enum
from datetime import datetime, timedelta

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, Boolean, JSON
from sqlalchemy.orm import relationship

from .base import BaseModel
from .types import CaseInsensitiveEnum


class CalendarProvider(str, enum.Enum):
    GOOGLE = "google"
    OUTLOOK = "outlook"


class ConnectionStatus(str, enum.Enum):
    CONNECTED = "connected"
    ERROR = "error"


class ExternalCalendarConnection(BaseModel):
    """OAuth grant plus sync preferences for one (user, workspace, provider).

    Tokens are stored as Fernet ciphertext; read them through
    ``app.services.calendar.token_vault.TokenVault`` only.
    """

    __tablename__ = "external_calendar_connections"

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(Integer, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(
        CaseInsensitiveEnum(CalendarProvider, name="calendarprovider"),
        nullable=False,
        index=True,
    )
    email = Column(String, nullable=True)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime, nullable=True)
    sync_enabled = Column(Boolean, nullable=False, default=True)
    status = Column(
        CaseInsensitiveEnum(ConnectionStatus, name="calendarconnectionstatus"),
        nullable=False,
        default=ConnectionStatus.CONNECTED,
        index=True,
    )
    error_message = Column(Text, nullable=True)
    last_sync_at = Column(DateTime, nullable=True)
    # {"sync_campaigns": [int], "sync_platforms": [str]}
    sync_config = Column(JSON, nullable=True)

    user = relationship("User", back_populates="calendar_connections")
    events = relationship(
        "ExternalCalendarEvent",
        back_populates="connection",
        cascade="all, delete-orphan",
    )

    @property
    def is_active(self) -> bool:
        return bool(self.sync_enabled) and self.status == ConnectionStatus.CONNECTED

    @property
    def sync_campaigns(self) -> list[int]:
        return list((self.sync_config or {}).get("sync_campaigns") or [])

    @property
    def sync_platforms(self) -> list[str]:
        return list((self.sync_config or {}).get("sync_platforms") or [])

    def needs_refresh(self, margin_seconds: int = 300) -> bool:
        if self.token_expires_at is None:
            return True
        return self.token_expires_at <= datetime.utcnow() + timedelta(seconds=margin_seconds)
