from datetime import datetime

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel
from .calendar_connection import CalendarProvider
from .types import CaseInsensitiveEnum


class ExternalCalendarEvent(BaseModel):
    """Maps a publication to the event id a provider assigned to it."""

    __tablename__ = "external_calendar_events"
    __table_args__ = (
        UniqueConstraint("connection_id", "publication_id", name="uq_external_event_connection_publication"),
    )

    id = Column(Integer, primary_key=True, index=True)
    connection_id = Column(
        Integer,
        ForeignKey("external_calendar_connections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    publication_id = Column(Integer, ForeignKey("publications.id", ondelete="CASCADE"), nullable=False, index=True)
    external_event_id = Column(String, nullable=False)
    provider = Column(CaseInsensitiveEnum(CalendarProvider, name="calendarprovider"), nullable=False)
    last_updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    connection = relationship("ExternalCalendarConnection", back_populates="events")
    publication = relationship("Publication")
