from .user import User
from .workspace import Workspace
from .campaign import Campaign
from .publication import Publication, SocialPlatform, publication_platforms
from .calendar_connection import (
    CalendarProvider,
    ConnectionStatus,
    ExternalCalendarConnection,
)
from .external_calendar_event import ExternalCalendarEvent

__all__ = [
    "User",
    "Workspace",
    "Campaign",
    "Publication",
    "SocialPlatform",
    "publication_platforms",
    "CalendarProvider",
    "ConnectionStatus",
    "ExternalCalendarConnection",
    "ExternalCalendarEvent",
]
