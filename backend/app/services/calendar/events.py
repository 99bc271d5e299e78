"""Provider-neutral rendering of a publication as a calendar event."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from app.core.config import settings
from app.models import Publication

PREVIEW_LENGTH = 200
EVENT_DURATION = timedelta(hours=1)
DEFAULT_TITLE = "Scheduled publication"


def content_preview(content: str | None, limit: int = PREVIEW_LENGTH) -> str:
    if not content:
        return ""
    if len(content) <= limit:
        return content
    return content[:limit] + "..."


def _as_utc(value: datetime) -> datetime:
    # Naive datetimes coming back from the database are UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class EventWindow:
    start: datetime
    end: datetime
    timezone: str


def event_window(scheduled_at: datetime, tz_name: str | None = None) -> EventWindow:
    """Return the one-hour slot starting at ``scheduled_at`` in ``tz_name``."""
    tz_name = tz_name or settings.APP_TIMEZONE
    tz = ZoneInfo(tz_name)
    # Add the hour in UTC so a DST shift inside the slot cannot stretch it.
    utc = _as_utc(scheduled_at)
    return EventWindow(
        start=utc.astimezone(tz),
        end=(utc + EVENT_DURATION).astimezone(tz),
        timezone=tz_name,
    )


def event_title(publication: Publication) -> str:
    return publication.title or DEFAULT_TITLE


def event_description(publication: Publication, app_url: str | None = None) -> str:
    lines: list[str] = []

    preview = content_preview(publication.content)
    if preview:
        lines.append(preview)
        lines.append("")

    platform_names = publication.platform_names
    if platform_names:
        lines.append("Platforms: " + ", ".join(platform_names))

    if publication.campaign is not None:
        lines.append("Campaign: " + publication.campaign.name)

    lines.append("Status: " + (publication.status or "").capitalize())

    lines.append("")
    lines.append("Open in ContentFlow: " + (app_url or settings.APP_URL) + "/content")
    return "\n".join(lines)
