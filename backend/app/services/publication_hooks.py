"""Publication lifecycle entry points for external calendar sync.

Called by the content editor after a publication write has been committed
(and, for deletes, before the row is removed). None of these raise: calendar
sync must never block the publication write that triggered it.
"""

from __future__ import annotations

from typing import Optional
import logging

from sqlalchemy.orm import Session

from app.models import Publication, User
from app.services.calendar.sync_service import ExternalCalendarSyncService, SyncOutcome

logger = logging.getLogger(__name__)


def _publication_id(publication: Publication) -> Optional[int]:
    # Loaded column values survive detachment; an expired instance does not.
    return publication.__dict__.get("id")


def on_publication_created(
    db: Session,
    publication: Publication,
    user: Optional[User] = None,
    sync_service: Optional[ExternalCalendarSyncService] = None,
) -> Optional[SyncOutcome]:
    publication_id = _publication_id(publication)
    try:
        user = user or publication.user
        if user is None or publication.scheduled_at is None:
            return None
        service = sync_service or ExternalCalendarSyncService(db)
        return service.sync_publication(publication, user)
    except Exception as exc:  # noqa: BLE001
        logger.error("Calendar sync after create of publication %s failed: %s", publication_id, exc)
        return None


def on_publication_updated(
    db: Session,
    publication: Publication,
    user: Optional[User] = None,
    sync_service: Optional[ExternalCalendarSyncService] = None,
) -> None:
    """Propagate an edit; an unscheduled publication loses its remote events."""
    publication_id = _publication_id(publication)
    try:
        service = sync_service or ExternalCalendarSyncService(db)
        if publication.scheduled_at is None:
            service.handle_publication_deleted(publication)
        else:
            service.handle_publication_updated(publication, user)
    except Exception as exc:  # noqa: BLE001
        logger.error("Calendar sync after update of publication %s failed: %s", publication_id, exc)


def on_publication_deleted(
    db: Session,
    publication: Publication,
    sync_service: Optional[ExternalCalendarSyncService] = None,
) -> None:
    publication_id = _publication_id(publication)
    try:
        service = sync_service or ExternalCalendarSyncService(db)
        service.handle_publication_deleted(publication)
    except Exception as exc:  # noqa: BLE001
        logger.error("Calendar sync after delete of publication %s failed: %s", publication_id, exc)
