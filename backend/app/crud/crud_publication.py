from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..models import Publication


def get_publication(db: Session, publication_id: int) -> Optional[Publication]:
    return db.query(Publication).filter(Publication.id == publication_id).first()


def get_upcoming_for_workspace(
    db: Session, workspace_id: int, now: Optional[datetime] = None
) -> list[Publication]:
    """Scheduled publications of the workspace at or after ``now`` (naive UTC)."""
    now = now or datetime.utcnow()
    return (
        db.query(Publication)
        .filter(
            Publication.workspace_id == workspace_id,
            Publication.scheduled_at.isnot(None),
            Publication.scheduled_at >= now,
        )
        .order_by(Publication.scheduled_at, Publication.id)
        .all()
    )
