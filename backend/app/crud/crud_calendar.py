from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ..models import (
    CalendarProvider,
    ConnectionStatus,
    ExternalCalendarConnection,
    ExternalCalendarEvent,
)


def get_active_connections(db: Session, user_id: int, workspace_id: int) -> list[ExternalCalendarConnection]:
    """Connections that should receive syncs for this user/workspace."""
    return (
        db.query(ExternalCalendarConnection)
        .filter(
            ExternalCalendarConnection.user_id == user_id,
            ExternalCalendarConnection.workspace_id == workspace_id,
            ExternalCalendarConnection.sync_enabled.is_(True),
            ExternalCalendarConnection.status == ConnectionStatus.CONNECTED,
        )
        .order_by(ExternalCalendarConnection.id)
        .all()
    )


def get_connections(db: Session, user_id: int, workspace_id: int) -> list[ExternalCalendarConnection]:
    return (
        db.query(ExternalCalendarConnection)
        .filter(
            ExternalCalendarConnection.user_id == user_id,
            ExternalCalendarConnection.workspace_id == workspace_id,
        )
        .order_by(ExternalCalendarConnection.id)
        .all()
    )


def get_connection(
    db: Session,
    user_id: int,
    workspace_id: int,
    provider: CalendarProvider,
) -> Optional[ExternalCalendarConnection]:
    return (
        db.query(ExternalCalendarConnection)
        .filter(
            ExternalCalendarConnection.user_id == user_id,
            ExternalCalendarConnection.workspace_id == workspace_id,
            ExternalCalendarConnection.provider == provider,
        )
        .order_by(ExternalCalendarConnection.id)
        .first()
    )


def upsert_connection(
    db: Session,
    user_id: int,
    workspace_id: int,
    provider: CalendarProvider,
    **values,
) -> tuple[ExternalCalendarConnection, bool]:
    """Create or update the connection for the triple.

    Returns ``(connection, existed)``.
    """
    connection = get_connection(db, user_id, workspace_id, provider)
    existed = connection is not None
    if connection is None:
        connection = ExternalCalendarConnection(
            user_id=user_id,
            workspace_id=workspace_id,
            provider=provider,
        )
        db.add(connection)
    for key, value in values.items():
        setattr(connection, key, value)
    db.commit()
    db.refresh(connection)
    return connection, existed


def get_event_mapping(
    db: Session, connection_id: int, publication_id: int
) -> Optional[ExternalCalendarEvent]:
    return (
        db.query(ExternalCalendarEvent)
        .filter(
            ExternalCalendarEvent.connection_id == connection_id,
            ExternalCalendarEvent.publication_id == publication_id,
        )
        .first()
    )


def get_event_mappings_for_publication(db: Session, publication_id: int) -> list[ExternalCalendarEvent]:
    return (
        db.query(ExternalCalendarEvent)
        .options(joinedload(ExternalCalendarEvent.connection))
        .filter(ExternalCalendarEvent.publication_id == publication_id)
        .order_by(ExternalCalendarEvent.id)
        .all()
    )


def create_event_mapping(
    db: Session,
    connection: ExternalCalendarConnection,
    publication_id: int,
    external_event_id: str,
) -> ExternalCalendarEvent:
    mapping = ExternalCalendarEvent(
        connection_id=connection.id,
        publication_id=publication_id,
        external_event_id=external_event_id,
        provider=connection.provider,
        last_updated_at=datetime.utcnow(),
    )
    db.add(mapping)
    db.commit()
    db.refresh(mapping)
    return mapping


def touch_event_mapping(db: Session, mapping: ExternalCalendarEvent) -> None:
    mapping.last_updated_at = datetime.utcnow()
    db.commit()


def delete_event_mapping(db: Session, mapping: ExternalCalendarEvent) -> None:
    db.delete(mapping)
    db.commit()


def delete_connection(db: Session, connection: ExternalCalendarConnection) -> int:
    """Delete the connection and its mappings; return how many mappings went."""
    # ORM cascade removes the mappings together with the connection
    removed = len(connection.events)
    db.delete(connection)
    db.commit()
    return removed
