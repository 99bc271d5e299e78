"""Mirror scheduled publications into connected external calendars.

Sync is best-effort relative to the publication write that triggers it:
every public entry point logs and records failures on the connection row
(``status=error`` plus a message) instead of raising. Operators see those
failures through the ``calendar_sync.*`` counters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional
import logging
import time

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.crud import crud_calendar, crud_publication
from app.models import (
    ConnectionStatus,
    ExternalCalendarConnection,
    ExternalCalendarEvent,
    Publication,
    User,
)
from app.utils.metrics import incr, timing_ms

from .base import CalendarProviderAdapter
from .exceptions import AuthenticationError, CalendarSyncError, ConfigurationError
from .filters import should_sync
from .registry import ProviderRegistry, default_registry
from .token_vault import TokenVault

logger = logging.getLogger(__name__)

ERROR_MESSAGE_LIMIT = 500


def _provider_name(connection: ExternalCalendarConnection) -> str:
    provider = connection.provider
    return getattr(provider, "value", provider)


@dataclass
class SyncOutcome:
    """Per-connection result of syncing one publication."""

    publication_id: int
    synced: list[int] = field(default_factory=list)
    # connection id -> error message; None keys a failure outside any connection
    errors: dict[Optional[int], str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


class ExternalCalendarSyncService:
    def __init__(
        self,
        db: Session,
        registry: Optional[ProviderRegistry] = None,
        vault: Optional[TokenVault] = None,
        refresh_margin_seconds: Optional[int] = None,
    ):
        self.db = db
        self.registry = registry or default_registry()
        self.vault = vault or TokenVault()
        if refresh_margin_seconds is None:
            refresh_margin_seconds = settings.CALENDAR_TOKEN_REFRESH_MARGIN_SECONDS
        self.refresh_margin_seconds = refresh_margin_seconds

    # ── Entry points ─────────────────────────────────────────────────────

    def sync_publication(self, publication: Publication, user: User) -> SyncOutcome:
        """Create or update the publication's event on every active connection."""
        outcome = SyncOutcome(publication_id=publication.id)
        try:
            connections = crud_calendar.get_active_connections(self.db, user.id, publication.workspace_id)
            if not connections:
                logger.info(
                    "No active calendar connections for user %s workspace %s",
                    user.id,
                    publication.workspace_id,
                )
                return outcome

            for connection in connections:
                if not should_sync(publication, connection):
                    logger.info(
                        "Publication %s filtered out for connection %s",
                        publication.id,
                        connection.id,
                    )
                    continue
                error = self._sync_to_connection(connection, publication)
                if error is None:
                    outcome.synced.append(connection.id)
                else:
                    outcome.errors[connection.id] = error
        except Exception as exc:  # noqa: BLE001 - sync must never block the publication write
            logger.error(
                "Failed to sync publication %s to external calendars: %s",
                publication.id,
                exc,
                exc_info=True,
            )
            self.db.rollback()
            outcome.errors[None] = str(exc)
        return outcome

    def sync_bulk_publications(self, publications: Iterable[Publication], user: User) -> dict:
        results: dict = {"successful": [], "failed": []}
        for publication in publications:
            try:
                outcome = self.sync_publication(publication, user)
            except Exception as exc:  # noqa: BLE001
                outcome = SyncOutcome(publication_id=publication.id, errors={None: str(exc)})
            if outcome.ok:
                results["successful"].append(publication.id)
            else:
                results["failed"].append(
                    {"id": publication.id, "error": "; ".join(outcome.errors.values())}
                )
        return results

    def full_sync(self, connection: ExternalCalendarConnection) -> dict:
        """Backfill every upcoming publication of the connection's workspace.

        Remote events whose publication was deleted locally are left alone.
        """
        results: dict = {"successful": [], "failed": [], "total": 0}
        started = time.perf_counter()
        try:
            candidates = [
                publication
                for publication in crud_publication.get_upcoming_for_workspace(self.db, connection.workspace_id)
                if should_sync(publication, connection)
            ]
            results["total"] = len(candidates)
            if not candidates:
                self._stamp_last_sync(connection)
                return results

            try:
                adapter = self._authorized_adapter(connection)
            except ConfigurationError as exc:
                self._log_misconfiguration(connection, exc)
                results["failed"] = [{"id": p.id, "error": str(exc)} for p in candidates]
                return results
            except Exception as exc:  # noqa: BLE001
                message = self._handle_sync_error(connection, exc)
                results["failed"] = [{"id": p.id, "error": message} for p in candidates]
                self._stamp_last_sync(connection)
                return results

            for publication in candidates:
                try:
                    self._upsert_remote_event(adapter, connection, publication)
                    results["successful"].append(publication.id)
                except Exception as exc:  # noqa: BLE001
                    self.db.rollback()
                    results["failed"].append({"id": publication.id, "error": str(exc)})
                    incr("calendar_sync.failure", tags={"provider": _provider_name(connection), "op": "full_sync"})
                    logger.warning(
                        "Failed to sync publication %s during full sync of connection %s: %s",
                        publication.id,
                        connection.id,
                        exc,
                    )

            self._stamp_last_sync(connection)
            logger.info(
                "Full sync completed",
                extra={
                    "connection_id": connection.id,
                    "provider": _provider_name(connection),
                    "total": results["total"],
                    "successful": len(results["successful"]),
                    "failed": len(results["failed"]),
                },
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("Full sync of connection %s failed: %s", connection.id, exc, exc_info=True)
            self.db.rollback()
            if not results["failed"] and not results["successful"]:
                results["failed"].append({"id": None, "error": str(exc)})
        finally:
            timing_ms(
                "calendar_sync.full_sync.ms",
                (time.perf_counter() - started) * 1000.0,
                tags={"provider": _provider_name(connection)},
            )
        return results

    def handle_publication_updated(self, publication: Publication, user: Optional[User] = None) -> None:
        """Propagate an edit to every calendar already holding the publication.

        Connections whose filters no longer match get the remote event removed.
        When ``user`` is given, matching connections that do not hold the
        publication yet receive a new event.
        """
        try:
            mappings = crud_calendar.get_event_mappings_for_publication(self.db, publication.id)
            linked = set()
            for mapping in mappings:
                connection = mapping.connection
                linked.add(mapping.connection_id)
                if connection is None or not connection.is_active:
                    continue
                try:
                    adapter = self._authorized_adapter(connection)
                    if should_sync(publication, connection):
                        self._update_remote_event(adapter, mapping, publication)
                    else:
                        logger.info(
                            "Publication %s no longer matches connection %s; removing event",
                            publication.id,
                            connection.id,
                        )
                        self._delete_remote_event(adapter, mapping)
                except ConfigurationError as exc:
                    self._log_misconfiguration(connection, exc)
                except Exception as exc:  # noqa: BLE001
                    self._handle_sync_error(connection, exc)
                finally:
                    self._stamp_last_sync(connection)

            if user is not None:
                for connection in crud_calendar.get_active_connections(self.db, user.id, publication.workspace_id):
                    if connection.id in linked or not should_sync(publication, connection):
                        continue
                    self._sync_to_connection(connection, publication)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Failed to handle update of publication %s: %s", publication.id, exc, exc_info=True
            )
            self.db.rollback()

    def handle_publication_deleted(self, publication: Publication) -> None:
        """Remove the publication's event from every calendar holding it.

        Mapping rows are removed even when the remote delete fails, since the
        publication they point at is going away.
        """
        try:
            mappings = crud_calendar.get_event_mappings_for_publication(self.db, publication.id)
            for mapping in mappings:
                connection = mapping.connection
                if connection is None:
                    crud_calendar.delete_event_mapping(self.db, mapping)
                    continue
                try:
                    adapter = self._authorized_adapter(connection)
                    self._delete_remote_event(adapter, mapping)
                except ConfigurationError as exc:
                    self._log_misconfiguration(connection, exc)
                    self._drop_mapping(mapping)
                except Exception as exc:  # noqa: BLE001
                    self._handle_sync_error(connection, exc)
                    self._drop_mapping(mapping)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Failed to handle deletion of publication %s: %s", publication.id, exc, exc_info=True
            )
            self.db.rollback()

    # ── Per-connection steps ─────────────────────────────────────────────

    def _sync_to_connection(
        self, connection: ExternalCalendarConnection, publication: Publication
    ) -> Optional[str]:
        """Create or update one remote event; return an error message on failure."""
        error = None
        try:
            adapter = self._authorized_adapter(connection)
            self._upsert_remote_event(adapter, connection, publication)
        except ConfigurationError as exc:
            self._log_misconfiguration(connection, exc)
            error = str(exc)
        except Exception as exc:  # noqa: BLE001
            error = self._handle_sync_error(connection, exc)
        finally:
            self._stamp_last_sync(connection)
        return error

    def _authorized_adapter(self, connection: ExternalCalendarConnection) -> CalendarProviderAdapter:
        adapter = self.registry.create(connection.provider)
        if connection.needs_refresh(self.refresh_margin_seconds):
            self._refresh_connection_token(connection, adapter)
        adapter.set_access_token(self.vault.access_token(connection))
        return adapter

    def _refresh_connection_token(
        self, connection: ExternalCalendarConnection, adapter: CalendarProviderAdapter
    ) -> None:
        try:
            grant = adapter.refresh_token(self.vault.refresh_token(connection))
        except ConfigurationError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Failed to refresh external calendar token for connection %s: %s",
                connection.id,
                exc,
            )
            self.db.rollback()
            message = f"Token refresh failed: {exc}"[:ERROR_MESSAGE_LIMIT]
            connection.status = ConnectionStatus.ERROR
            connection.error_message = message
            self.db.commit()
            raise AuthenticationError(message) from exc

        connection.access_token = self.vault.seal(grant.access_token)
        if grant.refresh_token:
            # Microsoft rotates refresh tokens on use
            connection.refresh_token = self.vault.seal(grant.refresh_token)
        connection.token_expires_at = datetime.utcnow() + timedelta(seconds=grant.expires_in)
        connection.status = ConnectionStatus.CONNECTED
        connection.error_message = None
        self.db.commit()
        logger.info(
            "External calendar token refreshed",
            extra={"connection_id": connection.id, "provider": _provider_name(connection)},
        )

    def _upsert_remote_event(
        self,
        adapter: CalendarProviderAdapter,
        connection: ExternalCalendarConnection,
        publication: Publication,
    ) -> None:
        mapping = crud_calendar.get_event_mapping(self.db, connection.id, publication.id)
        if mapping is not None:
            self._update_remote_event(adapter, mapping, publication)
        else:
            self._create_remote_event(adapter, connection, publication)

    def _create_remote_event(
        self,
        adapter: CalendarProviderAdapter,
        connection: ExternalCalendarConnection,
        publication: Publication,
    ) -> ExternalCalendarEvent:
        external_event_id = adapter.create_event(publication)
        try:
            mapping = crud_calendar.create_event_mapping(self.db, connection, publication.id, external_event_id)
        except IntegrityError as exc:
            # A concurrent sync already linked this pair; drop our duplicate.
            self.db.rollback()
            try:
                adapter.delete_event(external_event_id)
            except CalendarSyncError as cleanup_exc:
                logger.warning("Could not remove duplicate event %s: %s", external_event_id, cleanup_exc)
            raise CalendarSyncError(
                f"Publication {publication.id} is already linked to connection {connection.id}"
            ) from exc
        logger.info(
            "External calendar event created",
            extra={
                "publication_id": publication.id,
                "provider": _provider_name(connection),
                "external_event_id": external_event_id,
            },
        )
        return mapping

    def _update_remote_event(
        self,
        adapter: CalendarProviderAdapter,
        mapping: ExternalCalendarEvent,
        publication: Publication,
    ) -> None:
        adapter.update_event(mapping.external_event_id, publication)
        crud_calendar.touch_event_mapping(self.db, mapping)
        logger.info(
            "External calendar event updated",
            extra={"publication_id": publication.id, "external_event_id": mapping.external_event_id},
        )

    def _delete_remote_event(self, adapter: CalendarProviderAdapter, mapping: ExternalCalendarEvent) -> None:
        external_event_id = mapping.external_event_id
        adapter.delete_event(external_event_id)
        crud_calendar.delete_event_mapping(self.db, mapping)
        logger.info("External calendar event deleted", extra={"external_event_id": external_event_id})

    def _drop_mapping(self, mapping: ExternalCalendarEvent) -> None:
        self.db.rollback()
        crud_calendar.delete_event_mapping(self.db, mapping)

    # ── Bookkeeping ──────────────────────────────────────────────────────

    def _stamp_last_sync(self, connection: ExternalCalendarConnection) -> None:
        connection.last_sync_at = datetime.utcnow()
        self.db.commit()

    def _handle_sync_error(self, connection: ExternalCalendarConnection, exc: Exception) -> str:
        """Record a per-connection failure; never raises for provider errors."""
        message = str(exc)[:ERROR_MESSAGE_LIMIT]
        logger.error(
            "External calendar sync error on connection %s (%s): %s",
            connection.id,
            _provider_name(connection),
            exc,
            exc_info=True,
        )
        incr(
            "calendar_sync.failure",
            tags={"provider": _provider_name(connection), "error": type(exc).__name__},
        )
        self.db.rollback()
        connection.status = ConnectionStatus.ERROR
        connection.error_message = message
        self.db.commit()
        return message

    def _log_misconfiguration(self, connection: ExternalCalendarConnection, exc: ConfigurationError) -> None:
        # Not the connection's fault: leave its status alone.
        self.db.rollback()
        logger.error(
            "Calendar provider misconfigured for connection %s: %s", connection.id, exc
        )
        incr("calendar_sync.misconfigured", tags={"provider": _provider_name(connection)})
