"""Connection lifecycle: OAuth connect/callback, settings, disconnect."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional
import logging

from sqlalchemy.orm import Session

from app.crud import crud_calendar
from app.models import (
    CalendarProvider,
    Campaign,
    ConnectionStatus,
    ExternalCalendarConnection,
    User,
)
from app.schemas.calendar import CalendarConnectionStatus, SyncConfig

from . import oauth_state
from .exceptions import ConfigurationError, ConnectionNotFound
from .registry import ProviderRegistry, default_registry
from .sync_service import ExternalCalendarSyncService
from .token_vault import TokenVault

logger = logging.getLogger(__name__)


def parse_provider(name: str | CalendarProvider) -> CalendarProvider:
    if isinstance(name, CalendarProvider):
        return name
    try:
        return CalendarProvider(str(name).strip().lower())
    except ValueError:
        supported = ", ".join(p.value for p in CalendarProvider)
        raise ConfigurationError(f"Unsupported provider: {name}. Supported providers: {supported}")


class CalendarConnectionService:
    def __init__(
        self,
        db: Session,
        registry: Optional[ProviderRegistry] = None,
        vault: Optional[TokenVault] = None,
        sync_service: Optional[ExternalCalendarSyncService] = None,
    ):
        self.db = db
        self.registry = registry or default_registry()
        self.vault = vault or TokenVault()
        self.sync_service = sync_service or ExternalCalendarSyncService(
            db, registry=self.registry, vault=self.vault
        )

    def _require_connection(
        self, user: User, workspace_id: int, provider: CalendarProvider
    ) -> ExternalCalendarConnection:
        connection = crud_calendar.get_connection(self.db, user.id, workspace_id, provider)
        if connection is None:
            raise ConnectionNotFound(provider.value, workspace_id)
        return connection

    def build_connect_url(self, user: User, workspace_id: int, provider: str | CalendarProvider) -> str:
        provider = parse_provider(provider)
        state = oauth_state.encode_state(user.id, workspace_id, provider.value)
        auth_url = self.registry.create(provider).get_auth_url(state)
        logger.info(
            "Generated calendar auth URL",
            extra={"provider": provider.value, "user_id": user.id, "workspace_id": workspace_id},
        )
        return auth_url

    def complete_oauth(self, provider: str | CalendarProvider, code: str, state: str) -> ExternalCalendarConnection:
        """Exchange ``code``, store the connection and backfill on reconnection."""
        provider = parse_provider(provider)
        claims = oauth_state.decode_state(state, expected_provider=provider.value)

        grant = self.registry.create(provider).authenticate(code)

        values = {
            "email": grant.email,
            "access_token": self.vault.seal(grant.access_token),
            "token_expires_at": datetime.utcnow() + timedelta(seconds=grant.expires_in),
            "sync_enabled": True,
            "status": ConnectionStatus.CONNECTED,
            "error_message": None,
        }
        # Keep the stored refresh token when the provider does not reissue one
        if grant.refresh_token:
            values["refresh_token"] = self.vault.seal(grant.refresh_token)

        connection, existed = crud_calendar.upsert_connection(
            self.db, claims.user_id, claims.workspace_id, provider, **values
        )
        logger.info(
            "External calendar connected",
            extra={
                "user_id": claims.user_id,
                "workspace_id": claims.workspace_id,
                "provider": provider.value,
                "reconnection": existed,
            },
        )

        if existed:
            results = self.sync_service.full_sync(connection)
            logger.info(
                "Full sync after reconnection: %s/%s synced",
                len(results["successful"]),
                results["total"],
            )
        return connection

    def disconnect(self, user: User, workspace_id: int, provider: str | CalendarProvider) -> int:
        """Revoke (best-effort) and delete the connection with its event links."""
        provider = parse_provider(provider)
        connection = self._require_connection(user, workspace_id, provider)

        adapter = self.registry.create(provider)
        try:
            adapter.set_access_token(self.vault.access_token(connection))
            adapter.revoke_token()
        except Exception as exc:  # noqa: BLE001 - local removal proceeds regardless
            logger.warning("Failed to revoke %s token: %s", provider.value, exc)

        removed = crud_calendar.delete_connection(self.db, connection)
        logger.info(
            "External calendar disconnected",
            extra={
                "user_id": user.id,
                "workspace_id": workspace_id,
                "provider": provider.value,
                "events_removed": removed,
            },
        )
        return removed

    def list_status(self, user: User, workspace_id: int) -> list[CalendarConnectionStatus]:
        statuses: list[CalendarConnectionStatus] = []
        seen: set[str] = set()
        for connection in crud_calendar.get_connections(self.db, user.id, workspace_id):
            provider = connection.provider.value
            seen.add(provider)
            statuses.append(
                CalendarConnectionStatus(
                    provider=provider,
                    connected=True,
                    email=connection.email,
                    last_sync=connection.last_sync_at,
                    status=connection.status.value,
                    error_message=connection.error_message,
                    sync_enabled=bool(connection.sync_enabled),
                    sync_config=SyncConfig(
                        sync_campaigns=connection.sync_campaigns,
                        sync_platforms=connection.sync_platforms,
                    ),
                )
            )
        for provider in CalendarProvider:
            if provider.value not in seen:
                statuses.append(
                    CalendarConnectionStatus(provider=provider.value, connected=False, status="disconnected")
                )
        return statuses

    def configure_sync(
        self,
        user: User,
        workspace_id: int,
        provider: str | CalendarProvider,
        sync_enabled: Optional[bool] = None,
        sync_campaigns: Optional[list[int]] = None,
        sync_platforms: Optional[list[str]] = None,
    ) -> ExternalCalendarConnection:
        provider = parse_provider(provider)
        connection = self._require_connection(user, workspace_id, provider)

        campaigns = list(sync_campaigns or [])
        if campaigns:
            known = {
                row.id
                for row in self.db.query(Campaign.id)
                .filter(Campaign.workspace_id == workspace_id, Campaign.id.in_(campaigns))
                .all()
            }
            unknown = sorted(set(campaigns) - known)
            if unknown:
                raise ValueError(f"Unknown campaigns for workspace {workspace_id}: {unknown}")

        if sync_enabled is not None:
            connection.sync_enabled = sync_enabled
        connection.sync_config = {
            "sync_campaigns": campaigns,
            "sync_platforms": list(sync_platforms or []),
        }
        self.db.commit()
        self.db.refresh(connection)
        logger.info(
            "External calendar sync settings updated",
            extra={"user_id": user.id, "workspace_id": workspace_id, "provider": provider.value},
        )
        return connection

    def trigger_full_sync(self, user: User, workspace_id: int, provider: str | CalendarProvider) -> dict:
        provider = parse_provider(provider)
        connection = self._require_connection(user, workspace_id, provider)
        if connection.status != ConnectionStatus.CONNECTED:
            raise ConnectionNotFound(provider.value, workspace_id)
        return self.sync_service.full_sync(connection)
