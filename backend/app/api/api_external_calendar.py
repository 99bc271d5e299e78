import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from app.core.config import settings
from app.database import get_db
from app.models import CalendarProvider, User
from app.schemas.calendar import (
    CalendarStatusResponse,
    ConnectUrlResponse,
    FullSyncResult,
    SyncSettingsUpdate,
)
from app.services.calendar.connection_service import CalendarConnectionService
from app.services.calendar.exceptions import (
    CalendarSyncError,
    ConfigurationError,
    ConnectionNotFound,
    InvalidOAuthState,
)
from app.utils.errors import error_response

from .dependencies import get_current_active_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/external-calendars", tags=["external-calendars"])


def get_connection_service(db: Session = Depends(get_db)) -> CalendarConnectionService:
    return CalendarConnectionService(db)


def _resolve_workspace(current_user: User, workspace_id: Optional[int]) -> int:
    resolved = workspace_id or current_user.current_workspace_id
    if resolved is None:
        raise error_response(
            "Workspace is required",
            {"workspace_id": "No workspace given and no current workspace set"},
        )
    return resolved


def _provider_or_404(provider: str) -> CalendarProvider:
    try:
        return CalendarProvider(provider.strip().lower())
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown calendar provider: {provider}")


def _http_error(exc: CalendarSyncError) -> HTTPException:
    if isinstance(exc, ConnectionNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, InvalidOAuthState):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OAuth state")
    if isinstance(exc, ConfigurationError):
        logger.error("External calendar misconfigured: %s", exc)
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


@router.get("/status", response_model=CalendarStatusResponse)
def external_calendar_status(
    workspace_id: Optional[int] = None,
    current_user: User = Depends(get_current_active_user),
    service: CalendarConnectionService = Depends(get_connection_service),
):
    """Return connection state for every supported provider."""
    workspace_id = _resolve_workspace(current_user, workspace_id)
    return CalendarStatusResponse(connections=service.list_status(current_user, workspace_id))


@router.get("/{provider}/connect", response_model=ConnectUrlResponse)
def connect_external_calendar(
    provider: str,
    workspace_id: Optional[int] = None,
    current_user: User = Depends(get_current_active_user),
    service: CalendarConnectionService = Depends(get_connection_service),
):
    provider = _provider_or_404(provider)
    workspace_id = _resolve_workspace(current_user, workspace_id)
    try:
        url = service.build_connect_url(current_user, workspace_id, provider)
    except CalendarSyncError as exc:
        raise _http_error(exc)
    return ConnectUrlResponse(auth_url=url)


@router.get("/{provider}/callback")
def external_calendar_callback(
    provider: str,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    service: CalendarConnectionService = Depends(get_connection_service),
):
    provider = _provider_or_404(provider)
    status_value = "success"
    try:
        if not code or not state:
            status_value = "error"
            logger.warning(
                "Calendar authorization returned without %s",
                "code" if not code else "state",
                extra={"provider": provider.value, "oauth_error": error},
            )
        else:
            service.complete_oauth(provider, code, state)
    except InvalidOAuthState as exc:
        status_value = "error"
        logger.error("Invalid calendar OAuth state (%s)", exc, extra={"provider": provider.value})
    except Exception as exc:  # noqa: BLE001
        status_value = "error"
        logger.error("Failed to complete %s calendar authorization: %s", provider.value, exc, exc_info=True)
    redirect_target = f"{settings.FRONTEND_URL}/settings/integrations?calendarSync={status_value}&provider={provider.value}"
    return RedirectResponse(url=redirect_target)


@router.put("/{provider}/settings")
def update_external_calendar_settings(
    provider: str,
    payload: SyncSettingsUpdate,
    workspace_id: Optional[int] = None,
    current_user: User = Depends(get_current_active_user),
    service: CalendarConnectionService = Depends(get_connection_service),
):
    provider = _provider_or_404(provider)
    workspace_id = _resolve_workspace(current_user, workspace_id)
    try:
        connection = service.configure_sync(
            current_user,
            workspace_id,
            provider,
            sync_enabled=payload.sync_enabled,
            sync_campaigns=payload.sync_campaigns,
            sync_platforms=payload.sync_platforms,
        )
    except ValueError as exc:
        raise error_response(str(exc), {"sync_campaigns": "Unknown campaign"})
    except CalendarSyncError as exc:
        raise _http_error(exc)
    return {
        "provider": connection.provider.value,
        "sync_enabled": bool(connection.sync_enabled),
        "sync_config": {
            "sync_campaigns": connection.sync_campaigns,
            "sync_platforms": connection.sync_platforms,
        },
    }


@router.post("/{provider}/full-sync", response_model=FullSyncResult)
def full_sync_external_calendar(
    provider: str,
    workspace_id: Optional[int] = None,
    current_user: User = Depends(get_current_active_user),
    service: CalendarConnectionService = Depends(get_connection_service),
):
    provider = _provider_or_404(provider)
    workspace_id = _resolve_workspace(current_user, workspace_id)
    try:
        results = service.trigger_full_sync(current_user, workspace_id, provider)
    except CalendarSyncError as exc:
        raise _http_error(exc)
    return FullSyncResult(**results)


@router.delete("/{provider}")
def disconnect_external_calendar(
    provider: str,
    workspace_id: Optional[int] = None,
    current_user: User = Depends(get_current_active_user),
    service: CalendarConnectionService = Depends(get_connection_service),
):
    provider = _provider_or_404(provider)
    workspace_id = _resolve_workspace(current_user, workspace_id)
    try:
        removed = service.disconnect(current_user, workspace_id, provider)
    except CalendarSyncError as exc:
        raise _http_error(exc)
    return {"status": "deleted", "events_removed": removed}
