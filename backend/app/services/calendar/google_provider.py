"""Google Calendar adapter.

OAuth goes through ``google_auth_oauthlib`` and event calls through the
discovery-based ``googleapiclient``. Every HTTP call carries the configured
provider timeout.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
import logging

import httplib2
import httpx
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from app.core.config import settings
from app.models import Publication

from .base import DEFAULT_EXPIRES_IN, CalendarProviderAdapter, TokenGrant
from .events import event_description, event_title, event_window
from .exceptions import AuthenticationError, ConfigurationError, ProviderError

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
    "openid",
]

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
GOOGLE_REVOKE_URI = "https://oauth2.googleapis.com/revoke"

# Blue in Google's event palette
EVENT_COLOR_ID = "9"

_GONE_STATUSES = {404, 410}


class _TimeoutRequest(Request):
    """google-auth transport that applies a default timeout to every call."""

    def __init__(self, timeout: float):
        super().__init__()
        self._timeout = timeout

    def __call__(self, url, method="GET", body=None, headers=None, timeout=None, **kwargs):
        return super().__call__(
            url,
            method=method,
            body=body,
            headers=headers,
            timeout=timeout or self._timeout,
            **kwargs,
        )


def _http_status(exc: HttpError) -> Optional[int]:
    status = getattr(getattr(exc, "resp", None), "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _expires_in(expiry: Optional[datetime]) -> int:
    if expiry is None:
        return DEFAULT_EXPIRES_IN
    # google-auth reports expiry as naive UTC
    return max(0, int((expiry - datetime.utcnow()).total_seconds()))


class GoogleCalendarProvider(CalendarProviderAdapter):
    name = "google"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        calendar_id: str = "primary",
        timeout: Optional[float] = None,
    ):
        self.client_id = client_id if client_id is not None else settings.GOOGLE_CALENDAR_CLIENT_ID
        self.client_secret = (
            client_secret if client_secret is not None else settings.GOOGLE_CALENDAR_CLIENT_SECRET
        )
        self.redirect_uri = redirect_uri or settings.GOOGLE_CALENDAR_REDIRECT_URI
        self.calendar_id = calendar_id
        self.timeout = timeout or settings.CALENDAR_PROVIDER_TIMEOUT_SECONDS
        self._credentials: Optional[Credentials] = None
        self._service: Any = None

    # ── OAuth ────────────────────────────────────────────────────────────

    def _require_credentials(self) -> None:
        if not self.client_id or not self.client_secret:
            logger.warning("Google Calendar credentials not configured")
            raise ConfigurationError("Google Calendar credentials not configured")

    def _flow(self) -> Any:
        return Flow.from_client_config(
            {
                "web": {
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "redirect_uris": [self.redirect_uri],
                    "auth_uri": GOOGLE_AUTH_URI,
                    "token_uri": GOOGLE_TOKEN_URI,
                }
            },
            scopes=SCOPES,
            redirect_uri=self.redirect_uri,
            # The code is exchanged by a different Flow instance
            autogenerate_code_verifier=False,
        )

    def get_auth_url(self, state: Optional[str] = None) -> str:
        self._require_credentials()
        flow = self._flow()
        params = {
            "access_type": "offline",
            "include_granted_scopes": "true",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        auth_url, _ = flow.authorization_url(**params)
        return auth_url

    def authenticate(self, code: str) -> TokenGrant:
        self._require_credentials()
        flow = self._flow()
        try:
            flow.fetch_token(code=code, timeout=self.timeout)
        except Exception as exc:  # noqa: BLE001 - oauthlib/requests raise many types
            logger.error("Google Calendar code exchange failed: %s", exc)
            raise AuthenticationError(f"Error fetching access token: {exc}") from exc

        creds = flow.credentials
        if not getattr(creds, "token", None):
            raise AuthenticationError("Google returned no access token")

        email = None
        try:
            user_service = build("oauth2", "v2", credentials=creds, cache_discovery=False)
            email = user_service.userinfo().get().execute().get("email")
        except HttpError as exc:
            logger.error("Failed to fetch Google account email: %s", exc, exc_info=True)

        return TokenGrant(
            access_token=creds.token,
            refresh_token=creds.refresh_token,
            expires_in=_expires_in(creds.expiry),
            email=email,
        )

    def refresh_token(self, refresh_token: str) -> TokenGrant:
        self._require_credentials()
        creds = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
        )
        try:
            creds.refresh(_TimeoutRequest(self.timeout))
        except RefreshError as exc:
            logger.error("Google Calendar token refresh rejected: %s", exc)
            raise AuthenticationError(str(exc)) from exc
        except TransportError as exc:
            logger.error("Google Calendar token refresh failed: %s", exc)
            raise ProviderError(f"Token endpoint unreachable: {exc}") from exc
        return TokenGrant(access_token=creds.token, expires_in=_expires_in(creds.expiry))

    def set_access_token(self, access_token: str) -> None:
        self._credentials = Credentials(token=access_token)
        http = AuthorizedHttp(self._credentials, http=httplib2.Http(timeout=self.timeout))
        self._service = build("calendar", "v3", http=http, cache_discovery=False)

    def revoke_token(self) -> bool:
        token = getattr(self._credentials, "token", None)
        if not token:
            return False
        try:
            resp = httpx.post(
                GOOGLE_REVOKE_URI,
                params={"token": token},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("Failed to revoke Google Calendar token: %s", exc)
            return False
        if resp.status_code != 200:
            logger.warning("Google token revoke returned %s", resp.status_code)
            return False
        logger.info("Google Calendar token revoked")
        return True

    # ── Events ───────────────────────────────────────────────────────────

    def _events(self) -> Any:
        if self._service is None:
            raise ProviderError("Google Calendar service not initialized. Call set_access_token first.")
        return self._service.events()

    def _event_body(self, publication: Publication) -> dict:
        window = event_window(publication.scheduled_at)
        return {
            "summary": event_title(publication),
            "description": event_description(publication),
            "start": {"dateTime": window.start.isoformat(), "timeZone": window.timezone},
            "end": {"dateTime": window.end.isoformat(), "timeZone": window.timezone},
            "colorId": EVENT_COLOR_ID,
        }

    def create_event(self, publication: Publication) -> str:
        events = self._events()
        try:
            created = events.insert(calendarId=self.calendar_id, body=self._event_body(publication)).execute()
        except HttpError as exc:
            logger.error("Failed to create Google Calendar event for publication %s: %s", publication.id, exc)
            raise ProviderError(f"Google Calendar insert failed: {exc}", _http_status(exc)) from exc
        except (OSError, httplib2.HttpLib2Error) as exc:
            raise ProviderError(f"Google Calendar insert failed: {exc}") from exc
        event_id = created.get("id")
        if not event_id:
            raise ProviderError("Google Calendar returned an event without id")
        logger.info("Google Calendar event created", extra={"publication_id": publication.id, "event_id": event_id})
        return event_id

    def update_event(self, event_id: str, publication: Publication) -> bool:
        events = self._events()
        try:
            events.update(
                calendarId=self.calendar_id,
                eventId=event_id,
                body=self._event_body(publication),
            ).execute()
        except HttpError as exc:
            logger.error("Failed to update Google Calendar event %s: %s", event_id, exc)
            raise ProviderError(f"Google Calendar update failed: {exc}", _http_status(exc)) from exc
        except (OSError, httplib2.HttpLib2Error) as exc:
            raise ProviderError(f"Google Calendar update failed: {exc}") from exc
        logger.info("Google Calendar event updated", extra={"publication_id": publication.id, "event_id": event_id})
        return True

    def delete_event(self, event_id: str) -> bool:
        events = self._events()
        try:
            events.delete(calendarId=self.calendar_id, eventId=event_id).execute()
        except HttpError as exc:
            status = _http_status(exc)
            if status in _GONE_STATUSES:
                logger.info("Google Calendar event %s already gone", event_id)
                return True
            logger.error("Failed to delete Google Calendar event %s: %s", event_id, exc)
            raise ProviderError(f"Google Calendar delete failed: {exc}", status) from exc
        except (OSError, httplib2.HttpLib2Error) as exc:
            raise ProviderError(f"Google Calendar delete failed: {exc}") from exc
        logger.info("Google Calendar event deleted", extra={"event_id": event_id})
        return True
