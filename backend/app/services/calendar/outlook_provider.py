"""Outlook calendar adapter over the Microsoft identity platform and Graph."""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import urlencode
import logging

import httpx

from app.core.config import settings
from app.models import Publication

from .base import DEFAULT_EXPIRES_IN, CalendarProviderAdapter, TokenGrant
from .events import event_description, event_title, event_window
from .exceptions import AuthenticationError, ConfigurationError, ProviderError

logger = logging.getLogger(__name__)

LOGIN_BASE = "https://login.microsoftonline.com"
GRAPH_BASE = "https://graph.microsoft.com/v1.0"
SCOPE = "openid profile email offline_access Calendars.ReadWrite User.Read"

# Graph expects local wall-clock time plus a separate timeZone field
_GRAPH_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _error_detail(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error.get("code") or payload)
        return str(payload.get("error_description") or error or payload)
    return str(payload)


class OutlookCalendarProvider(CalendarProviderAdapter):
    name = "outlook"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        tenant_id: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.client_id = client_id if client_id is not None else settings.OUTLOOK_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else settings.OUTLOOK_CLIENT_SECRET
        self.redirect_uri = redirect_uri or settings.OUTLOOK_REDIRECT_URI
        self.tenant_id = tenant_id or settings.OUTLOOK_TENANT_ID or "common"
        self.timeout = timeout or settings.CALENDAR_PROVIDER_TIMEOUT_SECONDS
        self._http_client = http_client
        self._access_token: Optional[str] = None

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._http_client is not None:
            return self._http_client.request(method, url, timeout=self.timeout, **kwargs)
        with httpx.Client(timeout=self.timeout) as client:
            return client.request(method, url, **kwargs)

    # ── OAuth ────────────────────────────────────────────────────────────

    def _require_credentials(self) -> None:
        if not self.client_id or not self.client_secret:
            logger.warning("Outlook Calendar credentials not configured")
            raise ConfigurationError("Outlook Calendar credentials not configured")

    @property
    def _token_url(self) -> str:
        return f"{LOGIN_BASE}/{self.tenant_id}/oauth2/v2.0/token"

    def get_auth_url(self, state: Optional[str] = None) -> str:
        self._require_credentials()
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "response_mode": "query",
            "scope": SCOPE,
        }
        if state:
            params["state"] = state
        return f"{LOGIN_BASE}/{self.tenant_id}/oauth2/v2.0/authorize?{urlencode(params)}"

    def _token_request(self, form: dict) -> dict:
        form = {"client_id": self.client_id, "client_secret": self.client_secret, **form}
        try:
            resp = self._request("POST", self._token_url, data=form)
        except httpx.HTTPError as exc:
            raise ProviderError(f"Token endpoint unreachable: {exc}") from exc
        if resp.status_code != 200:
            raise AuthenticationError(f"Microsoft token request rejected: {_error_detail(resp)}")
        data = resp.json()
        if not data.get("access_token"):
            raise AuthenticationError("No access token in response")
        return data

    def authenticate(self, code: str) -> TokenGrant:
        self._require_credentials()
        data = self._token_request(
            {
                "code": code,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
                "scope": SCOPE,
            }
        )
        self.set_access_token(data["access_token"])

        email = None
        try:
            me = self._graph("GET", "/me")
            email = me.get("userPrincipalName") or me.get("mail")
        except ProviderError as exc:
            logger.error("Failed to fetch Microsoft account email: %s", exc)

        return TokenGrant(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=int(data.get("expires_in") or DEFAULT_EXPIRES_IN),
            email=email,
        )

    def refresh_token(self, refresh_token: str) -> TokenGrant:
        self._require_credentials()
        data = self._token_request(
            {
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
                "scope": SCOPE,
            }
        )
        return TokenGrant(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=int(data.get("expires_in") or DEFAULT_EXPIRES_IN),
        )

    def set_access_token(self, access_token: str) -> None:
        self._access_token = access_token

    def revoke_token(self) -> bool:
        # Microsoft has no per-token revoke endpoint; the grant lapses on expiry.
        logger.info("Outlook Calendar token left to expire naturally")
        return True

    # ── Graph ────────────────────────────────────────────────────────────

    def _graph(self, method: str, path: str, json: Optional[dict] = None) -> dict:
        if not self._access_token:
            raise ProviderError("Outlook access token not set. Call set_access_token first.")
        try:
            resp = self._request(
                method,
                f"{GRAPH_BASE}{path}",
                json=json,
                headers={"Authorization": f"Bearer {self._access_token}"},
            )
        except httpx.HTTPError as exc:
            raise ProviderError(f"Graph {method} {path} failed: {exc}") from exc
        if resp.status_code >= 300:
            raise ProviderError(
                f"Graph {method} {path} returned {resp.status_code}: {_error_detail(resp)}",
                resp.status_code,
            )
        if resp.status_code == 204 or not resp.content:
            return {}
        return resp.json()

    def _event_body(self, publication: Publication) -> dict:
        window = event_window(publication.scheduled_at)
        return {
            "subject": event_title(publication),
            "body": {"contentType": "text", "content": event_description(publication)},
            "start": {"dateTime": window.start.strftime(_GRAPH_DATETIME_FORMAT), "timeZone": window.timezone},
            "end": {"dateTime": window.end.strftime(_GRAPH_DATETIME_FORMAT), "timeZone": window.timezone},
            "isReminderOn": False,
        }

    def create_event(self, publication: Publication) -> str:
        created = self._graph("POST", "/me/calendar/events", json=self._event_body(publication))
        event_id = created.get("id")
        if not event_id:
            raise ProviderError("Graph returned an event without id")
        logger.info("Outlook Calendar event created", extra={"publication_id": publication.id, "event_id": event_id})
        return event_id

    def update_event(self, event_id: str, publication: Publication) -> bool:
        self._graph("PATCH", f"/me/calendar/events/{event_id}", json=self._event_body(publication))
        logger.info("Outlook Calendar event updated", extra={"publication_id": publication.id, "event_id": event_id})
        return True

    def delete_event(self, event_id: str) -> bool:
        try:
            self._graph("DELETE", f"/me/calendar/events/{event_id}")
        except ProviderError as exc:
            if exc.status_code == 404:
                logger.info("Outlook Calendar event %s already gone", event_id)
                return True
            raise
        logger.info("Outlook Calendar event deleted", extra={"event_id": event_id})
        return True
