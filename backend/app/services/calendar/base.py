"""Adapter contract shared by every external calendar provider."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from app.models import Publication

DEFAULT_EXPIRES_IN = 3600


@dataclass
class TokenGrant:
    access_token: str
    expires_in: int = DEFAULT_EXPIRES_IN
    refresh_token: Optional[str] = None
    email: Optional[str] = None


class CalendarProviderAdapter(ABC):
    """One vendor's OAuth2 flow and event API.

    Instances are cheap and short-lived: the sync service builds one per
    connection and primes it with :meth:`set_access_token` before any event
    call.
    """

    name: str

    @abstractmethod
    def get_auth_url(self, state: Optional[str] = None) -> str:
        ...

    @abstractmethod
    def authenticate(self, code: str) -> TokenGrant:
        """Exchange an authorization code; raise ``AuthenticationError`` on rejection."""

    @abstractmethod
    def refresh_token(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh token; raise ``AuthenticationError`` on rejection."""

    @abstractmethod
    def set_access_token(self, access_token: str) -> None:
        ...

    @abstractmethod
    def create_event(self, publication: Publication) -> str:
        """Create the remote event and return the provider's event id."""

    @abstractmethod
    def update_event(self, event_id: str, publication: Publication) -> bool:
        ...

    @abstractmethod
    def delete_event(self, event_id: str) -> bool:
        """Delete the remote event. A missing event counts as deleted."""

    @abstractmethod
    def revoke_token(self) -> bool:
        """Best-effort revocation; never raises."""
