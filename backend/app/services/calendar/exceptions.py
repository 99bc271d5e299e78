"""Errors raised by the external calendar subsystem."""

from typing import Optional


class CalendarSyncError(Exception):
    """Base class for external calendar failures."""


class AuthenticationError(CalendarSyncError):
    """The provider rejected an authorization code or refresh token."""


class ProviderError(CalendarSyncError):
    """A non-auth provider failure during a calendar call."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(CalendarSyncError):
    """Unknown provider or missing client credentials."""


class InvalidOAuthState(CalendarSyncError):
    """OAuth ``state`` failed verification (signature, expiry or provider)."""


class ConnectionNotFound(CalendarSyncError):
    def __init__(self, provider: str, workspace_id: Optional[int] = None):
        super().__init__(f"No {provider} calendar connection for workspace {workspace_id}")
        self.provider = provider
        self.workspace_id = workspace_id
