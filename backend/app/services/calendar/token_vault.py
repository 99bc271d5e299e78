"""Encryption at rest for calendar OAuth tokens.

Connection rows hold Fernet ciphertext. Plaintext tokens only exist for the
duration of a provider call: callers ask the vault for the token of one
connection and hand it straight to the adapter.
"""

from __future__ import annotations

import base64
import hashlib
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from app.core.config import settings
from app.models import ExternalCalendarConnection

from .exceptions import AuthenticationError, ConfigurationError


def _derive_key(secret: str) -> bytes:
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())


class TokenVault:
    def __init__(self, key: Optional[str | bytes] = None):
        if key is None:
            key = settings.CALENDAR_TOKEN_KEY or _derive_key(settings.SECRET_KEY)
        try:
            self._fernet = Fernet(key)
        except (ValueError, TypeError) as exc:
            raise ConfigurationError("CALENDAR_TOKEN_KEY is not a valid Fernet key") from exc

    def seal(self, token: Optional[str]) -> Optional[str]:
        if token is None:
            return None
        return self._fernet.encrypt(token.encode("utf-8")).decode("ascii")

    def _open(self, ciphertext: Optional[str]) -> Optional[str]:
        if ciphertext is None:
            return None
        try:
            return self._fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise AuthenticationError("Stored calendar token could not be decrypted") from exc

    def access_token(self, connection: ExternalCalendarConnection) -> str:
        token = self._open(connection.access_token)
        if not token:
            raise AuthenticationError("Connection has no access token")
        return token

    def refresh_token(self, connection: ExternalCalendarConnection) -> str:
        token = self._open(connection.refresh_token)
        if not token:
            raise AuthenticationError("Connection has no refresh token")
        return token
