"""Signed, short-lived OAuth ``state`` tokens for calendar connections.

Payload shape: ``{"uid": int, "wid": int, "provider": str, "exp": epochSeconds}``
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import base64
import hashlib
import hmac
import time

import orjson

from app.core.config import settings

from .exceptions import InvalidOAuthState

_SIGNED_STATE_PREFIX = "cal:"


@dataclass(frozen=True)
class OAuthState:
    user_id: int
    workspace_id: int
    provider: str


def _b64_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def _sign(payload: bytes) -> bytes:
    return hmac.new(settings.SECRET_KEY.encode("utf-8"), payload, hashlib.sha256).digest()


def encode_state(
    user_id: int,
    workspace_id: int,
    provider: str,
    ttl: Optional[int] = None,
    now: Optional[float] = None,
) -> str:
    ttl = settings.CALENDAR_OAUTH_STATE_TTL if ttl is None else ttl
    issued = int(now if now is not None else time.time())
    payload = orjson.dumps(
        {"uid": int(user_id), "wid": int(workspace_id), "provider": provider, "exp": issued + ttl}
    )
    return f"{_SIGNED_STATE_PREFIX}{_b64_encode(payload)}.{_b64_encode(_sign(payload))}"


def decode_state(token: str, expected_provider: Optional[str] = None, now: Optional[float] = None) -> OAuthState:
    """Verify ``token`` and return its payload; raise ``InvalidOAuthState`` otherwise."""
    if not token or not token.startswith(_SIGNED_STATE_PREFIX):
        raise InvalidOAuthState("not_signed")
    try:
        encoded_payload, encoded_digest = token[len(_SIGNED_STATE_PREFIX):].split(".", 1)
        payload = _b64_decode(encoded_payload)
        provided = _b64_decode(encoded_digest)
    except ValueError as exc:
        raise InvalidOAuthState("malformed_state") from exc
    if not hmac.compare_digest(_sign(payload), provided):
        raise InvalidOAuthState("bad_signature")
    try:
        data = orjson.loads(payload)
    except orjson.JSONDecodeError as exc:
        raise InvalidOAuthState("bad_payload") from exc

    current = int(now if now is not None else time.time())
    if int(data.get("exp") or 0) <= current:
        raise InvalidOAuthState("expired")
    uid, wid, provider = data.get("uid"), data.get("wid"), data.get("provider")
    if not isinstance(uid, int) or not isinstance(wid, int) or not isinstance(provider, str):
        raise InvalidOAuthState("missing_fields")
    if expected_provider is not None and provider != expected_provider:
        raise InvalidOAuthState("provider_mismatch")
    return OAuthState(user_id=uid, workspace_id=wid, provider=provider)
