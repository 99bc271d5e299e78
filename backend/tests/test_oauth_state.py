import pytest

from app.services.calendar.exceptions import InvalidOAuthState
from app.services.calendar.oauth_state import decode_state, encode_state


def test_signed_state_carries_user_workspace_and_provider():
    token = encode_state(3, 11, "google", ttl=600, now=1_000)

    state = decode_state(token, expected_provider="google", now=1_100)

    assert (state.user_id, state.workspace_id, state.provider) == (3, 11, "google")


def test_expired_state_is_rejected():
    token = encode_state(3, 11, "google", ttl=600, now=1_000)
    with pytest.raises(InvalidOAuthState, match="expired"):
        decode_state(token, now=1_600)


def test_tampered_state_is_rejected():
    token = encode_state(3, 11, "google", now=1_000)
    payload, digest = token.split(".", 1)
    forged = encode_state(4, 11, "google", now=1_000).split(".", 1)[0] + "." + digest
    with pytest.raises(InvalidOAuthState, match="bad_signature"):
        decode_state(forged, now=1_100)
    assert payload != forged.split(".", 1)[0]


def test_provider_mismatch_is_rejected():
    token = encode_state(3, 11, "google", now=1_000)
    with pytest.raises(InvalidOAuthState, match="provider_mismatch"):
        decode_state(token, expected_provider="outlook", now=1_100)


@pytest.mark.parametrize("token", ["", "plain-state", "cal:nodot"])
def test_unsigned_or_malformed_state_is_rejected(token):
    with pytest.raises(InvalidOAuthState):
        decode_state(token)
