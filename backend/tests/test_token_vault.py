from cryptography.fernet import Fernet
import pytest

from app.models import ExternalCalendarConnection
from app.services.calendar.exceptions import AuthenticationError, ConfigurationError
from app.services.calendar.token_vault import TokenVault


def test_tokens_are_stored_encrypted(vault):
    sealed = vault.seal("secret-token")
    assert sealed != "secret-token"
    assert "secret-token" not in sealed

    conn = ExternalCalendarConnection(access_token=sealed, refresh_token=vault.seal("refresh"))
    assert vault.access_token(conn) == "secret-token"
    assert vault.refresh_token(conn) == "refresh"


def test_seal_passes_none_through(vault):
    assert vault.seal(None) is None


def test_missing_refresh_token_raises_authentication_error(vault):
    conn = ExternalCalendarConnection(access_token=vault.seal("at"), refresh_token=None)
    with pytest.raises(AuthenticationError):
        vault.refresh_token(conn)


def test_token_sealed_with_another_key_cannot_be_read(vault):
    other = TokenVault(Fernet.generate_key())
    conn = ExternalCalendarConnection(access_token=other.seal("at"))
    with pytest.raises(AuthenticationError):
        vault.access_token(conn)


def test_invalid_key_raises_configuration_error():
    with pytest.raises(ConfigurationError):
        TokenVault("not-a-fernet-key")


def test_default_key_is_derived_from_settings():
    vault = TokenVault()
    conn = ExternalCalendarConnection(access_token=vault.seal("at"))
    assert TokenVault().access_token(conn) == "at"
