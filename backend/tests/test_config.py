from app.core.config import Settings


def test_calendar_defaults():
    s = Settings(_env_file=None)
    assert s.OUTLOOK_TENANT_ID == "common"
    assert s.APP_TIMEZONE == "UTC"
    assert s.CALENDAR_TOKEN_REFRESH_MARGIN_SECONDS == 300
    assert s.CALENDAR_OAUTH_STATE_TTL == 600


def test_urls_and_credentials_are_normalized(monkeypatch):
    monkeypatch.setenv("APP_URL", " https://app.example.com/ ")
    monkeypatch.setenv("FRONTEND_URL", "https://web.example.com/")
    monkeypatch.setenv("GOOGLE_CALENDAR_CLIENT_ID", "  cid  ")
    monkeypatch.setenv("OUTLOOK_TENANT_ID", "   ")

    s = Settings(_env_file=None)

    assert s.APP_URL == "https://app.example.com"
    assert s.FRONTEND_URL == "https://web.example.com"
    assert s.GOOGLE_CALENDAR_CLIENT_ID == "cid"
    assert s.OUTLOOK_TENANT_ID == "common"
