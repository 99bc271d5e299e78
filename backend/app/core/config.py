from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator
from typing import Any, ClassVar
from pathlib import Path
import os


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"

    # JWT configuration (provide a fallback for local development)
    SECRET_KEY: str = "fallback_secret_for_dev_only"
    ALGORITHM: str = "HS256"

    # Database URL
    # Use an absolute path so running the app from different directories
    # (e.g., repo root or backend/) always resolves the same DB file.
    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    SQLALCHEMY_DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'contentflow.db'}"

    LOG_LEVEL: str = "INFO"

    # Public URLs: APP_URL is linked from calendar event descriptions,
    # FRONTEND_URL receives the OAuth callback redirects.
    APP_URL: str = "http://localhost:8000"
    FRONTEND_URL: str = "http://localhost:3000"

    # Timezone used for remote calendar events
    APP_TIMEZONE: str = "UTC"

    # Google Calendar OAuth
    GOOGLE_CALENDAR_CLIENT_ID: str = ""
    GOOGLE_CALENDAR_CLIENT_SECRET: str = ""
    GOOGLE_CALENDAR_REDIRECT_URI: str = (
        "http://localhost:8000/api/v1/external-calendars/google/callback"
    )

    # Outlook (Microsoft identity platform / Graph)
    OUTLOOK_CLIENT_ID: str = ""
    OUTLOOK_CLIENT_SECRET: str = ""
    OUTLOOK_TENANT_ID: str = "common"
    OUTLOOK_REDIRECT_URI: str = (
        "http://localhost:8000/api/v1/external-calendars/outlook/callback"
    )

    # Fernet key for tokens at rest. When empty a key is derived from SECRET_KEY.
    CALENDAR_TOKEN_KEY: str = ""
    # Refresh access tokens that expire within this window
    CALENDAR_TOKEN_REFRESH_MARGIN_SECONDS: int = 300
    # Per-call timeout for every provider request
    CALENDAR_PROVIDER_TIMEOUT_SECONDS: float = 15.0
    # Lifetime of the signed OAuth state handed to the provider
    CALENDAR_OAUTH_STATE_TTL: int = 600

    model_config = SettingsConfigDict(
        extra="ignore",
        case_sensitive=True,
    )

    @field_validator(
        "GOOGLE_CALENDAR_CLIENT_ID",
        "GOOGLE_CALENDAR_CLIENT_SECRET",
        "OUTLOOK_CLIENT_ID",
        "OUTLOOK_CLIENT_SECRET",
        "OUTLOOK_TENANT_ID",
        "APP_URL",
        "FRONTEND_URL",
        mode="before",
    )
    def strip_whitespace(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @model_validator(mode="after")
    def default_tenant(self) -> "Settings":
        if not self.OUTLOOK_TENANT_ID:
            self.OUTLOOK_TENANT_ID = "common"
        self.APP_URL = self.APP_URL.rstrip("/")
        self.FRONTEND_URL = self.FRONTEND_URL.rstrip("/")
        return self


def load_settings() -> "Settings":
    return Settings(_env_file=os.getenv("ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env")))


settings = load_settings()
