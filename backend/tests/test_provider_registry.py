import pytest

from app.models import CalendarProvider
from app.services.calendar.exceptions import ConfigurationError
from app.services.calendar.google_provider import GoogleCalendarProvider
from app.services.calendar.outlook_provider import OutlookCalendarProvider
from app.services.calendar.registry import ProviderRegistry, default_registry

from backend.tests.calendar_fakes import FakeAdapter


def test_create_builds_a_fresh_adapter_per_call():
    registry = ProviderRegistry({CalendarProvider.GOOGLE: lambda: FakeAdapter("google")})

    first = registry.create("google")
    second = registry.create(CalendarProvider.GOOGLE)

    assert isinstance(first, FakeAdapter)
    assert first is not second


def test_lookup_is_case_insensitive():
    registry = ProviderRegistry()
    registry.register("Outlook", lambda: FakeAdapter("outlook"))

    assert "OUTLOOK" in registry
    assert registry.create(CalendarProvider.OUTLOOK).name == "outlook"


def test_unknown_provider_raises_configuration_error():
    with pytest.raises(ConfigurationError) as excinfo:
        ProviderRegistry().create("icloud")
    assert "Unsupported provider: icloud" in str(excinfo.value)


def test_default_registry_wires_google_and_outlook():
    registry = default_registry()

    assert sorted(registry.providers()) == ["google", "outlook"]
    assert isinstance(registry.create("google"), GoogleCalendarProvider)
    assert isinstance(registry.create("outlook"), OutlookCalendarProvider)
