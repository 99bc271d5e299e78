"""Provider name -> adapter factory lookup, injected into the sync service."""

from __future__ import annotations

from typing import Callable, Iterable, Mapping, Optional

from app.models import CalendarProvider

from .base import CalendarProviderAdapter
from .exceptions import ConfigurationError

AdapterFactory = Callable[[], CalendarProviderAdapter]


def _provider_key(provider: CalendarProvider | str) -> str:
    if isinstance(provider, CalendarProvider):
        return provider.value
    return str(provider).strip().lower()


class ProviderRegistry:
    def __init__(self, factories: Optional[Mapping[CalendarProvider | str, AdapterFactory]] = None):
        self._factories: dict[str, AdapterFactory] = {}
        for provider, factory in (factories or {}).items():
            self.register(provider, factory)

    def register(self, provider: CalendarProvider | str, factory: AdapterFactory) -> None:
        self._factories[_provider_key(provider)] = factory

    def create(self, provider: CalendarProvider | str) -> CalendarProviderAdapter:
        factory = self._factories.get(_provider_key(provider))
        if factory is None:
            raise ConfigurationError(f"Unsupported provider: {_provider_key(provider)}")
        return factory()

    def providers(self) -> Iterable[str]:
        return list(self._factories)

    def __contains__(self, provider: object) -> bool:
        return _provider_key(provider) in self._factories  # type: ignore[arg-type]


def default_registry() -> ProviderRegistry:
    """Registry wired to the real Google and Outlook adapters."""
    from .google_provider import GoogleCalendarProvider
    from .outlook_provider import OutlookCalendarProvider

    return ProviderRegistry(
        {
            CalendarProvider.GOOGLE: GoogleCalendarProvider,
            CalendarProvider.OUTLOOK: OutlookCalendarProvider,
        }
    )
