from __future__ import annotations

from auth_service.application.ports.oauth_provider_port import OAuthProviderPort, OAuthProviderRegistryPort
from auth_service.domain.exceptions import OAuthProviderNotConfiguredError


class OAuthProviderRegistry(OAuthProviderRegistryPort):
    def __init__(self, providers: dict[str, OAuthProviderPort] | None = None):
        self._providers = dict(providers or {})

    def register(self, name: str, provider: OAuthProviderPort) -> None:
        self._providers[name.lower()] = provider

    def get(self, provider: str) -> OAuthProviderPort:
        try:
            return self._providers[provider.lower()]
        except KeyError:
            raise OAuthProviderNotConfiguredError(f"oauth provider {provider!r} is not supported") from None

    def names(self) -> list[str]:
        return sorted(self._providers)
