from __future__ import annotations

from typing import Protocol

from auth_service.application.dto.auth import OAuthClaims
from auth_service.shared.deadline import Deadline


class OAuthProviderPort(Protocol):
    def verify_token(self, *, provider_token: str, deadline: Deadline | None = None) -> OAuthClaims:
        ...


class OAuthProviderRegistryPort(Protocol):
    def get(self, provider: str) -> OAuthProviderPort:
        ...
