from __future__ import annotations

from datetime import datetime
from typing import Protocol

from auth_service.application.dto.auth import AccessTokenClaims


class TokenPort(Protocol):
    def create_access_token(
        self,
        *,
        user_id: str,
        email: str,
        user_type: str,
        now: datetime,
    ) -> tuple[str, datetime]:
        ...

    def decode_access_token(self, *, token: str, now: datetime | None = None) -> AccessTokenClaims:
        ...

    def generate_refresh_token(self) -> str:
        ...

    def hash_refresh_token(self, *, refresh_token: str) -> str:
        ...

    def refresh_token_expires_at(self, *, now: datetime) -> datetime:
        ...
