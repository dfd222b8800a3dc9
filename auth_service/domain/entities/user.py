from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal


UserType = Literal["client", "master", "admin"]
OAuthProviderName = Literal["google", "facebook"]

USER_TYPES: tuple[str, ...] = ("client", "master", "admin")
SELF_REGISTRABLE_USER_TYPES: tuple[str, ...] = ("client", "master")


@dataclass(frozen=True)
class User:
    id: str
    email: str
    password_hash: str | None
    first_name: str
    last_name: str
    phone: str | None
    user_type: UserType
    provider: str | None
    provider_subject: str | None
    avatar_url: str | None
    is_active: bool
    is_verified: bool
    login_attempts: int
    last_login_at: datetime | None
    last_login_ip: str | None
    locked_until: datetime | None
    password_changed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)


@dataclass(frozen=True)
class RefreshToken:
    id: str
    user_id: str
    token_hash: str
    expires_at: datetime
    created_at: datetime
    is_revoked: bool
    device_id: str | None
    user_agent: str | None
    ip: str | None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
