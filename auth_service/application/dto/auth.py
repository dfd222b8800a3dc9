from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class RequestMetadata:
    user_agent: str | None = None
    ip: str | None = None
    device_id: str | None = None


@dataclass(frozen=True)
class AuthUserOutput:
    id: str
    email: str
    first_name: str
    last_name: str
    phone: str | None
    user_type: str
    avatar_url: str | None
    is_active: bool
    is_verified: bool
    created_at: datetime
    last_login_at: datetime | None


@dataclass(frozen=True)
class RegisterUserInput:
    email: str
    password: str
    first_name: str
    last_name: str
    phone: str | None
    user_type: str
    metadata: RequestMetadata = field(default_factory=RequestMetadata)


@dataclass(frozen=True)
class LoginLocalInput:
    email: str
    password: str
    metadata: RequestMetadata = field(default_factory=RequestMetadata)


@dataclass(frozen=True)
class LoginOAuthInput:
    provider: str
    provider_token: str
    metadata: RequestMetadata = field(default_factory=RequestMetadata)


@dataclass(frozen=True)
class RefreshSessionInput:
    refresh_token: str
    metadata: RequestMetadata = field(default_factory=RequestMetadata)


@dataclass(frozen=True)
class ValidateSessionInput:
    access_token: str


@dataclass(frozen=True)
class ChangePasswordInput:
    user_id: str
    old_password: str
    new_password: str


@dataclass(frozen=True)
class LogoutInput:
    refresh_token: str
    access_token: str | None = None


@dataclass(frozen=True)
class AuthTokensOutput:
    user: AuthUserOutput
    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime
    token_type: str = "Bearer"


@dataclass(frozen=True)
class ValidateSessionOutput:
    valid: bool
    user_id: str
    email: str
    user_type: str
    is_active: bool
    is_verified: bool
    expires_at: datetime


@dataclass(frozen=True)
class AccessTokenClaims:
    user_id: str
    email: str
    user_type: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class OAuthClaims:
    email: str
    first_name: str
    last_name: str
    avatar_url: str | None
    subject: str | None = None
    email_verified: bool = True
