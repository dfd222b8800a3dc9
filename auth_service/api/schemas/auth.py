from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=256)
    first_name: str = Field(..., max_length=120)
    last_name: str = Field(..., max_length=120)
    phone: str | None = Field(default=None, max_length=40)
    user_type: str = Field(default="client", max_length=20)


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=256)


class OAuthLoginRequest(BaseModel):
    token: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str | None = None


class ValidateRequest(BaseModel):
    access_token: str | None = None


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(..., max_length=256)
    new_password: str = Field(..., max_length=256)


class LogoutRequest(BaseModel):
    refresh_token: str | None = None
    access_token: str | None = None


class AuthUserResponse(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    phone: str | None = None
    user_type: str
    avatar_url: str | None = None
    is_active: bool
    is_verified: bool
    created_at: datetime
    last_login_at: datetime | None = None


class AuthTokenResponse(BaseModel):
    user_id: str
    user_type: str
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_at: datetime
    refresh_expires_at: datetime
    user: AuthUserResponse


class ValidateSessionResponse(BaseModel):
    valid: bool
    user_id: str
    email: str
    user_type: str
    is_active: bool
    is_verified: bool
    expires_at: datetime


class OkResponse(BaseModel):
    ok: bool
