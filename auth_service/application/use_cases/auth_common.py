from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from uuid import uuid4

from auth_service.application.dto.auth import AuthTokensOutput, AuthUserOutput, RequestMetadata
from auth_service.application.ports.credential_store_port import CredentialStorePort
from auth_service.application.ports.token_port import TokenPort
from auth_service.domain.entities.user import RefreshToken, User
from auth_service.shared.deadline import Deadline


PASSWORD_MIN_LENGTH = 8
# bcrypt ignores everything past 72 bytes.
PASSWORD_MAX_BYTES = 72

INVALID_CREDENTIALS_MESSAGE = "invalid email or password"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def password_problems(password: str) -> list[str]:
    problems = []
    if len(password) < PASSWORD_MIN_LENGTH:
        problems.append(f"password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        problems.append(f"password must be at most {PASSWORD_MAX_BYTES} bytes long")
    return problems


def access_token_fingerprint(access_token: str) -> str:
    return hashlib.sha256(access_token.encode("utf-8")).hexdigest()


def build_auth_user_output(user: User) -> AuthUserOutput:
    return AuthUserOutput(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        phone=user.phone,
        user_type=user.user_type,
        avatar_url=user.avatar_url,
        is_active=user.is_active,
        is_verified=user.is_verified,
        created_at=user.created_at,
        last_login_at=user.last_login_at,
    )


def issue_tokens(
    *,
    user: User,
    store: CredentialStorePort,
    token_port: TokenPort,
    metadata: RequestMetadata,
    deadline: Deadline,
) -> AuthTokensOutput:
    now = utcnow()
    access_token, access_expires_at = token_port.create_access_token(
        user_id=user.id,
        email=user.email,
        user_type=user.user_type,
        now=now,
    )
    refresh_token = token_port.generate_refresh_token()
    refresh_expires_at = token_port.refresh_token_expires_at(now=now)
    store.save_refresh_token(
        token=RefreshToken(
            id=str(uuid4()),
            user_id=user.id,
            token_hash=token_port.hash_refresh_token(refresh_token=refresh_token),
            expires_at=refresh_expires_at,
            created_at=now,
            is_revoked=False,
            device_id=metadata.device_id,
            user_agent=metadata.user_agent,
            ip=metadata.ip,
        ),
        deadline=deadline,
    )
    return AuthTokensOutput(
        user=build_auth_user_output(user),
        access_token=access_token,
        refresh_token=refresh_token,
        access_expires_at=access_expires_at,
        refresh_expires_at=refresh_expires_at,
    )
