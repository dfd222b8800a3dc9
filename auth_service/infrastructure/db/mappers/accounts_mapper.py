from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from auth_service.domain.entities.user import RefreshToken, User


def _as_str(value: Any) -> str:
    return str(value)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def map_row_to_user(row: Mapping[str, Any]) -> User:
    return User(
        id=_as_str(row["id"]),
        email=row["email"],
        password_hash=row.get("password_hash"),
        first_name=row["first_name"],
        last_name=row["last_name"],
        phone=row.get("phone"),
        user_type=row["user_type"],
        provider=row.get("provider"),
        provider_subject=row.get("provider_subject"),
        avatar_url=row.get("avatar_url"),
        is_active=bool(row["is_active"]),
        is_verified=bool(row["is_verified"]),
        login_attempts=int(row["login_attempts"] or 0),
        last_login_at=_as_utc(row.get("last_login_at")),
        last_login_ip=row.get("last_login_ip"),
        locked_until=_as_utc(row.get("locked_until")),
        password_changed_at=_as_utc(row.get("password_changed_at")),
        created_at=_as_utc(row["created_at"]),
        updated_at=_as_utc(row["updated_at"]),
    )


def map_row_to_refresh_token(row: Mapping[str, Any]) -> RefreshToken:
    return RefreshToken(
        id=_as_str(row["id"]),
        user_id=_as_str(row["user_id"]),
        token_hash=row["token_hash"],
        expires_at=_as_utc(row["expires_at"]),
        created_at=_as_utc(row["created_at"]),
        is_revoked=bool(row["is_revoked"]),
        device_id=row.get("device_id"),
        user_agent=row.get("user_agent"),
        ip=row.get("ip"),
    )


def map_user_to_row(user: User) -> dict[str, Any]:
    return {
        "email": user.email,
        "password_hash": user.password_hash,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone": user.phone,
        "user_type": user.user_type,
        "provider": user.provider,
        "provider_subject": user.provider_subject,
        "avatar_url": user.avatar_url,
        "is_active": user.is_active,
        "is_verified": user.is_verified,
        "login_attempts": user.login_attempts,
        "last_login_at": user.last_login_at,
        "last_login_ip": user.last_login_ip,
        "locked_until": user.locked_until,
        "password_changed_at": user.password_changed_at,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }
