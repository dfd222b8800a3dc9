from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta, timezone

import jwt

from auth_service.application.dto.auth import AccessTokenClaims
from auth_service.application.ports.token_port import TokenPort
from auth_service.domain.exceptions import InvalidAccessTokenError, TokenSigningError


ALGORITHM = "HS256"
REQUIRED_CLAIMS = ("sub", "email", "user_type", "iat", "exp")


class JwtTokenService(TokenPort):
    def __init__(
        self,
        *,
        jwt_secret: str,
        access_ttl_minutes: int,
        refresh_ttl_hours: int,
    ):
        self._jwt_secret = jwt_secret
        self._access_ttl_minutes = access_ttl_minutes
        self._refresh_ttl_hours = refresh_ttl_hours

    def create_access_token(
        self,
        *,
        user_id: str,
        email: str,
        user_type: str,
        now: datetime,
    ) -> tuple[str, datetime]:
        issued_at = int(now.timestamp())
        exp = issued_at + self._access_ttl_minutes * 60
        payload = {
            "sub": user_id,
            "email": email,
            "user_type": user_type,
            "iat": issued_at,
            "exp": exp,
        }
        try:
            token = jwt.encode(payload, self._jwt_secret, algorithm=ALGORITHM)
        except (jwt.PyJWTError, TypeError, ValueError) as exc:
            raise TokenSigningError("failed to generate access token") from exc
        return token, datetime.fromtimestamp(exp, tz=timezone.utc)

    def decode_access_token(self, *, token: str, now: datetime | None = None) -> AccessTokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._jwt_secret,
                algorithms=[ALGORITHM],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": list(REQUIRED_CLAIMS),
                },
            )
        except jwt.PyJWTError as exc:
            raise InvalidAccessTokenError("invalid or expired token") from exc

        user_id = payload.get("sub")
        if not user_id or not isinstance(user_id, str):
            raise InvalidAccessTokenError("invalid or expired token")

        try:
            exp = int(payload["exp"])
            iat = int(payload["iat"])
        except (TypeError, ValueError) as exc:
            raise InvalidAccessTokenError("invalid or expired token") from exc

        # Expiry is exclusive: a token is valid strictly before ``exp``.
        current = now or utcnow()
        if current.timestamp() >= exp:
            raise InvalidAccessTokenError("invalid or expired token")

        return AccessTokenClaims(
            user_id=user_id,
            email=str(payload["email"]),
            user_type=str(payload["user_type"]),
            issued_at=datetime.fromtimestamp(iat, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )

    def generate_refresh_token(self) -> str:
        return secrets.token_urlsafe(48)

    def hash_refresh_token(self, *, refresh_token: str) -> str:
        return hashlib.sha256(refresh_token.encode("utf-8")).hexdigest()

    def refresh_token_expires_at(self, *, now: datetime) -> datetime:
        return now + timedelta(hours=self._refresh_ttl_hours)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
