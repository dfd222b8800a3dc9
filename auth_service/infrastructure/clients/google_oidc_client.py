from __future__ import annotations

import functools
import logging

from google.auth import exceptions as google_exceptions
from google.auth.transport import requests
from google.oauth2 import id_token

from auth_service.application.dto.auth import OAuthClaims
from auth_service.application.ports.oauth_provider_port import OAuthProviderPort
from auth_service.domain.exceptions import OAuthTokenValidationError
from auth_service.shared.deadline import Deadline, ensure_deadline


logger = logging.getLogger(__name__)


class GoogleOidcClient(OAuthProviderPort):
    """Verifies Google ID tokens against Google's published signing keys."""

    def __init__(self, *, client_id: str, timeout_seconds: float = 5.0):
        self._client_id = client_id
        self._timeout_seconds = timeout_seconds

    def verify_token(self, *, provider_token: str, deadline: Deadline | None = None) -> OAuthClaims:
        deadline = ensure_deadline(deadline)
        deadline.check("google id_token verification")
        try:
            payload = id_token_verify(
                token=provider_token,
                audience=self._client_id,
                timeout=deadline.cap(self._timeout_seconds),
            )
        except (ValueError, google_exceptions.GoogleAuthError) as exc:
            logger.warning("google_oidc_client: verification_failed error=%s", exc)
            raise OAuthTokenValidationError("google: token validation failed") from exc

        email = payload.get("email")
        if not email or not isinstance(email, str):
            raise OAuthTokenValidationError("google: id_token missing email claim")

        email_verified_raw = payload.get("email_verified", False)
        email_verified = bool(email_verified_raw)
        if isinstance(email_verified_raw, str):
            email_verified = email_verified_raw.lower() == "true"

        full_name = payload.get("name") if isinstance(payload.get("name"), str) else ""
        first_name, last_name = split_full_name(full_name)
        if isinstance(payload.get("given_name"), str):
            first_name = payload["given_name"]
        if isinstance(payload.get("family_name"), str):
            last_name = payload["family_name"]

        picture = payload.get("picture") if isinstance(payload.get("picture"), str) else None
        subject = payload.get("sub")
        return OAuthClaims(
            email=email,
            first_name=first_name,
            last_name=last_name,
            avatar_url=picture,
            subject=str(subject) if subject else None,
            email_verified=email_verified,
        )


def split_full_name(full_name: str) -> tuple[str, str]:
    parts = full_name.split()
    if len(parts) > 1:
        return parts[0], " ".join(parts[1:])
    return full_name.strip(), ""


def id_token_verify(*, token: str, audience: str, timeout: float) -> dict:
    request = functools.partial(requests.Request(), timeout=timeout)
    return id_token.verify_oauth2_token(token, request, audience)
