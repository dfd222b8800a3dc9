from __future__ import annotations

import logging

import httpx

from auth_service.application.dto.auth import OAuthClaims
from auth_service.application.ports.oauth_provider_port import OAuthProviderPort
from auth_service.domain.exceptions import OAuthTokenValidationError
from auth_service.shared.deadline import Deadline, ensure_deadline


logger = logging.getLogger(__name__)

PROFILE_FIELDS = "id,first_name,last_name,email,picture"


class FacebookGraphClient(OAuthProviderPort):
    """Two-step Facebook verification: token introspection, then profile fetch."""

    def __init__(
        self,
        *,
        app_id: str,
        app_secret: str,
        graph_base: str = "https://graph.facebook.com",
        timeout_seconds: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._app_id = app_id
        self._app_secret = app_secret
        self._graph_base = graph_base.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def verify_token(self, *, provider_token: str, deadline: Deadline | None = None) -> OAuthClaims:
        deadline = ensure_deadline(deadline)
        try:
            debug = self._get_json(
                "/debug_token",
                params={
                    "input_token": provider_token,
                    "access_token": f"{self._app_id}|{self._app_secret}",
                },
                deadline=deadline,
            )
            data = debug.get("data") or {}
            if not data.get("is_valid"):
                raise OAuthTokenValidationError("facebook: token is invalid")
            app_id = data.get("app_id")
            if app_id is not None and str(app_id) != self._app_id:
                raise OAuthTokenValidationError("facebook: token was issued for another app")

            profile = self._get_json(
                "/me",
                params={"fields": PROFILE_FIELDS, "access_token": provider_token},
                deadline=deadline,
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("facebook_graph_client: verification_failed error=%s", exc)
            raise OAuthTokenValidationError("facebook: token validation failed") from exc

        email = profile.get("email")
        if not email or not isinstance(email, str):
            raise OAuthTokenValidationError("facebook: profile has no email")

        picture = ((profile.get("picture") or {}).get("data") or {}).get("url")
        return OAuthClaims(
            email=email,
            first_name=str(profile.get("first_name") or ""),
            last_name=str(profile.get("last_name") or ""),
            avatar_url=picture if isinstance(picture, str) else None,
            subject=str(profile["id"]) if profile.get("id") else None,
            email_verified=True,
        )

    def _get_json(self, path: str, *, params: dict, deadline: Deadline) -> dict:
        deadline.check(f"facebook {path}")
        with httpx.Client(
            base_url=self._graph_base,
            timeout=deadline.cap(self._timeout_seconds),
            transport=self._transport,
        ) as client:
            response = client.get(path, params=params)
            response.raise_for_status()
            payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"unexpected payload from {path}")
        return payload
