from __future__ import annotations

import logging

from auth_service.application.dto.auth import ValidateSessionInput, ValidateSessionOutput
from auth_service.application.ports.credential_store_port import CredentialStorePort
from auth_service.application.ports.token_blacklist_port import TokenBlacklistPort
from auth_service.application.ports.token_port import TokenPort
from auth_service.domain.exceptions import InvalidAccessTokenError, UserNotFoundError
from auth_service.shared.deadline import Deadline, ensure_deadline

from .auth_common import access_token_fingerprint


logger = logging.getLogger(__name__)


class ValidateSessionUseCase:
    """Checks an access token and augments it with the live user record.

    The token claims are a snapshot from issuance time, so ``is_active`` and
    ``is_verified`` always come from the store.
    """

    def __init__(
        self,
        *,
        store: CredentialStorePort,
        token_port: TokenPort,
        blacklist: TokenBlacklistPort | None = None,
    ):
        self._store = store
        self._token_port = token_port
        self._blacklist = blacklist

    def execute(self, command: ValidateSessionInput, *, deadline: Deadline | None = None) -> ValidateSessionOutput:
        deadline = ensure_deadline(deadline)
        token = command.access_token.strip()
        if not token:
            raise InvalidAccessTokenError("invalid or expired token")

        claims = self._token_port.decode_access_token(token=token)

        if self._blacklist is not None and self._blacklist.is_revoked(
            fingerprint=access_token_fingerprint(token),
            deadline=deadline,
        ):
            logger.warning("validate_session: blacklisted_token user_id=%s", claims.user_id)
            raise InvalidAccessTokenError("invalid or expired token")

        try:
            user = self._store.get_user_by_id(user_id=claims.user_id, deadline=deadline)
        except UserNotFoundError as exc:
            logger.warning("validate_session: subject_missing user_id=%s", claims.user_id)
            raise InvalidAccessTokenError("invalid or expired token") from exc

        return ValidateSessionOutput(
            valid=True,
            user_id=user.id,
            email=user.email,
            user_type=user.user_type,
            is_active=user.is_active,
            is_verified=user.is_verified,
            expires_at=claims.expires_at,
        )
