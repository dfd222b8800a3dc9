from __future__ import annotations

import logging

from auth_service.application.dto.auth import AuthTokensOutput, RefreshSessionInput
from auth_service.application.ports.credential_store_port import CredentialStorePort
from auth_service.application.ports.token_port import TokenPort
from auth_service.domain.exceptions import (
    RefreshSessionInvalidError,
    UserInactiveError,
    UserNotFoundError,
)
from auth_service.shared.deadline import Deadline, ensure_deadline

from .auth_common import issue_tokens, utcnow


logger = logging.getLogger(__name__)

REVOKED_MESSAGE = "refresh token has been revoked"
EXPIRED_MESSAGE = "refresh token has expired"


class RefreshSessionUseCase:
    def __init__(self, *, store: CredentialStorePort, token_port: TokenPort):
        self._store = store
        self._token_port = token_port

    def execute(self, command: RefreshSessionInput, *, deadline: Deadline | None = None) -> AuthTokensOutput:
        deadline = ensure_deadline(deadline)
        token = command.refresh_token.strip()
        if not token:
            raise RefreshSessionInvalidError("missing refresh token")

        refresh_hash = self._token_port.hash_refresh_token(refresh_token=token)
        stored = self._store.find_refresh_token(token_hash=refresh_hash, deadline=deadline)

        now = utcnow()
        if stored.is_revoked:
            logger.warning("refresh_session: revoked_token token_id=%s", stored.id)
            raise RefreshSessionInvalidError(REVOKED_MESSAGE)
        if stored.is_expired(now):
            logger.warning("refresh_session: expired_token token_id=%s", stored.id)
            raise RefreshSessionInvalidError(EXPIRED_MESSAGE)

        # Single-use rotation: only the caller that flips the flag may issue a
        # replacement; a concurrent loser sees the token as already revoked.
        if not self._store.revoke_refresh_token(token_id=stored.id, deadline=deadline):
            logger.warning("refresh_session: lost_rotation_race token_id=%s", stored.id)
            raise RefreshSessionInvalidError(REVOKED_MESSAGE)

        try:
            user = self._store.get_user_by_id(user_id=stored.user_id, deadline=deadline)
        except UserNotFoundError as exc:
            logger.warning("refresh_session: owner_missing token_id=%s", stored.id)
            raise UserNotFoundError("user associated with token not found") from exc
        if not user.is_active:
            raise UserInactiveError("user is inactive")

        output = issue_tokens(
            user=user,
            store=self._store,
            token_port=self._token_port,
            metadata=command.metadata,
            deadline=deadline,
        )
        logger.info("refresh_session: rotated user_id=%s old_token_id=%s", user.id, stored.id)
        return output
