from __future__ import annotations

import logging

from auth_service.application.dto.auth import LogoutInput
from auth_service.application.ports.credential_store_port import CredentialStorePort
from auth_service.application.ports.token_blacklist_port import TokenBlacklistPort
from auth_service.application.ports.token_port import TokenPort
from auth_service.domain.exceptions import InvalidAccessTokenError, RefreshSessionInvalidError
from auth_service.shared.deadline import Deadline, ensure_deadline

from .auth_common import access_token_fingerprint


logger = logging.getLogger(__name__)


class LogoutSessionUseCase:
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

    def execute(self, command: LogoutInput, *, deadline: Deadline | None = None) -> None:
        deadline = ensure_deadline(deadline)
        token = command.refresh_token.strip()
        if token:
            refresh_hash = self._token_port.hash_refresh_token(refresh_token=token)
            try:
                stored = self._store.find_refresh_token(token_hash=refresh_hash, deadline=deadline)
            except RefreshSessionInvalidError:
                logger.warning("logout_session: unknown_refresh_token")
            else:
                revoked = self._store.revoke_refresh_token(token_id=stored.id, deadline=deadline)
                logger.info(
                    "logout_session: refresh_revoked user_id=%s token_id=%s already_revoked=%s",
                    stored.user_id,
                    stored.id,
                    not revoked,
                )

        if command.access_token and self._blacklist is not None:
            self._blacklist_access_token(command.access_token.strip(), deadline)

    def _blacklist_access_token(self, access_token: str, deadline: Deadline) -> None:
        try:
            claims = self._token_port.decode_access_token(token=access_token)
        except InvalidAccessTokenError:
            # Expired or forged tokens are already rejected by validation.
            return
        self._blacklist.revoke(
            fingerprint=access_token_fingerprint(access_token),
            expires_at=claims.expires_at,
            deadline=deadline,
        )
        logger.info("logout_session: access_token_blacklisted user_id=%s", claims.user_id)
