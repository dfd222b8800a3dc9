from __future__ import annotations

import logging

from auth_service.application.dto.auth import AuthTokensOutput, LoginLocalInput
from auth_service.application.ports.credential_store_port import CredentialStorePort
from auth_service.application.ports.password_hasher_port import PasswordHasherPort
from auth_service.application.ports.token_port import TokenPort
from auth_service.domain.exceptions import InvalidCredentialsError, UserInactiveError, UserNotFoundError
from auth_service.shared.deadline import Deadline, ensure_deadline

from .auth_common import INVALID_CREDENTIALS_MESSAGE, issue_tokens, normalize_email, utcnow
from .brute_force_guard import BruteForceGuard


logger = logging.getLogger(__name__)


class LoginLocalUseCase:
    def __init__(
        self,
        *,
        store: CredentialStorePort,
        password_hasher: PasswordHasherPort,
        token_port: TokenPort,
        guard: BruteForceGuard | None = None,
    ):
        self._store = store
        self._password_hasher = password_hasher
        self._token_port = token_port
        self._guard = guard or BruteForceGuard(store=store)

    def execute(self, command: LoginLocalInput, *, deadline: Deadline | None = None) -> AuthTokensOutput:
        deadline = ensure_deadline(deadline)
        email = normalize_email(command.email)

        try:
            user = self._store.get_user_by_email(email=email, deadline=deadline)
        except UserNotFoundError as exc:
            logger.warning("login_local: unknown_email email=%s", email)
            raise InvalidCredentialsError(INVALID_CREDENTIALS_MESSAGE) from exc

        now = utcnow()
        # Lock state is evaluated before the password so a locked account never
        # reveals whether the supplied password was right.
        self._guard.ensure_not_locked(user=user, now=now)

        verified = False
        replacement_hash = None
        if user.password_hash:
            verified, replacement_hash = self._password_hasher.verify_and_update(
                command.password,
                user.password_hash,
            )
        if not verified:
            self._guard.register_failure(user=user, now=now, deadline=deadline)
            raise InvalidCredentialsError(INVALID_CREDENTIALS_MESSAGE)

        if not user.is_active:
            logger.warning("login_local: inactive_user user_id=%s", user.id)
            raise UserInactiveError("user is inactive")

        self._guard.ensure_success(user=user, now=now, deadline=deadline)
        if replacement_hash:
            self._store.update_password(
                user_id=user.id,
                password_hash=replacement_hash,
                changed_at=user.password_changed_at or now,
                deadline=deadline,
            )
            logger.info("login_local: password_rehashed user_id=%s", user.id)
        self._store.update_login_info(
            user_id=user.id,
            ip=command.metadata.ip,
            logged_in_at=now,
            deadline=deadline,
        )

        output = issue_tokens(
            user=user,
            store=self._store,
            token_port=self._token_port,
            metadata=command.metadata,
            deadline=deadline,
        )
        logger.info("login_local: authenticated user_id=%s", user.id)
        return output
