from __future__ import annotations

import logging

from auth_service.application.dto.auth import ChangePasswordInput
from auth_service.application.ports.credential_store_port import CredentialStorePort
from auth_service.application.ports.password_hasher_port import PasswordHasherPort
from auth_service.domain.exceptions import InvalidCredentialsError, InvalidInputError
from auth_service.shared.deadline import Deadline, ensure_deadline

from .auth_common import password_problems, utcnow


logger = logging.getLogger(__name__)


class ChangePasswordUseCase:
    def __init__(self, *, store: CredentialStorePort, password_hasher: PasswordHasherPort):
        self._store = store
        self._password_hasher = password_hasher

    def execute(self, command: ChangePasswordInput, *, deadline: Deadline | None = None) -> None:
        deadline = ensure_deadline(deadline)
        problems = password_problems(command.new_password)
        if problems:
            raise InvalidInputError(
                "failed to validate change password request",
                details={"new_password": ", ".join(problems)},
            )

        user = self._store.get_user_by_id(user_id=command.user_id, deadline=deadline)

        if not user.password_hash or not self._password_hasher.verify(command.old_password, user.password_hash):
            logger.warning("change_password: old_password_mismatch user_id=%s", user.id)
            raise InvalidCredentialsError("old password is incorrect")

        password_hash = self._password_hasher.hash(command.new_password)
        self._store.update_password(
            user_id=user.id,
            password_hash=password_hash,
            changed_at=utcnow(),
            deadline=deadline,
        )
        revoked = self._store.revoke_user_refresh_tokens(user_id=user.id, deadline=deadline)
        logger.info("change_password: changed user_id=%s revoked_sessions=%s", user.id, revoked)
