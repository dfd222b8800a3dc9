from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from auth_service.application.ports.credential_store_port import CredentialStorePort
from auth_service.domain.entities.user import RefreshToken, User
from auth_service.domain.exceptions import (
    EmailAlreadyExistsError,
    RefreshSessionInvalidError,
    UserNotFoundError,
)
from auth_service.shared.deadline import Deadline, ensure_deadline


logger = logging.getLogger(__name__)


class InMemoryCredentialStore(CredentialStorePort):
    """Process-local credential store.

    A single lock guards every read-modify-write, so it is only safe for one
    process. Used for tests and local runs with ``CREDENTIAL_STORE=memory``.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._users: dict[str, User] = {}
        self._user_ids_by_email: dict[str, str] = {}
        self._tokens: dict[str, RefreshToken] = {}
        self._token_ids_by_hash: dict[str, str] = {}

    @staticmethod
    def _check(deadline: Deadline | None, operation: str) -> None:
        ensure_deadline(deadline).check(operation)

    def _require_user(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise UserNotFoundError("user not found")
        return user

    def _update_user(self, user_id: str, **changes) -> User:
        with self._lock:
            user = self._require_user(user_id)
            updated = replace(user, updated_at=datetime.now(timezone.utc), **changes)
            self._users[user_id] = updated
            return updated

    def create_user(self, *, user: User, deadline: Deadline | None = None) -> User:
        self._check(deadline, "create_user")
        email = user.email.strip().lower()
        with self._lock:
            if email in self._user_ids_by_email:
                logger.warning("memory_store: unique_violation email=%s", email)
                raise EmailAlreadyExistsError("user with this email already exists")
            stored = replace(user, email=email)
            self._users[stored.id] = stored
            self._user_ids_by_email[email] = stored.id
        logger.info("memory_store: user_created user_id=%s", stored.id)
        return stored

    def get_user_by_email(self, *, email: str, deadline: Deadline | None = None) -> User:
        self._check(deadline, "get_user_by_email")
        with self._lock:
            user_id = self._user_ids_by_email.get(email.strip().lower())
            if user_id is None:
                raise UserNotFoundError("user not found")
            return self._users[user_id]

    def get_user_by_id(self, *, user_id: str, deadline: Deadline | None = None) -> User:
        self._check(deadline, "get_user_by_id")
        with self._lock:
            return self._require_user(user_id)

    def update_password(
        self,
        *,
        user_id: str,
        password_hash: str,
        changed_at: datetime,
        deadline: Deadline | None = None,
    ) -> None:
        self._check(deadline, "update_password")
        self._update_user(user_id, password_hash=password_hash, password_changed_at=changed_at)

    def update_login_info(
        self,
        *,
        user_id: str,
        ip: str | None,
        logged_in_at: datetime,
        deadline: Deadline | None = None,
    ) -> None:
        self._check(deadline, "update_login_info")
        self._update_user(user_id, last_login_at=logged_in_at, last_login_ip=ip)

    def increment_login_attempts(
        self,
        *,
        user_id: str,
        now: datetime,
        deadline: Deadline | None = None,
    ) -> int:
        self._check(deadline, "increment_login_attempts")
        with self._lock:
            user = self._require_user(user_id)
            locked_until = user.locked_until
            if locked_until is not None and locked_until <= now:
                attempts, locked_until = 1, None
            else:
                attempts = user.login_attempts + 1
            self._users[user_id] = replace(
                user,
                login_attempts=attempts,
                locked_until=locked_until,
                updated_at=datetime.now(timezone.utc),
            )
        return attempts

    def reset_login_attempts(
        self,
        *,
        user_id: str,
        now: datetime,
        deadline: Deadline | None = None,
    ) -> bool:
        self._check(deadline, "reset_login_attempts")
        with self._lock:
            user = self._require_user(user_id)
            if user.locked_until is not None and user.locked_until > now:
                return False
            self._users[user_id] = replace(
                user,
                login_attempts=0,
                locked_until=None,
                updated_at=datetime.now(timezone.utc),
            )
        return True

    def lock_account(
        self,
        *,
        user_id: str,
        duration: timedelta,
        now: datetime,
        deadline: Deadline | None = None,
    ) -> None:
        self._check(deadline, "lock_account")
        self._update_user(user_id, locked_until=now + duration)

    def mark_user_verified(self, *, user_id: str, deadline: Deadline | None = None) -> None:
        self._check(deadline, "mark_user_verified")
        self._update_user(user_id, is_verified=True)

    def link_provider(
        self,
        *,
        user_id: str,
        provider: str,
        provider_subject: str | None,
        avatar_url: str | None,
        deadline: Deadline | None = None,
    ) -> None:
        self._check(deadline, "link_provider")
        self._update_user(
            user_id,
            provider=provider,
            provider_subject=provider_subject,
            avatar_url=avatar_url,
        )

    def save_refresh_token(self, *, token: RefreshToken, deadline: Deadline | None = None) -> None:
        self._check(deadline, "save_refresh_token")
        with self._lock:
            self._tokens[token.id] = token
            self._token_ids_by_hash[token.token_hash] = token.id

    def find_refresh_token(self, *, token_hash: str, deadline: Deadline | None = None) -> RefreshToken:
        self._check(deadline, "find_refresh_token")
        with self._lock:
            token_id = self._token_ids_by_hash.get(token_hash)
            if token_id is None:
                raise RefreshSessionInvalidError("refresh token not found")
            return self._tokens[token_id]

    def revoke_refresh_token(self, *, token_id: str, deadline: Deadline | None = None) -> bool:
        self._check(deadline, "revoke_refresh_token")
        with self._lock:
            token = self._tokens.get(token_id)
            if token is None or token.is_revoked:
                return False
            self._tokens[token_id] = replace(token, is_revoked=True)
            return True

    def revoke_user_refresh_tokens(self, *, user_id: str, deadline: Deadline | None = None) -> int:
        self._check(deadline, "revoke_user_refresh_tokens")
        revoked = 0
        with self._lock:
            for token_id, token in list(self._tokens.items()):
                if token.user_id == user_id and not token.is_revoked:
                    self._tokens[token_id] = replace(token, is_revoked=True)
                    revoked += 1
        return revoked
