from __future__ import annotations

import logging
from datetime import datetime, timedelta

from auth_service.application.ports.credential_store_port import CredentialStorePort
from auth_service.domain.entities.user import User
from auth_service.domain.exceptions import AccountLockedError
from auth_service.domain.services.lockout import (
    LOCKOUT_DURATION,
    MAX_LOGIN_ATTEMPTS,
    is_locked,
    reached_threshold,
)
from auth_service.shared.deadline import Deadline


logger = logging.getLogger(__name__)

LOCKED_MESSAGE = "account is locked, please try again later"


class BruteForceGuard:
    """Store-backed attempt counter and time-boxed lockout, keyed by user."""

    def __init__(
        self,
        *,
        store: CredentialStorePort,
        max_attempts: int = MAX_LOGIN_ATTEMPTS,
        lockout_duration: timedelta = LOCKOUT_DURATION,
    ):
        self._store = store
        self._max_attempts = max_attempts
        self._lockout_duration = lockout_duration

    def ensure_not_locked(self, *, user: User, now: datetime) -> None:
        if is_locked(user, now):
            logger.warning("brute_force_guard: locked_attempt user_id=%s", user.id)
            raise AccountLockedError(LOCKED_MESSAGE)

    def register_failure(self, *, user: User, now: datetime, deadline: Deadline) -> int:
        attempts = self._store.increment_login_attempts(user_id=user.id, now=now, deadline=deadline)
        logger.warning("brute_force_guard: failed_attempt user_id=%s attempts=%s", user.id, attempts)
        if reached_threshold(attempts, self._max_attempts):
            self._store.lock_account(
                user_id=user.id,
                duration=self._lockout_duration,
                now=now,
                deadline=deadline,
            )
            logger.warning(
                "brute_force_guard: account_locked user_id=%s attempts=%s minutes=%s",
                user.id,
                attempts,
                int(self._lockout_duration.total_seconds() // 60),
            )
        return attempts

    def register_success(self, *, user: User, now: datetime, deadline: Deadline) -> bool:
        """Clear the counter; ``False`` means a lock set meanwhile is still active."""
        if self._store.reset_login_attempts(user_id=user.id, now=now, deadline=deadline):
            return True
        logger.warning("brute_force_guard: locked_during_attempt user_id=%s", user.id)
        return False

    def ensure_success(self, *, user: User, now: datetime, deadline: Deadline) -> None:
        if not self.register_success(user=user, now=now, deadline=deadline):
            raise AccountLockedError(LOCKED_MESSAGE)
