from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol

from auth_service.domain.entities.user import RefreshToken, User
from auth_service.shared.deadline import Deadline


class CredentialStorePort(Protocol):
    """Persistence of users, refresh tokens and login-attempt state.

    Uniqueness of ``email``, the attempt increment and the refresh-token revocation
    must be atomic in the backing store itself, since several service instances
    may write concurrently.
    """

    def create_user(self, *, user: User, deadline: Deadline | None = None) -> User:
        ...

    def get_user_by_email(self, *, email: str, deadline: Deadline | None = None) -> User:
        ...

    def get_user_by_id(self, *, user_id: str, deadline: Deadline | None = None) -> User:
        ...

    def update_password(
        self,
        *,
        user_id: str,
        password_hash: str,
        changed_at: datetime,
        deadline: Deadline | None = None,
    ) -> None:
        ...

    def update_login_info(
        self,
        *,
        user_id: str,
        ip: str | None,
        logged_in_at: datetime,
        deadline: Deadline | None = None,
    ) -> None:
        ...

    def increment_login_attempts(
        self,
        *,
        user_id: str,
        now: datetime,
        deadline: Deadline | None = None,
    ) -> int:
        """Add one failed attempt and return the new count.

        A lock that has lapsed by ``now`` is cleared in the same statement and
        the count restarts at 1.
        """
        ...

    def reset_login_attempts(
        self,
        *,
        user_id: str,
        now: datetime,
        deadline: Deadline | None = None,
    ) -> bool:
        """Zero the counter unless the account is locked at ``now``.

        Returns ``False`` when an active lock prevented the reset.
        """
        ...

    def lock_account(
        self,
        *,
        user_id: str,
        duration: timedelta,
        now: datetime,
        deadline: Deadline | None = None,
    ) -> None:
        ...

    def mark_user_verified(self, *, user_id: str, deadline: Deadline | None = None) -> None:
        ...

    def link_provider(
        self,
        *,
        user_id: str,
        provider: str,
        provider_subject: str | None,
        avatar_url: str | None,
        deadline: Deadline | None = None,
    ) -> None:
        ...

    def save_refresh_token(self, *, token: RefreshToken, deadline: Deadline | None = None) -> None:
        ...

    def find_refresh_token(self, *, token_hash: str, deadline: Deadline | None = None) -> RefreshToken:
        ...

    def revoke_refresh_token(self, *, token_id: str, deadline: Deadline | None = None) -> bool:
        ...

    def revoke_user_refresh_tokens(self, *, user_id: str, deadline: Deadline | None = None) -> int:
        ...
