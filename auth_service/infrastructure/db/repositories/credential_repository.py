from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator
from uuid import UUID

from sqlalchemy import and_, case, insert, null, or_, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth_service.application.ports.credential_store_port import CredentialStorePort
from auth_service.domain.entities.user import RefreshToken, User
from auth_service.domain.exceptions import (
    DatabaseError,
    EmailAlreadyExistsError,
    RefreshSessionInvalidError,
    UserNotFoundError,
)
from auth_service.infrastructure.db.mappers.accounts_mapper import (
    map_row_to_refresh_token,
    map_row_to_user,
    map_user_to_row,
)
from auth_service.infrastructure.db.models.accounts import refresh_tokens_table, users_table
from auth_service.shared.deadline import Deadline, ensure_deadline


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_uuid(value: str) -> UUID | None:
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


class SqlCredentialRepository(CredentialStorePort):
    """Credential store over SQLAlchemy Core.

    Atomicity comes from the database: a unique index on ``users.email``,
    ``UPDATE ... RETURNING`` for the attempt counter and a conditional
    ``UPDATE ... WHERE is_revoked = false`` for refresh-token revocation.
    """

    def __init__(self, engine):
        self._engine = engine

    @contextmanager
    def _connect(self, operation: str, deadline: Deadline | None, *, write: bool) -> Iterator:
        deadline = ensure_deadline(deadline)
        deadline.check(operation)
        try:
            ctx = self._engine.begin() if write else self._engine.connect()
            with ctx as conn:
                self._apply_deadline(conn, deadline)
                yield conn
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.error("credential_repository: %s_failed error=%s", operation, exc)
            raise DatabaseError(f"failed to {operation.replace('_', ' ')}") from exc

    @staticmethod
    def _apply_deadline(conn, deadline: Deadline) -> None:
        if not deadline.is_bounded or conn.dialect.name != "postgresql":
            return
        timeout_ms = max(1, int(deadline.remaining() * 1000))
        conn.execute(
            text("SELECT set_config('statement_timeout', :timeout, true)"),
            {"timeout": str(timeout_ms)},
        )

    def create_user(self, *, user: User, deadline: Deadline | None = None) -> User:
        user_id = _parse_uuid(user.id)
        stmt = insert(users_table).values(id=user_id, **map_user_to_row(user)).returning(*users_table.c)
        try:
            with self._connect("create_user", deadline, write=True) as conn:
                row = conn.execute(stmt).mappings().one()
        except IntegrityError as exc:
            logger.warning("credential_repository: unique_violation email=%s", user.email)
            raise EmailAlreadyExistsError("user with this email already exists") from exc
        logger.info("credential_repository: user_created user_id=%s", row["id"])
        return map_row_to_user(row)

    def get_user_by_email(self, *, email: str, deadline: Deadline | None = None) -> User:
        stmt = select(users_table).where(users_table.c.email == email.strip().lower()).limit(1)
        with self._connect("get_user_by_email", deadline, write=False) as conn:
            row = conn.execute(stmt).mappings().first()
        if row is None:
            raise UserNotFoundError("user not found")
        return map_row_to_user(row)

    def get_user_by_id(self, *, user_id: str, deadline: Deadline | None = None) -> User:
        uid = _parse_uuid(user_id)
        if uid is None:
            raise UserNotFoundError("user not found")
        stmt = select(users_table).where(users_table.c.id == uid).limit(1)
        with self._connect("get_user_by_id", deadline, write=False) as conn:
            row = conn.execute(stmt).mappings().first()
        if row is None:
            raise UserNotFoundError("user not found")
        return map_row_to_user(row)

    def _update_user(self, operation: str, user_id: str, values: dict, deadline: Deadline | None) -> None:
        uid = _parse_uuid(user_id)
        if uid is None:
            raise UserNotFoundError("user not found")
        stmt = update(users_table).where(users_table.c.id == uid).values(updated_at=_utcnow(), **values)
        with self._connect(operation, deadline, write=True) as conn:
            result = conn.execute(stmt)
        if result.rowcount == 0:
            raise UserNotFoundError("user not found")

    def update_password(
        self,
        *,
        user_id: str,
        password_hash: str,
        changed_at: datetime,
        deadline: Deadline | None = None,
    ) -> None:
        self._update_user(
            "update_password",
            user_id,
            {"password_hash": password_hash, "password_changed_at": changed_at},
            deadline,
        )

    def update_login_info(
        self,
        *,
        user_id: str,
        ip: str | None,
        logged_in_at: datetime,
        deadline: Deadline | None = None,
    ) -> None:
        self._update_user(
            "update_login_info",
            user_id,
            {"last_login_at": logged_in_at, "last_login_ip": ip},
            deadline,
        )

    def increment_login_attempts(
        self,
        *,
        user_id: str,
        now: datetime,
        deadline: Deadline | None = None,
    ) -> int:
        uid = _parse_uuid(user_id)
        if uid is None:
            raise UserNotFoundError("user not found")
        lapsed = and_(users_table.c.locked_until.is_not(None), users_table.c.locked_until <= now)
        stmt = (
            update(users_table)
            .where(users_table.c.id == uid)
            .values(
                login_attempts=case((lapsed, 1), else_=users_table.c.login_attempts + 1),
                locked_until=case((lapsed, null()), else_=users_table.c.locked_until),
                updated_at=_utcnow(),
            )
            .returning(users_table.c.login_attempts)
        )
        with self._connect("increment_login_attempts", deadline, write=True) as conn:
            attempts = conn.execute(stmt).scalar_one_or_none()
        if attempts is None:
            raise UserNotFoundError("user not found")
        return int(attempts)

    def reset_login_attempts(
        self,
        *,
        user_id: str,
        now: datetime,
        deadline: Deadline | None = None,
    ) -> bool:
        uid = _parse_uuid(user_id)
        if uid is None:
            raise UserNotFoundError("user not found")
        stmt = (
            update(users_table)
            .where(users_table.c.id == uid)
            .where(or_(users_table.c.locked_until.is_(None), users_table.c.locked_until <= now))
            .values(login_attempts=0, locked_until=None, updated_at=_utcnow())
        )
        with self._connect("reset_login_attempts", deadline, write=True) as conn:
            result = conn.execute(stmt)
        return result.rowcount == 1

    def lock_account(
        self,
        *,
        user_id: str,
        duration: timedelta,
        now: datetime,
        deadline: Deadline | None = None,
    ) -> None:
        self._update_user("lock_account", user_id, {"locked_until": now + duration}, deadline)

    def mark_user_verified(self, *, user_id: str, deadline: Deadline | None = None) -> None:
        self._update_user("mark_user_verified", user_id, {"is_verified": True}, deadline)

    def link_provider(
        self,
        *,
        user_id: str,
        provider: str,
        provider_subject: str | None,
        avatar_url: str | None,
        deadline: Deadline | None = None,
    ) -> None:
        self._update_user(
            "link_provider",
            user_id,
            {"provider": provider, "provider_subject": provider_subject, "avatar_url": avatar_url},
            deadline,
        )

    def save_refresh_token(self, *, token: RefreshToken, deadline: Deadline | None = None) -> None:
        stmt = insert(refresh_tokens_table).values(
            id=_parse_uuid(token.id),
            user_id=_parse_uuid(token.user_id),
            token_hash=token.token_hash,
            expires_at=token.expires_at,
            created_at=token.created_at,
            is_revoked=token.is_revoked,
            device_id=token.device_id,
            user_agent=token.user_agent,
            ip=token.ip,
        )
        try:
            with self._connect("save_refresh_token", deadline, write=True) as conn:
                conn.execute(stmt)
        except IntegrityError as exc:
            logger.error("credential_repository: save_refresh_token_failed error=%s", exc)
            raise DatabaseError("failed to save refresh token") from exc

    def find_refresh_token(self, *, token_hash: str, deadline: Deadline | None = None) -> RefreshToken:
        stmt = select(refresh_tokens_table).where(refresh_tokens_table.c.token_hash == token_hash).limit(1)
        with self._connect("find_refresh_token", deadline, write=False) as conn:
            row = conn.execute(stmt).mappings().first()
        if row is None:
            logger.warning("credential_repository: refresh_token_not_found")
            raise RefreshSessionInvalidError("refresh token not found")
        return map_row_to_refresh_token(row)

    def revoke_refresh_token(self, *, token_id: str, deadline: Deadline | None = None) -> bool:
        tid = _parse_uuid(token_id)
        if tid is None:
            return False
        stmt = (
            update(refresh_tokens_table)
            .where(refresh_tokens_table.c.id == tid)
            .where(refresh_tokens_table.c.is_revoked.is_(False))
            .values(is_revoked=True)
        )
        with self._connect("revoke_refresh_token", deadline, write=True) as conn:
            result = conn.execute(stmt)
        return result.rowcount == 1

    def revoke_user_refresh_tokens(self, *, user_id: str, deadline: Deadline | None = None) -> int:
        uid = _parse_uuid(user_id)
        if uid is None:
            return 0
        stmt = (
            update(refresh_tokens_table)
            .where(refresh_tokens_table.c.user_id == uid)
            .where(refresh_tokens_table.c.is_revoked.is_(False))
            .values(is_revoked=True)
        )
        with self._connect("revoke_user_refresh_tokens", deadline, write=True) as conn:
            result = conn.execute(stmt)
        return int(result.rowcount)
