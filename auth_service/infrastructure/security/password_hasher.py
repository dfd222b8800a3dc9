from __future__ import annotations

from passlib.context import CryptContext
from passlib.exc import PasslibError

from auth_service.application.ports.password_hasher_port import PasswordHasherPort
from auth_service.domain.exceptions import PasswordHashingError


BCRYPT_ROUNDS = 12


class PasswordHasher(PasswordHasherPort):
    def __init__(self, *, rounds: int = BCRYPT_ROUNDS):
        # Digests below the configured cost are flagged by verify_and_update
        # and rehashed on the next successful login.
        self._ctx = CryptContext(
            schemes=["bcrypt"],
            bcrypt__rounds=rounds,
            bcrypt__min_rounds=rounds,
        )

    def hash(self, plain_password: str) -> str:
        try:
            return self._ctx.hash(plain_password)
        except (PasslibError, ValueError, TypeError, OSError) as exc:
            raise PasswordHashingError("failed to hash password") from exc

    def verify(self, plain_password: str, password_hash: str) -> bool:
        try:
            return self._ctx.verify(plain_password, password_hash)
        except (PasslibError, ValueError, TypeError):
            return False

    def verify_and_update(self, plain_password: str, password_hash: str) -> tuple[bool, str | None]:
        try:
            verified, replacement_hash = self._ctx.verify_and_update(plain_password, password_hash)
            return bool(verified), replacement_hash
        except (PasslibError, ValueError, TypeError):
            return False, None
