from __future__ import annotations

import logging
import re
from uuid import uuid4

from auth_service.application.dto.auth import AuthTokensOutput, RegisterUserInput
from auth_service.application.ports.credential_store_port import CredentialStorePort
from auth_service.application.ports.password_hasher_port import PasswordHasherPort
from auth_service.application.ports.token_port import TokenPort
from auth_service.domain.entities.user import SELF_REGISTRABLE_USER_TYPES, User
from auth_service.domain.exceptions import (
    DatabaseError,
    EmailAlreadyExistsError,
    InvalidInputError,
    UserNotFoundError,
)
from auth_service.shared.deadline import Deadline, ensure_deadline
from auth_service.shared.retry import RetryPolicy

from .auth_common import issue_tokens, normalize_email, password_problems, utcnow


logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
PHONE_MAX_LENGTH = 20


def is_transient_store_error(exc: BaseException) -> bool:
    return isinstance(exc, DatabaseError)


def default_create_user_retry_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay_seconds=0.1, retry_on=is_transient_store_error)


def validate_register_input(command: RegisterUserInput) -> None:
    problems: list[str] = []
    email = normalize_email(command.email)
    if not EMAIL_RE.match(email):
        problems.append("invalid email format")
    problems.extend(password_problems(command.password))

    first_name = command.first_name.strip()
    if not NAME_MIN_LENGTH <= len(first_name) <= NAME_MAX_LENGTH:
        problems.append(f"first name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters")
    last_name = command.last_name.strip()
    if not NAME_MIN_LENGTH <= len(last_name) <= NAME_MAX_LENGTH:
        problems.append(f"last name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters")

    if command.phone and len(command.phone.strip()) > PHONE_MAX_LENGTH:
        problems.append(f"phone must be at most {PHONE_MAX_LENGTH} characters")
    if command.user_type not in SELF_REGISTRABLE_USER_TYPES:
        problems.append("invalid user type, must be 'client' or 'master'")

    if problems:
        raise InvalidInputError(
            "failed to validate register request",
            details={"error": ", ".join(problems)},
        )


class RegisterUserUseCase:
    def __init__(
        self,
        *,
        store: CredentialStorePort,
        password_hasher: PasswordHasherPort,
        token_port: TokenPort,
        retry_policy: RetryPolicy | None = None,
    ):
        self._store = store
        self._password_hasher = password_hasher
        self._token_port = token_port
        self._retry_policy = retry_policy or default_create_user_retry_policy()

    def execute(self, command: RegisterUserInput, *, deadline: Deadline | None = None) -> AuthTokensOutput:
        deadline = ensure_deadline(deadline)
        validate_register_input(command)
        email = normalize_email(command.email)
        logger.info("register_user: start email=%s user_type=%s", email, command.user_type)

        try:
            self._store.get_user_by_email(email=email, deadline=deadline)
        except UserNotFoundError:
            pass
        else:
            logger.warning("register_user: email_taken email=%s", email)
            raise EmailAlreadyExistsError("user with this email already exists")

        password_hash = self._password_hasher.hash(command.password)
        now = utcnow()
        candidate = User(
            id=str(uuid4()),
            email=email,
            password_hash=password_hash,
            first_name=command.first_name.strip(),
            last_name=command.last_name.strip(),
            phone=command.phone.strip() if command.phone else None,
            user_type=command.user_type,
            provider=None,
            provider_subject=None,
            avatar_url=None,
            is_active=True,
            is_verified=False,
            login_attempts=0,
            last_login_at=None,
            last_login_ip=None,
            locked_until=None,
            password_changed_at=now,
            created_at=now,
            updated_at=now,
        )

        user = self._retry_policy.run(
            lambda: self._store.create_user(user=candidate, deadline=deadline),
            operation="create_user",
            deadline=deadline,
        )

        output = issue_tokens(
            user=user,
            store=self._store,
            token_port=self._token_port,
            metadata=command.metadata,
            deadline=deadline,
        )
        logger.info("register_user: registered user_id=%s", user.id)
        return output
