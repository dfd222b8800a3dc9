from __future__ import annotations

from datetime import timedelta

import pytest

from auth_service.application.dto.auth import (
    ChangePasswordInput,
    LoginLocalInput,
    LoginOAuthInput,
    LogoutInput,
    OAuthClaims,
    RefreshSessionInput,
    RegisterUserInput,
    RequestMetadata,
    ValidateSessionInput,
)
from auth_service.application.use_cases.auth_common import utcnow
from auth_service.application.use_cases.brute_force_guard import BruteForceGuard
from auth_service.application.use_cases.change_password import ChangePasswordUseCase
from auth_service.application.use_cases.login_local import LoginLocalUseCase
from auth_service.application.use_cases.login_oauth import LoginOAuthUseCase
from auth_service.application.use_cases.logout_session import LogoutSessionUseCase
from auth_service.application.use_cases.refresh_session import RefreshSessionUseCase
from auth_service.application.use_cases.register_user import RegisterUserUseCase, is_transient_store_error
from auth_service.application.use_cases.validate_session import ValidateSessionUseCase
from auth_service.domain.exceptions import (
    AccountLockedError,
    DatabaseError,
    DeadlineExceededError,
    EmailAlreadyExistsError,
    ErrorKind,
    InvalidAccessTokenError,
    InvalidCredentialsError,
    InvalidInputError,
    OAuthProviderNotConfiguredError,
    OAuthTokenValidationError,
    RefreshSessionInvalidError,
)
from auth_service.infrastructure.cache.memory_token_blacklist import InMemoryTokenBlacklist
from auth_service.infrastructure.clients.oauth_provider_registry import OAuthProviderRegistry
from auth_service.infrastructure.memory.credential_store import InMemoryCredentialStore
from auth_service.infrastructure.security.token_service import JwtTokenService
from auth_service.shared.deadline import Deadline
from auth_service.shared.retry import RetryPolicy


JWT_SECRET = "test-secret-that-is-long-enough-for-hs256-signing"


class FakePasswordHasher:
    def hash(self, plain_password: str) -> str:
        return f"hashed:{plain_password}"

    def verify(self, plain_password: str, password_hash: str) -> bool:
        return password_hash == f"hashed:{plain_password}"

    def verify_and_update(self, plain_password: str, password_hash: str):
        return self.verify(plain_password, password_hash), None


class FakeOAuthProvider:
    def __init__(self, claims: OAuthClaims | None = None):
        self.claims = claims
        self.calls: list[str] = []

    def verify_token(self, *, provider_token: str, deadline=None) -> OAuthClaims:
        self.calls.append(provider_token)
        if self.claims is None:
            raise OAuthTokenValidationError("fake: token validation failed")
        return self.claims


class FlakyStore(InMemoryCredentialStore):
    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures
        self.create_calls = 0

    def create_user(self, *, user, deadline=None):
        self.create_calls += 1
        if self.create_calls <= self.failures:
            raise DatabaseError("failed to create user")
        return super().create_user(user=user, deadline=deadline)


def _token_service(**overrides) -> JwtTokenService:
    params = {"jwt_secret": JWT_SECRET, "access_ttl_minutes": 15, "refresh_ttl_hours": 24}
    params.update(overrides)
    return JwtTokenService(**params)


def _register_input(email: str = "Alice@Example.com", password: str = "password123", **overrides):
    params = {
        "email": email,
        "password": password,
        "first_name": "Alice",
        "last_name": "Smith",
        "phone": None,
        "user_type": "client",
        "metadata": RequestMetadata(user_agent="pytest", ip="10.0.0.1"),
    }
    params.update(overrides)
    return RegisterUserInput(**params)


def _no_sleep_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, retry_on=is_transient_store_error, sleep=lambda _s: None)


def _register(store, token_service=None, **overrides):
    use_case = RegisterUserUseCase(
        store=store,
        password_hasher=FakePasswordHasher(),
        token_port=token_service or _token_service(),
        retry_policy=_no_sleep_policy(),
    )
    return use_case.execute(_register_input(**overrides))


def _login_use_case(store, token_service=None) -> LoginLocalUseCase:
    return LoginLocalUseCase(
        store=store,
        password_hasher=FakePasswordHasher(),
        token_port=token_service or _token_service(),
        guard=BruteForceGuard(store=store),
    )


def test_register_creates_user_and_issues_tokens():
    store = InMemoryCredentialStore()
    token_service = _token_service()

    output = _register(store, token_service)

    assert output.user.email == "alice@example.com"
    assert output.user.user_type == "client"
    assert output.user.is_verified is False
    assert output.access_token
    assert output.refresh_token
    assert output.token_type == "Bearer"
    stored = store.find_refresh_token(token_hash=token_service.hash_refresh_token(refresh_token=output.refresh_token))
    assert stored.user_id == output.user.id
    assert stored.ip == "10.0.0.1"
    assert stored.token_hash != output.refresh_token


def test_register_rejects_duplicate_email_case_insensitively():
    store = InMemoryCredentialStore()
    _register(store)

    with pytest.raises(EmailAlreadyExistsError) as exc_info:
        _register(store, email="alice@EXAMPLE.com")

    assert exc_info.value.kind is ErrorKind.CONFLICT


def test_register_validates_input():
    store = InMemoryCredentialStore()

    with pytest.raises(InvalidInputError) as exc_info:
        _register(store, email="not-an-email", password="short", first_name="A", user_type="admin")

    error = exc_info.value.details["error"]
    assert "invalid email format" in error
    assert "password must be at least 8 characters long" in error
    assert "first name must be between 2 and 50 characters" in error
    assert "invalid user type" in error


def test_register_retries_transient_store_failures():
    store = FlakyStore(failures=2)

    output = _register(store)

    assert store.create_calls == 3
    assert store.get_user_by_id(user_id=output.user.id).email == "alice@example.com"


def test_register_gives_up_after_max_attempts():
    store = FlakyStore(failures=3)

    with pytest.raises(DatabaseError):
        _register(store)

    assert store.create_calls == 3


def test_login_unknown_email_and_wrong_password_share_message():
    store = InMemoryCredentialStore()
    _register(store)
    use_case = _login_use_case(store)

    with pytest.raises(InvalidCredentialsError) as unknown:
        use_case.execute(LoginLocalInput(email="nobody@example.com", password="password123"))
    with pytest.raises(InvalidCredentialsError) as wrong:
        use_case.execute(LoginLocalInput(email="alice@example.com", password="wrong-password"))

    assert str(unknown.value) == str(wrong.value) == "invalid email or password"


def test_login_success_updates_login_info():
    store = InMemoryCredentialStore()
    registered = _register(store)

    output = _login_use_case(store).execute(
        LoginLocalInput(
            email="ALICE@example.com",
            password="password123",
            metadata=RequestMetadata(ip="192.168.1.5"),
        )
    )

    user = store.get_user_by_id(user_id=registered.user.id)
    assert output.user.id == registered.user.id
    assert user.last_login_ip == "192.168.1.5"
    assert user.last_login_at is not None


def test_lockout_after_five_failures_rejects_correct_password():
    store = InMemoryCredentialStore()
    registered = _register(store)
    use_case = _login_use_case(store)
    wrong = LoginLocalInput(email="alice@example.com", password="wrong-password")

    for _ in range(5):
        with pytest.raises(InvalidCredentialsError):
            use_case.execute(wrong)

    user = store.get_user_by_id(user_id=registered.user.id)
    assert user.login_attempts == 5
    assert user.locked_until is not None

    with pytest.raises(AccountLockedError) as exc_info:
        use_case.execute(wrong)
    assert exc_info.value.kind is ErrorKind.FORBIDDEN

    with pytest.raises(AccountLockedError):
        use_case.execute(LoginLocalInput(email="alice@example.com", password="password123"))


def test_login_after_lock_expires_succeeds_and_resets_counter():
    store = InMemoryCredentialStore()
    registered = _register(store)
    use_case = _login_use_case(store)
    for _ in range(5):
        with pytest.raises(InvalidCredentialsError):
            use_case.execute(LoginLocalInput(email="alice@example.com", password="wrong-password"))

    store.lock_account(user_id=registered.user.id, duration=timedelta(minutes=-1), now=utcnow())

    use_case.execute(LoginLocalInput(email="alice@example.com", password="password123"))

    user = store.get_user_by_id(user_id=registered.user.id)
    assert user.login_attempts == 0
    assert user.locked_until is None


def test_failure_after_lock_expires_starts_new_window():
    store = InMemoryCredentialStore()
    registered = _register(store)
    use_case = _login_use_case(store)
    wrong = LoginLocalInput(email="alice@example.com", password="wrong-password")
    for _ in range(5):
        with pytest.raises(InvalidCredentialsError):
            use_case.execute(wrong)
    store.lock_account(user_id=registered.user.id, duration=timedelta(minutes=-1), now=utcnow())

    with pytest.raises(InvalidCredentialsError):
        use_case.execute(wrong)

    user = store.get_user_by_id(user_id=registered.user.id)
    assert user.login_attempts == 1
    assert user.locked_until is None


def test_correct_password_is_rejected_when_lock_lands_during_verification():
    store = InMemoryCredentialStore()
    registered = _register(store)

    class LockingHasher(FakePasswordHasher):
        def verify_and_update(self, plain_password: str, password_hash: str):
            store.lock_account(user_id=registered.user.id, duration=timedelta(minutes=15), now=utcnow())
            return super().verify_and_update(plain_password, password_hash)

    use_case = LoginLocalUseCase(
        store=store,
        password_hasher=LockingHasher(),
        token_port=_token_service(),
        guard=BruteForceGuard(store=store),
    )

    with pytest.raises(AccountLockedError):
        use_case.execute(LoginLocalInput(email="alice@example.com", password="password123"))

    user = store.get_user_by_id(user_id=registered.user.id)
    assert user.locked_until is not None
    assert user.last_login_at is None


def test_login_honours_expired_deadline():
    store = InMemoryCredentialStore()
    _register(store)

    with pytest.raises(DeadlineExceededError) as exc_info:
        _login_use_case(store).execute(
            LoginLocalInput(email="alice@example.com", password="password123"),
            deadline=Deadline(expires_at=0.0),
        )

    assert exc_info.value.kind is ErrorKind.INTERNAL


def test_refresh_rotates_and_rejects_replay():
    store = InMemoryCredentialStore()
    token_service = _token_service()
    registered = _register(store, token_service)
    use_case = RefreshSessionUseCase(store=store, token_port=token_service)

    rotated = use_case.execute(RefreshSessionInput(refresh_token=registered.refresh_token))

    assert rotated.refresh_token != registered.refresh_token
    assert rotated.user.id == registered.user.id
    with pytest.raises(RefreshSessionInvalidError) as exc_info:
        use_case.execute(RefreshSessionInput(refresh_token=registered.refresh_token))
    assert str(exc_info.value) == "refresh token has been revoked"


def test_refresh_rejects_unknown_and_expired_tokens():
    store = InMemoryCredentialStore()
    token_service = _token_service(refresh_ttl_hours=0)
    registered = _register(store, token_service)
    use_case = RefreshSessionUseCase(store=store, token_port=token_service)

    with pytest.raises(RefreshSessionInvalidError):
        use_case.execute(RefreshSessionInput(refresh_token="does-not-exist"))
    with pytest.raises(RefreshSessionInvalidError) as exc_info:
        use_case.execute(RefreshSessionInput(refresh_token=registered.refresh_token))
    assert str(exc_info.value) == "refresh token has expired"


def test_validate_returns_claims_and_rejects_garbage():
    store = InMemoryCredentialStore()
    token_service = _token_service()
    registered = _register(store, token_service)
    use_case = ValidateSessionUseCase(store=store, token_port=token_service)

    output = use_case.execute(ValidateSessionInput(access_token=registered.access_token))

    assert output.valid is True
    assert output.user_id == registered.user.id
    assert output.user_type == "client"
    assert output.expires_at == registered.access_expires_at
    with pytest.raises(InvalidAccessTokenError):
        use_case.execute(ValidateSessionInput(access_token="not.a.jwt"))


def test_logout_revokes_refresh_and_blacklists_access_token():
    store = InMemoryCredentialStore()
    token_service = _token_service()
    blacklist = InMemoryTokenBlacklist()
    registered = _register(store, token_service)
    logout = LogoutSessionUseCase(store=store, token_port=token_service, blacklist=blacklist)
    validate = ValidateSessionUseCase(store=store, token_port=token_service, blacklist=blacklist)

    logout.execute(LogoutInput(refresh_token=registered.refresh_token, access_token=registered.access_token))

    with pytest.raises(RefreshSessionInvalidError):
        RefreshSessionUseCase(store=store, token_port=token_service).execute(
            RefreshSessionInput(refresh_token=registered.refresh_token)
        )
    with pytest.raises(InvalidAccessTokenError):
        validate.execute(ValidateSessionInput(access_token=registered.access_token))


def test_logout_unknown_or_repeated_token_is_noop():
    store = InMemoryCredentialStore()
    token_service = _token_service()
    registered = _register(store, token_service)
    logout = LogoutSessionUseCase(store=store, token_port=token_service)

    logout.execute(LogoutInput(refresh_token="unknown-token"))
    logout.execute(LogoutInput(refresh_token=registered.refresh_token))
    logout.execute(LogoutInput(refresh_token=registered.refresh_token))


def test_change_password_requires_old_password_and_revokes_sessions():
    store = InMemoryCredentialStore()
    token_service = _token_service()
    registered = _register(store, token_service)
    use_case = ChangePasswordUseCase(store=store, password_hasher=FakePasswordHasher())

    with pytest.raises(InvalidCredentialsError):
        use_case.execute(
            ChangePasswordInput(user_id=registered.user.id, old_password="nope-nope", new_password="newpassword1")
        )
    with pytest.raises(InvalidInputError):
        use_case.execute(
            ChangePasswordInput(user_id=registered.user.id, old_password="password123", new_password="short")
        )

    use_case.execute(
        ChangePasswordInput(user_id=registered.user.id, old_password="password123", new_password="newpassword1")
    )

    with pytest.raises(RefreshSessionInvalidError):
        RefreshSessionUseCase(store=store, token_port=token_service).execute(
            RefreshSessionInput(refresh_token=registered.refresh_token)
        )
    login = _login_use_case(store, token_service)
    with pytest.raises(InvalidCredentialsError):
        login.execute(LoginLocalInput(email="alice@example.com", password="password123"))
    assert login.execute(LoginLocalInput(email="alice@example.com", password="newpassword1")).access_token


def _oauth_use_case(store, provider, token_service=None) -> LoginOAuthUseCase:
    return LoginOAuthUseCase(
        store=store,
        providers=OAuthProviderRegistry({"google": provider}),
        token_port=token_service or _token_service(),
    )


def test_oauth_login_provisions_verified_client_once():
    store = InMemoryCredentialStore()
    provider = FakeOAuthProvider(
        OAuthClaims(
            email="Bob@Example.com",
            first_name="Bob",
            last_name="Jones",
            avatar_url="https://example.com/bob.png",
            subject="google-123",
        )
    )
    use_case = _oauth_use_case(store, provider)

    first = use_case.execute(LoginOAuthInput(provider="Google", provider_token="id-token"))
    second = use_case.execute(LoginOAuthInput(provider="google", provider_token="id-token"))

    assert first.user.id == second.user.id
    user = store.get_user_by_email(email="bob@example.com")
    assert user.user_type == "client"
    assert user.is_verified is True
    assert user.password_hash is None
    assert user.provider == "google"
    assert user.provider_subject == "google-123"
    assert provider.calls == ["id-token", "id-token"]


def test_oauth_login_links_existing_local_account():
    store = InMemoryCredentialStore()
    registered = _register(store)
    provider = FakeOAuthProvider(
        OAuthClaims(email="alice@example.com", first_name="Alice", last_name="Smith", avatar_url=None, subject="g-1")
    )

    output = _oauth_use_case(store, provider).execute(LoginOAuthInput(provider="google", provider_token="t"))

    assert output.user.id == registered.user.id
    assert output.user.is_verified is True
    user = store.get_user_by_id(user_id=registered.user.id)
    assert user.provider == "google"
    assert user.password_hash == "hashed:password123"


def test_oauth_login_rejects_invalid_token():
    store = InMemoryCredentialStore()
    use_case = _oauth_use_case(store, FakeOAuthProvider(None))

    with pytest.raises(OAuthTokenValidationError) as exc_info:
        use_case.execute(LoginOAuthInput(provider="google", provider_token="bad"))

    assert exc_info.value.kind is ErrorKind.UNAUTHORIZED


def test_oauth_login_unknown_provider_is_internal_error():
    store = InMemoryCredentialStore()
    use_case = _oauth_use_case(store, FakeOAuthProvider(None))

    with pytest.raises(OAuthProviderNotConfiguredError) as exc_info:
        use_case.execute(LoginOAuthInput(provider="myspace", provider_token="t"))

    assert exc_info.value.kind is ErrorKind.INTERNAL


def test_oauth_login_leaves_active_lock_in_place():
    store = InMemoryCredentialStore()
    registered = _register(store)
    store.increment_login_attempts(user_id=registered.user.id, now=utcnow())
    store.lock_account(user_id=registered.user.id, duration=timedelta(minutes=15), now=utcnow())
    provider = FakeOAuthProvider(
        OAuthClaims(email="alice@example.com", first_name="Alice", last_name="Smith", avatar_url=None, subject="g-1")
    )

    output = _oauth_use_case(store, provider).execute(LoginOAuthInput(provider="google", provider_token="t"))

    assert output.user.id == registered.user.id
    user = store.get_user_by_id(user_id=registered.user.id)
    assert user.locked_until is not None
    assert user.login_attempts == 1
    with pytest.raises(AccountLockedError):
        _login_use_case(store).execute(LoginLocalInput(email="alice@example.com", password="password123"))
