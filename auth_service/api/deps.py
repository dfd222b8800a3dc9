from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from fastapi import Depends, Header, HTTPException

from auth_service.application.dto.auth import ValidateSessionInput, ValidateSessionOutput
from auth_service.application.ports.credential_store_port import CredentialStorePort
from auth_service.application.ports.token_blacklist_port import TokenBlacklistPort
from auth_service.application.use_cases.brute_force_guard import BruteForceGuard
from auth_service.application.use_cases.change_password import ChangePasswordUseCase
from auth_service.application.use_cases.login_local import LoginLocalUseCase
from auth_service.application.use_cases.login_oauth import LoginOAuthUseCase
from auth_service.application.use_cases.logout_session import LogoutSessionUseCase
from auth_service.application.use_cases.refresh_session import RefreshSessionUseCase
from auth_service.application.use_cases.register_user import RegisterUserUseCase, is_transient_store_error
from auth_service.application.use_cases.validate_session import ValidateSessionUseCase
from auth_service.core.config import get_settings
from auth_service.core.db import get_engine
from auth_service.domain.exceptions import DomainError
from auth_service.infrastructure.clients.oauth_provider_registry import OAuthProviderRegistry
from auth_service.infrastructure.security.password_hasher import PasswordHasher
from auth_service.infrastructure.security.token_service import JwtTokenService
from auth_service.shared.deadline import Deadline
from auth_service.shared.retry import RetryPolicy

from .errors import to_http_exception


def _get_db_engine():
    settings = get_settings()
    if not settings.postgres_dsn:
        raise HTTPException(status_code=500, detail="POSTGRES_DSN is required.")
    return get_engine(settings.postgres_dsn)


@lru_cache(maxsize=1)
def _get_memory_store() -> CredentialStorePort:
    from auth_service.infrastructure.memory.credential_store import InMemoryCredentialStore

    return InMemoryCredentialStore()


def _get_credential_store() -> CredentialStorePort:
    settings = get_settings()
    if settings.credential_store == "memory":
        return _get_memory_store()
    from auth_service.infrastructure.db.repositories.credential_repository import SqlCredentialRepository

    return SqlCredentialRepository(_get_db_engine())


@lru_cache(maxsize=1)
def _get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=get_settings().bcrypt_rounds)


@lru_cache(maxsize=1)
def _get_token_service() -> JwtTokenService:
    settings = get_settings()
    if not settings.jwt_secret:
        raise HTTPException(status_code=500, detail="JWT_SECRET is required.")
    return JwtTokenService(
        jwt_secret=settings.jwt_secret,
        access_ttl_minutes=settings.jwt_access_ttl_minutes,
        refresh_ttl_hours=settings.jwt_refresh_ttl_hours,
    )


@lru_cache(maxsize=1)
def _get_oauth_registry() -> OAuthProviderRegistry:
    settings = get_settings()
    registry = OAuthProviderRegistry()
    if settings.google_client_id:
        from auth_service.infrastructure.clients.google_oidc_client import GoogleOidcClient

        registry.register(
            "google",
            GoogleOidcClient(
                client_id=settings.google_client_id,
                timeout_seconds=settings.oauth_timeout_seconds,
            ),
        )
    if settings.facebook_app_id and settings.facebook_app_secret:
        from auth_service.infrastructure.clients.facebook_graph_client import FacebookGraphClient

        registry.register(
            "facebook",
            FacebookGraphClient(
                app_id=settings.facebook_app_id,
                app_secret=settings.facebook_app_secret,
                graph_base=settings.facebook_graph_base,
                timeout_seconds=settings.oauth_timeout_seconds,
            ),
        )
    return registry


@lru_cache(maxsize=1)
def _get_token_blacklist() -> TokenBlacklistPort:
    settings = get_settings()
    if settings.redis_url:
        from auth_service.infrastructure.cache.redis_token_blacklist import (
            RedisTokenBlacklist,
            create_redis_client,
        )

        return RedisTokenBlacklist(create_redis_client(settings.redis_url))
    from auth_service.infrastructure.cache.memory_token_blacklist import InMemoryTokenBlacklist

    return InMemoryTokenBlacklist()


def _get_brute_force_guard(store: CredentialStorePort) -> BruteForceGuard:
    settings = get_settings()
    return BruteForceGuard(
        store=store,
        max_attempts=settings.max_login_attempts,
        lockout_duration=timedelta(minutes=settings.lockout_minutes),
    )


def _get_create_user_retry_policy() -> RetryPolicy:
    settings = get_settings()
    return RetryPolicy(
        max_attempts=settings.user_create_max_attempts,
        base_delay_seconds=settings.user_create_base_delay_ms / 1000,
        retry_on=is_transient_store_error,
    )


def get_request_deadline() -> Deadline:
    return Deadline.after(get_settings().request_timeout_seconds)


def get_register_user_use_case() -> RegisterUserUseCase:
    return RegisterUserUseCase(
        store=_get_credential_store(),
        password_hasher=_get_password_hasher(),
        token_port=_get_token_service(),
        retry_policy=_get_create_user_retry_policy(),
    )


def get_login_local_use_case() -> LoginLocalUseCase:
    store = _get_credential_store()
    return LoginLocalUseCase(
        store=store,
        password_hasher=_get_password_hasher(),
        token_port=_get_token_service(),
        guard=_get_brute_force_guard(store),
    )


def get_login_oauth_use_case() -> LoginOAuthUseCase:
    store = _get_credential_store()
    return LoginOAuthUseCase(
        store=store,
        providers=_get_oauth_registry(),
        token_port=_get_token_service(),
        guard=_get_brute_force_guard(store),
    )


def get_refresh_session_use_case() -> RefreshSessionUseCase:
    return RefreshSessionUseCase(
        store=_get_credential_store(),
        token_port=_get_token_service(),
    )


def get_validate_session_use_case() -> ValidateSessionUseCase:
    return ValidateSessionUseCase(
        store=_get_credential_store(),
        token_port=_get_token_service(),
        blacklist=_get_token_blacklist(),
    )


def get_change_password_use_case() -> ChangePasswordUseCase:
    return ChangePasswordUseCase(
        store=_get_credential_store(),
        password_hasher=_get_password_hasher(),
    )


def get_logout_session_use_case() -> LogoutSessionUseCase:
    return LogoutSessionUseCase(
        store=_get_credential_store(),
        token_port=_get_token_service(),
        blacklist=_get_token_blacklist(),
    )


def bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization.replace("Bearer ", "", 1).strip() or None


def get_current_session(
    authorization: str | None = Header(default=None),
    deadline: Deadline = Depends(get_request_deadline),
    use_case: ValidateSessionUseCase = Depends(get_validate_session_use_case),
) -> ValidateSessionOutput:
    token = bearer_token(authorization)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "UNAUTHORIZED", "message": "missing access token", "details": {}},
        )
    try:
        return use_case.execute(ValidateSessionInput(access_token=token), deadline=deadline)
    except DomainError as exc:
        raise to_http_exception(exc, operation="authenticate") from exc
