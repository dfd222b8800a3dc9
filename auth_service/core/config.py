from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(name, default)


def _bool(name: str, default: bool = False) -> bool:
    value = _env(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    credential_store: str
    postgres_dsn: str
    redis_url: str
    jwt_secret: str
    jwt_access_ttl_minutes: int
    jwt_refresh_ttl_hours: int
    bcrypt_rounds: int
    max_login_attempts: int
    lockout_minutes: int
    user_create_max_attempts: int
    user_create_base_delay_ms: int
    request_timeout_seconds: float
    oauth_timeout_seconds: float
    google_client_id: str
    facebook_app_id: str
    facebook_app_secret: str
    facebook_graph_base: str
    refresh_cookie_secure: bool
    log_level: str
    auto_create_schema: bool


def get_settings() -> Settings:
    return Settings(
        credential_store=(_env("CREDENTIAL_STORE", "sql") or "sql").strip().lower(),
        postgres_dsn=_env("POSTGRES_DSN", ""),
        redis_url=_env("REDIS_URL", ""),
        jwt_secret=_env("JWT_SECRET", ""),
        jwt_access_ttl_minutes=int(_env("JWT_ACCESS_TTL_MINUTES", "15")),
        jwt_refresh_ttl_hours=int(_env("JWT_REFRESH_TTL_HOURS", "24")),
        bcrypt_rounds=int(_env("BCRYPT_ROUNDS", "12")),
        max_login_attempts=int(_env("MAX_LOGIN_ATTEMPTS", "5")),
        lockout_minutes=int(_env("LOCKOUT_MINUTES", "15")),
        user_create_max_attempts=int(_env("USER_CREATE_MAX_ATTEMPTS", "3")),
        user_create_base_delay_ms=int(_env("USER_CREATE_BASE_DELAY_MS", "100")),
        request_timeout_seconds=float(_env("REQUEST_TIMEOUT_SECONDS", "10")),
        oauth_timeout_seconds=float(_env("OAUTH_TIMEOUT_SECONDS", "5")),
        google_client_id=_env("GOOGLE_CLIENT_ID", ""),
        facebook_app_id=_env("FACEBOOK_APP_ID", ""),
        facebook_app_secret=_env("FACEBOOK_APP_SECRET", ""),
        facebook_graph_base=_env("FACEBOOK_GRAPH_BASE", "https://graph.facebook.com"),
        refresh_cookie_secure=_bool("REFRESH_COOKIE_SECURE", False),
        log_level=(_env("LOG_LEVEL", "INFO") or "INFO").upper(),
        auto_create_schema=_bool("AUTO_CREATE_SCHEMA", False),
    )
