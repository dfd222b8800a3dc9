from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from auth_service.api import deps
from auth_service.application.use_cases.brute_force_guard import BruteForceGuard
from auth_service.application.use_cases.change_password import ChangePasswordUseCase
from auth_service.application.use_cases.login_local import LoginLocalUseCase
from auth_service.application.use_cases.logout_session import LogoutSessionUseCase
from auth_service.application.use_cases.refresh_session import RefreshSessionUseCase
from auth_service.application.use_cases.register_user import RegisterUserUseCase
from auth_service.application.use_cases.validate_session import ValidateSessionUseCase
from auth_service.domain.exceptions import DatabaseError
from auth_service.infrastructure.cache.memory_token_blacklist import InMemoryTokenBlacklist
from auth_service.infrastructure.memory.credential_store import InMemoryCredentialStore
from auth_service.infrastructure.security.token_service import JwtTokenService
from auth_service.main import app


class FakePasswordHasher:
    def hash(self, plain_password: str) -> str:
        return f"hashed:{plain_password}"

    def verify(self, plain_password: str, password_hash: str) -> bool:
        return password_hash == f"hashed:{plain_password}"

    def verify_and_update(self, plain_password: str, password_hash: str):
        return self.verify(plain_password, password_hash), None


class FailingRegisterUseCase:
    def execute(self, command, *, deadline=None):
        raise DatabaseError("connection refused by 10.0.0.5:5432")


REGISTER_BODY = {
    "email": "alice@example.com",
    "password": "password123",
    "first_name": "Alice",
    "last_name": "Smith",
    "user_type": "client",
}


@pytest.fixture
def client():
    store = InMemoryCredentialStore()
    hasher = FakePasswordHasher()
    tokens = JwtTokenService(
        jwt_secret="test-secret-that-is-long-enough-for-hs256-signing",
        access_ttl_minutes=15,
        refresh_ttl_hours=24,
    )
    blacklist = InMemoryTokenBlacklist()

    app.dependency_overrides[deps.get_register_user_use_case] = lambda: RegisterUserUseCase(
        store=store, password_hasher=hasher, token_port=tokens
    )
    app.dependency_overrides[deps.get_login_local_use_case] = lambda: LoginLocalUseCase(
        store=store, password_hasher=hasher, token_port=tokens, guard=BruteForceGuard(store=store)
    )
    app.dependency_overrides[deps.get_refresh_session_use_case] = lambda: RefreshSessionUseCase(
        store=store, token_port=tokens
    )
    app.dependency_overrides[deps.get_validate_session_use_case] = lambda: ValidateSessionUseCase(
        store=store, token_port=tokens, blacklist=blacklist
    )
    app.dependency_overrides[deps.get_change_password_use_case] = lambda: ChangePasswordUseCase(
        store=store, password_hasher=hasher
    )
    app.dependency_overrides[deps.get_logout_session_use_case] = lambda: LogoutSessionUseCase(
        store=store, token_port=tokens, blacklist=blacklist
    )
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_register_returns_tokens_and_sets_cookie(client):
    response = client.post("/v1/auth/register", json=REGISTER_BODY)

    assert response.status_code == 201
    body = response.json()
    assert body["user_type"] == "client"
    assert body["token_type"] == "Bearer"
    assert body["user"]["email"] == "alice@example.com"
    assert body["access_token"]
    assert "refresh_token=" in response.headers["set-cookie"]
    assert "HttpOnly" in response.headers["set-cookie"]


def test_register_conflict_and_validation_codes(client):
    client.post("/v1/auth/register", json=REGISTER_BODY)

    conflict = client.post("/v1/auth/register", json=REGISTER_BODY)
    invalid = client.post("/v1/auth/register", json={**REGISTER_BODY, "email": "b@example.com", "user_type": "admin"})

    assert conflict.status_code == 409
    assert conflict.json()["detail"]["code"] == "CONFLICT_ERROR"
    assert invalid.status_code == 400
    assert invalid.json()["detail"]["code"] == "VALIDATION_ERROR"
    assert "invalid user type" in invalid.json()["detail"]["details"]["error"]


def test_login_lockout_maps_to_permission_error(client):
    client.post("/v1/auth/register", json=REGISTER_BODY)
    wrong = {"email": "alice@example.com", "password": "wrong-password"}

    statuses = [client.post("/v1/auth/login", json=wrong).status_code for _ in range(5)]
    locked = client.post("/v1/auth/login", json={"email": "alice@example.com", "password": "password123"})

    assert statuses == [401] * 5
    assert locked.status_code == 403
    assert locked.json()["detail"] == {
        "code": "PERMISSION_ERROR",
        "message": "account is locked, please try again later",
        "details": {},
    }


def test_refresh_from_cookie_rotates_session(client):
    registered = client.post("/v1/auth/register", json=REGISTER_BODY).json()

    refreshed = client.post("/v1/auth/refresh")
    replay = client.post("/v1/auth/refresh", json={"refresh_token": registered["refresh_token"]})

    assert refreshed.status_code == 200
    assert refreshed.json()["refresh_token"] != registered["refresh_token"]
    assert replay.status_code == 401
    assert replay.json()["detail"]["message"] == "refresh token has been revoked"


def test_validate_change_password_and_logout(client):
    registered = client.post("/v1/auth/register", json=REGISTER_BODY).json()
    auth_header = {"Authorization": f"Bearer {registered['access_token']}"}

    validated = client.post("/v1/auth/validate", headers=auth_header)
    assert validated.status_code == 200
    assert validated.json()["user_id"] == registered["user_id"]

    unauthenticated = client.post(
        "/v1/auth/change-password",
        json={"old_password": "password123", "new_password": "newpassword1"},
    )
    assert unauthenticated.status_code == 401

    changed = client.post(
        "/v1/auth/change-password",
        headers=auth_header,
        json={"old_password": "password123", "new_password": "newpassword1"},
    )
    assert changed.status_code == 200
    assert changed.json() == {"ok": True}

    logged_out = client.post("/v1/auth/logout", headers=auth_header, json={})
    assert logged_out.status_code == 200

    after_logout = client.post("/v1/auth/validate", json={"access_token": registered["access_token"]})
    assert after_logout.status_code == 401
    assert after_logout.json()["detail"]["code"] == "UNAUTHORIZED"


def test_database_errors_are_not_leaked(client):
    app.dependency_overrides[deps.get_register_user_use_case] = lambda: FailingRegisterUseCase()

    response = client.post("/v1/auth/register", json=REGISTER_BODY)

    assert response.status_code == 500
    assert response.json()["detail"] == {
        "code": "DATABASE_ERROR",
        "message": "database operation failed",
        "details": {},
    }
