from __future__ import annotations

import logging
from uuid import uuid4

from auth_service.application.dto.auth import AuthTokensOutput, LoginOAuthInput, OAuthClaims
from auth_service.application.ports.credential_store_port import CredentialStorePort
from auth_service.application.ports.oauth_provider_port import OAuthProviderRegistryPort
from auth_service.application.ports.token_port import TokenPort
from auth_service.domain.entities.user import User
from auth_service.domain.exceptions import (
    EmailAlreadyExistsError,
    OAuthTokenValidationError,
    UserInactiveError,
    UserNotFoundError,
)
from auth_service.shared.deadline import Deadline, ensure_deadline

from .auth_common import issue_tokens, normalize_email, utcnow
from .brute_force_guard import BruteForceGuard


logger = logging.getLogger(__name__)


class LoginOAuthUseCase:
    def __init__(
        self,
        *,
        store: CredentialStorePort,
        providers: OAuthProviderRegistryPort,
        token_port: TokenPort,
        guard: BruteForceGuard | None = None,
    ):
        self._store = store
        self._providers = providers
        self._token_port = token_port
        self._guard = guard or BruteForceGuard(store=store)

    def execute(self, command: LoginOAuthInput, *, deadline: Deadline | None = None) -> AuthTokensOutput:
        deadline = ensure_deadline(deadline)
        provider_name = command.provider.strip().lower()
        logger.info("login_oauth: start provider=%s", provider_name)

        provider = self._providers.get(provider_name)
        claims = provider.verify_token(provider_token=command.provider_token, deadline=deadline)
        email = normalize_email(claims.email)
        if not email:
            raise OAuthTokenValidationError(f"{provider_name}: token carries no email")

        now = utcnow()
        try:
            user = self._store.get_user_by_email(email=email, deadline=deadline)
        except UserNotFoundError:
            user = self._provision_user(
                provider=provider_name,
                email=email,
                claims=claims,
                ip=command.metadata.ip,
                deadline=deadline,
            )
        else:
            # Leaves an active lock in place.
            self._guard.register_success(user=user, now=now, deadline=deadline)
            if claims.email_verified and not user.is_verified:
                self._store.mark_user_verified(user_id=user.id, deadline=deadline)
            if user.provider is None:
                self._store.link_provider(
                    user_id=user.id,
                    provider=provider_name,
                    provider_subject=claims.subject,
                    avatar_url=claims.avatar_url,
                    deadline=deadline,
                )
                logger.info("login_oauth: provider_linked user_id=%s provider=%s", user.id, provider_name)
            self._store.update_login_info(
                user_id=user.id,
                ip=command.metadata.ip,
                logged_in_at=now,
                deadline=deadline,
            )
            user = self._store.get_user_by_id(user_id=user.id, deadline=deadline)

        if not user.is_active:
            logger.warning("login_oauth: inactive_user user_id=%s", user.id)
            raise UserInactiveError("user is inactive")

        output = issue_tokens(
            user=user,
            store=self._store,
            token_port=self._token_port,
            metadata=command.metadata,
            deadline=deadline,
        )
        logger.info("login_oauth: authenticated user_id=%s provider=%s", user.id, provider_name)
        return output

    def _provision_user(
        self,
        *,
        provider: str,
        email: str,
        claims: OAuthClaims,
        ip: str | None,
        deadline: Deadline,
    ) -> User:
        now = utcnow()
        candidate = User(
            id=str(uuid4()),
            email=email,
            password_hash=None,
            first_name=claims.first_name.strip(),
            last_name=claims.last_name.strip(),
            phone=None,
            user_type="client",
            provider=provider,
            provider_subject=claims.subject,
            avatar_url=claims.avatar_url,
            is_active=True,
            is_verified=True,
            login_attempts=0,
            last_login_at=now,
            last_login_ip=ip,
            locked_until=None,
            password_changed_at=None,
            created_at=now,
            updated_at=now,
        )
        try:
            user = self._store.create_user(user=candidate, deadline=deadline)
        except EmailAlreadyExistsError:
            # A concurrent first login for the same email won the insert.
            logger.info("login_oauth: provisioning_race email=%s", email)
            return self._store.get_user_by_email(email=email, deadline=deadline)
        logger.info("login_oauth: provisioned user_id=%s provider=%s", user.id, provider)
        return user
