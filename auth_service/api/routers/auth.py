from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Cookie, Depends, Header, Request, Response

from auth_service.api.deps import (
    bearer_token,
    get_change_password_use_case,
    get_current_session,
    get_login_local_use_case,
    get_login_oauth_use_case,
    get_logout_session_use_case,
    get_refresh_session_use_case,
    get_register_user_use_case,
    get_request_deadline,
    get_validate_session_use_case,
)
from auth_service.api.errors import to_http_exception
from auth_service.api.schemas.auth import (
    AuthTokenResponse,
    AuthUserResponse,
    ChangePasswordRequest,
    LoginRequest,
    LogoutRequest,
    OAuthLoginRequest,
    OkResponse,
    RefreshRequest,
    RegisterRequest,
    ValidateRequest,
    ValidateSessionResponse,
)
from auth_service.application.dto.auth import (
    AuthTokensOutput,
    ChangePasswordInput,
    LoginLocalInput,
    LoginOAuthInput,
    LogoutInput,
    RefreshSessionInput,
    RegisterUserInput,
    RequestMetadata,
    ValidateSessionInput,
    ValidateSessionOutput,
)
from auth_service.application.use_cases.change_password import ChangePasswordUseCase
from auth_service.application.use_cases.login_local import LoginLocalUseCase
from auth_service.application.use_cases.login_oauth import LoginOAuthUseCase
from auth_service.application.use_cases.logout_session import LogoutSessionUseCase
from auth_service.application.use_cases.refresh_session import RefreshSessionUseCase
from auth_service.application.use_cases.register_user import RegisterUserUseCase
from auth_service.application.use_cases.validate_session import ValidateSessionUseCase
from auth_service.core.config import get_settings
from auth_service.domain.exceptions import DomainError
from auth_service.shared.deadline import Deadline


router = APIRouter(prefix="/v1/auth", tags=["auth"])

REFRESH_COOKIE_NAME = "refresh_token"
REFRESH_COOKIE_PATH = "/v1/auth"


def _set_refresh_cookie(response: Response, refresh_token: str, max_age_seconds: int) -> None:
    response.set_cookie(
        key=REFRESH_COOKIE_NAME,
        value=refresh_token,
        httponly=True,
        samesite="lax",
        secure=get_settings().refresh_cookie_secure,
        max_age=max_age_seconds,
        path=REFRESH_COOKIE_PATH,
    )


def _cookie_max_age_seconds(refresh_expires_at: datetime) -> int:
    now = datetime.now(timezone.utc)
    return max(int((refresh_expires_at - now).total_seconds()), 0)


def request_metadata(
    request: Request,
    user_agent: str | None = Header(default=None),
    x_device_id: str | None = Header(default=None),
    x_forwarded_for: str | None = Header(default=None),
) -> RequestMetadata:
    ip = None
    if x_forwarded_for:
        ip = x_forwarded_for.split(",")[0].strip() or None
    if ip is None and request.client is not None:
        ip = request.client.host
    return RequestMetadata(user_agent=user_agent, ip=ip, device_id=x_device_id)


def _token_response(response: Response, output: AuthTokensOutput) -> AuthTokenResponse:
    _set_refresh_cookie(
        response,
        output.refresh_token,
        max_age_seconds=_cookie_max_age_seconds(output.refresh_expires_at),
    )
    user = output.user
    return AuthTokenResponse(
        user_id=user.id,
        user_type=user.user_type,
        access_token=output.access_token,
        refresh_token=output.refresh_token,
        token_type=output.token_type,
        expires_at=output.access_expires_at,
        refresh_expires_at=output.refresh_expires_at,
        user=AuthUserResponse(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            phone=user.phone,
            user_type=user.user_type,
            avatar_url=user.avatar_url,
            is_active=user.is_active,
            is_verified=user.is_verified,
            created_at=user.created_at,
            last_login_at=user.last_login_at,
        ),
    )


@router.post("/register", response_model=AuthTokenResponse, status_code=201)
def register_user(
    req: RegisterRequest,
    response: Response,
    metadata: RequestMetadata = Depends(request_metadata),
    deadline: Deadline = Depends(get_request_deadline),
    use_case: RegisterUserUseCase = Depends(get_register_user_use_case),
):
    try:
        output = use_case.execute(
            RegisterUserInput(
                email=req.email,
                password=req.password,
                first_name=req.first_name,
                last_name=req.last_name,
                phone=req.phone,
                user_type=req.user_type,
                metadata=metadata,
            ),
            deadline=deadline,
        )
    except DomainError as exc:
        raise to_http_exception(exc, operation="register") from exc
    return _token_response(response, output)


@router.post("/login", response_model=AuthTokenResponse)
def login_local(
    req: LoginRequest,
    response: Response,
    metadata: RequestMetadata = Depends(request_metadata),
    deadline: Deadline = Depends(get_request_deadline),
    use_case: LoginLocalUseCase = Depends(get_login_local_use_case),
):
    try:
        output = use_case.execute(
            LoginLocalInput(email=req.email, password=req.password, metadata=metadata),
            deadline=deadline,
        )
    except DomainError as exc:
        raise to_http_exception(exc, operation="login") from exc
    return _token_response(response, output)


@router.post("/oauth/{provider}", response_model=AuthTokenResponse)
def login_oauth(
    provider: str,
    req: OAuthLoginRequest,
    response: Response,
    metadata: RequestMetadata = Depends(request_metadata),
    deadline: Deadline = Depends(get_request_deadline),
    use_case: LoginOAuthUseCase = Depends(get_login_oauth_use_case),
):
    try:
        output = use_case.execute(
            LoginOAuthInput(provider=provider, provider_token=req.token, metadata=metadata),
            deadline=deadline,
        )
    except DomainError as exc:
        raise to_http_exception(exc, operation="oauth_login") from exc
    return _token_response(response, output)


@router.post("/refresh", response_model=AuthTokenResponse)
def refresh_session(
    response: Response,
    req: RefreshRequest | None = None,
    refresh_token_cookie: str | None = Cookie(default=None, alias=REFRESH_COOKIE_NAME),
    metadata: RequestMetadata = Depends(request_metadata),
    deadline: Deadline = Depends(get_request_deadline),
    use_case: RefreshSessionUseCase = Depends(get_refresh_session_use_case),
):
    refresh_token = (req.refresh_token if req else None) or refresh_token_cookie or ""
    try:
        output = use_case.execute(
            RefreshSessionInput(refresh_token=refresh_token, metadata=metadata),
            deadline=deadline,
        )
    except DomainError as exc:
        raise to_http_exception(exc, operation="refresh") from exc
    return _token_response(response, output)


@router.post("/validate", response_model=ValidateSessionResponse)
def validate_session(
    req: ValidateRequest | None = None,
    authorization: str | None = Header(default=None),
    deadline: Deadline = Depends(get_request_deadline),
    use_case: ValidateSessionUseCase = Depends(get_validate_session_use_case),
):
    access_token = (req.access_token if req else None) or bearer_token(authorization) or ""
    try:
        output = use_case.execute(ValidateSessionInput(access_token=access_token), deadline=deadline)
    except DomainError as exc:
        raise to_http_exception(exc, operation="validate") from exc
    return ValidateSessionResponse(
        valid=output.valid,
        user_id=output.user_id,
        email=output.email,
        user_type=output.user_type,
        is_active=output.is_active,
        is_verified=output.is_verified,
        expires_at=output.expires_at,
    )


@router.post("/change-password", response_model=OkResponse)
def change_password(
    req: ChangePasswordRequest,
    session: ValidateSessionOutput = Depends(get_current_session),
    deadline: Deadline = Depends(get_request_deadline),
    use_case: ChangePasswordUseCase = Depends(get_change_password_use_case),
):
    try:
        use_case.execute(
            ChangePasswordInput(
                user_id=session.user_id,
                old_password=req.old_password,
                new_password=req.new_password,
            ),
            deadline=deadline,
        )
    except DomainError as exc:
        raise to_http_exception(exc, operation="change_password") from exc
    return OkResponse(ok=True)


@router.post("/logout", response_model=OkResponse)
def logout_session(
    response: Response,
    req: LogoutRequest | None = None,
    refresh_token_cookie: str | None = Cookie(default=None, alias=REFRESH_COOKIE_NAME),
    authorization: str | None = Header(default=None),
    deadline: Deadline = Depends(get_request_deadline),
    use_case: LogoutSessionUseCase = Depends(get_logout_session_use_case),
):
    refresh_token = (req.refresh_token if req else None) or refresh_token_cookie or ""
    access_token = (req.access_token if req else None) or bearer_token(authorization)
    try:
        use_case.execute(
            LogoutInput(refresh_token=refresh_token, access_token=access_token),
            deadline=deadline,
        )
    except DomainError as exc:
        raise to_http_exception(exc, operation="logout") from exc
    response.delete_cookie(key=REFRESH_COOKIE_NAME, path=REFRESH_COOKIE_PATH)
    return OkResponse(ok=True)
