from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    DATABASE = "database"
    INTERNAL = "internal"


class DomainError(Exception):
    """Base para erros de dominio."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, *, details: dict[str, str] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidInputError(DomainError):
    """Entrada malformada."""

    kind = ErrorKind.VALIDATION


class ConflictError(DomainError):
    """Violacao de unicidade."""

    kind = ErrorKind.CONFLICT


class UnauthorizedError(DomainError):
    """Credencial ou token invalido."""

    kind = ErrorKind.UNAUTHORIZED


class ForbiddenError(DomainError):
    """Conta bloqueada ou sem permissao."""

    kind = ErrorKind.FORBIDDEN


class NotFoundError(DomainError):
    """Entidade referenciada nao existe."""

    kind = ErrorKind.NOT_FOUND


class DatabaseError(DomainError):
    """Falha transitoria de persistencia."""

    kind = ErrorKind.DATABASE


class InternalError(DomainError):
    """Falha inesperada (hash, assinatura, configuracao)."""

    kind = ErrorKind.INTERNAL


class EmailAlreadyExistsError(ConflictError):
    pass


class InvalidCredentialsError(UnauthorizedError):
    pass


class RefreshSessionInvalidError(UnauthorizedError):
    pass


class InvalidAccessTokenError(UnauthorizedError):
    pass


class OAuthTokenValidationError(UnauthorizedError):
    pass


class AccountLockedError(ForbiddenError):
    pass


class UserInactiveError(ForbiddenError):
    pass


class UserNotFoundError(NotFoundError):
    pass


class PasswordHashingError(InternalError):
    pass


class TokenSigningError(InternalError):
    pass


class OAuthProviderNotConfiguredError(InternalError):
    pass


class DeadlineExceededError(InternalError):
    pass
