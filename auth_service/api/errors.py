from __future__ import annotations

import logging

from fastapi import HTTPException

from auth_service.domain.exceptions import DomainError, ErrorKind


logger = logging.getLogger(__name__)

# Every ErrorKind has exactly one row.
ERROR_STATUS: dict[ErrorKind, tuple[int, str]] = {
    ErrorKind.VALIDATION: (400, "VALIDATION_ERROR"),
    ErrorKind.CONFLICT: (409, "CONFLICT_ERROR"),
    ErrorKind.UNAUTHORIZED: (401, "UNAUTHORIZED"),
    ErrorKind.FORBIDDEN: (403, "PERMISSION_ERROR"),
    ErrorKind.NOT_FOUND: (404, "NOT_FOUND"),
    ErrorKind.DATABASE: (500, "DATABASE_ERROR"),
    ErrorKind.INTERNAL: (500, "INTERNAL_ERROR"),
}

_SERVER_SIDE_KINDS = {ErrorKind.DATABASE, ErrorKind.INTERNAL}
_GENERIC_MESSAGES = {
    ErrorKind.DATABASE: "database operation failed",
    ErrorKind.INTERNAL: "internal server error",
}


def to_http_exception(exc: DomainError, *, operation: str = "request") -> HTTPException:
    status_code, code = ERROR_STATUS[exc.kind]
    if exc.kind in _SERVER_SIDE_KINDS:
        logger.error(
            "api: %s_failed code=%s error=%s",
            operation,
            code,
            exc.message,
            exc_info=exc,
        )
        message = _GENERIC_MESSAGES[exc.kind]
        details: dict[str, str] = {}
    else:
        logger.warning("api: %s_rejected code=%s error=%s", operation, code, exc.message)
        message = exc.message
        details = exc.details
    return HTTPException(
        status_code=status_code,
        detail={"code": code, "message": message, "details": details},
    )
