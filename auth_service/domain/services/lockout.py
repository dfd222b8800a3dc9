"""Regras puras do bloqueio por tentativas de login.

Estados: Normal e Locked(until). Nao existe evento de desbloqueio; o estado e
recalculado a cada tentativa comparando ``now`` com ``locked_until``.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from auth_service.domain.entities.user import User


MAX_LOGIN_ATTEMPTS = 5
LOCKOUT_DURATION = timedelta(minutes=15)


def is_locked(user: User, now: datetime) -> bool:
    return user.locked_until is not None and now < user.locked_until


def reached_threshold(attempts: int, max_attempts: int = MAX_LOGIN_ATTEMPTS) -> bool:
    return attempts >= max_attempts
