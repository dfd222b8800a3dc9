from __future__ import annotations

from datetime import datetime
from typing import Protocol

from auth_service.shared.deadline import Deadline


class TokenBlacklistPort(Protocol):
    def revoke(self, *, fingerprint: str, expires_at: datetime, deadline: Deadline | None = None) -> None:
        ...

    def is_revoked(self, *, fingerprint: str, deadline: Deadline | None = None) -> bool:
        ...
