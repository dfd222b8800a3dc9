from __future__ import annotations

import threading
from datetime import datetime, timezone

from auth_service.application.ports.token_blacklist_port import TokenBlacklistPort
from auth_service.shared.deadline import Deadline, ensure_deadline


class InMemoryTokenBlacklist(TokenBlacklistPort):
    def __init__(self):
        self._lock = threading.Lock()
        self._entries: dict[str, datetime] = {}

    def revoke(self, *, fingerprint: str, expires_at: datetime, deadline: Deadline | None = None) -> None:
        ensure_deadline(deadline).check("blacklist_revoke")
        with self._lock:
            self._entries[fingerprint] = expires_at

    def is_revoked(self, *, fingerprint: str, deadline: Deadline | None = None) -> bool:
        ensure_deadline(deadline).check("blacklist_lookup")
        now = datetime.now(timezone.utc)
        with self._lock:
            # Drop entries whose token would be rejected as expired anyway.
            for key in [k for k, exp in self._entries.items() if exp <= now]:
                del self._entries[key]
            return fingerprint in self._entries
