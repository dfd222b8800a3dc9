from __future__ import annotations

import math
import time
from dataclasses import dataclass

from auth_service.domain.exceptions import DeadlineExceededError


@dataclass(frozen=True)
class Deadline:
    """Per-request time budget on the monotonic clock.

    Every downstream call (store, OAuth provider, blacklist) receives the same
    instance and checks it before starting work.
    """

    expires_at: float

    @classmethod
    def after(cls, seconds: float) -> Deadline:
        return cls(expires_at=time.monotonic() + max(0.0, seconds))

    @classmethod
    def unbounded(cls) -> Deadline:
        return cls(expires_at=math.inf)

    @property
    def is_bounded(self) -> bool:
        return not math.isinf(self.expires_at)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def check(self, operation: str) -> None:
        if self.expired():
            raise DeadlineExceededError(f"Deadline exceeded before {operation}.")

    def cap(self, timeout_seconds: float) -> float:
        """Return ``timeout_seconds`` shortened to whatever budget is left."""
        return min(timeout_seconds, self.remaining())


def ensure_deadline(deadline: Deadline | None) -> Deadline:
    return deadline if deadline is not None else Deadline.unbounded()
