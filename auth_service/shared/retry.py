from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from auth_service.shared.deadline import Deadline, ensure_deadline


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with exponential backoff and full jitter.

    Only exceptions accepted by ``retry_on`` are retried; anything else is raised
    on the first occurrence. The policy never sleeps past the caller's deadline.
    """

    max_attempts: int = 3
    base_delay_seconds: float = 0.1
    max_delay_seconds: float = 2.0
    retry_on: Callable[[BaseException], bool] = lambda exc: False
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    rand: Callable[[float, float], float] = field(default=random.uniform, repr=False)

    def backoff(self, attempt: int) -> float:
        ceiling = min(self.max_delay_seconds, self.base_delay_seconds * (2 ** (attempt - 1)))
        return self.rand(0.0, ceiling)

    def run(self, fn: Callable[[], T], *, operation: str, deadline: Deadline | None = None) -> T:
        deadline = ensure_deadline(deadline)
        attempts = max(1, self.max_attempts)

        for attempt in range(1, attempts + 1):
            deadline.check(operation)
            try:
                return fn()
            except Exception as exc:
                if not self.retry_on(exc) or attempt == attempts:
                    raise
                delay = self.backoff(attempt)
                if delay >= deadline.remaining():
                    logger.warning(
                        "retry: giving_up operation=%s attempt=%s/%s reason=deadline error=%s",
                        operation,
                        attempt,
                        attempts,
                        exc,
                    )
                    raise
                logger.warning(
                    "retry: retrying operation=%s attempt=%s/%s delay=%.3f error=%s",
                    operation,
                    attempt,
                    attempts,
                    delay,
                    exc,
                )
                self.sleep(delay)

        raise AssertionError("unreachable")
