"""Minimum-interval admission control for generation requests."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from ..errors import RateLimitExceeded


class RateLimiter:
    """Admits a request only when ``min_interval`` seconds passed since the last admitted one.

    Rejected requests leave the state untouched, so a caller hammering the
    endpoint cannot push its own admission further into the future.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.min_interval = max(0.0, float(min_interval))
        self._clock = clock or time.time
        self._lock = threading.Lock()
        self.last_admitted_at: Optional[float] = None

    def admit(self) -> float:
        """Record an admission and return its timestamp.

        Raises:
            RateLimitExceeded when the previous admission is too recent.
        """
        with self._lock:
            now = self._clock()
            if self.last_admitted_at is not None:
                elapsed = now - self.last_admitted_at
                if elapsed < self.min_interval:
                    raise RateLimitExceeded(self.min_interval - elapsed)
            self.last_admitted_at = now
            return now

    def reset(self) -> None:
        """Forget the last admission (useful for tests)."""
        with self._lock:
            self.last_admitted_at = None


__all__ = ["RateLimiter"]
