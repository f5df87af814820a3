"""Caller-side readiness polling with a static-file fallback."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from .logging import get_logger


@dataclass
class PollResult:
    """Where the caller should point its preview frame."""

    url: str
    live: bool
    attempts: int
    elapsed: float


def probe_url(url: str, timeout: float = 2.0) -> bool:
    """Return True when ``url`` answers with any status below 500."""
    request = Request(url, method="GET")
    try:
        with urlopen(request, timeout=timeout) as response:  # type: ignore[arg-type]
            return response.status < 500
    except HTTPError as exc:
        return exc.code < 500
    except (URLError, OSError, ValueError):
        return False


class ReadinessPoller:
    """Probes the live preview until it answers or the time budget runs out."""

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        interval: float = 1.0,
        probe: Callable[[str], bool] | None = None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.timeout = timeout
        self.interval = interval
        self._probe = probe or probe_url
        self._clock = clock or time.monotonic
        self._sleep = sleep or time.sleep
        self.logger = get_logger("poller")

    def poll(self, preview_url: str, fallback_url: Optional[str] = None) -> PollResult:
        started = self._clock()
        attempts = 0
        while self._clock() - started < self.timeout:
            attempts += 1
            if self._probe(preview_url):
                elapsed = self._clock() - started
                self.logger.info("Preview ready at %s after %.1fs", preview_url, elapsed)
                return PollResult(url=preview_url, live=True, attempts=attempts, elapsed=elapsed)
            self._sleep(self.interval)

        elapsed = self._clock() - started
        if fallback_url is None:
            self.logger.warning("Preview not reachable after %.1fs", elapsed)
            return PollResult(url=preview_url, live=False, attempts=attempts, elapsed=elapsed)
        self.logger.warning(
            "Preview not reachable after %.1fs; using static fallback %s", elapsed, fallback_url
        )
        return PollResult(url=fallback_url, live=False, attempts=attempts, elapsed=elapsed)


__all__ = ["PollResult", "ReadinessPoller", "probe_url"]
