"""Acquisition of generated source text from the remote model."""

from __future__ import annotations

import asyncio
from typing import Optional, Protocol

from .errors import GenerationServiceError
from .failsafe import build_fallback_response
from .llm.retry import RetryPolicy, SleepFn
from .logging import get_logger
from .models import AcquiredContent


class TextGenerator(Protocol):
    def run(self, prompt: str, *, system: str | None = None) -> str: ...


class ContentAcquirer:
    """Calls the generation service with bounded retries and an explicit exhaustion policy.

    ``on_exhaustion="fallback"`` replaces the response with the static fallback
    project and marks the result degraded; ``"fail"`` re-raises the last
    transient error. Non-retryable errors always propagate.
    """

    def __init__(
        self,
        runner: TextGenerator,
        *,
        policy: RetryPolicy | None = None,
        on_exhaustion: str = "fallback",
        fallback_port: int = 5173,
        sleep: Optional[SleepFn] = None,
    ) -> None:
        if on_exhaustion not in ("fallback", "fail"):
            raise ValueError(f"Unknown exhaustion policy: {on_exhaustion!r}")
        self.runner = runner
        self.policy = policy or RetryPolicy()
        self.on_exhaustion = on_exhaustion
        self.fallback_port = fallback_port
        self._sleep = sleep
        self.logger = get_logger("acquirer")

    async def acquire(self, payload: str) -> AcquiredContent:
        attempts = 0

        async def _attempt() -> str:
            nonlocal attempts
            attempts += 1
            self.logger.info("Requesting generation (attempt %d/%d)", attempts, self.policy.max_attempts)
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, self.runner.run, payload)

        try:
            text = await self.policy.call(_attempt, sleep=self._sleep)
        except GenerationServiceError as exc:
            exhausted = self.policy.is_retryable(exc)
            if not exhausted or self.on_exhaustion == "fail":
                raise
            self.logger.warning(
                "Generation service unavailable after %d attempt(s); using fallback project",
                attempts,
            )
            return AcquiredContent(
                text=build_fallback_response(port=self.fallback_port, reason=str(exc)),
                degraded=True,
                attempts=attempts,
            )

        self.logger.info("Received %d characters from generation service", len(text))
        return AcquiredContent(text=text, degraded=False, attempts=attempts)


__all__ = ["ContentAcquirer", "TextGenerator"]
