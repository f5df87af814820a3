"""Request coordination for the generate → preview pipeline."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, Optional

from .acquirer import ContentAcquirer, TextGenerator
from .config import SiteGenConfig, load_config
from .errors import ConfigurationError, PipelineError, SiteGenError
from .llm.retry import RetryPolicy, SleepFn
from .llm.runner import GeminiRunner
from .logging import get_logger
from .models import GenerationOutcome, GenerationRequest
from .parser import ArtifactParser
from .preview.supervisor import PreviewSupervisor
from .prompting import build_prompt
from .security.rate_limit import RateLimiter
from .workspace.materializer import WorkspaceMaterializer

STARTING_NOTE = "Preview server is starting... please wait 5-10 seconds"
READY_NOTE = "Preview server is ready"
FALLBACK_NOTE = "Generation service unavailable; showing the fallback project"


class RequestCoordinator:
    """Owns the process-wide pipeline state: rate limit, prompt cache, workspace and preview.

    At most one generation runs at a time; later requests wait on the
    generation lock. Cache entries remember the workspace version they
    produced, so a hit is only served while that workspace is still current.
    """

    def __init__(
        self,
        *,
        acquirer: ContentAcquirer,
        materializer: WorkspaceMaterializer,
        supervisor: PreviewSupervisor,
        rate_limiter: RateLimiter | None = None,
        parser: ArtifactParser | None = None,
        credential_configured: bool = True,
    ) -> None:
        self.acquirer = acquirer
        self.materializer = materializer
        self.supervisor = supervisor
        self.rate_limiter = rate_limiter or RateLimiter(0.0)
        self.parser = parser or ArtifactParser()
        self.credential_configured = credential_configured
        self.logger = get_logger("coordinator")
        self._cache: Dict[str, int] = {}
        self._generation_lock = asyncio.Lock()
        self._last_preview_url: Optional[str] = None
        self._closed = False

    @classmethod
    def from_config(
        cls,
        config: SiteGenConfig | None = None,
        *,
        runner: TextGenerator | None = None,
        sleep: Optional[SleepFn] = None,
    ) -> "RequestCoordinator":
        """Wire the default collaborators from configuration."""
        config = config or load_config(Path.cwd())
        if runner is None:
            gemini = GeminiRunner(
                config.llm.model,
                base_url=config.llm.base_url,
                api_key=config.llm.api_key,
                temperature=config.llm.temperature,
                max_tokens=config.llm.max_tokens,
                request_timeout=config.llm.request_timeout,
            )
            runner = gemini
            credential_configured = gemini.configured
        else:
            credential_configured = bool(getattr(runner, "configured", True))

        policy = RetryPolicy(
            max_attempts=config.retry.max_attempts,
            initial_delay=config.retry.initial_delay,
            backoff_multiplier=config.retry.backoff_multiplier,
        )
        preview = config.preview
        acquirer = ContentAcquirer(
            runner,
            policy=policy,
            on_exhaustion=config.retry.on_exhaustion,
            fallback_port=preview.port,
            sleep=sleep,
        )
        materializer = WorkspaceMaterializer(config.workspace_dir, preview_port=preview.port)
        supervisor = PreviewSupervisor(
            config.workspace_dir,
            host=preview.host,
            port=preview.port,
            public_host=preview.public_host,
            install_command=preview.install_command,
            dev_command=preview.dev_command,
            install_timeout=preview.install_timeout,
            start_timeout=preview.start_timeout,
            stop_grace_period=preview.stop_grace_period,
        )
        return cls(
            acquirer=acquirer,
            materializer=materializer,
            supervisor=supervisor,
            rate_limiter=RateLimiter(config.server.min_request_interval),
            credential_configured=credential_configured,
        )

    # ------------------------------------------------------------------
    # Lifecycle

    async def startup(self) -> None:
        self._closed = False
        self.logger.info(
            "Coordinator ready (workspace %s, preview %s)",
            self.materializer.root,
            self.supervisor.url,
        )
        if not self.credential_configured:
            self.logger.warning("GEMINI_API_KEY is not set; /generate will refuse requests")

    async def shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.logger.info("Shutting down preview supervisor")
        await self.supervisor.stop()

    # ------------------------------------------------------------------
    # Introspection

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    @property
    def workspace(self) -> Path:
        return self.materializer.root

    def health(self) -> dict[str, object]:
        last = self.rate_limiter.last_admitted_at
        return {
            "status": "ok",
            "cacheSize": self.cache_size,
            "credentialConfigured": self.credential_configured,
            "lastRequestAt": (
                datetime.fromtimestamp(last, UTC).isoformat().replace("+00:00", "Z")
                if last is not None
                else None
            ),
            "generationInFlight": self._generation_lock.locked(),
            "preview": self.supervisor.snapshot(),
        }

    # ------------------------------------------------------------------
    # Pipeline

    async def handle(self, request: GenerationRequest) -> GenerationOutcome:
        """Run one request through admission, cache lookup and the full pipeline."""
        self.rate_limiter.admit()
        if not self.credential_configured:
            raise ConfigurationError("GEMINI_API_KEY is not configured; generation is disabled.")

        prompt = request.prompt.strip()
        if not prompt:
            raise PipelineError("request", "prompt must not be empty")

        identity = request.identity
        self.logger.info("New generation request (%s): %s", identity[:12], _shorten(prompt))

        async with self._generation_lock:
            cached_version = self._cache.get(identity)
            if (
                cached_version is not None
                and cached_version == self.materializer.version
                and self._last_preview_url
            ):
                self.logger.info("Cache hit for %s; reusing current preview", identity[:12])
                return GenerationOutcome(
                    preview_url=self._last_preview_url,
                    note=READY_NOTE if self.supervisor.ready else STARTING_NOTE,
                    cached=True,
                )
            outcome = await self._run_pipeline(prompt)
            self._cache[identity] = self.materializer.version
            self._last_preview_url = outcome.preview_url
            return outcome

    async def _run_pipeline(self, prompt: str) -> GenerationOutcome:
        try:
            acquired = await self.acquirer.acquire(build_prompt(prompt))
        except SiteGenError as exc:
            raise PipelineError("acquisition", str(exc)) from exc

        artifacts = self.parser.parse(acquired.text)
        self.logger.info("Parsed %d file(s) from response", len(artifacts))

        try:
            report = await asyncio.to_thread(self.materializer.materialize, artifacts)
        except SiteGenError as exc:
            raise PipelineError("materialization", str(exc)) from exc
        if report.skipped:
            self.logger.warning("Skipped %d file(s): %s", len(report.skipped), ", ".join(report.skipped))

        try:
            await self.supervisor.install()
        except SiteGenError as exc:
            raise PipelineError("installation", str(exc)) from exc

        try:
            listening = await self.supervisor.start()
        except (OSError, RuntimeError) as exc:
            # Start is best-effort; the caller's readiness poll falls back to static files.
            self.logger.error("Preview server failed to start: %s", exc)
            listening = False

        note = READY_NOTE if listening else STARTING_NOTE
        if acquired.degraded:
            note = f"{FALLBACK_NOTE}. {note}"
        return GenerationOutcome(
            preview_url=self.supervisor.url,
            note=note,
            used_fallback=acquired.degraded,
        )


def _shorten(text: str, limit: int = 80) -> str:
    single_line = " ".join(text.split())
    return single_line if len(single_line) <= limit else single_line[: limit - 1] + "…"


__all__ = ["RequestCoordinator"]
