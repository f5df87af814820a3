"""FastAPI application exposing generation, preview fallback and download endpoints."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field

from ..archive import ARCHIVE_NAME, build_workspace_zip
from ..config import SiteGenConfig, load_config
from ..coordinator import RequestCoordinator
from ..errors import (
    ConfigurationError,
    EmptyWorkspaceError,
    PipelineError,
    RateLimitExceeded,
    SiteGenError,
    WorkspaceError,
)
from ..logging import configure_logging, get_logger, install_exception_hooks
from ..models import GenerationRequest

logger = get_logger("server")


class GenerateRequest(BaseModel):
    prompt: str = Field(min_length=1)


class GenerateResponse(BaseModel):
    success: bool = True
    preview_url: str = Field(serialization_alias="previewUrl")
    note: Optional[str] = None
    used_fallback: bool = Field(default=False, serialization_alias="usedFallback")
    cached: bool = False


def _default_coordinator() -> RequestCoordinator:
    return RequestCoordinator.from_config(load_config())


def create_app(
    coordinator_factory: Callable[[], RequestCoordinator] = _default_coordinator,
    *,
    cors_origins: Sequence[str] = ("*",),
) -> FastAPI:
    """Create the FastAPI application around a single pipeline coordinator."""

    coordinator = coordinator_factory()
    workspace = coordinator.workspace
    # StaticFiles checks its directory on the first request; it must exist even before a generation.
    workspace.mkdir(parents=True, exist_ok=True)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        install_exception_hooks(asyncio.get_running_loop())
        await coordinator.startup()
        try:
            yield
        finally:
            await coordinator.shutdown()

    app = FastAPI(title="Sitegen Service", version="0.1.0", lifespan=lifespan)
    app.state.coordinator = coordinator
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, object]:
        return coordinator.health()

    @app.post("/generate", response_model=GenerateResponse)
    async def generate(payload: GenerateRequest) -> GenerateResponse:
        try:
            outcome = await coordinator.handle(GenerationRequest(prompt=payload.prompt))
        except (RateLimitExceeded, PipelineError, ConfigurationError):
            raise
        except Exception as exc:
            logger.exception("Generation failed unexpectedly")
            raise PipelineError("pipeline", str(exc) or exc.__class__.__name__) from exc
        return GenerateResponse(
            preview_url=outcome.preview_url,
            note=outcome.note,
            used_fallback=outcome.used_fallback,
            cached=outcome.cached,
        )

    @app.get("/download-zip")
    async def download_zip() -> StreamingResponse:
        try:
            buffer = await asyncio.to_thread(build_workspace_zip, workspace)
        except OSError as exc:
            raise WorkspaceError(f"Unable to package workspace: {exc}") from exc
        headers = {"Content-Disposition": f"attachment; filename={ARCHIVE_NAME}"}
        return StreamingResponse(buffer, media_type="application/zip", headers=headers)

    app.mount(
        "/preview-fallback",
        StaticFiles(directory=workspace, html=True, check_dir=False),
        name="preview-fallback",
    )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(_: Request, exc: RateLimitExceeded) -> JSONResponse:
        retry_after = max(1, int(round(exc.retry_after_seconds)))
        return JSONResponse(
            status_code=429,
            content={"error": str(exc)},
            headers={"Retry-After": str(retry_after)},
        )

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(_: Request, exc: PipelineError) -> JSONResponse:
        logger.error("Generation failed: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"error": "Generation failed", "details": str(exc), "stage": exc.stage},
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(_: Request, exc: ConfigurationError) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content={"error": "Generation is not configured", "details": str(exc)},
        )

    @app.exception_handler(EmptyWorkspaceError)
    async def empty_workspace_handler(_: Request, exc: EmptyWorkspaceError) -> JSONResponse:
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(SiteGenError)
    async def sitegen_error_handler(_: Request, exc: SiteGenError) -> JSONResponse:
        logger.error("Request failed: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"error": "Request failed", "details": str(exc)},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(_: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error while serving request: %s", exc, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": str(exc) or exc.__class__.__name__},
        )

    return app


def run_service(
    config: SiteGenConfig | None = None,
    *,
    host: str | None = None,
    port: int | None = None,
    verbose: bool = False,
) -> None:  # pragma: no cover - integration path
    import uvicorn

    configure_logging(verbose=verbose)
    config = config or load_config()
    app = create_app(
        lambda: RequestCoordinator.from_config(config),
        cors_origins=config.server.cors_origins,
    )
    bind_host = host or config.server.host
    bind_port = port or config.server.port
    logger.info("Backend running on http://%s:%d", bind_host, bind_port)
    uvicorn.run(app, host=bind_host, port=bind_port, log_level="debug" if verbose else "info")


__all__ = ["GenerateRequest", "GenerateResponse", "create_app", "run_service"]
