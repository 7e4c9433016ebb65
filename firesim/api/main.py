"""Main FastAPI application for FireSim."""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from firesim.api.routers import generation
from firesim.core.cache import TTLCache
from firesim.core.config import Settings, get_settings
from firesim.core.constants import PROJECT_NAME, VERSION
from firesim.core.exceptions import (
    JobNotFinishedError,
    JobNotFoundError,
    PromptSafetyViolation,
    RequestValidationError,
    StorageError,
)
from firesim.core.image_handler import GeminiImageGenerator
from firesim.core.logging_config import get_logger
from firesim.pipelines.generation_orchestrator import GenerationOrchestrator
from firesim.prompts.composer import PromptComposer
from firesim.storage.job_store import FileJobStore, InMemoryJobStore

logger = get_logger("api.main")

# Seconds a poller should wait after a 404 or 503 before retrying
RETRY_AFTER_SECONDS = 2


def build_orchestrator(settings: Settings) -> GenerationOrchestrator:
    """Wire the production orchestrator from settings."""
    store = FileJobStore(settings.job_store_dir) if settings.job_store_dir else InMemoryJobStore()
    composer = PromptComposer(cache=TTLCache(ttl=settings.prompt_cache_ttl, max_size=settings.prompt_cache_size))
    return GenerationOrchestrator(
        GeminiImageGenerator.from_settings(settings),
        job_store=store,
        composer=composer,
        settings=settings,
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid scenario request", "problems": exc.problems},
    )


async def _safety_violation_handler(request: Request, exc: PromptSafetyViolation):
    return JSONResponse(
        status_code=422,
        content={
            "error": "Prompt safety violation",
            "blockedTerms": exc.blocked_terms,
            "scenarioId": exc.scenario_id,
        },
    )


async def _not_found_handler(request: Request, exc: JobNotFoundError):
    return JSONResponse(
        status_code=404,
        content={"error": exc.message, "scenarioId": exc.scenario_id, "retryable": True},
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


async def _not_finished_handler(request: Request, exc: JobNotFinishedError):
    return JSONResponse(
        status_code=409,
        content={"error": exc.message, "scenarioId": exc.scenario_id, "status": exc.status},
    )


async def _storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Job store failure on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"error": "Job store unavailable", "retryable": True},
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


def create_app(
    orchestrator: Optional[GenerationOrchestrator] = None,
    settings: Optional[Settings] = None
) -> FastAPI:
    """
    Build the API application.

    Args:
        orchestrator: Pre-built orchestrator (tests); built from settings on startup otherwise
        settings: Settings override
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {PROJECT_NAME} API...")
        owned = app.state.orchestrator is None
        if owned:
            app.state.orchestrator = build_orchestrator(settings)
        yield
        logger.info(f"Shutting down {PROJECT_NAME} API...")
        await app.state.orchestrator.shutdown()
        if owned:
            await app.state.orchestrator.image_generator.aclose()

    app = FastAPI(
        title="FireSim Scenario API",
        description="Background generation of multi-viewpoint bushfire scenario images",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator

    # Rate limiter
    app.state.limiter = generation.limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(PromptSafetyViolation, _safety_violation_handler)
    app.add_exception_handler(JobNotFoundError, _not_found_handler)
    app.add_exception_handler(JobNotFinishedError, _not_finished_handler)
    app.add_exception_handler(StorageError, _storage_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(generation.router, prefix="/api/generate", tags=["generation"])

    @app.get("/api/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        current = request.app.state.orchestrator
        return {
            "status": "healthy",
            "service": "firesim",
            "version": VERSION,
            "imageModel": current.image_generator.model_id if current else None,
            "activeJobs": current.active_jobs if current else 0,
        }

    return app


app = create_app()


def start_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Start the FastAPI server."""
    uvicorn.run(
        "firesim.api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="warning",
    )
