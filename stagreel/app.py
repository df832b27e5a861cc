"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from .api import router
from .capture import PlaywrightRasterizer
from .config import Settings, settings as default_settings
from .jobs import JobOrchestrator, JobRegistry

logger = logging.getLogger(__name__)


def create_orchestrator(settings: Settings) -> JobOrchestrator:
    """Orchestrator configured from application settings."""
    return JobOrchestrator(
        registry=JobRegistry(),
        rasterizer=PlaywrightRasterizer(headless=settings.BROWSER_HEADLESS),
        max_concurrent_jobs=settings.MAX_CONCURRENT_JOBS,
        done_retention=settings.DONE_RETENTION_SECONDS,
        error_retention=settings.ERROR_RETENTION_SECONDS,
        settle_delay=settings.SETTLE_DELAY_SECONDS,
        max_frames=settings.MAX_FRAMES,
    )


def create_app(
    settings: Settings | None = None,
    orchestrator: JobOrchestrator | None = None,
) -> FastAPI:
    """Create the render service.

    Args:
        settings: Application settings, the environment-based defaults when omitted.
        orchestrator: Job orchestrator to use, built from settings when omitted.
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "orchestrator", None) is None:
            app.state.orchestrator = create_orchestrator(settings)
        try:
            yield
        finally:
            await app.state.orchestrator.shutdown()

    app = FastAPI(title="stagreel", lifespan=lifespan)
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    app.include_router(router)

    # Mounted last so the API routes take precedence
    if settings.STATIC_DIR is not None:
        if settings.STATIC_DIR.is_dir():
            app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="static")
        else:
            logger.warning(f"Static directory not found: {settings.STATIC_DIR}")

    return app
