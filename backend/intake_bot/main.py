"""
FastAPI application entry point.

Run with:
    uvicorn intake_bot.main:app --host 0.0.0.0 --port 8000
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from . import __version__
from .api.routes import events, health
from .config.settings import Settings, get_settings
from .extraction.base import FieldExtractor
from .messaging.base import ChatPlatform
from .services import build_services
from .utils.tasks import TaskTracker

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def create_app(
    settings: Optional[Settings] = None,
    platform: Optional[ChatPlatform] = None,
    extractor: Optional[FieldExtractor] = None
) -> FastAPI:
    """
    Build the application.

    ``platform`` and ``extractor`` override the collaborators built from
    settings.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # === STARTUP ===
        logger.info("=" * 60)
        logger.info(f"Starting intake bot v{__version__}")
        logger.info(f"Environment: {settings.environment}")
        logger.info("=" * 60)

        services = await build_services(settings, platform=platform, extractor=extractor)
        app.state.services = services
        app.state.tasks = TaskTracker()

        if await services.store.ping():
            logger.info("✓ Session store reachable")
        else:
            logger.warning("✗ Session store unreachable at startup")

        logger.info("✓ Application started successfully")

        yield  # === APPLICATION RUNS HERE ===

        # === SHUTDOWN ===
        logger.info("Shutting down application...")

        await app.state.tasks.drain(timeout=settings.shutdown_grace_seconds)
        await services.close()

        logger.info("✓ Application shutdown complete")

    app = FastAPI(
        title="Intake Bot",
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(events.router, prefix="/feishu", tags=["events"])
    app.include_router(health.router, prefix="/health", tags=["health"])

    return app


def _build_default_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)
    return create_app(settings)


app = _build_default_app()
