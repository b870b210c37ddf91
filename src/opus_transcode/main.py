"""Main application entry point for the Opus transcoding service."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI

from . import __version__
from .api import health, metrics, transcode
from .config.loader import load_config
from .config.settings import Settings
from .core.shutdown import ShutdownHandler
from .core.transcoder import OpusTranscoder
from .utils.logging import setup_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    shutdown_handler: ShutdownHandler = app.state.shutdown_handler

    logger.info("Starting Opus Transcode Service", extra={"version": __version__})
    yield

    # Stop encoders still running for in-flight requests
    logger.info("Shutting down Opus Transcode Service")
    shutdown_handler.trigger_shutdown()
    await shutdown_handler.cleanup()


def create_app(config_path: Optional[Path] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Create FastAPI application instance.

    Args:
        config_path: Optional path to configuration file
        settings: Ready-made settings, skips loading ``config_path``

    Returns:
        Configured FastAPI application
    """
    if settings is None:
        settings = load_config(config_path)

    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.transcoder = OpusTranscoder(settings)
    app.state.shutdown_handler = ShutdownHandler()

    app.middleware("http")(metrics.MetricsMiddleware())

    app.include_router(health.router, tags=["health"])
    app.include_router(metrics.router, tags=["monitoring"])
    app.include_router(transcode.router, prefix="/transcode/v1", tags=["transcode"])

    return app


def main():
    """Main entry point for running the application."""
    settings = load_config()
    app = create_app(settings=settings)

    # uvicorn installs its own SIGINT/SIGTERM handling and runs the lifespan
    # shutdown, which stops running encoders
    uvicorn.run(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_config=None  # We handle logging ourselves
    )


if __name__ == "__main__":
    main()
