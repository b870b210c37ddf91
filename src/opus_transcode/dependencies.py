"""FastAPI dependency injection providers.

Shared instances live on ``app.state`` (set up by ``create_app``) so every
application, including the ones built in tests, gets its own settings,
transcoder and shutdown handler.
"""

from fastapi import Request

from .config.settings import Settings
from .core.shutdown import ShutdownHandler
from .core.transcoder import OpusTranscoder


def get_settings(request: Request) -> Settings:
    """Get application settings."""
    return request.app.state.settings


def get_transcoder(request: Request) -> OpusTranscoder:
    """Get the transcoder bound to this application."""
    return request.app.state.transcoder


def get_shutdown_handler(request: Request) -> ShutdownHandler:
    """Get the shutdown handler whose event cancels in-flight transcodes."""
    return request.app.state.shutdown_handler
