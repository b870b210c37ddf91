"""
API module for the Opus transcoding service.

This module contains the REST API endpoints and related functionality
for converting uploaded audio to Opus.
"""

from . import health, metrics, transcode

__all__ = ["health", "metrics", "transcode"]
