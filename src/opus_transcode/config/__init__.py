"""Configuration for the Opus transcoding service."""

from .loader import ConfigLoader, load_config
from .settings import (
    APIConfig,
    DecoderConfig,
    EncoderConfig,
    ProcessConfig,
    Settings,
)

__all__ = [
    "APIConfig",
    "ConfigLoader",
    "DecoderConfig",
    "EncoderConfig",
    "ProcessConfig",
    "Settings",
    "load_config",
]
