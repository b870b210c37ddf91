"""Locate and read the TOML configuration file.

Precedence, highest first:

1. keys present in the TOML file,
2. ``OPUS_TRANSCODE_*`` environment variables (and ``.env``),
3. defaults declared in :mod:`opus_transcode.config.settings`.

A section present in the file is taken as a whole, so its missing keys fall
back to defaults rather than to the environment. Leave a section out of the
file entirely to configure it from the environment.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import tomllib
except ImportError:
    import tomli as tomllib

from ..utils.logging import get_logger
from .settings import Settings

logger = get_logger(__name__)

CONFIG_FILE_ENV = "OPUS_TRANSCODE_CONFIG_FILE"


def candidate_paths() -> List[Path]:
    """Config file locations, in the order they are tried."""
    return [
        Path("config.toml"),
        Path("/etc/opus-transcode/config.toml"),
        Path.home() / ".config" / "opus-transcode" / "config.toml",
    ]


class ConfigLoader:
    """Build :class:`Settings` from an optional TOML file."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration loader.

        Args:
            config_path: Explicit TOML file; when omitted ``$OPUS_TRANSCODE_CONFIG_FILE``
                is used, then the first existing file from :func:`candidate_paths`
        """
        self.config_path = Path(config_path) if config_path else self.find_config_file()

    @staticmethod
    def find_config_file() -> Optional[Path]:
        from_env = os.getenv(CONFIG_FILE_ENV)
        if from_env:
            return Path(from_env)
        return next((path for path in candidate_paths() if path.exists()), None)

    def read(self) -> Dict[str, Any]:
        """Parse the config file; no file means no overrides."""
        if self.config_path is None or not self.config_path.exists():
            return {}

        with open(self.config_path, "rb") as f:
            data = tomllib.load(f)
        logger.debug(f"Loaded configuration from {self.config_path}")
        return data

    def load(self) -> Settings:
        # Init kwargs outrank environment variables in pydantic-settings
        return Settings(**self.read())


def load_config(config_path: Optional[Path] = None) -> Settings:
    """Load settings from ``config_path`` (or the default search path) and the environment."""
    return ConfigLoader(config_path).load()
