"""Input format detection."""

from enum import Enum
from pathlib import Path
from typing import Dict, Union

from ..utils.logging import get_logger

logger = get_logger(__name__)


class AudioFormat(str, Enum):
    """Input formats, by how they reach the Opus encoder.

    RAW inputs (WAV, FLAC, AIFF, ...) are read by the encoder directly; MP3
    and Vorbis must be decoded to PCM WAV first.
    """

    RAW = "raw"
    MP3 = "mp3"
    VORBIS = "vorbis"


class FormatRegistry:
    """Registry mapping file extensions to input formats."""

    def __init__(self):
        self.extensions: Dict[str, AudioFormat] = {
            ".mp3": AudioFormat.MP3,
            ".ogg": AudioFormat.VORBIS,
            ".oga": AudioFormat.VORBIS,
        }

    def detect(self, path: Union[str, Path]) -> AudioFormat:
        """Get the input format for ``path``; unknown extensions are RAW."""
        suffix = Path(path).suffix.lower()
        audio_format = self.extensions.get(suffix, AudioFormat.RAW)
        logger.debug(f"Detected {audio_format.value.upper()} format for {path}")
        return audio_format


# Global format registry
format_registry = FormatRegistry()


def detect_format(path: Union[str, Path]) -> AudioFormat:
    return format_registry.detect(path)
