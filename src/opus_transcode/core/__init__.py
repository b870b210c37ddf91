"""Transcode driver and process lifecycle helpers."""

from .shutdown import ShutdownHandler
from .transcoder import OpusTranscoder, TranscodeOutput

__all__ = ["OpusTranscoder", "ShutdownHandler", "TranscodeOutput"]
