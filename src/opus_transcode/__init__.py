"""Convert audio files to Opus by streaming them through ``opusenc``."""

__version__ = "0.1.0"
