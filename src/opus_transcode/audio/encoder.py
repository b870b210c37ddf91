"""Opus encoding through the external ``opusenc`` program."""

import asyncio
from typing import List, Optional

from ..config.settings import EncoderConfig, ProcessConfig
from ..process import ProcessSpec, TranscodeResult, resolve_executable, run


def build_encoder_arguments(bitrate: int, frame_size: float = 60) -> List[str]:
    """Arguments for a stdin-to-stdout VBR encode without pictures or tags."""
    if bitrate <= 0:
        raise ValueError(f"bitrate must be positive, got {bitrate}")
    return [
        "--vbr",
        "--framesize", f"{frame_size:g}",
        "--bitrate", str(bitrate),
        "--discard-pictures",
        "--discard-comments",
        "-",
        "-",
    ]


def build_encoder_spec(
    input_data: bytes,
    encoder: EncoderConfig,
    process: ProcessConfig,
    bitrate: Optional[int] = None,
) -> ProcessSpec:
    return ProcessSpec.create(
        resolve_executable(encoder.executable),
        build_encoder_arguments(bitrate or encoder.bitrate, encoder.frame_size),
        input_data=input_data,
        config=process,
    )


async def encode_to_opus(
    input_data: bytes,
    encoder: EncoderConfig,
    process: ProcessConfig,
    bitrate: Optional[int] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> TranscodeResult:
    """Encode WAV/FLAC/AIFF bytes to an Ogg Opus stream.

    Args:
        input_data: Audio file contents the encoder can read
        encoder: Encoder executable and defaults
        process: Orchestration limits
        bitrate: Target bitrate in kbit/s, overrides the configured default
        cancel_event: Optional cancellation signal

    Returns:
        Result carrying the Opus bytes or the failure
    """
    spec = build_encoder_spec(input_data, encoder, process, bitrate)
    return await run(spec, cancel_event=cancel_event)
