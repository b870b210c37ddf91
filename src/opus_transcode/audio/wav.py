"""16-bit PCM WAV writer."""

import io
import wave
from typing import Optional

import numpy as np

SAMPLE_WIDTH = 2  # 16-bit


def float_to_pcm16(samples: np.ndarray) -> np.ndarray:
    """Convert float samples in [-1, 1] to clipped int16."""
    return np.clip(samples * 32767, -32768, 32767).astype(np.int16)


def get_16bit_wav_data(
    samples: np.ndarray, sample_rate: int, channels: Optional[int] = None
) -> bytes:
    """Encode float samples as a 16-bit PCM WAV file.

    Args:
        samples: Float samples, shape ``(frames,)`` or ``(frames, channels)``
        sample_rate: Sample rate in Hz
        channels: Channel count; taken from ``samples`` when omitted

    Returns:
        WAV file as bytes
    """
    samples = np.asarray(samples, dtype=np.float32)
    if samples.ndim == 1:
        samples = samples.reshape(-1, 1)
    if channels is None:
        channels = samples.shape[1]
    elif samples.shape[1] != channels:
        raise ValueError(f"Expected {channels} channels, got {samples.shape[1]}")

    # Row-major (frames, channels) is already interleaved
    pcm = np.ascontiguousarray(float_to_pcm16(samples))

    wav_buffer = io.BytesIO()
    with wave.open(wav_buffer, "wb") as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(SAMPLE_WIDTH)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm.astype("<i2", copy=False).tobytes())

    return wav_buffer.getvalue()
