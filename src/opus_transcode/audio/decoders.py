"""Decoders that turn inputs the Opus encoder cannot read into PCM WAV bytes."""

import asyncio
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional

import soundfile as sf

from ..config.settings import Settings
from ..process import Cancelled, DecodeError, ProcessSpec, resolve_executable, run
from ..utils.logging import get_logger
from .formats import AudioFormat
from .wav import get_16bit_wav_data

logger = get_logger(__name__)


@dataclass
class DecodedAudio:
    """Bytes ready for the encoder and the name they would carry on disk."""

    filename: str
    data: bytes


Decoder = Callable[[Path, Optional[asyncio.Event]], Awaitable[DecodedAudio]]


def _read_file(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise DecodeError(f"{path}: could not read file: {e}") from e


def _decode_vorbis_file(path: Path) -> bytes:
    data = _read_file(path)
    try:
        with sf.SoundFile(io.BytesIO(data)) as vorbis:
            samples = vorbis.read(dtype="float32", always_2d=True)
            return get_16bit_wav_data(samples, vorbis.samplerate, vorbis.channels)
    except (RuntimeError, ValueError) as e:
        # soundfile raises LibsndfileError, a RuntimeError subclass
        raise DecodeError(f"{path}: Vorbis decode failed: {e}") from e


class DecoderRegistry:
    """Lookup table from input format to its decoder."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.decoders: Dict[AudioFormat, Decoder] = {
            AudioFormat.RAW: self.read_raw,
            AudioFormat.MP3: self.decode_mp3,
            AudioFormat.VORBIS: self.decode_vorbis,
        }

    async def decode(
        self,
        audio_format: AudioFormat,
        path: Path,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DecodedAudio:
        """Decode ``path`` with the decoder registered for ``audio_format``.

        Raises:
            DecodeError: If the input could not be turned into encoder input
            Cancelled: If ``cancel_event`` fired while an external decoder ran
        """
        decoder = self.decoders[audio_format]
        return await decoder(Path(path), cancel_event)

    async def read_raw(self, path: Path, cancel_event: Optional[asyncio.Event] = None) -> DecodedAudio:
        """Pass the file through untouched; the encoder reads it directly."""
        data = await asyncio.to_thread(_read_file, path)
        return DecodedAudio(filename=path.name, data=data)

    async def decode_mp3(self, path: Path, cancel_event: Optional[asyncio.Event] = None) -> DecodedAudio:
        """Decode an MP3 to WAV on stdout with ``lame --decode``."""
        spec = ProcessSpec.create(
            resolve_executable(self.settings.decoder.mp3_executable),
            ["--decode", str(path), "-"],
            config=self.settings.process,
        )
        result = await run(spec, cancel_event=cancel_event)

        if isinstance(result.error, Cancelled):
            raise result.error
        if not result.ok:
            logger.error(f"{path} decode failed")
            raise DecodeError(
                f"{path}: MP3 decode failed: {result.error}",
                diagnostics=result.diagnostics,
                cause=result.error,
            )

        return DecodedAudio(filename=f"{path.stem}.wav", data=result.data)

    async def decode_vorbis(self, path: Path, cancel_event: Optional[asyncio.Event] = None) -> DecodedAudio:
        """Decode Ogg Vorbis in-process and rewrap it as 16-bit WAV."""
        data = await asyncio.to_thread(_decode_vorbis_file, path)
        return DecodedAudio(filename=f"{path.stem}.wav", data=data)
