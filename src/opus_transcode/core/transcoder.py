"""Decode-then-encode driver, one orchestrated subprocess per step."""

import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..audio.decoders import DecoderRegistry
from ..audio.encoder import encode_to_opus
from ..audio.formats import AudioFormat, detect_format
from ..config.settings import Settings
from ..process import TranscodeError
from ..utils.logging import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


@dataclass
class TranscodeOutput:
    """Outcome of converting one file."""

    source: Path
    filename: str
    audio_format: AudioFormat
    data: Optional[bytes] = None
    error: Optional[TranscodeError] = None
    warnings: List[Warning] = field(default_factory=list)
    processing_time: float = 0.0

    @property
    def ok(self) -> bool:
        return self.data is not None


class OpusTranscoder:
    """Convert audio files to Opus."""

    def __init__(self, settings: Settings, decoders: Optional[DecoderRegistry] = None):
        """Initialize transcoder.

        Args:
            settings: Application settings
            decoders: Decoder table, built from ``settings`` when omitted
        """
        self.settings = settings
        self.decoders = decoders or DecoderRegistry(settings)

    async def to_opus(
        self,
        path: PathLike,
        bitrate: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TranscodeOutput:
        """Convert a single file.

        Failures never raise; they come back as an output with ``data`` unset,
        named after the input file.
        """
        path = Path(path)
        audio_format = detect_format(path)
        start_time = time.time()

        output = TranscodeOutput(source=path, filename=path.name, audio_format=audio_format)
        try:
            decoded = await self.decoders.decode(audio_format, path, cancel_event)
            result = await encode_to_opus(
                decoded.data,
                self.settings.encoder,
                self.settings.process,
                bitrate=bitrate,
                cancel_event=cancel_event,
            )
            result.unwrap()
        except TranscodeError as e:
            output.error = e
            logger.error(f"{path}: Opus compression failed: {e}")
        else:
            output.filename = f"{path.stem}.opus"
            output.data = result.data
            output.warnings = result.warnings

        output.processing_time = time.time() - start_time
        if output.ok:
            logger.info(
                f"Encoded {path.name}",
                extra={
                    "source": str(path),
                    "format": audio_format.value,
                    "output_bytes": len(output.data),
                    "processing_time": output.processing_time,
                },
            )
        return output

    async def transcode_many(
        self,
        paths: Iterable[PathLike],
        bitrate: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[TranscodeOutput]:
        """Convert files concurrently, at most ``max_concurrency`` at a time.

        Results are in input order; one file failing does not affect the rest.
        """
        semaphore = asyncio.Semaphore(self.settings.max_concurrency)

        async def convert(path: Path) -> TranscodeOutput:
            async with semaphore:
                try:
                    return await self.to_opus(path, bitrate=bitrate, cancel_event=cancel_event)
                except Exception as e:
                    logger.error(f"{path}: unexpected error: {e}", exc_info=True)
                    return TranscodeOutput(
                        source=path,
                        filename=path.name,
                        audio_format=detect_format(path),
                        error=TranscodeError(str(e)),
                    )

        return await asyncio.gather(*(convert(Path(p)) for p in paths))

    @staticmethod
    def write_output(output: TranscodeOutput, directory: Optional[PathLike] = None) -> Path:
        """Write a successful output next to its source or into ``directory``."""
        if not output.ok:
            raise ValueError(f"{output.source}: nothing to write, transcode failed")

        target_dir = Path(directory) if directory is not None else output.source.parent
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / output.filename
        target.write_bytes(output.data)
        logger.info(f"Wrote {target} ({len(output.data)} bytes)")
        return target
