"""Transcoding API endpoints."""

import asyncio
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status

from ..config.settings import Settings
from ..core.shutdown import ShutdownHandler
from ..core.transcoder import OpusTranscoder, TranscodeOutput
from ..dependencies import get_settings, get_shutdown_handler, get_transcoder
from ..process import Cancelled, DecodeError, LaunchError, ProcessTimeout
from ..utils.logging import get_logger
from .metrics import active_transcodes, record_transcode

router = APIRouter()
logger = get_logger(__name__)

OPUS_MEDIA_TYPE = "audio/ogg"


def _safe_filename(filename: Optional[str]) -> str:
    name = Path(filename or "").name.strip()
    return name or "upload"


def error_status(output: TranscodeOutput) -> int:
    """HTTP status for a failed transcode."""
    error = output.error
    if isinstance(error, DecodeError) and error.cause is not None:
        error = error.cause

    if isinstance(error, ProcessTimeout):
        return status.HTTP_504_GATEWAY_TIMEOUT
    if isinstance(error, Cancelled):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(error, LaunchError):
        # Encoder or decoder missing on the server
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_422_UNPROCESSABLE_ENTITY


@router.post(
    "/opus",
    response_class=Response,
    summary="Transcode to Opus",
    description="Convert an uploaded WAV/FLAC/AIFF/MP3/Ogg Vorbis file to Ogg Opus"
)
async def transcode_to_opus(
    file: UploadFile = File(..., description="Audio file to convert"),
    bitrate: Optional[int] = Query(None, gt=0, le=512, description="Target bitrate in kbit/s"),
    settings: Settings = Depends(get_settings),
    transcoder: OpusTranscoder = Depends(get_transcoder),
    shutdown_handler: ShutdownHandler = Depends(get_shutdown_handler),
) -> Response:
    """Transcode an uploaded audio file and return the Opus bytes.

    Args:
        file: Audio file upload; its extension selects the decoder
        bitrate: Optional bitrate override
        settings: Application settings (injected)
        transcoder: Transcoder instance (injected)
        shutdown_handler: Provides the cancellation signal (injected)

    Returns:
        ``audio/ogg`` response with the encoded file
    """
    max_bytes = settings.api.max_upload_bytes
    audio_bytes = await file.read(max_bytes + 1)
    if len(audio_bytes) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large (>{max_bytes} bytes)",
        )
    if not audio_bytes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty upload")

    filename = _safe_filename(file.filename)
    logger.info(
        "Processing upload",
        extra={"file_name": filename, "size_bytes": len(audio_bytes), "bitrate": bitrate},
    )

    with tempfile.TemporaryDirectory(prefix="opus-transcode-") as tmp_dir:
        source = Path(tmp_dir) / filename
        await asyncio.to_thread(source.write_bytes, audio_bytes)

        # ShutdownHandler.cleanup cancels it when the application stops
        task = asyncio.create_task(
            transcoder.to_opus(source, bitrate=bitrate, cancel_event=shutdown_handler.cancel_event)
        )
        shutdown_handler.register_task(task)

        active_transcodes.inc()
        try:
            output = await task
        finally:
            active_transcodes.dec()

    record_transcode(
        output.audio_format.value,
        output.ok,
        output.processing_time,
        partial_input=bool(output.warnings),
        error_type=type(output.error).__name__ if output.error else None,
    )

    if not output.ok:
        raise HTTPException(status_code=error_status(output), detail=str(output.error))

    headers = {"Content-Disposition": f"attachment; filename*=UTF-8''{quote(output.filename)}"}
    if output.warnings:
        headers["X-Transcode-Warnings"] = "; ".join(str(w) for w in output.warnings)

    return Response(content=output.data, media_type=OPUS_MEDIA_TYPE, headers=headers)
