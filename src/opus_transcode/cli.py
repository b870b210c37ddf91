"""Command line batch converter."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from . import __version__
from .config.loader import load_config
from .config.settings import Settings
from .core.shutdown import ShutdownHandler
from .core.transcoder import OpusTranscoder, TranscodeOutput
from .process import TranscodeError
from .utils.logging import setup_logging, get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="opus-transcode",
        description="Convert WAV/FLAC/AIFF/MP3/Ogg Vorbis files to Opus",
    )
    parser.add_argument("files", nargs="+", type=Path, help="Audio files to convert")
    parser.add_argument("-b", "--bitrate", type=int, help="Target bitrate in kbit/s")
    parser.add_argument("-o", "--output-dir", type=Path, help="Directory for .opus files (default: next to input)")
    parser.add_argument("-j", "--jobs", type=int, help="Files converted at the same time")
    parser.add_argument("-t", "--timeout", type=float, help="Seconds allowed per external program run")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log encoder and decoder output")
    parser.add_argument("-c", "--config", type=Path, help="Path to config.toml")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return settings with command line options applied."""
    process_update = {}
    if args.verbose:
        process_update["verbose"] = True
    if args.timeout is not None:
        process_update["timeout"] = args.timeout

    update = {"process": settings.process.model_copy(update=process_update)}
    if args.jobs:
        update["max_concurrency"] = args.jobs
    return settings.model_copy(update=update)


async def run_batch(
    settings: Settings,
    files: Sequence[Path],
    bitrate: Optional[int] = None,
    output_dir: Optional[Path] = None,
    shutdown_handler: Optional[ShutdownHandler] = None,
) -> List[TranscodeOutput]:
    """Convert ``files`` and write every successful result.

    An output that cannot be written is turned into a failed output; the
    remaining files are still written.
    """
    shutdown_handler = shutdown_handler or ShutdownHandler()
    transcoder = OpusTranscoder(settings)

    outputs = await transcoder.transcode_many(
        files, bitrate=bitrate, cancel_event=shutdown_handler.cancel_event
    )

    for output in outputs:
        if not output.ok:
            print(f"{output.source}: Opus compression failed: {output.error}", file=sys.stderr)
            continue

        try:
            transcoder.write_output(output, output_dir)
        except OSError as e:
            print(f"{output.source}: could not write output: {e}", file=sys.stderr)
            # Counted as failed by the caller
            output.data = None
            output.error = TranscodeError(f"could not write output: {e}")
            continue

        for warning in output.warnings:
            print(f"WARNING: {output.source}: {warning}", file=sys.stderr)

    return outputs


async def _main_async(args: argparse.Namespace, settings: Settings) -> int:
    shutdown_handler = ShutdownHandler()
    shutdown_handler.install_signal_handlers()

    outputs = await run_batch(
        settings,
        args.files,
        bitrate=args.bitrate,
        output_dir=args.output_dir,
        shutdown_handler=shutdown_handler,
    )

    failed = [output for output in outputs if not output.ok]
    logger.info(f"Converted {len(outputs) - len(failed)} of {len(outputs)} files")
    return 1 if failed else 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the ``opus-transcode`` command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.bitrate is not None and args.bitrate <= 0:
        parser.error("--bitrate must be positive")
    if args.jobs is not None and args.jobs <= 0:
        parser.error("--jobs must be positive")
    if args.timeout is not None and args.timeout <= 0:
        parser.error("--timeout must be positive")

    settings = apply_overrides(load_config(args.config), args)
    setup_logging(settings, log_format="text")

    return asyncio.run(_main_async(args, settings))


if __name__ == "__main__":
    sys.exit(main())
