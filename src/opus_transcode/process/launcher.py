"""Start external programs with all three standard streams piped."""

import asyncio
import subprocess
import sys

from ..utils.logging import get_logger
from .errors import LaunchError
from .spec import ProcessSpec

logger = get_logger(__name__)


async def launch(spec: ProcessSpec) -> asyncio.subprocess.Process:
    """Start the program described by ``spec``.

    The child never inherits the controlling terminal's streams and, on
    Windows, gets no console window of its own.

    Raises:
        LaunchError: If the program could not be started
    """
    kwargs = {}
    if sys.platform == "win32":
        kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW

    logger.debug(f"Launching {' '.join(spec.command)}")

    try:
        process = await asyncio.create_subprocess_exec(
            *spec.command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            **kwargs,
        )
    except FileNotFoundError as e:
        raise LaunchError(f"{spec.program}: executable not found ({spec.executable})") from e
    except PermissionError as e:
        raise LaunchError(f"{spec.program}: permission denied ({spec.executable})") from e
    except OSError as e:
        raise LaunchError(f"{spec.program}: could not start process: {e}") from e

    logger.debug(f"Started {spec.program} (pid {process.pid})")
    return process
