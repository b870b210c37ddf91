"""Error taxonomy for running external transcoding programs."""

from typing import Optional


class TranscodeError(Exception):
    """Base class for every transcoding failure."""

    def __init__(self, message: str, diagnostics: str = ""):
        super().__init__(message)
        self.diagnostics = diagnostics


class LaunchError(TranscodeError):
    """The external program could not be started."""


class WriteError(TranscodeError):
    """Input bytes could not be fully delivered to the program."""


class ReadError(TranscodeError):
    """The program's output stream could not be fully drained."""


class ProcessExitError(TranscodeError):
    """The program exited with a nonzero status."""

    def __init__(self, program: str, returncode: int, diagnostics: str = ""):
        message = f"{program} exited with status {returncode}"
        if diagnostics:
            message = f"{message}: {diagnostics.strip()[-2000:]}"
        super().__init__(message, diagnostics)
        self.program = program
        self.returncode = returncode


class Cancelled(TranscodeError):
    """The run was cancelled before the program finished."""


class ProcessTimeout(Cancelled):
    """The run exceeded its time limit."""

    def __init__(self, program: str, timeout: float, diagnostics: str = ""):
        super().__init__(f"{program} did not finish within {timeout:g}s", diagnostics)
        self.timeout = timeout


class DecodeError(TranscodeError):
    """An input file could not be decoded to PCM."""

    def __init__(self, message: str, diagnostics: str = "", cause: Optional[TranscodeError] = None):
        super().__init__(message, diagnostics)
        self.cause = cause


class PartialInputWarning(UserWarning):
    """The program stopped reading input early but still produced output."""
