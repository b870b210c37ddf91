"""Flow outcomes and the reconciled result of a program run."""

from dataclasses import dataclass, field
from typing import List, Optional

from ..utils.logging import get_logger
from .errors import (
    PartialInputWarning,
    ProcessExitError,
    ReadError,
    TranscodeError,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class FlowOutcome:
    """How one concurrent flow ended.

    Only the read flow carries ``data``.
    """

    completed: bool
    error: Optional[TranscodeError] = None
    data: bytes = b""

    @classmethod
    def ok(cls, data: bytes = b"") -> "FlowOutcome":
        return cls(completed=True, data=data)

    @classmethod
    def failed(cls, error: TranscodeError, data: bytes = b"") -> "FlowOutcome":
        return cls(completed=False, error=error, data=data)


@dataclass
class TranscodeResult:
    """Either output bytes or the error that prevented them, never both."""

    data: Optional[bytes] = None
    error: Optional[TranscodeError] = None
    warnings: List[Warning] = field(default_factory=list)
    returncode: Optional[int] = None
    diagnostics: str = ""

    def __post_init__(self):
        if (self.data is None) == (self.error is None):
            raise ValueError("TranscodeResult needs exactly one of data or error")

    @classmethod
    def success(
        cls,
        data: bytes,
        warnings: Optional[List[Warning]] = None,
        returncode: Optional[int] = 0,
        diagnostics: str = "",
    ) -> "TranscodeResult":
        return cls(
            data=bytes(data),
            warnings=list(warnings or []),
            returncode=returncode,
            diagnostics=diagnostics,
        )

    @classmethod
    def failure(
        cls,
        error: TranscodeError,
        returncode: Optional[int] = None,
        diagnostics: str = "",
    ) -> "TranscodeResult":
        return cls(
            error=error,
            returncode=returncode,
            diagnostics=diagnostics or error.diagnostics,
        )

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def partial_input(self) -> bool:
        return any(isinstance(w, PartialInputWarning) for w in self.warnings)

    def unwrap(self) -> bytes:
        """Return the output bytes or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.data


def reconcile(
    program: str,
    returncode: int,
    write_outcome: Optional[FlowOutcome],
    read_outcome: FlowOutcome,
    diagnostics: str = "",
) -> TranscodeResult:
    """Combine exit status and flow outcomes into a single result.

    Args:
        program: Program name for messages
        returncode: Exit status of the program
        write_outcome: Outcome of the write flow, ``None`` when there was no input
        read_outcome: Outcome of the read flow
        diagnostics: Captured diagnostic text

    Returns:
        The reconciled result
    """
    if returncode != 0:
        logger.error(f"{program} encoding error! (exit status {returncode})")
        if diagnostics:
            logger.error(diagnostics)
        return TranscodeResult.failure(
            ProcessExitError(program, returncode, diagnostics),
            returncode=returncode,
            diagnostics=diagnostics,
        )

    if not read_outcome.completed:
        error = read_outcome.error or ReadError(f"Error reading data from {program}")
        error.diagnostics = error.diagnostics or diagnostics
        return TranscodeResult.failure(error, returncode=returncode, diagnostics=diagnostics)

    warnings: List[Warning] = []
    if write_outcome is not None and not write_outcome.completed:
        logger.warning(
            f"{program} stopped before full input data was sent, this isn't always bad "
            f"but double check this audio file; enable verbose mode to see the "
            f"{program} output",
            extra={"program": program, "cause": str(write_outcome.error)},
        )
        warnings.append(
            PartialInputWarning(f"{program} stopped reading input before all data was sent")
        )

    return TranscodeResult.success(
        read_outcome.data,
        warnings=warnings,
        returncode=returncode,
        diagnostics=diagnostics,
    )
