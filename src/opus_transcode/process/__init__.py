"""
Subprocess pipe orchestration.

Runs an external program with its stdin fed and its stdout/stderr drained
concurrently, and reconciles exit status and stream outcomes into a single
``TranscodeResult``.
"""

from .errors import (
    Cancelled,
    DecodeError,
    LaunchError,
    PartialInputWarning,
    ProcessExitError,
    ProcessTimeout,
    ReadError,
    TranscodeError,
    WriteError,
)
from .executables import resolve_executable
from .launcher import launch
from .orchestrator import DiagnosticCollector, run
from .result import FlowOutcome, TranscodeResult, reconcile
from .spec import ProcessSpec

__all__ = [
    "Cancelled",
    "DecodeError",
    "DiagnosticCollector",
    "FlowOutcome",
    "LaunchError",
    "PartialInputWarning",
    "ProcessExitError",
    "ProcessSpec",
    "ProcessTimeout",
    "ReadError",
    "TranscodeError",
    "TranscodeResult",
    "WriteError",
    "launch",
    "reconcile",
    "resolve_executable",
    "run",
]
