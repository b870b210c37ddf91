"""Description of a single external program invocation."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple, Union

from ..config.settings import ProcessConfig

CommandArg = Union[str, "os.PathLike[str]"]


def _normalize_argument(arg: CommandArg) -> str:
    if isinstance(arg, os.PathLike):
        return os.fspath(arg)
    if isinstance(arg, str):
        return arg
    raise TypeError(f"Command arguments must be strings or os.PathLike, got {type(arg).__name__}")


@dataclass(frozen=True)
class ProcessSpec:
    """Immutable description of one program run.

    ``input_data`` of ``None`` means the program gets no input at all; its
    stdin is closed right after launch, exactly as for an empty byte string.
    """

    executable: str
    arguments: Tuple[str, ...] = ()
    input_data: Optional[bytes] = field(default=None, repr=False)
    verbose: bool = False
    timeout: Optional[float] = None
    kill_grace_period: float = 5.0
    diagnostic_tail_lines: int = 200

    def __post_init__(self):
        executable = _normalize_argument(self.executable)
        if not executable.strip():
            raise ValueError("executable cannot be empty")
        object.__setattr__(self, "executable", executable)
        object.__setattr__(
            self, "arguments", tuple(_normalize_argument(arg) for arg in self.arguments)
        )
        if self.input_data is not None and not isinstance(self.input_data, (bytes, bytearray, memoryview)):
            raise TypeError("input_data must be bytes-like or None")
        if self.input_data is not None:
            object.__setattr__(self, "input_data", bytes(self.input_data))
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive or None")
        if self.diagnostic_tail_lines <= 0:
            raise ValueError("diagnostic_tail_lines must be positive")

    @classmethod
    def create(
        cls,
        executable: CommandArg,
        arguments: Sequence[CommandArg] = (),
        input_data: Optional[bytes] = None,
        config: Optional[ProcessConfig] = None,
    ) -> "ProcessSpec":
        """Build a spec with orchestration settings taken from ``config``."""
        config = config or ProcessConfig()
        return cls(
            executable=executable,
            arguments=tuple(arguments),
            input_data=input_data,
            verbose=config.verbose,
            timeout=config.timeout,
            kill_grace_period=config.kill_grace_period,
            diagnostic_tail_lines=config.diagnostic_tail_lines,
        )

    @property
    def has_input(self) -> bool:
        return bool(self.input_data)

    @property
    def program(self) -> str:
        """Short program name used in log messages."""
        return os.path.basename(self.executable)

    @property
    def command(self) -> Tuple[str, ...]:
        return (self.executable, *self.arguments)
