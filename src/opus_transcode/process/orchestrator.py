"""Run an external program while feeding and draining its pipes concurrently.

Writing all input first and reading output afterwards deadlocks as soon as
the program fills its stdout pipe before it has consumed stdin. Each pipe is
therefore serviced by its own task:

* the write flow feeds ``input_data`` to stdin and closes it,
* the read flow accumulates stdout until EOF,
* the diagnostics flow drains stderr line by line for the whole run.

The three flows start together right after launch. Once the write and read
flows are finished and the program has exited, their outcomes are reconciled
into a single :class:`~opus_transcode.process.result.TranscodeResult`. The
whole run can be bounded by a timeout and interrupted through an
``asyncio.Event``; in every case the child is stopped, every flow task is
finished and the process is reaped before :func:`run` returns.
"""

import asyncio
import re
from collections import deque
from typing import Callable, Deque, List, Optional

from ..utils.logging import get_logger
from .errors import Cancelled, LaunchError, ProcessTimeout, ReadError, WriteError
from .launcher import launch
from .result import FlowOutcome, TranscodeResult, reconcile
from .spec import ProcessSpec

logger = get_logger(__name__)

READ_CHUNK_SIZE = 64 * 1024

# Longest diagnostic line kept before it is flushed without a line break
MAX_LINE_BYTES = 16 * 1024

# How long stdout/stderr may keep delivering data after the child is stopped
DRAIN_TIMEOUT = 2.0

_LINE_BREAK = re.compile(rb"\r\n|\r|\n")

DiagnosticSink = Callable[[str], None]


class DiagnosticCollector:
    """Split a program's stderr into lines and keep a bounded tail of them.

    Every line is optionally handed to ``sink`` as soon as it is complete.
    """

    def __init__(self, program: str, max_lines: int, sink: Optional[DiagnosticSink] = None):
        self.program = program
        self._lines: Deque[str] = deque(maxlen=max_lines)
        self._sink = sink
        self._pending = b""
        self._after_cr = False

    def feed(self, chunk: bytes) -> None:
        # A \r\n pair split across two reads is one line break
        if self._after_cr and chunk.startswith(b"\n"):
            chunk = chunk[1:]
        self._after_cr = chunk.endswith(b"\r")

        parts = _LINE_BREAK.split(self._pending + chunk)
        self._pending = parts.pop()
        for part in parts:
            self._emit(part)

        if len(self._pending) > MAX_LINE_BYTES:
            self._emit(self._pending)
            self._pending = b""

    def close(self) -> None:
        """Flush a trailing line that had no line break."""
        if self._pending:
            self._emit(self._pending)
            self._pending = b""

    def _emit(self, raw: bytes) -> None:
        line = raw.decode("utf-8", errors="replace")
        self._lines.append(line)
        if self._sink is not None:
            try:
                self._sink(line)
            except Exception as e:
                logger.error(f"Error forwarding {self.program} diagnostics: {e}")

    @property
    def lines(self) -> List[str]:
        return list(self._lines)

    @property
    def text(self) -> str:
        return "\n".join(self._lines)


def _logging_sink(program: str) -> DiagnosticSink:
    program_logger = get_logger(f"process.{program}")

    def sink(line: str) -> None:
        program_logger.info(line)

    return sink


async def _write_flow(process: asyncio.subprocess.Process, spec: ProcessSpec) -> FlowOutcome:
    stdin = process.stdin
    try:
        stdin.write(spec.input_data)
        await stdin.drain()
        stdin.close()
        await stdin.wait_closed()
    except OSError as e:
        # BrokenPipeError / ConnectionResetError: the program stopped reading
        logger.debug(f"Error sending data to {spec.program}: {e!r}")
        if not stdin.is_closing():
            stdin.close()
        return FlowOutcome.failed(WriteError(f"Error sending data to {spec.program}: {e}"))

    return FlowOutcome.ok()


async def _read_flow(process: asyncio.subprocess.Process, spec: ProcessSpec) -> FlowOutcome:
    output = bytearray()
    try:
        while True:
            chunk = await process.stdout.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            output.extend(chunk)
    except OSError as e:
        logger.error(f"Error reading data from {spec.program}: {e}")
        return FlowOutcome.failed(
            ReadError(f"Error reading data from {spec.program}: {e}"), bytes(output)
        )

    return FlowOutcome.ok(bytes(output))


async def _diagnostics_flow(
    process: asyncio.subprocess.Process, collector: DiagnosticCollector
) -> None:
    try:
        while True:
            chunk = await process.stderr.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            collector.feed(chunk)
    except OSError as e:
        logger.warning(f"Stopped reading {collector.program} diagnostics: {e}")
    finally:
        collector.close()


async def _complete(
    process: asyncio.subprocess.Process,
    spec: ProcessSpec,
    write_task: Optional["asyncio.Task[FlowOutcome]"],
    read_task: "asyncio.Task[FlowOutcome]",
    diagnostics_task: "asyncio.Task[None]",
    collector: DiagnosticCollector,
) -> TranscodeResult:
    # Both flows are already running; awaiting one never holds up the other.
    # Shielded so that abandoning the run leaves them draining during teardown.
    write_outcome = await asyncio.shield(write_task) if write_task is not None else None
    read_outcome = await asyncio.shield(read_task)

    returncode = await process.wait()
    await asyncio.shield(diagnostics_task)

    return reconcile(spec.program, returncode, write_outcome, read_outcome, collector.text)


async def _supervise(
    spec: ProcessSpec,
    completion: "asyncio.Task[TranscodeResult]",
    cancel_event: Optional[asyncio.Event],
    collector: DiagnosticCollector,
) -> TranscodeResult:
    waiters = {completion}
    cancel_waiter = None
    if cancel_event is not None:
        cancel_waiter = asyncio.create_task(cancel_event.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(
            waiters, timeout=spec.timeout, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        if cancel_waiter is not None and not cancel_waiter.done():
            cancel_waiter.cancel()

    if completion in done:
        return completion.result()

    if cancel_waiter is not None and cancel_waiter in done:
        logger.warning(f"{spec.program} cancelled")
        return TranscodeResult.failure(
            Cancelled(f"{spec.program} was cancelled", collector.text)
        )

    logger.error(f"{spec.program} timed out after {spec.timeout:g}s")
    return TranscodeResult.failure(ProcessTimeout(spec.program, spec.timeout, collector.text))


async def _stop(process: asyncio.subprocess.Process, spec: ProcessSpec) -> None:
    try:
        process.terminate()
    except ProcessLookupError:
        return

    try:
        await asyncio.wait_for(process.wait(), timeout=spec.kill_grace_period)
    except asyncio.TimeoutError:
        if process.returncode is None:
            logger.warning(f"{spec.program} (pid {process.pid}) ignored terminate, killing it")
            try:
                process.kill()
            except ProcessLookupError:
                pass


async def _teardown(
    process: asyncio.subprocess.Process,
    spec: ProcessSpec,
    completion: "asyncio.Task[TranscodeResult]",
    flows: List["asyncio.Task"],
) -> None:
    if not completion.done():
        completion.cancel()

    # Flows keep draining while the child is stopped so its pipes reach EOF
    if process.returncode is None:
        await _stop(process, spec)

    if process.stdin is not None and not process.stdin.is_closing():
        process.stdin.close()

    pending = [task for task in (completion, *flows) if not task.done()]
    if pending:
        _, stuck = await asyncio.wait(pending, timeout=DRAIN_TIMEOUT)
        for task in stuck:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    if process.returncode is None:
        try:
            await asyncio.wait_for(process.wait(), timeout=DRAIN_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning(f"{spec.program} (pid {process.pid}) could not be reaped")


async def run(
    spec: ProcessSpec,
    cancel_event: Optional[asyncio.Event] = None,
    diagnostic_sink: Optional[DiagnosticSink] = None,
) -> TranscodeResult:
    """Run ``spec`` to completion and return its output or failure.

    Args:
        spec: Program, arguments, input bytes and run limits
        cancel_event: Setting this event stops the program and yields ``Cancelled``
        diagnostic_sink: Receives stderr lines when ``spec.verbose`` is set;
            defaults to logging them under ``opus_transcode.process.<program>``

    Returns:
        ``TranscodeResult`` with output bytes, or the error that prevented them
    """
    if cancel_event is not None and cancel_event.is_set():
        return TranscodeResult.failure(Cancelled(f"{spec.program} was cancelled before launch"))

    try:
        process = await launch(spec)
    except LaunchError as e:
        logger.error(str(e))
        return TranscodeResult.failure(e)

    if spec.verbose:
        sink = diagnostic_sink or _logging_sink(spec.program)
    else:
        sink = None
    collector = DiagnosticCollector(spec.program, spec.diagnostic_tail_lines, sink)

    write_task = None
    if spec.has_input:
        write_task = asyncio.create_task(_write_flow(process, spec))
    else:
        process.stdin.close()
    read_task = asyncio.create_task(_read_flow(process, spec))
    diagnostics_task = asyncio.create_task(_diagnostics_flow(process, collector))

    completion = asyncio.create_task(
        _complete(process, spec, write_task, read_task, diagnostics_task, collector)
    )
    flows = [read_task, diagnostics_task]
    if write_task is not None:
        flows.append(write_task)

    try:
        return await _supervise(spec, completion, cancel_event, collector)
    finally:
        await _teardown(process, spec, completion, flows)
