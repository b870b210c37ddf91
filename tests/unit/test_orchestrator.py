"""Unit tests for the pipe orchestrator.

Every test drives a real child process written as a ``python -c`` snippet,
so no audio tools are needed.
"""

import asyncio
import os
import sys
import time

import pytest

from opus_transcode.process import (
    Cancelled,
    LaunchError,
    PartialInputWarning,
    ProcessExitError,
    ProcessSpec,
    ProcessTimeout,
    orchestrator,
    run,
)

ECHO = """
import sys
sys.stdout.buffer.write(sys.stdin.buffer.read())
"""

SLEEPER = """
import sys, time
sys.stderr.write("sleeping\\n")
sys.stderr.flush()
time.sleep(10)
"""


@pytest.fixture
def launched(monkeypatch):
    """Record every process the orchestrator starts."""
    processes = []
    real_launch = orchestrator.launch

    async def recording_launch(spec):
        process = await real_launch(spec)
        processes.append(process)
        return process

    monkeypatch.setattr(orchestrator, "launch", recording_launch)
    return processes


def assert_reaped(process):
    assert process.returncode is not None
    if sys.platform != "win32":
        with pytest.raises(ProcessLookupError):
            os.kill(process.pid, 0)


class TestRoundTrip:
    """Bytes written to stdin come back from stdout."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [b"x", b"hello world\n", bytes(range(256)) * 1024],
        ids=["one-byte", "line", "256KiB"],
    )
    async def test_echo_returns_input(self, python_spec, payload):
        result = await run(python_spec(ECHO, input_data=payload))

        assert result.ok
        assert result.data == payload
        assert result.returncode == 0
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_unwrap_returns_bytes(self, python_spec):
        result = await run(python_spec(ECHO, input_data=b"abc"))
        assert result.unwrap() == b"abc"


class TestExitStatus:
    """Any nonzero exit status is a failure carrying the diagnostics."""

    @pytest.mark.asyncio
    async def test_nonzero_exit_with_diagnostics(self, python_spec):
        script = """
        import sys
        sys.stderr.write("boom\\n")
        sys.exit(1)
        """
        result = await run(python_spec(script, input_data=b"data"))

        assert not result.ok
        assert result.data is None
        assert isinstance(result.error, ProcessExitError)
        assert result.error.returncode == 1
        assert "boom" in result.error.diagnostics
        assert "boom" in result.diagnostics
        assert "boom" in str(result.error)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [2, 3, 127, 255])
    async def test_every_nonzero_code_fails(self, python_spec, code):
        result = await run(python_spec(f"import sys; sys.exit({code})"))

        assert isinstance(result.error, ProcessExitError)
        assert result.returncode == code

    @pytest.mark.asyncio
    async def test_nonzero_exit_discards_output(self, python_spec):
        script = """
        import sys
        sys.stdout.write("partial output")
        sys.exit(4)
        """
        result = await run(python_spec(script))

        assert not result.ok
        with pytest.raises(ProcessExitError):
            result.unwrap()


class TestInputHandling:

    @pytest.mark.asyncio
    async def test_empty_input_closes_stdin(self, python_spec):
        script = """
        import sys
        data = sys.stdin.buffer.read()
        sys.stdout.write("read %d" % len(data))
        """
        result = await asyncio.wait_for(run(python_spec(script, input_data=b"")), timeout=10)

        assert result.ok
        assert result.data == b"read 0"

    @pytest.mark.asyncio
    async def test_no_input_closes_stdin(self, python_spec):
        script = """
        import sys
        sys.stdout.write(repr(sys.stdin.read()))
        """
        result = await asyncio.wait_for(run(python_spec(script)), timeout=10)

        assert result.ok
        assert result.data == b"''"

    @pytest.mark.asyncio
    async def test_clean_exit_without_output_is_success(self, python_spec):
        result = await run(python_spec("pass", input_data=b"ignored"))

        assert result.ok
        assert result.data == b""

    @pytest.mark.asyncio
    async def test_early_stdin_close_is_partial_input(self, python_spec):
        script = """
        import os, sys
        sys.stdin.buffer.read(10)
        os.close(0)
        sys.stdout.buffer.write(b"converted")
        """
        payload = b"\0" * (4 * 1024 * 1024)

        result = await run(python_spec(script, input_data=payload))

        assert result.ok
        assert result.data == b"converted"
        assert result.partial_input
        assert any(isinstance(w, PartialInputWarning) for w in result.warnings)

    @pytest.mark.asyncio
    async def test_early_stdin_close_with_failure_exit(self, python_spec):
        script = """
        import os, sys
        os.close(0)
        sys.stderr.write("cannot read input\\n")
        sys.exit(1)
        """
        result = await run(python_spec(script, input_data=b"\0" * (1024 * 1024)))

        assert isinstance(result.error, ProcessExitError)
        assert "cannot read input" in result.diagnostics


class TestConcurrency:
    """Large transfers must not deadlock on full pipe buffers."""

    @pytest.mark.asyncio
    @pytest.mark.slow
    async def test_large_output_from_small_input(self, python_spec):
        script = """
        import sys
        sys.stdin.buffer.read()
        chunk = b"0123456789abcdef" * 4096
        for _ in range(160):
            sys.stdout.buffer.write(chunk)
        """
        result = await asyncio.wait_for(
            run(python_spec(script, input_data=b"i" * 1024)), timeout=60
        )

        assert result.ok
        assert len(result.data) == 10 * 1024 * 1024
        assert result.data[:16] == b"0123456789abcdef"

    @pytest.mark.asyncio
    async def test_output_before_reading_input(self, python_spec):
        # Fills stdout before touching stdin; write-then-read would deadlock
        script = """
        import sys
        sys.stdout.buffer.write(b"o" * (1024 * 1024))
        sys.stdout.flush()
        data = sys.stdin.buffer.read()
        sys.stdout.buffer.write(data[-5:])
        """
        payload = b"i" * (1024 * 1024 - 5) + b"tail!"

        result = await asyncio.wait_for(run(python_spec(script, input_data=payload)), timeout=30)

        assert result.ok
        assert len(result.data) == 1024 * 1024 + 5
        assert result.data.endswith(b"tail!")

    @pytest.mark.asyncio
    async def test_noisy_diagnostics_do_not_stall(self, python_spec):
        script = """
        import sys
        for i in range(20000):
            sys.stderr.write("progress line %d\\n" % i)
        sys.stdout.buffer.write(sys.stdin.buffer.read())
        """
        result = await asyncio.wait_for(
            run(python_spec(script, input_data=b"payload", verbose=False)), timeout=30
        )

        assert result.ok
        assert result.data == b"payload"
        assert "progress line 19999" in result.diagnostics

    @pytest.mark.asyncio
    async def test_concurrent_runs_are_independent(self, python_spec):
        specs = [python_spec(ECHO, input_data=str(i).encode() * 1000) for i in range(5)]
        failing = python_spec("import sys; sys.exit(1)")

        results = await asyncio.gather(*(run(spec) for spec in specs), run(failing))

        for i, result in enumerate(results[:5]):
            assert result.data == str(i).encode() * 1000
        assert isinstance(results[5].error, ProcessExitError)


class TestDiagnostics:

    @pytest.mark.asyncio
    async def test_verbose_forwards_lines_in_order(self, python_spec):
        script = """
        import sys
        sys.stderr.write("first\\nsecond\\r[=] 50%\\r[==] 100%\\n")
        """
        lines = []

        result = await run(python_spec(script, verbose=True), diagnostic_sink=lines.append)

        assert result.ok
        assert lines == ["first", "second", "[=] 50%", "[==] 100%"]

    @pytest.mark.asyncio
    async def test_quiet_run_does_not_forward(self, python_spec):
        lines = []

        result = await run(
            python_spec("import sys; sys.stderr.write('noise\\n')"),
            diagnostic_sink=lines.append,
        )

        assert result.ok
        assert lines == []
        assert result.diagnostics == "noise"

    @pytest.mark.asyncio
    async def test_diagnostic_tail_is_bounded(self, python_spec):
        script = """
        import sys
        for i in range(50):
            sys.stderr.write("line %d\\n" % i)
        sys.exit(1)
        """
        result = await run(python_spec(script, diagnostic_tail_lines=5))

        assert result.diagnostics.splitlines() == [f"line {i}" for i in range(45, 50)]


class TestCancellation:
    """Cancellation and timeouts stop the child and leave nothing running."""

    @pytest.mark.asyncio
    async def test_cancel_event_stops_child(self, python_spec, launched):
        cancel_event = asyncio.Event()
        asyncio.get_running_loop().call_later(0.1, cancel_event.set)

        start = time.monotonic()
        result = await run(
            python_spec(SLEEPER, input_data=b"x", kill_grace_period=1.0),
            cancel_event=cancel_event,
        )
        elapsed = time.monotonic() - start

        assert isinstance(result.error, Cancelled)
        assert not isinstance(result.error, ProcessTimeout)
        assert result.data is None
        assert elapsed < 5
        assert len(launched) == 1
        assert_reaped(launched[0])

    @pytest.mark.asyncio
    async def test_cancel_before_launch(self, python_spec, launched):
        cancel_event = asyncio.Event()
        cancel_event.set()

        result = await run(python_spec(SLEEPER), cancel_event=cancel_event)

        assert isinstance(result.error, Cancelled)
        assert launched == []

    @pytest.mark.asyncio
    async def test_cancel_event_unused_on_success(self, python_spec):
        cancel_event = asyncio.Event()

        result = await run(python_spec(ECHO, input_data=b"ok"), cancel_event=cancel_event)

        assert result.data == b"ok"
        assert not cancel_event.is_set()

    @pytest.mark.asyncio
    async def test_timeout(self, python_spec, launched):
        start = time.monotonic()
        result = await run(python_spec(SLEEPER, timeout=0.2, kill_grace_period=1.0))

        assert isinstance(result.error, ProcessTimeout)
        assert isinstance(result.error, Cancelled)
        assert result.error.timeout == 0.2
        assert time.monotonic() - start < 5
        assert_reaped(launched[0])

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
    async def test_child_ignoring_terminate_is_killed(self, python_spec, launched):
        script = """
        import signal, sys, time
        signal.signal(signal.SIGTERM, signal.SIG_IGN)
        sys.stderr.write("ready\\n")
        sys.stderr.flush()
        time.sleep(10)
        """
        cancel_event = asyncio.Event()

        def on_line(line):
            if line == "ready":
                cancel_event.set()

        start = time.monotonic()
        result = await run(
            python_spec(script, verbose=True, kill_grace_period=0.3),
            cancel_event=cancel_event,
            diagnostic_sink=on_line,
        )

        assert isinstance(result.error, Cancelled)
        assert time.monotonic() - start < 5
        assert_reaped(launched[0])

    @pytest.mark.asyncio
    async def test_task_cancellation_propagates(self, python_spec, launched):
        task = asyncio.create_task(run(python_spec(SLEEPER, kill_grace_period=1.0)))
        await asyncio.sleep(0.2)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert_reaped(launched[0])


class TestLaunchFailure:

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path):
        spec = ProcessSpec(str(tmp_path / "no-such-encoder"), ("-",), input_data=b"data")

        result = await run(spec)

        assert isinstance(result.error, LaunchError)
        assert result.returncode is None
        with pytest.raises(LaunchError):
            result.unwrap()
