"""Shared pytest fixtures for opus-transcode tests."""

import sys
import textwrap
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from opus_transcode.config.settings import (
    DecoderConfig,
    EncoderConfig,
    ProcessConfig,
    Settings,
)
from opus_transcode.process import ProcessSpec

# Stand-in for opusenc: checks its arguments, then wraps stdin in a fake Ogg page
FAKE_OPUSENC = """
import sys

args = sys.argv[1:]
if args[:2] != ["--vbr", "--framesize"] or args[-2:] != ["-", "-"]:
    sys.stderr.write("bad arguments: %r\\n" % (args,))
    sys.exit(2)

data = sys.stdin.buffer.read()
if data.startswith(b"FAIL"):
    sys.stderr.write("Error parsing input file: unsupported format\\n")
    sys.exit(1)

sys.stderr.write("Encoding using libopus\\r[|] 00:00:01.00 1x realtime\\n")
sys.stdout.buffer.write(b"OggS" + data)
"""

# Stand-in for lame --decode <path> -: emits a WAV-looking header plus the file
FAKE_LAME = """
import sys

args = sys.argv[1:]
if len(args) != 3 or args[0] != "--decode" or args[2] != "-":
    sys.stderr.write("usage: lame --decode <input> -\\n")
    sys.exit(1)

try:
    with open(args[1], "rb") as f:
        data = f.read()
except OSError as e:
    sys.stderr.write("Could not find \\"%s\\": %s\\n" % (args[1], e))
    sys.exit(1)

sys.stdout.buffer.write(b"RIFF" + data)
"""


def _python_spec(script: str, **kwargs) -> ProcessSpec:
    return ProcessSpec(sys.executable, ("-c", textwrap.dedent(script)), **kwargs)


@pytest.fixture
def python_spec():
    """Build a spec running a Python snippet with the current interpreter."""
    return _python_spec


@pytest.fixture
def make_program(tmp_path):
    """Create an executable Python script under ``tmp_path/bin``."""
    if sys.platform == "win32":
        pytest.skip("fake executables rely on shebang lines")

    def _make(name: str, body: str) -> Path:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)
        path = bin_dir / name
        path.write_text(f"#!{sys.executable}\n{textwrap.dedent(body)}")
        path.chmod(0o755)
        return path

    return _make


@pytest.fixture
def fake_opusenc(make_program) -> Path:
    return make_program("opusenc", FAKE_OPUSENC)


@pytest.fixture
def fake_lame(make_program) -> Path:
    return make_program("lame", FAKE_LAME)


@pytest.fixture
def test_settings(fake_opusenc, fake_lame) -> Settings:
    """Settings wired to the fake encoder and decoder."""
    return Settings(
        environment="test",
        log_level="DEBUG",
        log_format="text",
        max_concurrency=2,
        encoder=EncoderConfig(executable=str(fake_opusenc), bitrate=64),
        decoder=DecoderConfig(mp3_executable=str(fake_lame)),
        process=ProcessConfig(timeout=30.0, kill_grace_period=1.0),
    )


@pytest.fixture
def test_client(test_settings):
    """Return FastAPI test client."""
    # Import here to avoid circular dependencies
    from opus_transcode.main import create_app
    app = create_app(settings=test_settings)
    return TestClient(app)
