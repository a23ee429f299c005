"""ProcessRunner unit tests.

Test coverage:
- Line relaying for stdout and stderr
- Ordering within a stream, independence across streams
- Unterminated last lines and oversized lines
- Exit code reporting (including signal deaths)
- Launch failures
- Inherited working directory and environment
- Sinks that fail to write
- Cleanup when the relay fails
"""

from __future__ import annotations

import asyncio
import errno
import io
import os
import sys
from pathlib import Path

import pytest

from console_wrapper.errors import LaunchError
from console_wrapper.runtime.process_runner import (
    IS_WINDOWS,
    ProcessRunner,
    ProcessSpec,
    exit_code_from_returncode,
)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def runner() -> ProcessRunner:
    """Create ProcessRunner instance with short timeouts for testing."""
    return ProcessRunner(term_timeout=0.5, kill_timeout=0.3)


def _python(*args: str) -> list[str]:
    return [sys.executable, *args]


class _BrokenSink(io.BytesIO):
    """Sink whose reader has gone away."""

    def write(self, data: bytes) -> int:  # type: ignore[override]
        raise BrokenPipeError(32, "Broken pipe")


class _FullDiskSink(io.BytesIO):
    def write(self, data: bytes) -> int:  # type: ignore[override]
        raise OSError(errno.ENOSPC, "No space left on device")


class _FailingSink(io.BytesIO):
    def write(self, data: bytes) -> int:  # type: ignore[override]
        raise RuntimeError("sink failed")


# =============================================================================
# Relay Tests
# =============================================================================


class TestRelay:
    """Test output relaying."""

    @pytest.mark.asyncio
    async def test_stdout_lines_relayed(self, runner: ProcessRunner, fake_subject_path: Path):
        out, err = io.BytesIO(), io.BytesIO()
        spec = ProcessSpec(argv=_python(str(fake_subject_path), "--stdout", "3"))

        exit_code = await runner.run(spec, stdout=out, stderr=err)

        assert exit_code == 0
        assert out.getvalue().splitlines() == [b"out 0", b"out 1", b"out 2"]
        assert err.getvalue() == b""

    @pytest.mark.asyncio
    async def test_stderr_lines_go_to_stderr_sink(
        self, runner: ProcessRunner, fake_subject_path: Path
    ):
        out, err = io.BytesIO(), io.BytesIO()
        spec = ProcessSpec(
            argv=_python(str(fake_subject_path), "--stdout", "2", "--stderr", "2")
        )

        await runner.run(spec, stdout=out, stderr=err)

        assert out.getvalue().splitlines() == [b"out 0", b"out 1"]
        assert err.getvalue().splitlines() == [b"err 0", b"err 1"]

    @pytest.mark.asyncio
    async def test_order_within_stream_preserved(
        self, runner: ProcessRunner, fake_subject_path: Path
    ):
        out, err = io.BytesIO(), io.BytesIO()
        spec = ProcessSpec(
            argv=_python(str(fake_subject_path), "--stdout", "500", "--stderr", "500")
        )

        await runner.run(spec, stdout=out, stderr=err)

        assert out.getvalue().splitlines() == [f"out {i}".encode() for i in range(500)]
        assert err.getvalue().splitlines() == [f"err {i}".encode() for i in range(500)]

    @pytest.mark.asyncio
    async def test_unterminated_last_line_gets_newline(
        self, runner: ProcessRunner, fake_subject_path: Path
    ):
        out = io.BytesIO()
        spec = ProcessSpec(
            argv=_python(str(fake_subject_path), "--stdout", "2", "--no-final-newline")
        )

        await runner.run(spec, stdout=out, stderr=io.BytesIO())

        assert out.getvalue() == b"out 0" + os.linesep.encode() + b"out 1\n"

    @pytest.mark.asyncio
    async def test_line_longer_than_limit(self):
        runner = ProcessRunner(line_limit=1024)
        out = io.BytesIO()
        spec = ProcessSpec(
            argv=_python("-c", "import sys; sys.stdout.write('x' * 5000 + '\\nend\\n')")
        )

        await runner.run(spec, stdout=out, stderr=io.BytesIO())

        assert out.getvalue() == b"x" * 5000 + b"\nend\n"

    @pytest.mark.asyncio
    async def test_no_output(self, runner: ProcessRunner, fake_subject_path: Path):
        out, err = io.BytesIO(), io.BytesIO()
        spec = ProcessSpec(argv=_python(str(fake_subject_path)))

        assert await runner.run(spec, stdout=out, stderr=err) == 0
        assert out.getvalue() == b""
        assert err.getvalue() == b""

    @pytest.mark.asyncio
    async def test_closed_sink_keeps_draining(
        self, runner: ProcessRunner, fake_subject_path: Path
    ):
        err = io.BytesIO()
        spec = ProcessSpec(
            argv=_python(str(fake_subject_path), "--stdout", "2000", "--stderr", "1")
        )

        exit_code = await runner.run(spec, stdout=_BrokenSink(), stderr=err)

        assert exit_code == 0
        assert err.getvalue().splitlines() == [b"err 0"]

    @pytest.mark.asyncio
    async def test_failing_sink_write_keeps_draining(
        self, runner: ProcessRunner, fake_subject_path: Path, caplog
    ):
        err = io.BytesIO()
        spec = ProcessSpec(
            argv=_python(str(fake_subject_path), "--stdout", "2000", "--stderr", "1")
        )

        with caplog.at_level("WARNING", logger="console_wrapper"):
            exit_code = await runner.run(spec, stdout=_FullDiskSink(), stderr=err)

        assert exit_code == 0
        assert err.getvalue().splitlines() == [b"err 0"]
        assert "No space left on device" in caplog.text


# =============================================================================
# Exit Code Tests
# =============================================================================


class TestExitCode:
    """Test exit code reporting."""

    @pytest.mark.asyncio
    async def test_child_exit_code_returned(
        self, runner: ProcessRunner, fake_subject_path: Path
    ):
        spec = ProcessSpec(argv=_python(str(fake_subject_path), "--exit-code", "7"))
        assert await runner.run(spec, stdout=io.BytesIO(), stderr=io.BytesIO()) == 7

    @pytest.mark.asyncio
    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX-specific test")
    async def test_signal_death_maps_to_128_plus_signum(self, runner: ProcessRunner):
        spec = ProcessSpec(argv=["sh", "-c", "kill -KILL $$"])
        assert await runner.run(spec, stdout=io.BytesIO(), stderr=io.BytesIO()) == 137

    def test_exit_code_mapping(self):
        assert exit_code_from_returncode(0) == 0
        assert exit_code_from_returncode(3) == 3
        assert exit_code_from_returncode(-2) == 130
        assert exit_code_from_returncode(-15) == 143


# =============================================================================
# Launch Tests
# =============================================================================


class TestLaunch:
    """Test process launch."""

    @pytest.mark.asyncio
    async def test_missing_executable(self, runner: ProcessRunner, tmp_path: Path):
        spec = ProcessSpec(argv=[str(tmp_path / "does-not-exist")])

        with pytest.raises(LaunchError) as exc_info:
            await runner.run(spec, stdout=io.BytesIO(), stderr=io.BytesIO())

        assert exc_info.value.exit_code == 127
        assert isinstance(exc_info.value.cause, FileNotFoundError)
        assert "does-not-exist" in str(exc_info.value)

    @pytest.mark.asyncio
    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX-specific test")
    async def test_not_executable(self, runner: ProcessRunner, make_file):
        spec = ProcessSpec(argv=[make_file("plain.txt")])

        with pytest.raises(LaunchError) as exc_info:
            await runner.run(spec, stdout=io.BytesIO(), stderr=io.BytesIO())

        assert exc_info.value.exit_code == 126

    @pytest.mark.asyncio
    async def test_working_directory_inherited(
        self, runner: ProcessRunner, fake_subject_path: Path, tmp_path: Path, monkeypatch
    ):
        monkeypatch.chdir(tmp_path)
        out = io.BytesIO()
        spec = ProcessSpec(argv=_python(str(fake_subject_path), "--cwd"))

        await runner.run(spec, stdout=out, stderr=io.BytesIO())

        assert Path(out.getvalue().decode().strip()).resolve() == tmp_path.resolve()

    @pytest.mark.asyncio
    async def test_environment_inherited(self, runner: ProcessRunner, monkeypatch):
        monkeypatch.setenv("WRAPPER_TEST_VALUE", "marker")
        out = io.BytesIO()
        spec = ProcessSpec(
            argv=_python("-c", "import os; print(os.environ['WRAPPER_TEST_VALUE'])")
        )

        await runner.run(spec, stdout=out, stderr=io.BytesIO())

        assert out.getvalue().splitlines() == [b"marker"]

    @pytest.mark.asyncio
    async def test_on_start_receives_process(
        self, runner: ProcessRunner, fake_subject_path: Path
    ):
        started: list[asyncio.subprocess.Process] = []
        spec = ProcessSpec(argv=_python(str(fake_subject_path)))

        await runner.run(
            spec, stdout=io.BytesIO(), stderr=io.BytesIO(), on_start=started.append
        )

        assert len(started) == 1
        assert started[0].returncode == 0


# =============================================================================
# Cleanup Tests
# =============================================================================


class TestCleanup:
    """Test that a failing supervisor does not orphan the child."""

    @pytest.mark.asyncio
    async def test_sink_failure_terminates_child(
        self, runner: ProcessRunner, fake_subject_path: Path
    ):
        started: list[asyncio.subprocess.Process] = []
        spec = ProcessSpec(
            argv=_python(str(fake_subject_path), "--stdout", "1", "--wait-for-signal")
        )

        with pytest.raises(BaseException) as exc_info:
            await runner.run(
                spec,
                stdout=_FailingSink(),
                stderr=io.BytesIO(),
                on_start=started.append,
            )

        assert "sink failed" in repr(exc_info.value)
        assert started[0].returncode is not None

    @pytest.mark.asyncio
    async def test_cancellation_terminates_child(
        self, runner: ProcessRunner, fake_subject_path: Path
    ):
        started: list[asyncio.subprocess.Process] = []
        spec = ProcessSpec(argv=_python(str(fake_subject_path), "--wait-for-signal"))

        task = asyncio.create_task(
            runner.run(
                spec,
                stdout=io.BytesIO(),
                stderr=io.BytesIO(),
                on_start=started.append,
            )
        )
        await asyncio.sleep(0.5)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert started[0].returncode is not None
