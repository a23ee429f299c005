"""Process runner that relays a child's output streams line by line.

console-wrapper runtime module

This module provides:
- Direct subprocess launch (no shell) inheriting stdin, working directory and environment
- Concurrent stdout/stderr relaying to the parent's streams
- Blocking until the child exits and reporting its exit code
- Cancel-safe cleanup so a failed supervisor never leaves an orphan

Key design points:
- The child stays in the caller's session/process group so console
  interrupts (Ctrl+C) reach it directly
- Each stream has its own relay task; order within a stream is preserved,
  order across streams is not
- Sink writes run in worker threads so a blocked sink never stalls the
  other stream or the exit wait
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from collections.abc import Callable
from dataclasses import dataclass
from typing import BinaryIO

import anyio

from ..errors import LaunchError

__all__ = [
    "ProcessRunner",
    "ProcessSpec",
    "exit_code_from_returncode",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# Default timeouts (cleanup only, used when the supervisor fails)
DEFAULT_TERM_TIMEOUT = 2.0  # seconds to wait after SIGTERM
DEFAULT_KILL_TIMEOUT = 1.0  # seconds to wait after SIGKILL

# Longest line buffered before it is relayed in pieces
DEFAULT_LINE_LIMIT = 1024 * 1024


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for a subprocess to run.

    Attributes:
        argv: Command line arguments (first element is the executable)
    """

    argv: list[str]


def exit_code_from_returncode(returncode: int) -> int:
    """Map an asyncio returncode to a shell-style exit code.

    Negative return codes mean the child was killed by a signal; those map
    to ``128 + signum``.
    """
    if returncode < 0:
        return 128 - returncode
    return returncode


def _write_line(sink: BinaryIO, data: bytes) -> None:
    sink.write(data)
    sink.flush()


@dataclass
class ProcessRunner:
    """Launches a child process and relays its output until it exits.

    Example:
        runner = ProcessRunner()
        spec = ProcessSpec(argv=["/bin/echo", "hello", "world"])
        exit_code = await runner.run(
            spec,
            stdout=sys.stdout.buffer,
            stderr=sys.stderr.buffer,
        )
    """

    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    line_limit: int = DEFAULT_LINE_LIMIT

    async def run(
        self,
        spec: ProcessSpec,
        *,
        stdout: BinaryIO,
        stderr: BinaryIO,
        on_start: Callable[[asyncio.subprocess.Process], None] | None = None,
    ) -> int:
        """Run subprocess, relay both output streams, and wait for exit.

        This method:
        1. Starts the subprocess directly (no shell), stdin inherited
        2. Calls ``on_start`` with the process handle
        3. Relays stdout and stderr concurrently, one line at a time
        4. Waits for the process to exit and for both streams to drain
        5. Terminates the child if the relay fails or is cancelled

        Args:
            spec: Process specification
            stdout: Binary sink for the child's standard output
            stderr: Binary sink for the child's standard error
            on_start: Optional callback invoked once the child is running

        Returns:
            The child's exit code (``128 + signum`` if killed by a signal)

        Raises:
            LaunchError: If the executable could not be started
        """
        process = await self._spawn(spec)
        try:
            if on_start:
                on_start(process)

            async with anyio.create_task_group() as tg:
                tg.start_soon(self._relay, process.stdout, stdout, "stdout")
                tg.start_soon(self._relay, process.stderr, stderr, "stderr")
                returncode = await process.wait()

            logger.debug(
                f"Subprocess completed pid={process.pid} returncode={returncode}"
            )
            return exit_code_from_returncode(returncode)

        finally:
            await self._safe_cleanup(process)

    async def _spawn(self, spec: ProcessSpec) -> asyncio.subprocess.Process:
        try:
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                stdin=None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=self.line_limit,
            )
        except OSError as e:
            logger.debug(f"Failed to start argv={spec.argv!r}: {e}")
            raise LaunchError(spec.argv[0], e) from e

        logger.debug(
            f"Started subprocess pid={process.pid} "
            f"argv={spec.argv[0]} cwd={os.getcwd()}"
        )
        return process

    async def _relay(
        self,
        stream: asyncio.StreamReader | None,
        sink: BinaryIO,
        name: str,
    ) -> None:
        """Forward every line of ``stream`` to ``sink``.

        A trailing line without a newline gets one, the way a line-oriented
        reader would report it. Lines longer than ``line_limit`` are relayed
        in pieces without extra newlines.

        Args:
            stream: Child output stream
            sink: Parent output stream
            name: Stream name for logging
        """
        if stream is None:
            return

        count = 0
        sink_open = True

        async def forward(data: bytes) -> None:
            nonlocal sink_open
            if not sink_open:
                return
            try:
                await anyio.to_thread.run_sync(_write_line, sink, data)
            except BrokenPipeError:
                # Reader went away; keep draining so the child never blocks
                logger.debug(f"Sink closed stream={name}, discarding further output")
                sink_open = False
            except OSError as e:
                logger.warning(f"Cannot write {name}: {e}; discarding further output")
                sink_open = False

        while True:
            try:
                line = await stream.readuntil(b"\n")
            except asyncio.IncompleteReadError as e:
                # EOF; partial holds the unterminated last line, if any
                if e.partial:
                    await forward(e.partial + b"\n")
                    count += 1
                break
            except asyncio.LimitOverrunError as e:
                await forward(await stream.readexactly(e.consumed))
                continue

            await forward(line)
            count += 1

        logger.debug(f"Relay finished stream={name} lines={count}")

    async def _safe_cleanup(self, process: asyncio.subprocess.Process) -> None:
        """Terminate the child if it is still running, shielded from cancellation.

        Args:
            process: The subprocess to terminate
        """
        if process.returncode is not None:
            return
        try:
            await asyncio.shield(self._terminate_process(process))
        except asyncio.CancelledError:
            # If shield itself is cancelled, still try cleanup
            await self._terminate_process(process)
            raise

    async def _terminate_process(self, process: asyncio.subprocess.Process) -> None:
        """Terminate subprocess gracefully, then forcefully if needed.

        Termination strategy:
        1. terminate() (SIGTERM on POSIX, TerminateProcess on Windows)
        2. Wait up to term_timeout for exit
        3. If still running, kill()
        4. Wait up to kill_timeout for forced exit

        Args:
            process: The subprocess to terminate
        """
        pid = process.pid
        logger.debug(f"Terminating subprocess pid={pid}")

        try:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=self.term_timeout)
                logger.debug(
                    f"Subprocess terminated pid={pid} returncode={process.returncode}"
                )
                return
            except asyncio.TimeoutError:
                pass

            logger.debug(f"Force killing subprocess pid={pid}")
            process.kill()
            try:
                await asyncio.wait_for(process.wait(), timeout=self.kill_timeout)
                logger.debug(
                    f"Subprocess killed pid={pid} returncode={process.returncode}"
                )
            except asyncio.TimeoutError:
                logger.warning(f"Subprocess did not exit after kill pid={pid}")

        except ProcessLookupError:
            logger.debug(f"Subprocess already exited pid={pid}")
        except OSError as e:
            logger.warning(f"Error terminating subprocess pid={pid}: {e}")
