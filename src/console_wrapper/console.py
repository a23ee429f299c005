"""Console window sizing.

Resizing is a convenience: every failure is logged and swallowed so the
subject still runs in whatever console is available.
"""

from __future__ import annotations

import logging
import subprocess
import sys
from typing import TextIO

__all__ = ["apply_dimensions"]

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"

# xterm window manipulation: resize the text area to <rows>;<cols> characters.
RESIZE_SEQUENCE = "\033[8;{rows};{cols}t"


def _set_winsize(fd: int, rows: int, cols: int) -> None:
    import fcntl
    import struct
    import termios

    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, cols, 0, 0))


def _apply_posix(width: int, height: int, stream: TextIO) -> None:
    if not stream.isatty():
        logger.debug("Console is not a terminal, skipping resize")
        return

    stream.write(RESIZE_SEQUENCE.format(rows=height, cols=width))
    stream.flush()
    _set_winsize(stream.fileno(), height, width)


def _apply_windows(width: int, height: int) -> None:
    subprocess.run(
        ["mode", "con:", f"cols={width}", f"lines={height}"],
        check=True,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
    )


def apply_dimensions(width: int, height: int, stream: TextIO | None = None) -> None:
    """Resize the hosting console to ``width`` columns and ``height`` rows.

    Args:
        width: Column count
        height: Row count
        stream: Terminal stream to resize (defaults to ``sys.stdout``)
    """
    if stream is None:
        stream = sys.stdout

    try:
        if IS_WINDOWS:
            _apply_windows(width, height)
        else:
            _apply_posix(width, height, stream)
        logger.debug(f"Console resized to {width}x{height}")
    except (OSError, ValueError, subprocess.SubprocessError) as e:
        logger.warning(f"Could not resize console to {width}x{height}: {e}")
