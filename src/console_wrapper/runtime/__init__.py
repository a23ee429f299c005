"""Runtime module for subprocess management and output relaying.

This module provides direct process execution with concurrent line-based
stream relaying and cleanup for the wrapped subject process.
"""

from __future__ import annotations

from .process_runner import ProcessRunner, ProcessSpec, exit_code_from_returncode

__all__ = [
    "ProcessRunner",
    "ProcessSpec",
    "exit_code_from_returncode",
]
