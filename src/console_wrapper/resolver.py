"""Subject resolution.

Splits a combined "executable + arguments" subject line into the executable
path and the remaining argument string by probing the filesystem. Paths that
contain spaces (``C:\\Program Files\\...``) cannot be told apart from "path
followed by first argument" any other way.
"""

from __future__ import annotations

import logging
import os
import shlex
from dataclasses import dataclass

from .errors import ResolutionError

__all__ = [
    "ResolvedSubject",
    "resolve_subject",
    "split_arguments",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedSubject:
    """Executable path and argument string extracted from a subject line.

    Attributes:
        executable: Path that named an existing file at resolution time
        arguments: Everything after the executable, without the separator
    """

    executable: str
    arguments: str = ""

    @property
    def argv(self) -> list[str]:
        """Full argument vector for launching the subject without a shell."""
        return [self.executable, *split_arguments(self.arguments)]


def _tokenize(arguments: str) -> list[str]:
    lexer = shlex.shlex(arguments, posix=True)
    lexer.whitespace_split = True
    lexer.quotes = '"'
    lexer.escape = ""
    lexer.commenters = ""
    return list(lexer)


def split_arguments(arguments: str) -> list[str]:
    """Split an argument string into argv entries.

    Whitespace separates arguments and double quotes group words, the way a
    child's own command line is read. Backslashes, apostrophes and ``#`` are
    ordinary characters. An unterminated double quote runs to the end of the
    string.
    """
    if not arguments.strip():
        return []
    try:
        return _tokenize(arguments)
    except ValueError:
        return _tokenize(arguments + '"')


def resolve_subject(subject: str) -> ResolvedSubject:
    """Resolve a subject line into executable and argument string.

    The whole line is tried first, so an executable whose path contains
    spaces resolves when no arguments are given. Otherwise the line is split
    on single spaces and a candidate is grown one token at a time; the first
    (shortest) candidate naming an existing file wins, even if a longer one
    would also exist. Consecutive spaces yield empty tokens, which are kept,
    so the argument string preserves the original spacing.

    Args:
        subject: Executable path optionally followed by arguments

    Returns:
        The resolved subject

    Raises:
        ResolutionError: If no prefix of the line names an existing file
    """
    if not subject:
        raise ResolutionError(subject)

    if os.path.isfile(subject):
        logger.debug(f"Subject is a file without arguments: {subject!r}")
        return ResolvedSubject(executable=subject)

    candidate = ""
    for index, token in enumerate(subject.split(" ")):
        if index > 0:
            candidate += " "
        candidate += token

        if os.path.isfile(candidate):
            arguments = subject[len(candidate) + 1:]
            logger.debug(
                f"Resolved subject executable={candidate!r} arguments={arguments!r}"
            )
            return ResolvedSubject(executable=candidate, arguments=arguments)

    raise ResolutionError(subject)
