"""Call-stack labels for anonymous tests.

An anonymous test is named after the place where it was declared, e.g.
``test_math.py:12``. The stack is captured as plain ``"<file>:<line>"``
strings so that matching stays a pure string operation.
"""

from __future__ import annotations

import re
import traceback
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

DEFAULT_LABEL_PATTERN = re.compile(r"(?:^|[/\\])([^/\\]+:\d+)$")
"""Extracts ``<basename>:<line>`` from a ``<path>:<line>`` frame string."""

DEFAULT_FILE_PATTERN = re.compile(r"(?:^|[/\\])([^/\\]+):\d+$")
"""Extracts the file basename alone."""


def ensure_stack_trace(error: BaseException) -> BaseException:
    """Return *error* with a populated ``__traceback__``.

    Exceptions created but never raised carry no traceback, so the error is
    raised and caught once to attach one.
    """
    if error.__traceback__ is not None:
        return error
    try:
        raise error
    except BaseException as exc:
        return exc


def _is_under(path: Path, roots: Sequence[Path]) -> bool:
    return any(path.is_relative_to(root) for root in roots)


def capture_stack(skip_paths: Iterable[Path | str] = ()) -> list[str]:
    """Capture the caller's stack, innermost frame first.

    Frames whose file lives under any of *skip_paths* are dropped.
    """
    error = ensure_stack_trace(Exception("stack capture"))
    tb = error.__traceback__
    if tb is None:
        return []

    skipped = [Path(p).resolve() for p in skip_paths]
    frames: list[str] = []
    for summary in reversed(traceback.extract_stack(tb.tb_frame)):
        filename = summary.filename
        if skipped and _is_under(Path(filename).resolve(), skipped):
            continue
        frames.append(f"{filename}:{summary.lineno}")
    return frames


def get_stack_name(stack: Sequence[str], pattern: re.Pattern[str] | str) -> str | None:
    """Return the first capture of *pattern* across *stack*, or ``None``."""
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern
    for frame in stack:
        match = regex.search(frame)
        if match and match.group(1):
            return match.group(1)
    return None
