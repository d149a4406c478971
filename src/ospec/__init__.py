"""ospec: a minimal spec-tree test runner with async timeouts and bail."""

from __future__ import annotations

from ospec.assertions import Assert
from ospec.config import RunConfig
from ospec.core import Ospec
from ospec.errors import (
    AssertionFailure,
    DuplicateNameError,
    HookFailure,
    MisuseError,
    OspecError,
    TestTimeout,
)
from ospec.models.result import CaseResult, GroupResult, Outcome, RunResult

__version__ = "0.1.0"

o = Ospec()
"""Default suite used by ``ospec run``."""

__all__ = [
    "Assert",
    "AssertionFailure",
    "CaseResult",
    "DuplicateNameError",
    "GroupResult",
    "HookFailure",
    "MisuseError",
    "Ospec",
    "OspecError",
    "Outcome",
    "RunConfig",
    "RunResult",
    "TestTimeout",
    "__version__",
    "o",
]
