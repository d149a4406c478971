"""Data models for ospec."""

from ospec.models.result import CaseResult, GroupResult, HookFailureRecord, Outcome, RunResult
from ospec.models.spec import Case, Hook, HookKind, Spec

__all__ = [
    "Case",
    "CaseResult",
    "GroupResult",
    "Hook",
    "HookFailureRecord",
    "HookKind",
    "Outcome",
    "RunResult",
    "Spec",
]
