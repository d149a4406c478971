"""Result tree models produced by a run."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


class Outcome(Enum):
    """Outcome of a single test case."""

    PASSED = "passed"
    FAILED = "failed"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class CaseResult:
    """Result of a single test case."""

    name: str
    path: tuple[str, ...]
    status: Outcome
    duration_ms: float = 0.0
    error: BaseException | None = None

    @property
    def failure_message(self) -> str:
        if self.error is None:
            return ""
        return f"{type(self.error).__name__}: {self.error}"


@dataclass(frozen=True)
class HookFailureRecord:
    """A hook failure attributed to the group it ran in."""

    kind: str
    """Hook kind (``before``, ``after``, ``before_each``, ``after_each``)."""

    path: tuple[str, ...]
    """Path of the group the failure is attributed to."""

    error: BaseException
    """The :class:`~ospec.errors.HookFailure` wrapping the hook's error."""

    case: str | None = None
    """Name of the case the ``*_each`` hook ran around, if any."""


@dataclass(frozen=True)
class GroupResult:
    """Result of a spec: its children's results and aggregate counts.

    Counts include every case at any depth below the group.
    """

    name: str
    path: tuple[str, ...]
    children: tuple[GroupResult | CaseResult, ...] = ()
    hook_failures: tuple[HookFailureRecord, ...] = ()
    passed: int = 0
    failed: int = 0
    timed_out: int = 0
    skipped: int = 0
    hook_failed: int = 0

    @classmethod
    def from_children(
        cls,
        name: str,
        path: tuple[str, ...],
        children: Iterable[GroupResult | CaseResult],
        hook_failures: Iterable[HookFailureRecord] = (),
    ) -> GroupResult:
        """Build a group result, aggregating counts from *children*."""
        child_tuple = tuple(children)
        failures = tuple(hook_failures)
        counts = {outcome: 0 for outcome in Outcome}
        hook_failed = len(failures)
        for child in child_tuple:
            if isinstance(child, GroupResult):
                counts[Outcome.PASSED] += child.passed
                counts[Outcome.FAILED] += child.failed
                counts[Outcome.TIMEOUT] += child.timed_out
                counts[Outcome.SKIPPED] += child.skipped
                hook_failed += child.hook_failed
            else:
                counts[child.status] += 1
        return cls(
            name=name,
            path=path,
            children=child_tuple,
            hook_failures=failures,
            passed=counts[Outcome.PASSED],
            failed=counts[Outcome.FAILED],
            timed_out=counts[Outcome.TIMEOUT],
            skipped=counts[Outcome.SKIPPED],
            hook_failed=hook_failed,
        )

    @property
    def total(self) -> int:
        return self.passed + self.failed + self.timed_out + self.skipped

    @property
    def ok(self) -> bool:
        """``True`` when nothing failed, timed out, or broke in a hook."""
        return self.failed == 0 and self.timed_out == 0 and self.hook_failed == 0

    def iter_cases(self) -> Iterator[CaseResult]:
        """Yield every case result below this group in execution order."""
        for child in self.children:
            if isinstance(child, GroupResult):
                yield from child.iter_cases()
            else:
                yield child

    def iter_hook_failures(self) -> Iterator[HookFailureRecord]:
        yield from self.hook_failures
        for child in self.children:
            if isinstance(child, GroupResult):
                yield from child.iter_hook_failures()


@dataclass(frozen=True)
class RunResult:
    """Outcome of a complete run."""

    root: GroupResult
    success: bool
    """``True`` when every test passed and no hook failed."""

    pending_timed_out: int = 0
    """Timed-out asynchronous units still running when the run returned."""

    duration_ms: float = 0.0
    bailed: bool = False

    @property
    def drained(self) -> bool:
        return self.pending_timed_out == 0
