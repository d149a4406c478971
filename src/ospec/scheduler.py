"""Depth-first execution of a spec tree.

For every spec the scheduler runs its ``before`` hooks, then each child in
declaration order, then its ``after`` hooks. Every case is wrapped in the
``before_each`` hooks of all its ancestors (outermost first) and their
``after_each`` hooks (innermost first).

Hooks and test bodies are executed as *units*. A unit may be synchronous or
return an awaitable. Awaitables run as tasks raced against the unit's
timeout; a body that loses the race is recorded as timed out but is left
running and tracked by :class:`~ospec.state.RunnerState` until it settles.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from ospec.assertions import default_assert_factory
from ospec.config import DEFAULT_TIMEOUT_MS
from ospec.errors import DuplicateNameError, HookFailure, MisuseError, TestTimeout
from ospec.models.result import CaseResult, GroupResult, HookFailureRecord, Outcome
from ospec.models.spec import Case, Hook, Spec
from ospec.state import Unit, UnitState

if TYPE_CHECKING:
    from collections.abc import Callable

    from ospec.state import RunnerState

logger = logging.getLogger(__name__)

# Raised by malformed suites; these abort the run instead of being recorded.
_PROGRAMMER_ERRORS = (MisuseError, DuplicateNameError)

_POSITIONAL = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
    inspect.Parameter.VAR_POSITIONAL,
)


class BailScope(Enum):
    """How far a bail reaches."""

    RUN = "run"
    """Skip everything not yet started."""

    GROUP = "group"
    """Skip the rest of the group the bail happened in, then carry on."""


@dataclass
class UnitOutcome:
    """How a single hook or test body ended."""

    status: Outcome
    duration_ms: float
    error: BaseException | None = None


def _accepts_argument(fn: Callable[..., Any]) -> bool:
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return False
    return any(param.kind in _POSITIONAL for param in signature.parameters.values())


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class Scheduler:
    """Runs a spec tree once against a :class:`RunnerState`."""

    def __init__(
        self,
        state: RunnerState,
        *,
        default_timeout_ms: float = DEFAULT_TIMEOUT_MS,
        bail_on_first_failure: bool = False,
        bail_scope: BailScope = BailScope.RUN,
        default_assert_factory: Callable[[], Any] = default_assert_factory,
    ) -> None:
        self.state = state
        self.default_timeout_ms = default_timeout_ms
        self.bail_on_first_failure = bail_on_first_failure
        self.bail_scope = bail_scope
        self.default_assert_factory = default_assert_factory

    async def run(self, root: Spec) -> GroupResult:
        """Execute *root* and everything below it."""
        return await self._run_spec(root)

    # ── Groups ───────────────────────────────────────────────────────

    async def _run_spec(self, spec: Spec) -> GroupResult:
        if self.state.bail:
            return self._skip_spec(spec)
        if spec.count_cases() == 0:
            return self._skip_spec(spec)

        state = self.state
        previous_file = state.current_file
        state.depth += 1
        state.current_file = spec.file or previous_file
        logger.debug(
            "%sEntering spec %s (%s)",
            "  " * state.depth,
            spec.name or "<root>",
            state.current_file or "<unknown file>",
        )

        hook_failures: list[HookFailureRecord] = []
        results: list[GroupResult | CaseResult] = []
        try:
            entered = True
            for hook in spec.before:
                if state.bail:
                    break
                failure = await self._run_hook(hook, spec)
                if failure is not None:
                    hook_failures.append(failure)
                    entered = False
                    break

            for child in spec.children.values():
                if not entered or state.bail:
                    results.append(self._skip(child))
                elif isinstance(child, Spec):
                    results.append(await self._run_spec(child))
                else:
                    results.append(await self._run_case(child, hook_failures))

            for hook in spec.after:
                failure = await self._run_hook(hook, spec)
                if failure is not None:
                    hook_failures.append(failure)

            if self.bail_scope is BailScope.GROUP and state.bail:
                logger.debug("Bail contained to spec %s", spec.name or "<root>")
                state.bail = False
        finally:
            state.depth -= 1
            state.current_file = previous_file

        return GroupResult.from_children(spec.name, spec.path, results, hook_failures)

    def _skip(self, child: Spec | Case) -> GroupResult | CaseResult:
        if isinstance(child, Spec):
            return self._skip_spec(child)
        return CaseResult(name=child.display_name, path=child.path, status=Outcome.SKIPPED)

    def _skip_spec(self, spec: Spec) -> GroupResult:
        return GroupResult.from_children(
            spec.name, spec.path, [self._skip(child) for child in spec.children.values()]
        )

    # ── Cases ────────────────────────────────────────────────────────

    async def _run_case(self, case: Case, hook_failures: list[HookFailureRecord]) -> CaseResult:
        spec = case.parent
        skipped_by_hook = False
        for hook in spec.before_each_chain():
            if self.state.bail:
                break
            failure = await self._run_hook(hook, spec, case=case)
            if failure is not None:
                hook_failures.append(failure)
                skipped_by_hook = True
                break

        if skipped_by_hook or self.state.bail:
            result = CaseResult(name=case.display_name, path=case.path, status=Outcome.SKIPPED)
        else:
            unit = Unit(kind="test", label=" > ".join(case.path))
            outcome = await self._run_unit(
                unit,
                case.fn,
                timeout_ms=case.resolve_timeout(self.default_timeout_ms),
                assert_factory=self._assert_factory(spec),
            )
            result = CaseResult(
                name=case.display_name,
                path=case.path,
                status=outcome.status,
                duration_ms=outcome.duration_ms,
                error=outcome.error,
            )
            if result.status is Outcome.PASSED:
                logger.debug("PASS %s (%.1fms)", unit.label, outcome.duration_ms)
            else:
                logger.info("%s %s: %s", result.status.value.upper(), unit.label, outcome.error)
                if self.bail_on_first_failure:
                    self.state.trigger_bail(f"{unit.label} {result.status.value}")

        for hook in spec.after_each_chain():
            failure = await self._run_hook(hook, spec, case=case)
            if failure is not None:
                hook_failures.append(failure)

        return result

    # ── Hooks ────────────────────────────────────────────────────────

    async def _run_hook(
        self,
        hook: Hook,
        spec: Spec,
        *,
        case: Case | None = None,
    ) -> HookFailureRecord | None:
        """Run one hook; return a failure record attributed to *spec* if it fails."""
        owner = hook.owner
        target = case.display_name if case is not None else (owner.name or "<root>")
        unit = Unit(kind=hook.kind.value, label=f"{hook.kind.value} hook of {target}")
        outcome = await self._run_unit(
            unit,
            hook.fn,
            timeout_ms=owner.resolve_timeout(self.default_timeout_ms),
            assert_factory=self._assert_factory(owner),
        )
        if outcome.status is Outcome.PASSED:
            return None

        error = HookFailure(
            f"{unit.label} failed: {outcome.error}",
            kind=hook.kind.value,
            cause=outcome.error,
        )
        logger.warning("%s", error)
        if self.bail_on_first_failure:
            self.state.trigger_bail(unit.label)
        return HookFailureRecord(
            kind=hook.kind.value,
            path=spec.path,
            error=error,
            case=case.display_name if case is not None else None,
        )

    # ── Units ────────────────────────────────────────────────────────

    def _assert_factory(self, spec: Spec) -> Callable[[], Any]:
        return spec.resolve_assert_factory() or self.default_assert_factory

    async def _run_unit(
        self,
        unit: Unit,
        fn: Callable[..., Any],
        *,
        timeout_ms: float,
        assert_factory: Callable[[], Any],
    ) -> UnitOutcome:
        """Run *fn* as *unit*, racing an awaitable result against the timeout."""
        state = self.state
        start = time.perf_counter()
        task: asyncio.Future[Any] | None = None
        try:
            try:
                with state.activate(unit):
                    if _accepts_argument(fn):
                        returned = fn(assert_factory())
                    else:
                        returned = fn()
                    if inspect.isawaitable(returned):
                        # Created inside the activation so the task's context
                        # carries this unit.
                        task = asyncio.ensure_future(returned)
            except _PROGRAMMER_ERRORS:
                raise
            except Exception as exc:
                unit.state = UnitState.SETTLED
                return UnitOutcome(Outcome.FAILED, _elapsed_ms(start), exc)

            if task is None:
                unit.state = UnitState.SETTLED
                return UnitOutcome(Outcome.PASSED, _elapsed_ms(start))

            # Let the body run up to its first suspension; timeout() is only
            # accepted during that turn.
            await asyncio.sleep(0)
            if not task.done():
                unit.state = UnitState.SUSPENDED
                effective_ms = (
                    unit.timeout_override_ms
                    if unit.timeout_override_ms is not None
                    else timeout_ms
                )
                remaining = max(effective_ms / 1000 - (time.perf_counter() - start), 0)
                done, _ = await asyncio.wait({task}, timeout=remaining)
                if not done:
                    logger.warning("%s timed out after %sms", unit.label, effective_ms)
                    state.track_timed_out(unit, task)
                    return UnitOutcome(
                        Outcome.TIMEOUT,
                        _elapsed_ms(start),
                        TestTimeout(unit.label, effective_ms),
                    )

            unit.state = UnitState.SETTLED
            if task.cancelled():
                return UnitOutcome(Outcome.FAILED, _elapsed_ms(start), asyncio.CancelledError())
            error = task.exception()
            if isinstance(error, _PROGRAMMER_ERRORS):
                raise error
            if error is not None:
                return UnitOutcome(Outcome.FAILED, _elapsed_ms(start), error)
            return UnitOutcome(Outcome.PASSED, _elapsed_ms(start))
        finally:
            state.release(unit)
