"""Declaration API and run entry point.

Example::

    from ospec import o

    @o.spec("math")
    def _() -> None:
        @o.before_each
        def reset() -> None: ...

        @o.test("adds")
        def _(a) -> None:
            a(1 + 1).equals(2)

        @o.test("waits")
        async def _(a) -> None:
            o.timeout(500)
            await asyncio.sleep(0.1)

    result = o.run_sync()
"""

from __future__ import annotations

import asyncio
import dataclasses
import itertools
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar

from ospec.config import RunConfig
from ospec.errors import MisuseError
from ospec.models.result import RunResult
from ospec.models.spec import Case, HookKind, Spec
from ospec.scheduler import BailScope, Scheduler
from ospec.state import RunnerState
from ospec.utils.stack import (
    DEFAULT_FILE_PATTERN,
    DEFAULT_LABEL_PATTERN,
    capture_stack,
    get_stack_name,
)

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

_PACKAGE_DIR = Path(__file__).resolve().parent


class Ospec:
    """A test suite: a spec tree under construction plus the means to run it."""

    _active: ClassVar[Ospec | None] = None
    """The suite whose run is in progress, if any."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.root = Spec(name=name)
        self.results: RunResult | None = None
        self._context = self.root
        self._anonymous = itertools.count(1)
        self._state: RunnerState | None = None
        self._last_state: RunnerState | None = None

    def new(self, name: str = "") -> Ospec:
        """Create an independent suite."""
        return Ospec(name)

    def reset(self) -> None:
        """Discard every declaration and the last run's results."""
        self._ensure_declaring("reset")
        self.root = Spec(name=self.name)
        self._context = self.root
        self._anonymous = itertools.count(1)
        self.results = None
        self._last_state = None

    @property
    def is_running(self) -> bool:
        return self._state is not None

    @property
    def pending_timed_out(self) -> int:
        """Timed-out asynchronous units of the current or last run still running."""
        state = self._state or self._last_state
        return state.pending_timed_out if state is not None else 0

    # ── Declarations ─────────────────────────────────────────────────

    def _ensure_declaring(self, what: str) -> None:
        if self.is_running:
            raise MisuseError(f"`{what}()` cannot be called while the suite is running")

    def _caller_stack(self) -> list[str]:
        return capture_stack(skip_paths=[_PACKAGE_DIR])

    def spec(self, name: str, fn: Callable[[], object] | None = None) -> Any:
        """Declare a nested group; *fn* declares its contents.

        Usable directly (``o.spec("name", block)``) or as a decorator
        (``@o.spec("name")``). The block runs immediately.
        """
        if fn is None:
            return lambda block: self.spec(name, block)

        self._ensure_declaring("spec")
        child = Spec(
            name=name,
            parent=self._context,
            file=get_stack_name(self._caller_stack(), DEFAULT_FILE_PATTERN) or "",
        )
        self._context.add_child(name, child)
        parent = self._context
        self._context = child
        try:
            fn()
        finally:
            self._context = parent
        return fn

    def test(
        self,
        name: str | Callable[..., object] | None = None,
        fn: Callable[..., object] | None = None,
    ) -> Any:
        """Declare a test.

        Supported forms::

            o.test("name", body)
            o.test(body)            # named after the declaration site
            @o.test("name")
            @o.test
        """
        if callable(name):
            self._add_case(None, name)
            return name
        if fn is None:
            label = name

            def decorator(body: Callable[..., object]) -> Callable[..., object]:
                self._add_case(label, body)
                return body

            return decorator
        self._add_case(name, fn)
        return fn

    def _add_case(self, name: str | None, fn: Callable[..., object]) -> Case:
        self._ensure_declaring("test")
        spec = self._context
        if name is not None:
            case = Case(name=name, fn=fn, parent=spec, key=name)
            spec.add_child(name, case)
            return case

        label = get_stack_name(self._caller_stack(), DEFAULT_LABEL_PATTERN)
        if label is None:
            key = f"<anonymous #{next(self._anonymous)}>"
        else:
            key = label
            suffix = 2
            while key in spec.children:
                key = f"{label} ({suffix})"
                suffix += 1
        case = Case(name=None if label is None else key, fn=fn, parent=spec, key=key)
        spec.add_child(key, case)
        return case

    def _add_hook(self, kind: HookKind, fn: Callable[..., object]) -> Callable[..., object]:
        self._ensure_declaring(kind.value)
        self._context.add_hook(kind, fn)
        return fn

    def before(self, fn: Callable[..., object]) -> Callable[..., object]:
        """Run *fn* once before the current spec's children."""
        return self._add_hook(HookKind.BEFORE, fn)

    def after(self, fn: Callable[..., object]) -> Callable[..., object]:
        """Run *fn* once after the current spec's children."""
        return self._add_hook(HookKind.AFTER, fn)

    def before_each(self, fn: Callable[..., object]) -> Callable[..., object]:
        """Run *fn* before every test below the current spec."""
        return self._add_hook(HookKind.BEFORE_EACH, fn)

    def after_each(self, fn: Callable[..., object]) -> Callable[..., object]:
        """Run *fn* after every test below the current spec."""
        return self._add_hook(HookKind.AFTER_EACH, fn)

    def spec_timeout(self, ms: float) -> None:
        """Set the default timeout for asynchronous units below the current spec."""
        self._ensure_declaring("spec_timeout")
        if ms <= 0:
            raise ValueError(f"Timeout must be positive, got {ms}")
        self._context.timeout_ms = float(ms)

    def use_assert(self, factory: Callable[[], Any]) -> None:
        """Build the assertion object handed to bodies below the current spec."""
        self._ensure_declaring("use_assert")
        self._context.assert_factory = factory

    # ── In-unit controls ─────────────────────────────────────────────

    def timeout(self, ms: float) -> None:
        """Override the timeout of the running hook or test.

        Must be called before the unit first suspends.
        """
        if self._state is None:
            raise MisuseError(
                "`timeout()` must be called synchronously from within a test definition or a hook"
            )
        self._state.set_timeout(ms)

    def bail(self) -> None:
        """Stop starting new tests and hooks."""
        if self._state is None:
            raise MisuseError("`bail()` must be called from within a running test or hook")
        self._state.request_bail()

    # ── Running ──────────────────────────────────────────────────────

    async def run(
        self,
        config: RunConfig | None = None,
        *,
        bail_on_first_failure: bool | None = None,
        default_timeout_ms: float | None = None,
        bail_scope: str | None = None,
    ) -> RunResult:
        """Run the suite once and return its result tree.

        Keyword arguments override the matching fields of *config*.

        Raises:
            MisuseError: If a run is already in progress, or a body misused
                the API.
            DuplicateNameError: If a body declared a clashing name.
        """
        if Ospec._active is not None:
            raise MisuseError("Another ospec run is already in progress")

        run_config = dataclasses.replace(config) if config is not None else RunConfig()
        if bail_on_first_failure is not None:
            run_config.bail_on_first_failure = bail_on_first_failure
        if default_timeout_ms is not None:
            run_config.default_timeout_ms = default_timeout_ms
        if bail_scope is not None:
            run_config.bail_scope = bail_scope

        state = RunnerState()
        scheduler = Scheduler(
            state,
            default_timeout_ms=run_config.default_timeout_ms,
            bail_on_first_failure=run_config.bail_on_first_failure,
            bail_scope=BailScope(run_config.bail_scope),
        )

        Ospec._active = self
        self._state = state
        start = time.perf_counter()
        logger.info(
            "Running %d test(s)%s",
            self.root.count_cases(),
            " (bail on first failure)" if run_config.bail_on_first_failure else "",
        )
        try:
            root_result = await scheduler.run(self.root)
        finally:
            Ospec._active = None
            self._state = None
            self._last_state = state

        result = RunResult(
            root=root_result,
            success=root_result.ok,
            pending_timed_out=state.pending_timed_out,
            duration_ms=(time.perf_counter() - start) * 1000,
            bailed=state.bailed,
        )
        self.results = result
        logger.info(
            "Run finished: %d passed, %d failed, %d timed out, %d skipped",
            root_result.passed,
            root_result.failed,
            root_result.timed_out,
            root_result.skipped,
        )
        return result

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for timed-out units of the last run to settle.

        Returns:
            ``True`` when no timed-out unit is still running.
        """
        if self._last_state is None:
            return True
        return await self._last_state.drain(timeout)

    def run_sync(self, config: RunConfig | None = None, **overrides: Any) -> RunResult:
        """Run the suite in a fresh event loop, then wait for timed-out units.

        The returned result's ``pending_timed_out`` reflects what was still
        running after ``drain_timeout_ms``.
        """
        drain_ms = (config or RunConfig()).drain_timeout_ms

        async def _main() -> RunResult:
            result = await self.run(config, **overrides)
            if result.pending_timed_out:
                await self.drain(drain_ms / 1000)
                result = dataclasses.replace(result, pending_timed_out=self.pending_timed_out)
                self.results = result
            return result

        return asyncio.run(_main())
