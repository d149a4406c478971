"""Mutable state of a single run.

One :class:`RunnerState` is created per run and threaded through the
scheduler. It tracks the unit (hook or test) currently executing so that
``timeout()`` and ``bail()`` calls made from test code can be validated, and
it keeps hold of timed-out asynchronous bodies until they settle.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from ospec.errors import MisuseError

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

_unit_ids = itertools.count(1)

# The unit whose code is running in the current context. Tasks copy the
# context on creation, so a timed-out body keeps seeing its own unit here.
_current_unit: ContextVar[Unit | None] = ContextVar("ospec_current_unit", default=None)

_TIMEOUT_MISUSE = (
    "`timeout()` must be called synchronously from within a test definition or a hook"
)


class UnitState(Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    SUSPENDED = "suspended"
    SETTLED = "settled"


@dataclass(eq=False)
class Unit:
    """One execution of a hook or a test body."""

    kind: str
    """``test`` or a hook kind (``before``, ``after_each``...)."""

    label: str
    state: UnitState = UnitState.NOT_STARTED
    timeout_override_ms: float | None = None
    uid: int = field(default_factory=lambda: next(_unit_ids))

    @property
    def can_set_timeout(self) -> bool:
        return self.state is UnitState.RUNNING


@dataclass
class RunnerState:
    """Execution context owned by one run."""

    bail: bool = False
    """When set, no new hooks or tests are started."""

    bailed: bool = False
    """Whether bail was triggered at any point of the run."""

    depth: int = 0
    current_file: str = ""
    active_unit: Unit | None = None
    pending: dict[int, asyncio.Future[object]] = field(default_factory=dict)
    """Timed-out asynchronous bodies that have not settled yet, by unit id."""

    @property
    def pending_timed_out(self) -> int:
        return len(self.pending)

    @contextlib.contextmanager
    def activate(self, unit: Unit) -> Iterator[Unit]:
        """Mark *unit* as the running unit for the duration of its first turn."""
        if self.active_unit is not None and self.active_unit is not unit:
            raise MisuseError(
                f"Cannot start {unit.label} while {self.active_unit.label} is running"
            )
        token = _current_unit.set(unit)
        self.active_unit = unit
        unit.state = UnitState.RUNNING
        try:
            yield unit
        finally:
            _current_unit.reset(token)

    def release(self, unit: Unit) -> None:
        """Clear *unit* as the active unit once the scheduler is done with it."""
        if self.active_unit is unit:
            self.active_unit = None

    def _calling_unit(self) -> Unit | None:
        unit = _current_unit.get()
        if unit is None or unit is not self.active_unit:
            return None
        return unit

    def set_timeout(self, ms: float) -> None:
        """Override the running unit's timeout.

        Raises:
            MisuseError: If not called from the active unit before it first
                suspended.
            ValueError: If *ms* is not positive.
        """
        unit = self._calling_unit()
        if unit is None or not unit.can_set_timeout:
            raise MisuseError(_TIMEOUT_MISUSE)
        if ms <= 0:
            raise ValueError(f"Timeout must be positive, got {ms}")
        unit.timeout_override_ms = float(ms)
        logger.debug("Timeout of %s set to %sms", unit.label, ms)

    def request_bail(self) -> None:
        """Bail on behalf of the running unit."""
        unit = self._calling_unit()
        if unit is None:
            raise MisuseError("`bail()` must be called from within a running test or hook")
        self.trigger_bail(f"requested by {unit.label}")

    def trigger_bail(self, reason: str) -> None:
        if not self.bail:
            logger.info("Bailing out: %s", reason)
        self.bail = True
        self.bailed = True

    def track_timed_out(self, unit: Unit, task: asyncio.Future[object]) -> None:
        """Keep observing *task* after its unit was recorded as timed out."""
        self.pending[unit.uid] = task
        task.add_done_callback(lambda done: self._settle_late(unit, done))
        logger.debug("%d timed-out unit(s) pending resolution", self.pending_timed_out)

    def _settle_late(self, unit: Unit, task: asyncio.Future[object]) -> None:
        self.pending.pop(unit.uid, None)
        unit.state = UnitState.SETTLED
        if task.cancelled():
            logger.info("Timed-out %s was cancelled", unit.label)
        elif (exc := task.exception()) is not None:
            logger.info("Timed-out %s failed after its timeout: %s", unit.label, exc)
        else:
            logger.info("Timed-out %s resolved after its timeout", unit.label)

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for timed-out bodies to settle.

        Args:
            timeout: Maximum seconds to wait. ``None`` waits indefinitely.

        Returns:
            ``True`` if nothing is left pending.
        """
        if self.pending:
            await asyncio.wait(list(self.pending.values()), timeout=timeout)
            # Let the settle callbacks scheduled alongside run.
            await asyncio.sleep(0)
        return not self.pending
