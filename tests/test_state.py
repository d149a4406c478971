"""Tests for RunnerState: the unit state machine, bail and drain tracking."""

from __future__ import annotations

import asyncio

import pytest

from ospec.errors import MisuseError
from ospec.state import RunnerState, Unit, UnitState


def _unit(label: str = "t") -> Unit:
    return Unit(kind="test", label=label)


# ── Timeout setter ────────────────────────────────────────────────────


class TestSetTimeout:
    def test_outside_any_unit(self) -> None:
        with pytest.raises(MisuseError, match="synchronously"):
            RunnerState().set_timeout(100)

    def test_while_running(self) -> None:
        state = RunnerState()
        unit = _unit()
        with state.activate(unit):
            state.set_timeout(150)

        assert unit.timeout_override_ms == 150.0

    def test_after_suspension(self) -> None:
        state = RunnerState()
        unit = _unit()
        with state.activate(unit):
            unit.state = UnitState.SUSPENDED
            with pytest.raises(MisuseError):
                state.set_timeout(150)

        assert unit.timeout_override_ms is None

    def test_after_release(self) -> None:
        state = RunnerState()
        unit = _unit()
        with state.activate(unit):
            pass
        state.release(unit)

        with pytest.raises(MisuseError):
            state.set_timeout(10)

    def test_rejects_non_positive(self) -> None:
        state = RunnerState()
        with state.activate(_unit()), pytest.raises(ValueError, match="positive"):
            state.set_timeout(0)

    async def test_background_unit_cannot_adjust_active_unit(self) -> None:
        state = RunnerState()
        first = _unit("first")
        gate = asyncio.Event()
        errors: list[MisuseError] = []

        async def body() -> None:
            await gate.wait()
            try:
                state.set_timeout(10)
            except MisuseError as exc:
                errors.append(exc)

        with state.activate(first):
            task = asyncio.ensure_future(body())
        state.release(first)

        second = _unit("second")
        with state.activate(second):
            gate.set()
            await task

        assert len(errors) == 1
        assert second.timeout_override_ms is None


class TestActivation:
    def test_marks_running_and_active(self) -> None:
        state = RunnerState()
        unit = _unit()
        assert unit.state is UnitState.NOT_STARTED

        with state.activate(unit):
            assert unit.state is UnitState.RUNNING
            assert state.active_unit is unit

    def test_second_unit_while_active(self) -> None:
        state = RunnerState()
        with state.activate(_unit("a")), pytest.raises(MisuseError), state.activate(_unit("b")):
            pass

    def test_unit_ids_unique(self) -> None:
        assert _unit().uid != _unit().uid


# ── Bail ──────────────────────────────────────────────────────────────


class TestBail:
    def test_request_outside_unit(self) -> None:
        with pytest.raises(MisuseError):
            RunnerState().request_bail()

    def test_request_inside_unit(self) -> None:
        state = RunnerState()
        with state.activate(_unit()):
            state.request_bail()

        assert state.bail
        assert state.bailed

    def test_trigger(self) -> None:
        state = RunnerState()
        state.trigger_bail("first failure")
        assert state.bail


# ── Timed-out tracking ────────────────────────────────────────────────


class TestPendingTimedOut:
    async def test_counter_tracks_settlement(self) -> None:
        state = RunnerState()
        unit = _unit()
        future: asyncio.Future[object] = asyncio.get_running_loop().create_future()

        state.track_timed_out(unit, future)
        assert state.pending_timed_out == 1

        future.set_exception(RuntimeError("late"))
        assert await state.drain(1.0)
        assert state.pending_timed_out == 0
        assert unit.state is UnitState.SETTLED

    async def test_drain_gives_up_after_timeout(self) -> None:
        state = RunnerState()
        future: asyncio.Future[object] = asyncio.get_running_loop().create_future()
        state.track_timed_out(_unit(), future)

        assert not await state.drain(0.01)
        assert state.pending_timed_out == 1

        future.cancel()
        assert await state.drain(1.0)

    async def test_drain_with_nothing_pending(self) -> None:
        assert await RunnerState().drain(0)
