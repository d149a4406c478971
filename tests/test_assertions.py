"""Tests for the default assertion object."""

from __future__ import annotations

import pytest

from ospec.assertions import Assert, Check, default_assert_factory
from ospec.errors import AssertionFailure


@pytest.fixture
def a() -> Assert:
    return Assert()


class TestCheck:
    def test_equals(self, a: Assert) -> None:
        assert isinstance(a(3).equals(3), Check)

    def test_equals_failure_message(self, a: Assert) -> None:
        with pytest.raises(AssertionFailure, match="expected 2, got 1"):
            a(1).equals(2)

    def test_not_equals(self, a: Assert) -> None:
        a("x").not_equals("y")
        with pytest.raises(AssertionFailure):
            a("x").not_equals("x")

    def test_satisfies(self, a: Assert) -> None:
        def is_even(value: int) -> bool:
            return value % 2 == 0

        a(4).satisfies(is_even)
        with pytest.raises(AssertionFailure, match="is_even"):
            a(3).satisfies(is_even)

    def test_raises_returns_exception(self, a: Assert) -> None:
        def boom() -> None:
            raise KeyError("k")

        exc = a(boom).raises(KeyError)
        assert isinstance(exc, KeyError)

    def test_raises_fails_when_nothing_raised(self, a: Assert) -> None:
        with pytest.raises(AssertionFailure, match="KeyError"):
            a(lambda: None).raises(KeyError)

    def test_message_prefix(self, a: Assert) -> None:
        with pytest.raises(AssertionFailure, match="^totals: expected"):
            a(1, "totals").equals(2)

    def test_failure_is_assertion_error(self, a: Assert) -> None:
        with pytest.raises(AssertionError):
            a(1).equals(2)


class TestAssert:
    def test_counts_checks(self, a: Assert) -> None:
        a(1).equals(1)
        a(2).equals(2)
        assert a.count == 2

    def test_factory_returns_fresh_objects(self) -> None:
        assert default_assert_factory() is not default_assert_factory()
