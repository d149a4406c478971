"""Default assertion object handed to every hook and test body.

Bodies receive a callable ``a``; ``a(actual)`` returns a :class:`Check` with
a handful of comparisons. Suites can supply their own object through
``Ospec.use_assert``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, NoReturn

from ospec.errors import AssertionFailure

if TYPE_CHECKING:
    from collections.abc import Callable


class Check:
    """Comparisons against a single value."""

    def __init__(self, actual: Any, message: str | None = None) -> None:
        self.actual = actual
        self.message = message

    def _fail(self, detail: str) -> NoReturn:
        prefix = f"{self.message}: " if self.message else ""
        raise AssertionFailure(prefix + detail)

    def equals(self, expected: Any) -> Check:
        if self.actual != expected:
            self._fail(f"expected {expected!r}, got {self.actual!r}")
        return self

    def not_equals(self, unexpected: Any) -> Check:
        if self.actual == unexpected:
            self._fail(f"expected a value other than {unexpected!r}")
        return self

    def satisfies(self, predicate: Callable[[Any], object]) -> Check:
        if not predicate(self.actual):
            name = getattr(predicate, "__name__", repr(predicate))
            self._fail(f"{self.actual!r} does not satisfy {name}")
        return self

    def raises(self, exc_type: type[BaseException] = Exception) -> BaseException:
        """Call ``actual`` with no arguments and expect it to raise *exc_type*."""
        try:
            self.actual()
        except exc_type as exc:
            return exc
        self._fail(f"expected {exc_type.__name__} to be raised")


class Assert:
    """Callable assertion object: ``a(value).equals(expected)``."""

    def __init__(self) -> None:
        self.count = 0

    def __call__(self, actual: Any, message: str | None = None) -> Check:
        self.count += 1
        return Check(actual, message)


def default_assert_factory() -> Assert:
    return Assert()
