"""Exceptions raised by ospec."""

from __future__ import annotations


class OspecError(Exception):
    """Base class for all ospec errors."""


class AssertionFailure(OspecError, AssertionError):
    """An assertion made through the assertion object did not hold."""


class HookFailure(OspecError):
    """A ``before``/``after``/``before_each``/``after_each`` hook failed."""

    def __init__(self, message: str, *, kind: str, cause: BaseException | None = None) -> None:
        """Initialize with the hook kind and the underlying error.

        Args:
            message: Error description.
            kind: Hook kind (``before``, ``after``, ``before_each``, ``after_each``).
            cause: The exception raised by the hook body, if any.
        """
        super().__init__(message)
        self.kind = kind
        self.cause = cause


class TestTimeout(OspecError):
    """An asynchronous unit did not settle within its resolved timeout."""

    __test__ = False

    def __init__(self, label: str, timeout_ms: float) -> None:
        super().__init__(f"{label} timed out after {timeout_ms:g}ms")
        self.label = label
        self.timeout_ms = timeout_ms


class MisuseError(OspecError):
    """The declaration or runner API was called at the wrong time."""


class DuplicateNameError(OspecError):
    """Two children with the same name were declared in one spec."""

    def __init__(self, name: str, path: tuple[str, ...]) -> None:
        where = " > ".join(path) if path else "<root>"
        super().__init__(f"Duplicate name {name!r} in spec {where}")
        self.name = name
        self.path = path
