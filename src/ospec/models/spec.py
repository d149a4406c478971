"""Spec tree models: groups, hooks and test cases."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from ospec.errors import DuplicateNameError

if TYPE_CHECKING:
    from collections.abc import Callable


class HookKind(Enum):
    """Where a hook runs relative to its spec."""

    BEFORE = "before"
    AFTER = "after"
    BEFORE_EACH = "before_each"
    AFTER_EACH = "after_each"


@dataclass
class Hook:
    """A hook callable bound to the spec that declared it."""

    kind: HookKind
    fn: Callable[..., Any]
    owner: Spec = field(repr=False)


@dataclass
class Case:
    """A single test case (leaf of the spec tree)."""

    name: str | None
    """Caller-supplied or stack-derived name. ``None`` when no label was found."""

    fn: Callable[..., Any]
    """Test body. May return an awaitable."""

    parent: Spec = field(repr=False)

    key: str = ""
    """Key under which the case is stored in ``parent.children``."""

    timeout_ms: float | None = None
    """Per-case timeout. Normally unset; resolved through ancestors."""

    @property
    def display_name(self) -> str:
        """Name used in results, falling back to the placeholder key."""
        return self.name if self.name is not None else self.key

    @property
    def path(self) -> tuple[str, ...]:
        return (*self.parent.path, self.display_name)

    def resolve_timeout(self, default_ms: float) -> float:
        """Own timeout, else the nearest ancestor's, else *default_ms*."""
        if self.timeout_ms is not None:
            return self.timeout_ms
        return self.parent.resolve_timeout(default_ms)


@dataclass
class Spec:
    """A named group of hooks and children.

    Children are kept in declaration order, which is also execution order.
    ``before_each``/``after_each`` hooks apply to every case below this spec,
    at any depth, after those of its ancestors.
    """

    name: str = ""
    parent: Spec | None = field(default=None, repr=False)
    file: str = ""
    """Label of the file the spec was declared in."""

    before: list[Hook] = field(default_factory=list)
    before_each: list[Hook] = field(default_factory=list)
    after: list[Hook] = field(default_factory=list)
    after_each: list[Hook] = field(default_factory=list)
    timeout_ms: float | None = None
    assert_factory: Callable[[], Any] | None = None
    children: dict[str, Spec | Case] = field(default_factory=dict)

    @property
    def path(self) -> tuple[str, ...]:
        """Names from the outermost named ancestor down to this spec."""
        if self.parent is None:
            return (self.name,) if self.name else ()
        return (*self.parent.path, self.name)

    def add_child(self, key: str, child: Spec | Case) -> None:
        """Attach *child* under *key*, rejecting names already in use."""
        if key in self.children:
            raise DuplicateNameError(key, self.path)
        self.children[key] = child

    def add_hook(self, kind: HookKind, fn: Callable[..., Any]) -> Hook:
        hook = Hook(kind=kind, fn=fn, owner=self)
        self._hooks(kind).append(hook)
        return hook

    def _hooks(self, kind: HookKind) -> list[Hook]:
        if kind is HookKind.BEFORE:
            return self.before
        if kind is HookKind.AFTER:
            return self.after
        if kind is HookKind.BEFORE_EACH:
            return self.before_each
        return self.after_each

    def ancestors(self) -> list[Spec]:
        """This spec and its ancestors, outermost first."""
        chain: list[Spec] = []
        node: Spec | None = self
        while node is not None:
            chain.append(node)
            node = node.parent
        chain.reverse()
        return chain

    def before_each_chain(self) -> list[Hook]:
        """Every ``before_each`` hook in scope, outermost spec first."""
        return [hook for spec in self.ancestors() for hook in spec.before_each]

    def after_each_chain(self) -> list[Hook]:
        """Every ``after_each`` hook in scope, innermost spec first."""
        return [hook for spec in reversed(self.ancestors()) for hook in spec.after_each]

    def resolve_timeout(self, default_ms: float) -> float:
        node: Spec | None = self
        while node is not None:
            if node.timeout_ms is not None:
                return node.timeout_ms
            node = node.parent
        return default_ms

    def resolve_assert_factory(self) -> Callable[[], Any] | None:
        """Nearest ``assert_factory`` in scope, or ``None`` for the library default."""
        node: Spec | None = self
        while node is not None:
            if node.assert_factory is not None:
                return node.assert_factory
            node = node.parent
        return None

    def count_cases(self) -> int:
        total = 0
        for child in self.children.values():
            total += child.count_cases() if isinstance(child, Spec) else 1
        return total
