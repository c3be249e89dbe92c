"""Computed values — derived state with cached results.

A Computed wraps a function. When any dependency changes the cached value is
marked stale and the staleness propagates downstream at once; the function
itself only re-runs on the next read. Readers therefore never observe a value
older than the latest write, and nothing recomputes mid-write.

Dependencies are either tracked automatically (whatever the function reads)
or fixed up front through ``sources``. View-model computed properties use
fixed sources, taken from their declared dependency names.
"""

from __future__ import annotations

from typing import TypeVar, Generic, Callable, Iterable
from vmx._tracking import current_derivation, next_seq, schedule

T = TypeVar("T")

_UNSET = object()


class Computed(Generic[T]):
    """A derived value that caches its result until a dependency changes."""

    __slots__ = (
        "_fn",
        "_name",
        "_value",
        "_dirty",
        "_static",
        "_dependencies",
        "_observers",
        "_rank",
        "_seq",
    )

    def __init__(
        self,
        fn: Callable[[], T],
        *,
        sources: Iterable | None = None,
        name: str | None = None,
    ) -> None:
        self._fn = fn
        self._name = name or getattr(fn, "__name__", "computed")
        self._value = _UNSET
        self._dirty = True
        self._dependencies: set = set()
        self._observers: set = set()
        self._seq = next_seq()
        self._static = sources is not None
        self._rank = 1
        if self._static:
            for source in sources:
                source._add_observer(self)
                self._dependencies.add(source)
            self._update_rank()

    def get(self) -> T:
        """Read the computed value. Recomputes if stale."""
        derivation = current_derivation.get()
        if derivation is not None:
            self._observers.add(derivation)
            derivation._dependencies.add(self)

        if self._dirty:
            self._recompute()

        return self._value

    def _recompute(self) -> None:
        if self._static:
            # Declared sources only; reads inside fn must not leak elsewhere.
            token = current_derivation.set(None)
        else:
            for dep in self._dependencies:
                dep._remove_observer(self)
            self._dependencies.clear()
            token = current_derivation.set(self)
        try:
            self._value = self._fn()
        finally:
            current_derivation.reset(token)

        self._dirty = False
        self._update_rank()

    def _update_rank(self) -> None:
        self._rank = 1 + max((dep._rank for dep in self._dependencies), default=0)

    def _on_stale(self) -> None:
        """A dependency changed: mark stale and pass it on. No recomputation."""
        if not self._dirty:
            self._dirty = True
            for observer in list(self._observers):
                schedule(observer)

    def _add_observer(self, observer) -> None:
        self._observers.add(observer)

    def _remove_observer(self, observer) -> None:
        self._observers.discard(observer)

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def dispose(self) -> None:
        """Disconnect from all dependencies. The computed becomes inert."""
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()
        self._observers.clear()
        self._static = False
        self._dirty = True
        self._value = _UNSET

    def __repr__(self) -> str:
        state = "dirty" if self._dirty else f"cached={self._value!r}"
        return f"Computed({self._name}, {state})"


def computed(fn: Callable[[], T]) -> Computed[T]:
    """Decorator/factory to create a tracked Computed from a function.

    Usage:
        counter = Observable(0)

        @computed
        def doubled():
            return counter.get() * 2

        doubled.get()  # 0
        counter.set(5)
        doubled.get()  # 10
    """
    return Computed(fn)
