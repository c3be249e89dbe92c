"""Reactions — listeners triggered by observable state changes.

Unlike Computed (which is lazy and only evaluates on read), a Reaction
re-runs its side effect whenever its tracked dependencies change, once the
current write or batch has settled.

Two flavors:
- autorun(fn): runs fn immediately, re-runs when any observable it read changes.
- reaction(data_fn, effect_fn): tracks data_fn, calls effect_fn with the new value
  only when data_fn's result changes.

Pending reactions run in rank order: a reaction's rank is one above the
deepest thing it read, so listeners on a computed property always run after
listeners on the fields that property is computed from.
"""

from __future__ import annotations

from typing import TypeVar, Callable
from vmx._tracking import current_derivation, enqueue, next_seq

T = TypeVar("T")


class Reaction:
    """A reactive side effect that re-runs when its dependencies change."""

    __slots__ = ("_fn", "_dependencies", "_disposed", "_rank", "_seq")

    def __init__(self, fn: Callable[[], None]) -> None:
        self._fn = fn
        self._dependencies: set = set()
        self._disposed = False
        self._rank = 1
        self._seq = next_seq()

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _on_stale(self) -> None:
        if not self._disposed:
            enqueue(self)

    def _track_run(self, fn: Callable[[], T]) -> T:
        """Evaluate fn with this reaction as the tracking target."""
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()

        token = current_derivation.set(self)
        try:
            return fn()
        finally:
            current_derivation.reset(token)
            self._rank = 1 + max((dep._rank for dep in self._dependencies), default=0)

    def _run(self) -> None:
        """Re-evaluate the reaction function, re-tracking dependencies."""
        if self._disposed:
            return
        self._track_run(self._fn)

    def dispose(self) -> None:
        """Stop this reaction. Disconnects from all dependencies."""
        self._disposed = True
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        name = getattr(self._fn, "__name__", "reaction")
        return f"Reaction({name}, {state})"


class _DataReaction(Reaction):
    """Internal: reaction(data_fn, effect_fn) implementation.

    Tracks data_fn's dependencies. When they change, re-runs data_fn.
    If the result differs from last time, calls effect_fn with the new value.
    """

    __slots__ = ("_effect_fn", "_last_value", "_initialized")

    def __init__(self, data_fn: Callable, effect_fn: Callable) -> None:
        super().__init__(data_fn)
        self._effect_fn = effect_fn
        self._last_value = None
        self._initialized = False

    def _run(self) -> None:
        if self._disposed:
            return
        new_value = self._track_run(self._fn)
        if not self._initialized or new_value != self._last_value:
            self._last_value = new_value
            self._initialized = True
            self._effect_fn(new_value)

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        name = getattr(self._fn, "__name__", "reaction")
        return f"_DataReaction({name}, {state})"


def autorun(fn: Callable[[], None]) -> Reaction:
    """Run fn immediately, then re-run whenever any observable it reads changes.

    Returns the Reaction (call .dispose() to stop).
    """
    r = Reaction(fn)
    r._run()  # Initial run to establish dependencies
    return r


def reaction(
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], None],
    *,
    fire_immediately: bool = False,
) -> Reaction:
    """Track data_fn's observables; call effect_fn when the result changes.

    Unlike autorun, effect_fn only fires when data_fn's *return value* changes,
    not on every dependency notification.

    Usage:
        first = Observable("Alice")
        last = Observable("Smith")

        effects = []
        r = reaction(
            lambda: f"{first.get()} {last.get()}",
            lambda name: effects.append(name),
        )
        # effects == [] — data_fn ran to establish deps, but effect doesn't fire yet

        first.set("Bob")
        # effects == ["Bob Smith"]

        r.dispose()
    """
    r = _DataReaction(data_fn, effect_fn)
    if fire_immediately:
        r._run()
    else:
        # Run data_fn to establish deps, but suppress the initial effect
        r._last_value = r._track_run(data_fn)
        r._initialized = True
    return r
