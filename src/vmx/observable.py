"""Observable values — the state cells behind view-model fields.

When an Observable is read inside a Computed or Reaction evaluation,
the dependency is automatically registered. When the Observable changes,
all dependents are told they are stale; reactions run once the write settles.
"""

from __future__ import annotations

from typing import TypeVar, Generic, Iterator
from vmx._tracking import begin_batch, current_derivation, end_batch, schedule

T = TypeVar("T")


class _Source:
    """Shared plumbing for anything a derivation can depend on."""

    __slots__ = ("_observers",)

    # Sources sit at the bottom of every dependency chain.
    _rank = 0

    def __init__(self) -> None:
        self._observers: set = set()

    def _track(self) -> None:
        """Register the current derivation as an observer."""
        derivation = current_derivation.get()
        if derivation is not None:
            self._observers.add(derivation)
            derivation._dependencies.add(self)

    def _notify(self) -> None:
        begin_batch()
        try:
            for observer in list(self._observers):
                schedule(observer)
        finally:
            end_batch()

    def _add_observer(self, observer) -> None:
        self._observers.add(observer)

    def _remove_observer(self, observer) -> None:
        """Remove an observer. Called during dependency cleanup."""
        self._observers.discard(observer)

    @property
    def observer_count(self) -> int:
        return len(self._observers)


class Observable(_Source, Generic[T]):
    """A single observable value with automatic dependency tracking."""

    __slots__ = ("_value",)

    def __init__(self, value: T) -> None:
        super().__init__()
        self._value = value

    def get(self) -> T:
        """Read the value. If inside a derivation, registers the dependency."""
        self._track()
        return self._value

    def peek(self) -> T:
        """Read the value without registering a dependency."""
        return self._value

    def set(self, value: T) -> None:
        """Write a new value. Observers are notified only on an actual change."""
        old = self._value
        if old is not value and old != value:
            self._value = value
            self._notify()

    def __repr__(self) -> str:
        return f"Observable({self._value!r})"


class ObservableList(_Source, Generic[T]):
    """An observable list that tracks reads and notifies on mutation.

    Any read operation (iteration, indexing, len) registers a dependency.
    Any mutation (append, extend, __setitem__, etc.) notifies observers.
    """

    __slots__ = ("_items",)

    def __init__(self, items=None) -> None:
        super().__init__()
        self._items: list[T] = list(items) if items else []

    # --- Read operations (track) ---

    def __getitem__(self, index: int) -> T:
        self._track()
        return self._items[index]

    def __len__(self) -> int:
        self._track()
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        self._track()
        return iter(list(self._items))

    def __contains__(self, item: T) -> bool:
        self._track()
        return item in self._items

    def __bool__(self) -> bool:
        self._track()
        return bool(self._items)

    def index(self, item: T) -> int:
        self._track()
        return self._items.index(item)

    # --- Write operations (notify) ---

    def append(self, item: T) -> None:
        self._items.append(item)
        self._notify()

    def extend(self, items) -> None:
        self._items.extend(items)
        self._notify()

    def remove(self, item: T) -> None:
        self._items.remove(item)
        self._notify()

    def pop(self, index: int = -1) -> T:
        result = self._items.pop(index)
        self._notify()
        return result

    def sort(self, *, key=None, reverse: bool = False) -> None:
        self._items.sort(key=key, reverse=reverse)
        self._notify()

    def replace(self, items) -> None:
        """Swap the whole contents in one notification."""
        self._items[:] = list(items)
        self._notify()

    def clear(self) -> None:
        self._items.clear()
        self._notify()

    def __setitem__(self, index: int, value: T) -> None:
        self._items[index] = value
        self._notify()

    def __delitem__(self, index: int) -> None:
        del self._items[index]
        self._notify()

    def __repr__(self) -> str:
        return f"ObservableList({self._items!r})"
