"""Observable property materializer.

View-model classes declare reactive state with class-level metadata:

    @observe
    class NoteList(ViewModel):
        sort_prop = "modified"          # promoted to a reactive field by @observe
        sort_desc = observable(False)
        note_models = observable_list()

        @computed_from("sort_prop", "sort_desc")
        def sort_label(self):
            return f"{self.sort_prop} {'desc' if self.sort_desc else 'asc'}"

The class keeps only descriptors. The first time an instance is materialized
(ViewModel subclasses are materialized as they are created, and the
container materializes anything it builds) a per-type descriptor table
is consulted and bound into a fresh per-instance PropertyBag: one Observable
per field and one Computed per computed definition, with the instance as its
owner. Nothing per-instance is ever written to the class, so two instances
of the same type can never share a binding.
"""

from __future__ import annotations

import functools
import weakref
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from vmx.computed import Computed
from vmx.errors import CyclicComputedDependencyError
from vmx.observable import Observable, ObservableList
from vmx.reaction import Reaction, reaction

_BAG_ATTR = "_vmx_properties"


class ObservableField:
    """Descriptor for a reactive field. Values live in the instance's bag."""

    def __init__(self, default: Any = None, *, factory: Callable[[], Any] | None = None) -> None:
        self.default = default
        self.factory = factory
        self.name: str | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def make_cell(self):
        return Observable(self.factory() if self.factory is not None else self.default)

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self
        return materialize(obj)[self.name].get()

    def __set__(self, obj, value) -> None:
        materialize(obj)[self.name].set(value)

    def __repr__(self) -> str:
        return f"ObservableField({self.name}, default={self.default!r})"


class ListField(ObservableField):
    """Reactive list field. Reading returns the live ObservableList."""

    def make_cell(self):
        return ObservableList(self.factory() if self.factory is not None else ())

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self
        return materialize(obj)[self.name]

    def __set__(self, obj, value) -> None:
        materialize(obj)[self.name].replace(value)


class ComputedProperty:
    """Descriptor created by @computed_from. Read-only on instances."""

    def __init__(self, getter: Callable[[Any], Any], dependencies: tuple[str, ...]) -> None:
        self.getter = getter
        self.dependencies = dependencies
        self.name: str | None = getattr(getter, "__name__", None)
        functools.update_wrapper(self, getter)

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self
        return materialize(obj)[self.name].get()

    def __set__(self, obj, value) -> None:
        raise AttributeError(f"computed property {self.name!r} is read-only")


def observable(default: Any = None, *, factory: Callable[[], Any] | None = None) -> ObservableField:
    """Declare a reactive field. Use ``factory`` for mutable defaults."""
    return ObservableField(default, factory=factory)


def observable_list(factory: Callable[[], Any] | None = None) -> ListField:
    """Declare a reactive list field."""
    return ListField(factory=factory)


def computed_from(*dependencies: str):
    """Declare a computed property over the named fields or computed properties.

    The getter receives the owning instance and is re-run lazily after any
    named dependency changes.
    """

    def decorator(getter: Callable[[Any], Any]) -> ComputedProperty:
        return ComputedProperty(getter, tuple(dependencies))

    return decorator


@dataclass(frozen=True)
class ComputedDefinition:
    """One computed property, not yet bound to an owner."""

    name: str
    dependencies: tuple[str, ...]
    getter: Callable[[Any], Any]


@dataclass(frozen=True)
class PropertyTable:
    """Everything the materializer needs for one type.

    ``order`` lists the computed definitions dependencies-first; it is empty
    and ``cycle`` is set when the definitions are cyclic.
    """

    owner_type: type
    fields: dict[str, ObservableField]
    computeds: dict[str, ComputedDefinition]
    order: tuple[str, ...]
    cycle: tuple[str, ...] | None = None

    @property
    def empty(self) -> bool:
        return not self.fields and not self.computeds


_tables: weakref.WeakKeyDictionary[type, PropertyTable] = weakref.WeakKeyDictionary()


def property_table(cls: type) -> PropertyTable:
    """Build (once) and return the descriptor table for cls."""
    table = _tables.get(cls)
    if table is None:
        table = _build_table(cls)
        _tables[cls] = table
    return table


def _build_table(cls: type) -> PropertyTable:
    fields: dict[str, ObservableField] = {}
    computeds: dict[str, ComputedDefinition] = {}
    # Walk base classes first so subclasses override by name.
    for klass in reversed(cls.__mro__):
        for name, attr in vars(klass).items():
            if isinstance(attr, ObservableField):
                fields[name] = attr
                computeds.pop(name, None)
            elif isinstance(attr, ComputedProperty):
                computeds[name] = ComputedDefinition(name, attr.dependencies, attr.getter)
                fields.pop(name, None)

    for definition in computeds.values():
        for dep in definition.dependencies:
            if dep not in fields and dep not in computeds:
                raise AttributeError(
                    f"{cls.__name__}.{definition.name} depends on {dep!r}, "
                    "which is neither a reactive field nor a computed property"
                )

    order, cycle = _topological_order(computeds)
    return PropertyTable(cls, fields, computeds, order, cycle)


def _topological_order(
    computeds: dict[str, ComputedDefinition],
) -> tuple[tuple[str, ...], tuple[str, ...] | None]:
    order: list[str] = []
    done: set[str] = set()

    def visit(name: str, path: list[str]) -> tuple[str, ...] | None:
        if name in done:
            return None
        if name in path:
            return tuple(path[path.index(name):] + [name])
        path.append(name)
        for dep in computeds[name].dependencies:
            if dep in computeds:
                cycle = visit(dep, path)
                if cycle:
                    return cycle
        path.pop()
        done.add(name)
        order.append(name)
        return None

    for name in computeds:
        cycle = visit(name, [])
        if cycle:
            return (), cycle
    return tuple(order), None


def observe(cls: type) -> type:
    """Class decorator: make every plain public class attribute reactive.

    Non-callable attributes defined directly on cls whose names do not start
    with an underscore are replaced with ObservableFields using the attribute
    value as the default. Existing descriptors are left alone. Cycles in
    computed definitions are still reported per instance, at materialization.
    """
    for name, value in list(vars(cls).items()):
        if name.startswith("_") or callable(value):
            continue
        if isinstance(value, (ObservableField, ComputedProperty, property, classmethod, staticmethod)):
            continue
        if isinstance(value, list):
            field = ListField(factory=functools.partial(list, value))
        elif isinstance(value, (dict, set)):
            field = ObservableField(factory=functools.partial(type(value), value))
        else:
            field = ObservableField(value)
        field.__set_name__(cls, name)
        setattr(cls, name, field)
    _tables.pop(cls, None)
    return cls


class PropertyBag:
    """The per-instance reactive cells, keyed by property name."""

    __slots__ = ("_cells",)

    def __init__(self, cells: dict[str, Any]) -> None:
        self._cells = cells

    def __getitem__(self, name: str):
        return self._cells[name]

    def __contains__(self, name: object) -> bool:
        return name in self._cells

    def __iter__(self) -> Iterator[str]:
        return iter(self._cells)

    def __len__(self) -> int:
        return len(self._cells)

    def dispose(self) -> None:
        """Detach every computed from its sources."""
        for cell in self._cells.values():
            if isinstance(cell, Computed):
                cell.dispose()

    def __repr__(self) -> str:
        return f"PropertyBag({list(self._cells)})"


def materialize(instance: Any) -> PropertyBag:
    """Bind instance's reactive properties. Idempotent.

    Raises CyclicComputedDependencyError when the type's computed definitions
    form a cycle; the instance is then unusable.
    """
    bag = instance.__dict__.get(_BAG_ATTR)
    if bag is not None:
        return bag

    table = property_table(type(instance))
    if table.cycle is not None:
        raise CyclicComputedDependencyError(type(instance), list(table.cycle))

    cells: dict[str, Any] = {name: field.make_cell() for name, field in table.fields.items()}
    for name in table.order:
        definition = table.computeds[name]
        cells[name] = Computed(
            functools.partial(definition.getter, instance),
            sources=[cells[dep] for dep in definition.dependencies],
            name=name,
        )
    bag = PropertyBag(cells)
    instance.__dict__[_BAG_ATTR] = bag
    return bag


def is_materialized(instance: Any) -> bool:
    return _BAG_ATTR in getattr(instance, "__dict__", {})


def cell(instance: Any, name: str):
    """The Observable/ObservableList/Computed behind instance.<name>."""
    return materialize(instance)[name]


def subscribe(instance: Any, name: str, callback: Callable[[Any], None]) -> Reaction:
    """Call callback(new_value) whenever instance.<name> settles on a new value."""
    source = cell(instance, name)
    if isinstance(source, ObservableList):
        return reaction(lambda: list(source), callback)
    return reaction(source.get, callback)
