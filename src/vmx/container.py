"""Dependency resolution engine.

A Container maps tokens (usually classes, sometimes plain marker objects for
abstract capabilities) to registration entries and builds instances on
demand, resolving each constructor dependency first.

    @singleton
    class NoteRepository: ...

    @transient
    @inject(NoteRepository)
    class NoteDetail(ViewModel):
        def __init__(self, notes): ...

    container = Container()
    container.register_class(NoteRepository)
    container.register_class(NoteDetail)
    detail = container.resolve(NoteDetail)

Resolution is synchronous. The singleton cache is the container's only
mutable shared state; it lives until dispose().
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, TypeVar

from vmx.errors import (
    CircularDependencyError,
    ContainerDisposedError,
    UnregisteredTokenError,
    token_name,
)
from vmx.properties import materialize, property_table

logger = logging.getLogger("vmx.container")

T = TypeVar("T")

_INJECT_ATTR = "__vmx_inject__"
_LIFETIME_ATTR = "__vmx_lifetime__"

# Tokens under construction in the current context, outermost first.
_active_chain: ContextVar[tuple] = ContextVar("vmx_resolution_chain", default=())


class Lifetime(Enum):
    """How long a resolved instance lives."""

    TRANSIENT = "transient"
    SINGLETON = "singleton"
    LAZY_FACTORY = "lazy_factory"


@dataclass(frozen=True)
class RegistrationEntry:
    """A token's factory, lifetime, and ordered dependency tokens."""

    token: Any
    factory: Callable[..., Any]
    lifetime: Lifetime = Lifetime.TRANSIENT
    dependencies: tuple = ()


class Lazy:
    """Dependency marker: inject a zero-argument producer instead of an instance.

    ``@inject(Lazy.of(NoteViewModel))`` hands the constructor a callable that
    resolves NoteViewModel each time it is invoked. The registration is looked
    up at injection time; only construction is deferred.
    """

    __slots__ = ("token",)

    def __init__(self, token: Any) -> None:
        self.token = token

    @classmethod
    def of(cls, token: Any) -> Lazy:
        return cls(token)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Lazy) and other.token == self.token

    def __hash__(self) -> int:
        return hash((Lazy, self.token))

    def __repr__(self) -> str:
        return f"Lazy.of({token_name(self.token)})"


def inject(*tokens: Any):
    """Class decorator: declare constructor dependencies in parameter order."""

    def decorator(cls: type[T]) -> type[T]:
        setattr(cls, _INJECT_ATTR, tuple(tokens))
        return cls

    return decorator


def transient(cls: type[T]) -> type[T]:
    """Class decorator: a fresh instance per resolution (the default)."""
    setattr(cls, _LIFETIME_ATTR, Lifetime.TRANSIENT)
    return cls


def singleton(cls: type[T]) -> type[T]:
    """Class decorator: one shared instance per container."""
    setattr(cls, _LIFETIME_ATTR, Lifetime.SINGLETON)
    return cls


def dependencies_of(factory: Any) -> tuple:
    return tuple(getattr(factory, _INJECT_ATTR, ()))


def lifetime_of(cls: type) -> Lifetime:
    return getattr(cls, _LIFETIME_ATTR, Lifetime.TRANSIENT)


class Container:
    """Registry plus resolver, with explicit init and disposal boundaries."""

    def __init__(self) -> None:
        self._entries: dict[Any, RegistrationEntry] = {}
        self._singletons: dict[Any, Any] = {}
        self._disposed = False
        self.register_instance(Container, self)
        logger.debug("Container initialized")

    # --- Registration ---

    def register(
        self,
        token: Any,
        factory: Callable[..., Any] | None = None,
        lifetime: Lifetime = Lifetime.TRANSIENT,
        dependencies: tuple | list | None = None,
    ) -> RegistrationEntry:
        """Register (or replace) the entry for token.

        ``factory`` defaults to the token itself, for class tokens.
        ``dependencies`` defaults to the factory's @inject declaration.
        """
        if factory is None:
            if not callable(token):
                raise TypeError(f"No factory given for non-callable token {token!r}")
            factory = token
        if dependencies is None:
            dependencies = dependencies_of(factory)
        entry = RegistrationEntry(token, factory, Lifetime(lifetime), tuple(dependencies))

        if token in self._entries:
            logger.debug("Replacing registration for %s", token_name(token))
            self._singletons.pop(token, None)
        self._entries[token] = entry
        logger.debug(
            "Registered %s with lifetime: %s", token_name(token), entry.lifetime.value
        )
        return entry

    def register_class(self, cls: type) -> RegistrationEntry:
        """Register cls under itself using its lifetime marker and @inject list."""
        return self.register(cls, cls, lifetime_of(cls))

    def register_instance(self, token: Any, instance: Any) -> RegistrationEntry:
        """Register an already-built singleton."""
        entry = self.register(token, lambda: instance, Lifetime.SINGLETON, ())
        self._singletons[token] = instance
        return entry

    def is_registered(self, token: Any) -> bool:
        if isinstance(token, Lazy):
            token = token.token
        return token in self._entries

    def registrations(self) -> list[RegistrationEntry]:
        return list(self._entries.values())

    # --- Resolution ---

    def resolve(self, token: Any) -> Any:
        """Return an instance for token (a producer for lazy tokens).

        Raises:
            UnregisteredTokenError: token (or one of its dependencies) has no entry.
            CircularDependencyError: token's dependency chain re-enters itself.
            CyclicComputedDependencyError: the instance's computed properties are cyclic.
        """
        if self._disposed:
            raise ContainerDisposedError("Container has been disposed")
        return self._resolve(token, _active_chain.get())

    def _entry(self, token: Any) -> RegistrationEntry:
        try:
            return self._entries[token]
        except KeyError:
            raise UnregisteredTokenError(token) from None

    def _resolve(self, token: Any, chain: tuple) -> Any:
        if isinstance(token, Lazy):
            self._entry(token.token)
            return self._producer(token.token)

        entry = self._entry(token)

        if entry.lifetime is Lifetime.SINGLETON and token in self._singletons:
            logger.debug("Returning cached singleton: %s", token_name(token))
            return self._singletons[token]

        if token in chain:
            raise CircularDependencyError(chain + (token,))

        if entry.lifetime is Lifetime.LAZY_FACTORY:
            return lambda: self._construct_lazily(entry)

        instance = self._construct(entry, chain + (token,))
        if entry.lifetime is Lifetime.SINGLETON:
            # First writer wins; later resolutions only ever read.
            instance = self._singletons.setdefault(token, instance)
            logger.debug("Singleton created and cached: %s", token_name(token))
        return instance

    def _producer(self, token: Any) -> Callable[[], Any]:
        def produce() -> Any:
            return self.resolve(token)

        produce.__name__ = f"produce_{token_name(token)}"
        return produce

    def _construct_lazily(self, entry: RegistrationEntry) -> Any:
        chain = _active_chain.get()
        if entry.token in chain:
            raise CircularDependencyError(chain + (entry.token,))
        return self._construct(entry, chain + (entry.token,))

    def _construct(self, entry: RegistrationEntry, chain: tuple) -> Any:
        # Producers invoked by the factory pick the chain up from the context.
        reset = _active_chain.set(chain)
        try:
            args = [self._resolve(dep, chain) for dep in entry.dependencies]
            logger.debug("Constructing %s", token_name(entry.token))
            instance = entry.factory(*args)
        finally:
            _active_chain.reset(reset)
        if instance is None:
            raise ValueError(f"Factory for {token_name(entry.token)} returned None")
        if hasattr(instance, "__dict__") and not property_table(type(instance)).empty:
            materialize(instance)
        return instance

    # --- Teardown ---

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Dispose cached singletons (newest first) and close the container.

        Every singleton with a dispose() method is disposed even if an earlier
        one fails; the first failure is re-raised afterwards.
        """
        if self._disposed:
            return
        self._disposed = True
        error: Exception | None = None
        for token, instance in reversed(list(self._singletons.items())):
            if instance is self:
                continue
            dispose = getattr(instance, "dispose", None)
            if not callable(dispose):
                continue
            try:
                dispose()
            except Exception as exc:
                logger.exception("Failed to dispose singleton %s", token_name(token))
                if error is None:
                    error = exc
        self._singletons.clear()
        logger.debug("Container disposed")
        if error is not None:
            raise error

    def __enter__(self) -> Container:
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()
