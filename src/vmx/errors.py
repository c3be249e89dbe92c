"""Error taxonomy for vmx.

Resolution errors are raised synchronously by the container. Lifecycle and
dialog errors signal programmer mistakes and are never retried. A guard that
answers False is not an error and never raises.
"""

from __future__ import annotations


class VmxError(Exception):
    """Base class for every error raised by vmx itself."""


class UnregisteredTokenError(VmxError, LookupError):
    """No registration exists for the requested token."""

    def __init__(self, token: object) -> None:
        self.token = token
        super().__init__(f"No registration for token: {token_name(token)}")


class CircularDependencyError(VmxError):
    """Resolving a token re-entered resolution of that same token."""

    def __init__(self, chain: tuple) -> None:
        self.chain = chain
        path = " -> ".join(token_name(t) for t in chain)
        super().__init__(f"Circular dependency detected: {path}")


class ContainerDisposedError(VmxError):
    """The container was disposed and can no longer resolve."""


class InvalidLifecycleTransitionError(VmxError):
    """A lifecycle operation was requested from a state that forbids it."""

    def __init__(self, instance: object, state, operation: str) -> None:
        self.instance = instance
        self.state = state
        self.operation = operation
        super().__init__(
            f"Cannot {operation} {type(instance).__name__} in state {state.name}"
        )


class CyclicComputedDependencyError(VmxError):
    """Computed property definitions depend on each other in a cycle."""

    def __init__(self, owner_type: type, cycle: list[str]) -> None:
        self.owner_type = owner_type
        self.cycle = cycle
        super().__init__(
            f"Cyclic computed dependencies on {owner_type.__name__}: "
            + " -> ".join(cycle)
        )


class AlreadySettledError(VmxError):
    """A dialog result channel was settled twice."""


def token_name(token: object) -> str:
    return getattr(token, "__name__", None) or repr(token)
