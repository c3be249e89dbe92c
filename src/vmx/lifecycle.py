"""Activation lifecycle for view-models.

Every view-model moves through

    CREATED -> ACTIVATING -> ACTIVATED -> DEACTIVATING -> DEACTIVATED

exactly once. FAILED is the terminal state reached when activate() or
deactivate() raises. Each transition is guarded: can_activate() and
can_deactivate() may answer False, which cancels the transition and leaves
the state untouched. A cancelled transition is a normal result, not an error.

Calls for one instance are serialized on a per-instance asyncio.Lock, so a
try_deactivate() issued while try_activate() is still awaiting waits its
turn instead of interleaving with it.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import ExitStack
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from vmx.errors import InvalidLifecycleTransitionError
from vmx.properties import materialize, property_table

logger = logging.getLogger("vmx.lifecycle")

TOptions = TypeVar("TOptions")
R = TypeVar("R")

_RECORD_ATTR = "_vmx_lifecycle"


class LifecycleState(Enum):
    CREATED = "created"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    DEACTIVATING = "deactivating"
    DEACTIVATED = "deactivated"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (LifecycleState.DEACTIVATED, LifecycleState.FAILED)


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of try_activate()/try_deactivate().

    ``completed`` is False when a guard refused the transition.
    """

    completed: bool
    state: LifecycleState

    @property
    def cancelled(self) -> bool:
        return not self.completed

    def __bool__(self) -> bool:
        return self.completed


class _LifecycleRecord:
    __slots__ = ("state", "lock", "resources")

    def __init__(self) -> None:
        self.state = LifecycleState.CREATED
        self.lock = asyncio.Lock()
        self.resources = ExitStack()


def _record(instance: Any) -> _LifecycleRecord:
    record = instance.__dict__.get(_RECORD_ATTR)
    if record is None:
        record = _LifecycleRecord()
        instance.__dict__[_RECORD_ATTR] = record
    return record


class ViewModel(Generic[TOptions]):
    """Base class for page-like components driven by a LifecycleController.

    Override any of the four lifecycle coroutines; the defaults accept every
    transition and do nothing. Resources acquired while active (reactions,
    subscriptions, timers) should be handed to own() so they are released
    exactly once when the instance deactivates.

    Reactive properties are bound as the instance is created, before any
    __init__ runs, so a cyclic @computed_from set fails at construction.
    """

    def __new__(cls, *args: Any, **kwargs: Any):
        instance = super().__new__(cls)
        if not property_table(cls).empty:
            materialize(instance)
        return instance

    async def can_activate(self, options: TOptions | None) -> bool:
        return True

    async def activate(self, options: TOptions | None) -> None:
        return None

    async def can_deactivate(self) -> bool:
        return True

    async def deactivate(self) -> None:
        self.release_resources()

    @property
    def lifecycle_state(self) -> LifecycleState:
        return _record(self).state

    def own(self, resource: R) -> R:
        """Release resource on deactivation. Accepts disposables and callables."""
        dispose = getattr(resource, "dispose", None)
        if callable(dispose):
            _record(self).resources.callback(dispose)
        elif callable(resource):
            _record(self).resources.callback(resource)
        else:
            raise TypeError(f"Cannot own {resource!r}: no dispose() and not callable")
        return resource

    def release_resources(self) -> None:
        """Release owned resources, newest first. Safe to call repeatedly."""
        _record(self).resources.close()

    def on_lifecycle_end(self) -> None:
        """Called once the instance reaches DEACTIVATED or FAILED."""


class LifecycleController:
    """Runs guarded activation and deactivation for ViewModel instances."""

    async def try_activate(
        self, instance: ViewModel[TOptions], options: TOptions | None = None
    ) -> TransitionResult:
        """Activate instance unless its guard refuses.

        Raises:
            InvalidLifecycleTransitionError: instance is not in CREATED.
            Exception: whatever activate() raised; the instance is then FAILED.
        """
        record = self._record_for(instance)
        async with record.lock:
            if record.state is not LifecycleState.CREATED:
                raise InvalidLifecycleTransitionError(instance, record.state, "activate")

            if not await instance.can_activate(options):
                logger.debug("Activation of %s cancelled by guard", type(instance).__name__)
                return TransitionResult(False, record.state)

            record.state = LifecycleState.ACTIVATING
            try:
                await instance.activate(options)
            except BaseException:
                logger.debug("Activation of %s failed", type(instance).__name__)
                self._end(instance, record, LifecycleState.FAILED)
                raise
            record.state = LifecycleState.ACTIVATED
            logger.debug("Activated %s", type(instance).__name__)
            return TransitionResult(True, record.state)

    async def try_deactivate(self, instance: ViewModel[Any]) -> TransitionResult:
        """Deactivate instance unless its guard refuses.

        Raises:
            InvalidLifecycleTransitionError: instance is not in ACTIVATED.
            Exception: whatever deactivate() raised; the instance is then FAILED.
        """
        record = self._record_for(instance)
        async with record.lock:
            if record.state is not LifecycleState.ACTIVATED:
                raise InvalidLifecycleTransitionError(instance, record.state, "deactivate")

            if not await instance.can_deactivate():
                logger.debug("Deactivation of %s cancelled by guard", type(instance).__name__)
                return TransitionResult(False, record.state)

            record.state = LifecycleState.DEACTIVATING
            try:
                try:
                    await instance.deactivate()
                finally:
                    instance.release_resources()
            except BaseException:
                logger.debug("Deactivation of %s failed", type(instance).__name__)
                self._end(instance, record, LifecycleState.FAILED)
                raise
            self._end(instance, record, LifecycleState.DEACTIVATED)
            logger.debug("Deactivated %s", type(instance).__name__)
            return TransitionResult(True, record.state)

    @staticmethod
    def _record_for(instance: Any) -> _LifecycleRecord:
        if not isinstance(instance, ViewModel):
            raise TypeError(f"{type(instance).__name__} is not a ViewModel")
        return _record(instance)

    @staticmethod
    def _end(instance: ViewModel[Any], record: _LifecycleRecord, state: LifecycleState) -> None:
        record.state = state
        instance.on_lifecycle_end()
