"""Modal dialogs and their one-shot result channel.

A ModalViewModel owns a DialogChannel. While the modal is ACTIVATED it calls
ok(value) or cancel(value) exactly once; the invoker, suspended in
DialogService.show(), then deactivates the modal and receives the result.
A modal that is torn down without settling settles as CANCEL with the
invoker-supplied default, so show() never hangs.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from vmx.container import Container, Lifetime, inject, singleton, transient
from vmx.errors import AlreadySettledError, InvalidLifecycleTransitionError, token_name
from vmx.lifecycle import LifecycleController, LifecycleState, ViewModel
from vmx.properties import observe

logger = logging.getLogger("vmx.dialog")

T = TypeVar("T")
TOptions = TypeVar("TOptions")

_CHANNEL_ATTR = "_vmx_dialog"


class Outcome(Enum):
    OK = "ok"
    CANCEL = "cancel"


@dataclass(frozen=True)
class DialogResult(Generic[T]):
    settled: bool
    outcome: Outcome
    value: T

    @property
    def is_ok(self) -> bool:
        return self.outcome is Outcome.OK


class DialogChannel(Generic[T]):
    """Settle-once result slot tied to its owner's lifecycle."""

    def __init__(self, owner: ViewModel[Any], default: T | None = None) -> None:
        self._owner = owner
        self.default = default
        self._result: DialogResult[T] | None = None
        self._settled = asyncio.Event()

    @property
    def settled(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> DialogResult[T] | None:
        return self._result

    def settle(self, outcome: Outcome | str, value: T) -> None:
        """Record the result.

        Raises:
            AlreadySettledError: the channel was already settled.
            InvalidLifecycleTransitionError: the owner is not ACTIVATED.
        """
        if self._result is not None:
            raise AlreadySettledError(
                f"Dialog of {type(self._owner).__name__} already settled "
                f"with {self._result.outcome.value}"
            )
        state = self._owner.lifecycle_state
        if state is not LifecycleState.ACTIVATED:
            raise InvalidLifecycleTransitionError(self._owner, state, "settle dialog of")
        self._complete(Outcome(outcome), value)

    async def await_result(self) -> DialogResult[T]:
        await self._settled.wait()
        return self._result

    def close(self) -> None:
        """Owner reached a terminal state. Settles as CANCEL if still open."""
        if self._result is None:
            logger.debug(
                "Dialog of %s closed without a result; cancelling",
                type(self._owner).__name__,
            )
            self._complete(Outcome.CANCEL, self.default)

    def _complete(self, outcome: Outcome, value: T) -> None:
        self._result = DialogResult(True, outcome, value)
        self._settled.set()


class ModalViewModel(ViewModel[TOptions], Generic[TOptions, T]):
    """View-model shown as a modal dialog, producing a result of type T."""

    @property
    def dialog(self) -> DialogChannel[T]:
        channel = self.__dict__.get(_CHANNEL_ATTR)
        if channel is None:
            channel = DialogChannel(self)
            self.__dict__[_CHANNEL_ATTR] = channel
        return channel

    def ok(self, value: T | None = None) -> None:
        self.dialog.settle(Outcome.OK, value)

    def cancel(self, value: T | None = None) -> None:
        self.dialog.settle(Outcome.CANCEL, value)

    def on_lifecycle_end(self) -> None:
        super().on_lifecycle_end()
        self.dialog.close()


@dataclass(frozen=True)
class MessageBoxOptions:
    message: str
    title: str = ""
    ok_label: str = "OK"
    cancel_label: str = "Cancel"


@observe
@transient
class MessageBox(ModalViewModel[MessageBoxOptions, bool]):
    """Two-button confirmation modal used by DialogService.confirm()."""

    message = ""
    title = ""
    ok_label = "OK"
    cancel_label = "Cancel"

    async def activate(self, options: MessageBoxOptions | None) -> None:
        if options is None:
            raise ValueError("MessageBox requires MessageBoxOptions")
        self.message = options.message
        self.title = options.title
        self.ok_label = options.ok_label
        self.cancel_label = options.cancel_label


@singleton
@inject(Container, LifecycleController)
class DialogService:
    """Opens modal view-models and waits for their results."""

    def __init__(self, container: Container, controller: LifecycleController) -> None:
        self._container = container
        self._controller = controller
        self.opened: list[ModalViewModel[Any, Any]] = []

    async def show(
        self, token: Any, options: Any = None, *, default: Any = None
    ) -> DialogResult[Any]:
        """Resolve, activate and await the modal registered under token.

        A modal whose activation guard refuses yields a CANCEL result carrying
        ``default``. Failures from the modal's own activate() propagate.
        """
        modal = self._container.resolve(token)
        if not isinstance(modal, ModalViewModel):
            raise TypeError(f"{token_name(token)} did not resolve to a ModalViewModel")
        modal.dialog.default = default

        activation = await self._controller.try_activate(modal, options)
        if activation.cancelled:
            logger.debug("Modal %s refused to open", token_name(token))
            return DialogResult(True, Outcome.CANCEL, default)

        self.opened.append(modal)
        try:
            result = await modal.dialog.await_result()
            if modal.lifecycle_state is LifecycleState.ACTIVATED:
                closing = await self._controller.try_deactivate(modal)
                if closing.cancelled:
                    logger.warning(
                        "Modal %s settled but refused to deactivate", token_name(token)
                    )
        finally:
            self.opened.remove(modal)
        return result

    async def confirm(self, message: str, title: str = "") -> bool:
        """Show a MessageBox; True only when the user chose OK."""
        result = await self.show(MessageBox, MessageBoxOptions(message, title), default=False)
        return result.is_ok


def install(container: Container) -> Container:
    """Register the lifecycle controller, dialog service and MessageBox."""
    if not container.is_registered(LifecycleController):
        container.register(LifecycleController, LifecycleController, Lifetime.SINGLETON)
    container.register_class(DialogService)
    container.register_class(MessageBox)
    return container
