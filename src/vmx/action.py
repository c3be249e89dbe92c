"""Actions and transactions — batched state mutations.

Wrapping mutations in an @action or `with transaction()` defers all
listener notification until the outermost scope exits, so listeners see
one settled batch of writes instead of each intermediate state.

Batches are synchronous. An await inside a batch would let unrelated tasks
write into it, so coroutine functions are rejected by @action; batch the
synchronous part of an async method instead.
"""

from __future__ import annotations

import functools
import inspect
from typing import TypeVar, Callable, ParamSpec
from contextlib import contextmanager
from vmx._tracking import begin_batch, end_batch

P = ParamSpec("P")
R = TypeVar("R")


def action(fn: Callable[P, R]) -> Callable[P, R]:
    """Decorator: batch all observable mutations inside fn.

    Usage:
        @observe
        class NoteList(ViewModel):
            sort_prop = observable("modified")
            sort_desc = observable(False)

            @action
            def sort_by(self, prop, desc):
                self.sort_prop = prop
                self.sort_desc = desc
                # listeners see both changes at once
    """
    if inspect.iscoroutinefunction(fn):
        raise TypeError(f"@action cannot wrap coroutine function {fn.__qualname__}")

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        begin_batch()
        try:
            return fn(*args, **kwargs)
        finally:
            end_batch()

    return wrapper


@contextmanager
def transaction():
    """Context manager for batching mutations.

    Usage:
        with transaction():
            detail.heading = "Edit note"
            detail.has_unsaved_changes = False
            # listeners fire here, after both are set

    The batch depth is shared by the whole process, not scoped to a task.
    Do not await inside the block: while it is suspended, writes made by any
    other task join this batch and are held back until it exits. Await first,
    then open the transaction around the synchronous writes.
    """
    begin_batch()
    try:
        yield
    finally:
        end_batch()
