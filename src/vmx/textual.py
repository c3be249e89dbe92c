"""Textual integration for vmx. Opt-in — requires textual.

Binds view-model state to Textual widgets. Bindings are reactions guarded
against the widget tree being unavailable: they skip while the app is not
running or is paused for a screen swap, swallow NoMatches from widget
queries, and marshal effects triggered off the UI thread through
app.call_from_thread. A binding given an ``owner`` view-model is released
when that view-model deactivates.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Callable

from textual.css.query import NoMatches

from vmx.lifecycle import ViewModel
from vmx.properties import cell
from vmx.reaction import Reaction, autorun as _autorun, reaction as _reaction

# Module-owned pause state, keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend bindings while screens are being replaced."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def _guard(app, fn: Callable[..., None]) -> Callable[..., None]:
    main = threading.get_ident()

    def safe(*args) -> None:
        try:
            fn(*args)
        except NoMatches:
            pass

    def guarded(*args) -> None:
        if not is_safe(app):
            return
        if threading.get_ident() != main:
            app.call_from_thread(safe, *args)
        else:
            safe(*args)

    return guarded


def _adopt(owner: ViewModel[Any] | None, binding: Reaction) -> Reaction:
    if owner is not None:
        owner.own(binding)
    return binding


def bind(
    app,
    data_fn: Callable[[], Any],
    effect_fn: Callable[[Any], None],
    *,
    owner: ViewModel[Any] | None = None,
    fire_immediately: bool = False,
) -> Reaction:
    """reaction() whose effect touches widgets."""
    binding = _reaction(data_fn, _guard(app, effect_fn), fire_immediately=fire_immediately)
    return _adopt(owner, binding)


def autorun(app, fn: Callable[[], None], *, owner: ViewModel[Any] | None = None) -> Reaction:
    """autorun() whose body touches widgets."""
    return _adopt(owner, _autorun(_guard(app, fn)))


def bind_property(
    app,
    view_model: Any,
    name: str,
    effect_fn: Callable[[Any], None],
    *,
    fire_immediately: bool = True,
) -> Reaction:
    """Push view_model.<name> into a widget now and on every change.

    The binding is owned by view_model when it is a ViewModel.
    """
    source = cell(view_model, name)
    owner = view_model if isinstance(view_model, ViewModel) else None
    if hasattr(source, "get"):
        data_fn = source.get
    else:
        def data_fn():
            return list(source)
    return bind(app, data_fn, effect_fn, owner=owner, fire_immediately=fire_immediately)
