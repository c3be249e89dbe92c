"""Dependency tracking engine for reactive view-model state.

Uses contextvars to track which observables are read during a computed/reaction
evaluation, building the dependency graph automatically.

Propagation is two-phase. A write first marks every downstream Computed stale
(synchronously, no recomputation), collecting the reactions that observe
them. Only when the outermost batch closes do the collected reactions run,
ordered by rank so a listener always runs after everything it depends on.
Every write is its own batch unless wrapped in @action or `with transaction()`.
"""

from __future__ import annotations

import contextvars
import itertools
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vmx.computed import Computed
    from vmx.reaction import Reaction

    Derivation = Computed | Reaction

# The currently-evaluating derivation (computed or reaction).
# When set, any Observable.get() call registers itself as a dependency.
current_derivation: contextvars.ContextVar[Derivation | None] = contextvars.ContextVar(
    "current_derivation", default=None
)

# Batch depth counter. When > 0, reactions are deferred.
_batch_depth: int = 0

# True while _flush_pending is draining; nested batch exits must not re-enter.
_flushing: bool = False

# Reactions invalidated during a batch, awaiting flush.
_pending: set[Reaction] = set()

# Creation order, the tie-breaker between derivations of equal rank.
_seq = itertools.count(1)


def next_seq() -> int:
    return next(_seq)


def begin_batch() -> None:
    """Enter a batching scope. Nested batches are supported."""
    global _batch_depth
    _batch_depth += 1


def end_batch() -> None:
    """Exit a batching scope. When the outermost scope exits, flush pending reactions."""
    global _batch_depth
    _batch_depth -= 1
    if _batch_depth == 0 and not _flushing:
        _flush_pending()


def schedule(derivation: Derivation) -> None:
    """Tell a derivation that one of its dependencies changed."""
    derivation._on_stale()


def enqueue(reaction: Reaction) -> None:
    """Queue a reaction for the next flush. Runs now if no batch is open."""
    _pending.add(reaction)
    if _batch_depth == 0 and not _flushing:
        _flush_pending()


def _flush_pending() -> None:
    """Run pending reactions in (rank, creation) order until none are left."""
    global _flushing
    _flushing = True
    try:
        while _pending:
            batch = sorted(_pending, key=lambda r: (r._rank, r._seq))
            _pending.clear()
            for index, reaction in enumerate(batch):
                try:
                    reaction._run()
                except BaseException:
                    _pending.update(batch[index + 1:])
                    raise
    finally:
        _flushing = False


def get_pending_count() -> int:
    """Number of reactions waiting to run. Useful for testing."""
    return len(_pending)
