#!/usr/bin/env python3
"""
Atomic execution and reentrancy protection.

``atomic`` snapshots every participant before an operation and restores
them all if it raises, so a rejected operation leaves no partial state.
Work registered with ``after_commit`` runs only once the outermost
``atomic`` block has completed.
"""

import threading
from contextlib import ExitStack, contextmanager
from typing import Callable, Iterator, List, Optional

from basket_ledger.core.exceptions import ReentrantCall

_local = threading.local()


def _pending_stack() -> List[List[Callable[[], None]]]:
    if not hasattr(_local, "pending"):
        _local.pending = []
    return _local.pending


def after_commit(callback: Callable[[], None]) -> None:
    """
    Defer a callback until the enclosing transaction commits.

    Callbacks registered inside a block that later rolls back are dropped.
    Outside any ``atomic`` block the callback runs immediately.
    """
    stack = _pending_stack()
    if stack:
        stack[-1].append(callback)
    else:
        callback()


@contextmanager
def atomic(*participants) -> Iterator[None]:
    """
    Run a block all-or-nothing across participants.

    Each participant must provide ``snapshot()`` and ``restore(state)``;
    a ``lock`` attribute, when present, is held for the whole block. Nested
    use is allowed (locks are re-entrant): an inner failure restores the
    inner snapshot and re-raises to the outer block. An inner success hands
    its deferred callbacks to the outer block.
    """
    pending = _pending_stack()
    callbacks: List[Callable[[], None]] = []

    with ExitStack() as stack:
        for participant in participants:
            lock = getattr(participant, "lock", None)
            if lock is not None:
                stack.enter_context(lock)

        states = [(p, p.snapshot()) for p in participants]
        pending.append(callbacks)
        try:
            yield
        except BaseException:
            for participant, state in reversed(states):
                participant.restore(state)
            raise
        finally:
            pending.pop()

    # Committed; locks are released
    if pending:
        pending[-1].extend(callbacks)
    else:
        for callback in callbacks:
            callback()


class ReentrancyGuard:
    """
    Mutual exclusion for one guarded operation on one instance.

    Re-entry from the thread already inside raises ReentrantCall; other
    threads wait for the outer call to finish.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._owner: Optional[int] = None

    @property
    def entered(self) -> bool:
        return self._owner is not None

    def __enter__(self) -> "ReentrancyGuard":
        if self._owner == threading.get_ident():
            raise ReentrantCall("ReentrancyGuard: reentrant call")
        self._lock.acquire()
        self._owner = threading.get_ident()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._owner = None
        self._lock.release()
        return False
