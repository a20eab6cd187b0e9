"""
Per-call deadline and cancellation token.

Every public engine operation takes a Context. The engine checks it between
pipeline stages and between fetched rows, converts the remaining time into a
server-side statement timeout, and registers a driver interrupt with
``on_cancel`` while a statement is in flight. The context itself never starts
threads; ``cancel()`` runs the registered callbacks on the caller's thread.
"""

from __future__ import annotations

import itertools
import threading
import time
import weakref
from collections.abc import Callable

from sqlt.errors import Canceled, DeadlineExceeded, ExecutionError


class Context:
    """Deadline (``time.monotonic()`` timestamp) plus a cancel flag."""

    def __init__(self, deadline: float | None = None) -> None:
        self._deadline = deadline
        self._canceled = False
        self._callbacks: dict[int, Callable[[], object]] = {}
        self._ids = itertools.count()
        self._lock = threading.Lock()

    @classmethod
    def background(cls) -> Context:
        """A context that never expires unless canceled."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float) -> Context:
        return cls(time.monotonic() + seconds)

    @classmethod
    def with_deadline(cls, deadline: float) -> Context:
        return cls(deadline)

    def child(self, timeout: float | None = None) -> Context:
        """Derive a context that expires no later than this one.

        Canceling the parent cancels the child; canceling the child leaves the
        parent untouched.
        """
        deadline = self._deadline
        if timeout is not None:
            own = time.monotonic() + timeout
            deadline = own if deadline is None else min(deadline, own)
        child = Context(deadline)
        ref = weakref.ref(child)

        def _cancel_child() -> None:
            c = ref()
            if c is not None:
                c.cancel()

        unregister = self.on_cancel(_cancel_child)
        # drop the parent's hook once the child is canceled or collected
        child.on_cancel(unregister)
        weakref.finalize(child, unregister)
        return child

    @property
    def deadline(self) -> float | None:
        return self._deadline

    @property
    def canceled(self) -> bool:
        return self._canceled

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def done(self) -> bool:
        return self._canceled or self.expired

    def remaining(self) -> float | None:
        """Seconds left before the deadline (never negative); None if unbounded."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def err(self) -> ExecutionError | None:
        if self._canceled:
            return Canceled("context canceled")
        if self.expired:
            return DeadlineExceeded("context deadline exceeded")
        return None

    def check(self) -> None:
        """Raise Canceled or DeadlineExceeded if the context is done."""
        e = self.err()
        if e is not None:
            raise e

    def cancel(self) -> None:
        with self._lock:
            if self._canceled:
                return
            self._canceled = True
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
        for cb in callbacks:
            cb()

    def on_cancel(self, callback: Callable[[], object]) -> Callable[[], None]:
        """Run *callback* when the context is canceled.

        Returns a function that unregisters the callback. If the context is
        already canceled the callback runs immediately.
        """
        with self._lock:
            if not self._canceled:
                key = next(self._ids)
                self._callbacks[key] = callback

                def _unregister() -> None:
                    # lock-free: may run from a GC finalizer while the lock is held
                    self._callbacks.pop(key, None)

                return _unregister
        callback()
        return lambda: None


def ensure_context(ctx: Context | None) -> Context:
    return ctx if ctx is not None else Context.background()
