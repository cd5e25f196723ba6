from __future__ import annotations
import threading
import time
from typing import Callable

import httpx

_EXTENSION_KEY = "httpu.context"


class ContextError(Exception):
    pass

class Cancelled(ContextError):
    pass

class DeadlineExceeded(ContextError):
    pass


class Context:
    """
    Cancellation signal for one operation, optionally bounded by a deadline.

    Deadlines are time.monotonic() values. A child never outlives its parent:
    its deadline is the earlier of the two and cancelling the parent cancels
    the child. A context with neither a deadline nor a cancel() call never
    finishes.
    """

    def __init__(self, parent: Context | None = None, deadline: float | None = None):
        if parent is not None and parent.deadline is not None:
            if deadline is None or parent.deadline < deadline:
                deadline = parent.deadline

        self._deadline = deadline
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._error: ContextError | None = None
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._next_key = 0
        self._timer: threading.Timer | None = None
        self._detach: Callable[[], None] | None = None

        if parent is not None:
            detach = parent.add_done_callback(lambda: self._finish(parent.error))
            with self._lock:
                if self._error is None:
                    self._detach = detach
                    detach = None
            if detach is not None:
                detach()

        if deadline is not None and not self.done:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._finish(DeadlineExceeded("context deadline exceeded"))
            else:
                timer = threading.Timer(
                    remaining, self._finish, args=(DeadlineExceeded("context deadline exceeded"),)
                )
                timer.daemon = True
                with self._lock:
                    if self._error is None:
                        self._timer = timer
                        timer.start()

    @property
    def deadline(self) -> float | None:
        return self._deadline

    @property
    def done(self) -> bool:
        return self._event.is_set()

    @property
    def error(self) -> ContextError | None:
        return self._error

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    def cancel(self) -> None:
        self._finish(Cancelled("context canceled"))

    def with_cancel(self) -> Context:
        return Context(self)

    def with_deadline(self, deadline: float) -> Context:
        return Context(self, deadline)

    def with_timeout(self, timeout_s: float) -> Context:
        return Context(self, time.monotonic() + timeout_s)

    def add_done_callback(self, fn: Callable[[], None]) -> Callable[[], None]:
        """
        Run fn once this context finishes (right away if it already has).
        Returns a function that unregisters fn.
        """
        with self._lock:
            if self._error is None:
                key = self._next_key
                self._next_key += 1
                self._callbacks[key] = fn

                def remove() -> None:
                    with self._lock:
                        self._callbacks.pop(key, None)

                return remove
        fn()
        return lambda: None

    def _finish(self, error: ContextError | None) -> None:
        if error is None:
            error = Cancelled("context canceled")
        with self._lock:
            if self._error is not None:
                return
            self._error = error
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
            timer, self._timer = self._timer, None
            detach, self._detach = self._detach, None
        self._event.set()

        if timer is not None:
            timer.cancel()
        if detach is not None:
            detach()
        for fn in callbacks:
            fn()

    def __enter__(self) -> Context:
        return self

    def __exit__(self, *exc_info) -> None:
        self.cancel()


def attach_context(request: httpx.Request, ctx: Context) -> httpx.Request:
    request.extensions[_EXTENSION_KEY] = ctx
    return request

def request_context(request: httpx.Request) -> Context:
    ctx = request.extensions.get(_EXTENSION_KEY)
    if ctx is None:
        return Context()
    return ctx
