import logging
import threading
import time
import weakref
from typing import Any, Callable, Protocol, runtime_checkable

from msgmux.core.errors import ContextCancelled, ContextDeadlineExceeded


@runtime_checkable
class Context(Protocol):
    """
    Cancellation scope handed to handlers registered in the
    ``(ctx, msg)`` form.

    A context carries an optional deadline, a cancellation signal and
    request-scoped values. The dispatcher passes it through untouched;
    honoring it is the handler's job.
    """

    def deadline(self) -> float | None:
        """Deadline as a ``time.monotonic()`` timestamp, or None."""

    def done(self) -> bool:
        """True once the context has been cancelled or its deadline passed."""

    def err(self) -> BaseException | None:
        """Reason the context is done, or None while it is still active."""

    def value(self, key: Any) -> Any:
        """Value bound to ``key`` in this context or one of its parents."""

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the context is done or ``timeout`` elapses."""


class BackgroundContext:
    """Never cancelled, no deadline, no values."""

    def __init__(self) -> None:
        self._never = threading.Event()

    def deadline(self) -> float | None:
        return None

    def done(self) -> bool:
        return False

    def err(self) -> BaseException | None:
        return None

    def value(self, key: Any) -> Any:
        return None

    def wait(self, timeout: float | None = None) -> bool:
        self._never.wait(timeout)
        return False

    def __repr__(self) -> str:
        return "BackgroundContext()"


_BACKGROUND = BackgroundContext()

_POLL_INTERVAL = 0.05


def background() -> BackgroundContext:
    return _BACKGROUND


class CancelContext:
    """
    A context derived from a parent that can be cancelled explicitly and
    may carry a deadline and values.

    - Cancelling a context cancels every context derived from it.
    - A derived context never outlives its parent's deadline.
    - ``err()`` reports ContextCancelled or ContextDeadlineExceeded once the
      context is done, and the first reason recorded is kept.
    """

    def __init__(
        self,
        parent: Context,
        deadline: float | None = None,
        values: dict[Any, Any] | None = None,
    ) -> None:
        self._parent = parent
        self._values = dict(values or {})
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._err: BaseException | None = None
        self._children: weakref.WeakSet["CancelContext"] = weakref.WeakSet()
        self._logger = logging.getLogger("core.context")

        parent_deadline = parent.deadline()
        if deadline is None or (parent_deadline is not None and parent_deadline < deadline):
            deadline = parent_deadline
        self._deadline = deadline

        if isinstance(parent, CancelContext):
            parent._attach(self)
        elif parent.done():
            self._cancel(parent.err() or ContextCancelled())

    def deadline(self) -> float | None:
        return self._deadline

    def done(self) -> bool:
        self._refresh()
        return self._event.is_set()

    def err(self) -> BaseException | None:
        self._refresh()
        return self._err

    def value(self, key: Any) -> Any:
        if key in self._values:
            return self._values[key]
        return self._parent.value(key)

    def wait(self, timeout: float | None = None) -> bool:
        end = None if timeout is None else time.monotonic() + timeout
        if self._deadline is not None:
            end = self._deadline if end is None else min(end, self._deadline)

        while not self.done():
            remaining = None if end is None else end - time.monotonic()
            if remaining is not None and remaining <= 0:
                break
            if not isinstance(self._parent, CancelContext):
                # foreign parents never set our event
                remaining = _POLL_INTERVAL if remaining is None else min(remaining, _POLL_INTERVAL)
            self._event.wait(remaining)

        return self.done()

    def cancel(self) -> None:
        self._cancel(ContextCancelled())

    def _refresh(self) -> None:
        if self._event.is_set():
            return

        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._cancel(ContextDeadlineExceeded())
        elif not isinstance(self._parent, CancelContext) and self._parent.done():
            # foreign parents cannot notify us, poll them instead
            self._cancel(self._parent.err() or ContextCancelled())

    def _attach(self, child: "CancelContext") -> None:
        with self._lock:
            if not self._event.is_set():
                self._children.add(child)
                return
            reason = self._err
        child._cancel(reason or ContextCancelled())

    def _detach(self, child: "CancelContext") -> None:
        with self._lock:
            self._children.discard(child)

    def _cancel(self, reason: BaseException) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._err = reason
            self._event.set()
            children = list(self._children)
            self._children = weakref.WeakSet()

        if isinstance(self._parent, CancelContext):
            self._parent._detach(self)

        self._logger.debug(f"Context done: {reason}")
        for child in children:
            child._cancel(reason)

    def __repr__(self) -> str:
        return f"CancelContext(deadline={self._deadline}, done={self._event.is_set()})"


def with_cancel(parent: Context) -> tuple[CancelContext, Callable[[], None]]:
    ctx = CancelContext(parent)
    return ctx, ctx.cancel


def with_deadline(parent: Context, when: float) -> tuple[CancelContext, Callable[[], None]]:
    ctx = CancelContext(parent, deadline=when)
    return ctx, ctx.cancel


def with_timeout(parent: Context, seconds: float) -> tuple[CancelContext, Callable[[], None]]:
    return with_deadline(parent, time.monotonic() + seconds)


def with_value(parent: Context, key: Any, value: Any) -> CancelContext:
    return CancelContext(parent, values={key: value})
