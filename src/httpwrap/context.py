from __future__ import annotations

import threading
import time
from types import TracebackType

from src.httpwrap.errors import ContextCancelled, ContextError, DeadlineExceeded


class CancelContext:
    """
    Cooperative cancellation token shared between threads.

    - cancel() marks it done; a child is done as soon as its parent is.
    - timeout (seconds) sets a deadline; once passed, err() is DeadlineExceeded.
    - err() returns the same exception instance on every call once done.
    """

    def __init__(self, parent: CancelContext | None = None, timeout: float | None = None) -> None:
        self._parent = parent
        self._deadline: float | None = None
        if timeout is not None:
            self._deadline = time.monotonic() + timeout
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._err: ContextError | None = None

    def cancel(self) -> None:
        self._set_err(ContextCancelled())

    def done(self) -> bool:
        return self.err() is not None

    def err(self) -> ContextError | None:
        with self._lock:
            if self._err is not None:
                return self._err

        if self._parent is not None:
            parent_err = self._parent.err()
            if parent_err is not None:
                return self._set_err(parent_err)

        if self._deadline is not None and time.monotonic() >= self._deadline:
            return self._set_err(DeadlineExceeded())

        return None

    def deadline(self) -> float | None:
        """Earliest monotonic deadline of this context and its ancestors."""
        deadlines = [d for d in (self._deadline, self._parent_deadline()) if d is not None]
        return min(deadlines) if deadlines else None

    def remaining(self) -> float | None:
        deadline = self.deadline()
        if deadline is None:
            return None
        return max(deadline - time.monotonic(), 0.0)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until done or until timeout elapses; returns done()."""
        end = None if timeout is None else time.monotonic() + timeout
        while not self.done():
            step = 0.05
            if end is not None:
                left = end - time.monotonic()
                if left <= 0:
                    break
                step = min(step, left)
            # poll so parent cancellation and deadlines are noticed
            _ = self._event.wait(step)
        return self.done()

    def _parent_deadline(self) -> float | None:
        return self._parent.deadline() if self._parent is not None else None

    def _set_err(self, err: ContextError) -> ContextError:
        with self._lock:
            if self._err is None:
                self._err = err
                self._event.set()
            return self._err

    def __enter__(self) -> CancelContext:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.cancel()
