import threading
import time
from typing import Optional

import structlog

from multikueue.exception import Cancelled, DeadlineExceeded


class Context:
    """Execution context handed down by the caller of every adapter and store operation.

    It carries an optional deadline, a cancellation flag and a logger. Stores call :meth:`check` before each
    request and use :meth:`remaining` as the request timeout, so an expired or cancelled context aborts the
    operation with :class:`Cancelled` or :class:`DeadlineExceeded`.
    """

    def __init__(self, *, timeout: Optional[float] = None, logger=None) -> None:
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = threading.Event()
        self.logger = logger if logger is not None else structlog.get_logger()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(self._deadline - time.monotonic(), 0.0)

    def check(self) -> None:
        if self._cancelled.is_set():
            raise Cancelled('Operation has been cancelled.')
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise DeadlineExceeded('Operation deadline exceeded.')

    def bind(self, **kwargs) -> 'Context':
        """Returns a context sharing deadline and cancellation but with additional logging context."""
        child = Context.__new__(Context)
        child._deadline = self._deadline
        child._cancelled = self._cancelled
        child.logger = self.logger.bind(**kwargs)
        return child


def background() -> Context:
    return Context()
