"""Completion barrier shared by every job unit."""

from __future__ import annotations
import threading
from contextlib import contextmanager


class CompletionBarrier:
    """
    Counting barrier: units ``add()`` before running and ``done()`` after.

    ``wait()`` blocks until the count drops to zero. It waits in short slices
    so the main thread keeps running signal handlers while it drains.
    """

    def __init__(self, wait_slice: float = 0.5):
        self._count = 0
        self._condition = threading.Condition()
        self._wait_slice = wait_slice

    @property
    def pending(self) -> int:
        with self._condition:
            return self._count

    def add(self, delta: int = 1) -> None:
        with self._condition:
            if self._count + delta < 0:
                raise ValueError("CompletionBarrier counter would go negative")
            self._count += delta
            if self._count == 0:
                self._condition.notify_all()

    def done(self) -> None:
        self.add(-1)

    @contextmanager
    def track(self):
        """Count the enclosed block as one unit."""
        self.add(1)
        try:
            yield
        finally:
            self.done()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the count is zero. Returns False if ``timeout`` expired."""
        with self._condition:
            if timeout is not None:
                return self._condition.wait_for(lambda: self._count == 0, timeout)
            while not self._condition.wait_for(
                lambda: self._count == 0, self._wait_slice
            ):
                pass
            return True
