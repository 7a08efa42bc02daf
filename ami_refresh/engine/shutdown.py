"""Signal-driven graceful shutdown with hard-abort escalation."""

from __future__ import annotations
import os
import signal
import sys
import threading
import time
from typing import Callable

from ..models.config import SHUTDOWN_GRACE_SECONDS
from ..utils import get_logger

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)
ABORT_EXIT_CODE = 1


def hard_abort(exit_code: int = ABORT_EXIT_CODE) -> None:
    """Exit now without joining worker threads; in-flight jobs are dropped."""
    sys.stdout.flush()
    sys.stderr.flush()
    os._exit(exit_code)


class ShutdownCoordinator:
    """
    First SIGINT/SIGTERM requests a graceful stop and opens a grace window.

    Repeats inside the window are ignored. A signal after the window has
    closed calls ``abort``, skipping the drain of running jobs.
    """

    def __init__(
        self,
        grace_period: float = SHUTDOWN_GRACE_SECONDS,
        logger=None,
        clock: Callable[[], float] = time.monotonic,
        abort: Callable[[int], None] = hard_abort,
        signals: tuple[signal.Signals, ...] = HANDLED_SIGNALS,
        wait_slice: float = 0.5,
    ):
        self.grace_period = grace_period
        self.logger = logger or get_logger()
        self.clock = clock
        self.abort = abort
        self.signals = signals
        self._wait_slice = wait_slice
        self._stop_requested = threading.Event()
        self._first_signal_at: float | None = None
        self._previous_handlers: dict[int, object] = {}

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested.is_set()

    def install(self) -> None:
        """Install handlers; only valid from the main thread."""
        for signum in self.signals:
            self._previous_handlers[signum] = signal.signal(signum, self.handle_signal)

    def restore(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()

    def handle_signal(self, signum: int, frame=None) -> None:
        name = signal.Signals(signum).name
        now = self.clock()
        if self._first_signal_at is None:
            self._first_signal_at = now
            self._stop_requested.set()
            self.logger.info(
                f"Received os signal '{name}', attempting graceful shutdown",
                extra={"signal": name, "grace_period_seconds": self.grace_period},
            )
            return
        if now - self._first_signal_at < self.grace_period:
            self.logger.info(
                f"Received os signal '{name}' again, graceful shutdown already in progress",
                extra={"signal": name},
            )
            return
        self.logger.warning(
            f"Received os signal '{name}' multiple times... Abort process!",
            extra={"signal": name},
        )
        self.abort(ABORT_EXIT_CODE)

    def wait_for_stop(self, timeout: float | None = None) -> bool:
        """Block until a stop is requested; True if it was."""
        if timeout is not None:
            return self._stop_requested.wait(timeout)
        while not self._stop_requested.wait(self._wait_slice):
            pass
        return True
