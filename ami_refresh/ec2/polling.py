"""Fixed-interval state polling shared by instance and image handles."""

from __future__ import annotations
import time
from typing import Any, Callable

from ..exceptions import PollTimeoutError


def wait_for_state(
    refresh: Callable[[], str],
    desired: str,
    current: str,
    poll_interval: float,
    logger,
    log_fields: Callable[[], dict[str, Any]],
    waiting_message: str,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    timeout: float | None = None,
) -> None:
    """
    Poll ``refresh`` until it reports ``desired``.

    ``refresh`` re-reads the resource and returns its state; any exception it
    raises aborts the wait immediately. Without ``timeout`` the wait is
    unbounded.
    """
    deadline = None if timeout is None else clock() + timeout
    state = current
    while state != desired:
        state = refresh()
        if state == desired:
            break
        if deadline is not None and clock() >= deadline:
            raise PollTimeoutError(
                f"Gave up waiting for state '{desired}' after {timeout}s "
                f"(last state '{state}')"
            )
        logger.debug(waiting_message, extra=log_fields())
        sleep(poll_interval)
