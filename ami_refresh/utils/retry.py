"""Bounded retry for at-least-once side effects (tagging after create)."""

from __future__ import annotations
import time
from typing import Any, Callable

from botocore.exceptions import BotoCoreError, ClientError
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from .logging_config import get_logger


def call_with_retry(
    func: Callable[[], Any],
    attempts: int,
    interval: float,
    description: str,
    logger=None,
    retry_on: tuple[type[BaseException], ...] = (ClientError, BotoCoreError),
    sleep: Callable[[float], None] = time.sleep,
    extra: dict[str, Any] | None = None,
) -> Any:
    """
    Call ``func`` until it succeeds or ``attempts`` calls have failed.

    Waits a fixed ``interval`` between attempts. Only exceptions in
    ``retry_on`` are retried; the last one is re-raised on exhaustion.
    """
    logger = logger or get_logger()
    context = dict(extra or {})

    def _log_attempt(retry_state) -> None:
        logger.warning(
            f"{description} failed, try #{retry_state.attempt_number}",
            extra={
                **context,
                "attempt": retry_state.attempt_number,
                "max_attempts": attempts,
                "error": str(retry_state.outcome.exception()),
            },
        )

    retrying = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(interval),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_attempt,
        sleep=sleep,
        reraise=True,
    )
    return retrying(func)
