"""
Retry policy for annotator writes to the Rabbithole API.

Only idempotent writes are replayed: upserts that carry a client persist id
land on the same row however many times they are sent. Anything else gets a
single attempt regardless of max_attempts.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from rabbithole.observability.telemetry import counter, log_event

T = TypeVar("T")


class TransportError(RuntimeError):
    """An HTTP call to the Rabbithole API failed; status_code is None for network errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Network failures, 429 and 5xx. A 4xx means the write itself is wrong."""
        status = self.status_code
        return status is None or status == 429 or 500 <= status < 600


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, TransportError) and exc.retryable


@dataclass
class RetryPolicy:
    stage: str
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 5.0
    jitter: float = 0.1
    sleep_fn: Callable[[float], None] | None = time.sleep

    def execute(self, func: Callable[..., T], *args: Any, idempotent: bool = True) -> T:
        """Run func(*args); transient TransportErrors are replayed when idempotent."""
        attempts = self.max_attempts if idempotent else 1
        retrying = Retrying(
            stop=stop_after_attempt(max(attempts, 1)),
            wait=wait_exponential(multiplier=self.base_delay, max=self.max_delay)
            + wait_random(0, self.jitter),
            retry=retry_if_exception(_is_retryable),
            sleep=self.sleep_fn or (lambda _delay: None),
            before_sleep=self._before_sleep,
            reraise=True,
        )
        try:
            return retrying(func, *args)
        except TransportError as exc:
            log_event("stage_error", stage=self.stage, error=str(exc), status=exc.status_code)
            raise

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        counter("retry_count")
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        log_event(
            "retry_scheduled",
            stage=self.stage,
            attempt=retry_state.attempt_number,
            delay=round(delay, 3),
        )
