"""
Persistence queue for annotator writes.

Every store-bound call the engine makes is queued here with a revision
drawn from one monotonic counter, then executed when the host drains the
queue between render passes. The store keeps the highest revision per
entity, so replays and reordering cannot roll a row back.

Revisions must also keep growing across sessions: a reload starts a new
queue, and its writes still have to beat what the previous tab stored. The
counter is seeded from a millisecond clock and raised past every revision
seen while restoring.

Failures are logged and dropped; the optimistic change already on the page
stays where it is.
"""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from rabbithole.config import ANNOTATOR_PERSIST_MAX_ATTEMPTS
from rabbithole.infrastructure.retry import RetryPolicy
from rabbithole.observability.logging import get_logger
from rabbithole.observability.telemetry import counter

logger = get_logger(__name__)


def _epoch_millis() -> int:
    return time.time_ns() // 1_000_000


@dataclass
class PersistJob:
    label: str
    revision: int
    call: Callable[[int], Any]
    on_success: Callable[[Any], None] | None = None
    idempotent: bool = True


class PersistQueue:
    """
    FIFO of pending writes owned by one session.

    Args:
        retry_policy: Defaults to ANNOTATOR_PERSIST_MAX_ATTEMPTS attempts
            (1, i.e. no retry, unless configured)
        clock: Revision floor source in milliseconds
    """

    def __init__(
        self,
        retry_policy: RetryPolicy | None = None,
        clock: Callable[[], int] = _epoch_millis,
    ):
        self._jobs: deque[PersistJob] = deque()
        self._revision = 0
        self._clock = clock
        self._retry = retry_policy or RetryPolicy(
            stage="annotator.persist", max_attempts=ANNOTATOR_PERSIST_MAX_ATTEMPTS
        )

    @property
    def pending(self) -> int:
        return len(self._jobs)

    @property
    def last_revision(self) -> int:
        return self._revision

    def observe(self, revision: int | None) -> None:
        """Raise the counter past a revision already held by the store."""
        if revision is not None and revision > self._revision:
            self._revision = revision

    def submit(
        self,
        label: str,
        call: Callable[[int], Any],
        on_success: Callable[[Any], None] | None = None,
        idempotent: bool = True,
    ) -> int:
        """Queue call(revision); returns the revision it will carry."""
        self._revision = max(self._revision + 1, self._clock())
        self._jobs.append(PersistJob(label, self._revision, call, on_success, idempotent))
        return self._revision

    def drain(self) -> int:
        """
        Run queued jobs in submission order.

        Returns:
            Number of jobs that succeeded
        """
        succeeded = 0
        while self._jobs:
            job = self._jobs.popleft()
            try:
                result = self._retry.execute(job.call, job.revision, idempotent=job.idempotent)
            except Exception as e:
                counter("annotator.persist_failed")
                logger.warning(
                    "Failed to persist %s (revision %d): %s", job.label, job.revision, e
                )
                continue

            succeeded += 1
            if job.on_success is not None:
                try:
                    job.on_success(result)
                except Exception as e:
                    logger.warning("Post-persist update for %s failed: %s", job.label, e)

        return succeeded
