"""
Thread-safe submission table.

All mutation goes through ``update``, which applies a transition function
to the stored Submission under a single lock and hands back a copy.
Records are never evicted during the life of the process.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from typing import Any

from multiprompt.errors import InternalError, NotFoundError
from multiprompt.logging_utils import log_event
from multiprompt.providers.registry import ProviderId
from multiprompt.tracker.submission import (
    Submission,
    SubmissionErrorKind,
    TransitionError,
    utcnow,
)

logger = logging.getLogger(__name__)

SUBMISSION_TIMEOUT_SECONDS = 30.0


class SubmissionStore:
    """
    In-memory CRUD and state transitions for submissions.

    Usage:
        store = SubmissionStore()
        sub = store.create(ProviderId.CLAUDE, "Hello")
        store.start(sub.id)
        store.fail(sub.id, SubmissionErrorKind.NETWORK_ERROR, "unreachable")
        store.status(sub.id).status   # SubmissionStatus.RETRYING
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = utcnow,
        timeout_seconds: float = SUBMISSION_TIMEOUT_SECONDS,
    ) -> None:
        self._clock = clock
        self.timeout_seconds = timeout_seconds
        self._lock = threading.Lock()
        self._submissions: dict[str, Submission] = {}

    # ---- Create ----

    def create(self, provider_id: ProviderId, prompt: str) -> Submission:
        submission = Submission(provider_id=provider_id, prompt=str(prompt))
        with self._lock:
            self._submissions[submission.id] = submission
            snapshot = replace(submission)
        log_event(
            logger,
            logging.DEBUG,
            "submission_created",
            submission_id=submission.id,
            provider_id=provider_id.value,
            prompt_length=len(prompt),
        )
        return snapshot

    # ---- Read ----

    def status(self, submission_id: str) -> Submission:
        with self._lock:
            return replace(self._get(submission_id))

    def list(self) -> list[Submission]:
        with self._lock:
            return [replace(s) for s in self._submissions.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._submissions)

    def now(self) -> datetime:
        return self._clock()

    def check_timeouts(self) -> list[str]:
        """Ids of InProgress/Retrying submissions past the timeout budget.

        Advisory only: nothing is failed here.
        """
        now = self.now()
        with self._lock:
            return [
                sid
                for sid, s in self._submissions.items()
                if s.is_timed_out(now, self.timeout_seconds)
            ]

    # ---- Update ----

    def update(self, submission_id: str, fn: Callable[[Submission], Any]) -> Submission:
        """Apply ``fn`` to the stored submission atomically.

        ``fn`` runs against a working copy; the copy replaces the stored
        record only if ``fn`` returns without raising.

        Raises:
            NotFoundError: Unknown submission id.
            InternalError: ``fn`` rejected the transition.
        """
        with self._lock:
            current = self._get(submission_id)
            working = replace(current)
            try:
                fn(working)
            except TransitionError as e:
                raise InternalError(f"Failed to update submission {submission_id}: {e}")
            self._submissions[submission_id] = working
            snapshot = replace(working)

        log_event(
            logger,
            logging.DEBUG,
            "submission_status_changed",
            submission_id=submission_id,
            provider_id=snapshot.provider_id.value,
            status=snapshot.status.value,
            attempt_count=snapshot.attempt_count,
            error_kind=snapshot.error_kind.value if snapshot.error_kind else None,
        )
        return snapshot

    def start(self, submission_id: str) -> Submission:
        return self.update(submission_id, lambda s: s.start(self.now()))

    def succeed(self, submission_id: str) -> Submission:
        return self.update(submission_id, lambda s: s.succeed(self.now()))

    def fail(
        self,
        submission_id: str,
        error_kind: SubmissionErrorKind,
        error_message: str,
    ) -> Submission:
        return self.update(
            submission_id,
            lambda s: s.fail(error_kind, error_message, self.now()),
        )

    def _get(self, submission_id: str) -> Submission:
        submission = self._submissions.get(submission_id)
        if submission is None:
            raise NotFoundError(f"Submission not found: {submission_id}")
        return submission

    def get_stats(self) -> dict[str, int]:
        with self._lock:
            by_status: dict[str, int] = {}
            for s in self._submissions.values():
                by_status[s.status.value] = by_status.get(s.status.value, 0) + 1
            return by_status
