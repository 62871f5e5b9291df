"""
Submission lifecycle.

A Submission is the record of delivering one prompt to one provider:

    Pending -> InProgress -> Success | Retrying | Failed
    Retrying -> InProgress

Success and Failed are terminal. Transition methods validate first and
mutate second, so a rejected transition leaves the record untouched.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from multiprompt.providers.registry import ProviderId

MAX_ATTEMPTS = 2


class SubmissionStatus(enum.Enum):
    """Lifecycle states for a submission."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    RETRYING = "Retrying"
    SUCCESS = "Success"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SubmissionStatus.SUCCESS, SubmissionStatus.FAILED)


class SubmissionErrorKind(enum.Enum):
    """Why a delivery attempt failed."""

    TIMEOUT = "Timeout"
    NETWORK_ERROR = "NetworkError"
    AUTHENTICATION_ERROR = "AuthenticationError"
    RATE_LIMIT_ERROR = "RateLimitError"
    ELEMENT_NOT_FOUND = "ElementNotFound"
    INJECTION_FAILED = "InjectionFailed"

    @property
    def is_retryable(self) -> bool:
        return self in (SubmissionErrorKind.TIMEOUT, SubmissionErrorKind.NETWORK_ERROR)


class TransitionError(Exception):
    """Raised by a Submission when asked for an illegal transition."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Submission:
    """A prompt delivery to one provider."""

    provider_id: ProviderId
    prompt: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: SubmissionStatus = SubmissionStatus.PENDING
    attempt_count: int = 0
    error_kind: Optional[SubmissionErrorKind] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def __repr__(self) -> str:
        return (
            f"<Submission(id={self.id}, provider={self.provider_id.value}, "
            f"status={self.status.value}, attempts={self.attempt_count})>"
        )

    # ---- Transitions ----

    def start(self, now: Optional[datetime] = None) -> None:
        if self.status not in (SubmissionStatus.PENDING, SubmissionStatus.RETRYING):
            raise TransitionError(f"Cannot start submission from {self.status.value} state")
        self.status = SubmissionStatus.IN_PROGRESS
        self.attempt_count += 1
        self.started_at = now or utcnow()

    def succeed(self, now: Optional[datetime] = None) -> None:
        if self.status is not SubmissionStatus.IN_PROGRESS:
            raise TransitionError(f"Cannot succeed from {self.status.value} state")
        self.status = SubmissionStatus.SUCCESS
        self.completed_at = now or utcnow()

    def fail(
        self,
        error_kind: SubmissionErrorKind,
        error_message: str,
        now: Optional[datetime] = None,
    ) -> None:
        """Record a failed attempt; retryable kinds get one more attempt."""
        if self.status not in (SubmissionStatus.IN_PROGRESS, SubmissionStatus.RETRYING):
            raise TransitionError(f"Cannot fail from {self.status.value} state")
        self.error_kind = error_kind
        self.error_message = error_message
        if error_kind.is_retryable and self.attempt_count < MAX_ATTEMPTS:
            self.status = SubmissionStatus.RETRYING
        else:
            self.status = SubmissionStatus.FAILED
            self.completed_at = now or utcnow()

    # ---- Queries ----

    def is_timed_out(self, now: datetime, timeout_seconds: float) -> bool:
        if self.status not in (SubmissionStatus.IN_PROGRESS, SubmissionStatus.RETRYING):
            return False
        if self.started_at is None:
            return False
        return (now - self.started_at).total_seconds() > timeout_seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "provider_id": self.provider_id.value,
            "prompt": self.prompt,
            "status": self.status.value,
            "attempt_count": self.attempt_count,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error_message": self.error_message,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
