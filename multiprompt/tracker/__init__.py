"""
Submission tracking: lifecycle states, retry policy, timeout detection.
"""

from multiprompt.tracker.submission import (
    MAX_ATTEMPTS,
    Submission,
    SubmissionErrorKind,
    SubmissionStatus,
)
from multiprompt.tracker.store import SUBMISSION_TIMEOUT_SECONDS, SubmissionStore

__all__ = [
    "MAX_ATTEMPTS",
    "SUBMISSION_TIMEOUT_SECONDS",
    "Submission",
    "SubmissionErrorKind",
    "SubmissionStatus",
    "SubmissionStore",
]
