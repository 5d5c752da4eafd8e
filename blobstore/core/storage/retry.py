"""
Bounded retry state machine for blob uploads.

The upload loop in the S3 backend is driven by this machine rather than
by ad hoc counters. The machine only decides what happens next; the
backend performs the requests and the waits.

    ATTEMPTING(n) --success--------------------------> SUCCEEDED
    ATTEMPTING(1) --checksum mismatch, small payload--> FALLBACK_ATTEMPT
    FALLBACK_ATTEMPT --success------------------------> SUCCEEDED
    FALLBACK_ATTEMPT --failure------------------------> ATTEMPTING(2) after backoff(1)
    ATTEMPTING(n<max) --failure-----------------------> ATTEMPTING(n+1) after backoff(n)
    ATTEMPTING(max) --failure-------------------------> EXHAUSTED
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class UploadState(Enum):
    ATTEMPTING = "attempting"
    FALLBACK_ATTEMPT = "fallback_attempt"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


def backoff_delay(attempt: int, base_delay: float = 0.5) -> float:
    """Seconds to wait after failed attempt n: 2^n x base (1s, 2s, 4s...)."""
    return (2 ** attempt) * base_delay


@dataclass(frozen=True)
class RetryPolicy:
    """Limits for the upload retry loop."""
    max_attempts: int = 3
    base_delay: float = 0.5
    fallback_size_limit: int = 10 * 1024  # Alternative encoding only below 10 KiB

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay cannot be negative")


class UploadStateMachine:
    """
    Tracks one upload through its attempts.

    `attempt` counts primary attempts only. The fallback attempt does not
    consume retry budget and can happen at most once, directly after a
    failed first attempt.
    """

    def __init__(self, policy: RetryPolicy, payload_size: int) -> None:
        self.policy = policy
        self.payload_size = payload_size
        self.state = UploadState.ATTEMPTING
        self.attempt = 0
        self.fallback_used = False
        self.last_error: Optional[Exception] = None

    @property
    def done(self) -> bool:
        return self.state in (UploadState.SUCCEEDED, UploadState.EXHAUSTED)

    def start_attempt(self) -> int:
        """Begin the next primary attempt and return its number (1-based)."""
        if self.state is not UploadState.ATTEMPTING:
            raise RuntimeError(f"Cannot start an attempt in state {self.state.name}")
        if self.attempt >= self.policy.max_attempts:
            raise RuntimeError("Retry budget already exhausted")
        self.attempt += 1
        return self.attempt

    def succeed(self) -> None:
        self.state = UploadState.SUCCEEDED
        self.last_error = None

    def fail(self, error: Exception, fallback_eligible: bool = False) -> UploadState:
        """
        Record a failed primary attempt and return the next state.

        `fallback_eligible` is the backend's judgement that the error is a
        checksum mismatch and the payload can be re-encoded as text.
        """
        self.last_error = error

        if (
            fallback_eligible
            and self.attempt == 1
            and not self.fallback_used
            and self.payload_size < self.policy.fallback_size_limit
        ):
            self.fallback_used = True
            self.state = UploadState.FALLBACK_ATTEMPT
        elif self.attempt >= self.policy.max_attempts:
            self.state = UploadState.EXHAUSTED
        else:
            self.state = UploadState.ATTEMPTING

        return self.state

    def fallback_failed(self) -> UploadState:
        """The alternative request failed: resume the normal sequence."""
        if self.state is not UploadState.FALLBACK_ATTEMPT:
            raise RuntimeError(f"No fallback attempt in progress (state {self.state.name})")
        # The primary error is the one surfaced if retries run out
        self.state = (
            UploadState.EXHAUSTED
            if self.attempt >= self.policy.max_attempts
            else UploadState.ATTEMPTING
        )
        return self.state

    def next_delay(self) -> float:
        """Backoff before the next primary attempt."""
        return backoff_delay(self.attempt, self.policy.base_delay)
