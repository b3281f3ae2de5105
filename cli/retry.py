"""Flow-control retry policy for the sender and receiver loops.

The relay never blocks a client: a full session answers `ready` with a reason
and a chunk that is not there yet answers 404. Waiting is the client's job and
this module decides how long and how often.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Optional

from common.constants import REASON_TMP_FULL


class TransferError(Exception):
    """Base class for errors that end a send or receive."""


class TransferAbortedError(TransferError):
    """
    Raised when the relay answers with a terminal reason (invalid session,
    disk full, malformed request).
    """

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class TransferStalledError(TransferError):
    """
    Raised when one wait lasts longer than the stall timeout, e.g. a receiver
    waiting on a chunk whose sender has gone away.
    """


class RetryExhaustedError(TransferError):
    """Raised when the maximum number of attempts is used up."""


@dataclass(frozen=True)
class RetryPolicy:
    """
    Fixed-interval polling with optional attempt and time bounds.

    Attributes:
        interval: Seconds to sleep between attempts
        max_attempts: Attempts per wait before giving up; None means unbounded
        stall_timeout: Seconds one wait may last; None means unbounded
        retryable_reasons: `ready` rejection reasons worth waiting out
        sleep: Sleep function, injectable for tests
        clock: Monotonic clock, injectable for tests
    """
    interval: float = 1.0
    max_attempts: Optional[int] = None
    stall_timeout: Optional[float] = None
    retryable_reasons: FrozenSet[str] = frozenset({REASON_TMP_FULL})
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False)
    clock: Callable[[], float] = field(default=time.monotonic, compare=False)

    def is_retryable(self, reason: Optional[str]) -> bool:
        return reason in self.retryable_reasons

    def start(self) -> "RetryWait":
        """Begin one wait (for one chunk's admission or arrival)."""
        return RetryWait(self)


class RetryWait:
    """Tracks attempts and elapsed time of a single wait."""

    def __init__(self, policy: RetryPolicy):
        self.policy = policy
        self.attempts = 0
        self.started_at = policy.clock()

    def backoff(self, what: str) -> None:
        """
        Record a failed attempt and sleep before the next one.

        Args:
            what: Description of what is being waited for, used in errors

        Raises:
            RetryExhaustedError: If max_attempts is reached
            TransferStalledError: If the stall timeout has elapsed
        """
        self.attempts += 1
        policy = self.policy

        if policy.max_attempts is not None and self.attempts >= policy.max_attempts:
            raise RetryExhaustedError(f"Gave up waiting for {what} after {self.attempts} attempts")

        if policy.stall_timeout is not None:
            elapsed = policy.clock() - self.started_at
            if elapsed + policy.interval > policy.stall_timeout:
                raise TransferStalledError(
                    f"No progress on {what} for {elapsed:.0f}s (stall timeout {policy.stall_timeout:.0f}s)"
                )

        policy.sleep(policy.interval)
