import threading
import time
from typing import Callable, Optional

from chaindeploy.constants import DEFAULT_VERIFY_INTERVAL
from chaindeploy.exceptions import VerificationCancelled

# (attempt number, base interval) -> seconds to wait before the next attempt
Backoff = Callable[[int, float], float]


def constant_backoff(attempt: int, interval: float) -> float:
    return interval


def exponential_backoff(maximum: float) -> Backoff:
    def backoff(attempt: int, interval: float) -> float:
        return min(interval * (2 ** (attempt - 1)), maximum)

    return backoff


class RetryPolicy:
    """
    How often and for how long a transient operation is retried.
    `max_attempts` and `timeout` of None mean unbounded.
    """

    def __init__(
        self,
        interval: float = DEFAULT_VERIFY_INTERVAL,
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
        backoff: Backoff = constant_backoff,
    ):
        if interval < 0:
            raise ValueError(f"Retry interval must not be negative, got {interval}")
        if max_attempts is not None and max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        if timeout is not None and timeout < 0:
            raise ValueError(f"Retry timeout must not be negative, got {timeout}")
        self.interval = interval
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.backoff = backoff

    def delay(self, attempt: int) -> float:
        return self.backoff(attempt, self.interval)

    def exhausted(self, attempts: int, elapsed: float) -> bool:
        if self.max_attempts is not None and attempts >= self.max_attempts:
            return True
        if self.timeout is not None and elapsed >= self.timeout:
            return True
        return False

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(interval={self.interval}, max_attempts={self.max_attempts}, "
            f"timeout={self.timeout})"
        )


class CancellationToken:
    """Cooperative cancellation checked between attempts."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise VerificationCancelled("Verification polling was cancelled")

    def wait(self, seconds: float) -> None:
        """Sleeps for `seconds`, returning early (and raising) if cancelled."""
        if seconds > 0:
            self._event.wait(seconds)
        self.raise_if_cancelled()


def monotonic() -> float:
    return time.monotonic()
