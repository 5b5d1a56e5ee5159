"""Reusable retry policy for outbound calls (embedding provider, page fetches)."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple, Type, TypeVar, Union

T = TypeVar("T")

SleepFn = Callable[[float], None]
RetryHook = Callable[[int, float, BaseException], None]
ErrorTypes = Union[Type[BaseException], Tuple[Type[BaseException], ...]]


class RetryExhausted(Exception):
    """Raised when every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def _never(_: BaseException) -> Optional[float]:
    return None


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with capped exponential backoff.

    ``retryable`` decides which errors consume retry budget; everything else
    propagates on the first occurrence. ``retry_after`` may extract a
    server-suggested delay from the error, which then replaces the computed
    backoff for that attempt.
    """

    max_attempts: int = 3
    base_delay: float = 20.0
    max_delay: float = 60.0
    retryable: ErrorTypes = ()
    retry_after: Callable[[BaseException], Optional[float]] = field(default=_never)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")

    def backoff(self, attempt: int) -> float:
        """Delay after the ``attempt``-th failure (1-based), capped at ``max_delay``."""
        return min(self.base_delay * (2 ** max(attempt - 1, 0)), self.max_delay)

    def delay_for(self, attempt: int, exc: BaseException) -> float:
        hint = self.retry_after(exc)
        if hint is not None and hint >= 0:
            return float(hint)
        return self.backoff(attempt)

    def is_retryable(self, exc: BaseException) -> bool:
        return bool(self.retryable) and isinstance(exc, self.retryable)

    def run(
        self,
        fn: Callable[[], T],
        *,
        sleep: SleepFn = time.sleep,
        pacing: float = 0.0,
        on_retry: Optional[RetryHook] = None,
    ) -> T:
        """Call ``fn`` until it succeeds, a non-retryable error occurs, or attempts run out.

        ``pacing`` is slept before every attempt, including the first.
        """
        attempt = 0
        while True:
            attempt += 1
            if pacing > 0:
                sleep(pacing)
            try:
                return fn()
            except Exception as exc:
                if not self.is_retryable(exc):
                    raise
                if attempt >= self.max_attempts:
                    raise RetryExhausted(attempt, exc) from exc
                delay = self.delay_for(attempt, exc)
                if on_retry is not None:
                    on_retry(attempt, delay, exc)
                if delay > 0:
                    sleep(delay)
