"""
Bounded retry with exponential backoff for remote-store writes.

Wraps ``tenacity.AsyncRetrying`` so that callers get one behaviour
everywhere: up to ``max_attempts`` tries, waits of ``base_delay * 2**n``
between them (1s, 2s, 4s with the defaults) and a ``PersistenceError``
reading "<operation> failed after N attempts" once the budget is spent.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from voicescribe.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Retry executor with exponential backoff.

    Args:
        max_attempts: Total tries including the first one.
        base_delay: Wait after the first failure in seconds; doubles each time.
        max_delay: Upper bound for a single wait.
        retry_on: Exception types that trigger another attempt. Anything
            else propagates immediately.
        sleep: Awaitable sleep used between attempts (injectable for tests).
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._retry_on = retry_on
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "RetryPolicy":
        return cls(
            max_attempts=settings.save_max_attempts,
            base_delay=settings.save_base_delay,
            **kwargs,
        )

    def backoff_schedule(self) -> list[float]:
        """Waits that would be applied if every attempt failed."""
        return [
            min(self.base_delay * 2**n, self.max_delay) for n in range(self.max_attempts - 1)
        ]

    async def run(
        self,
        fn: Callable[..., Awaitable[T]],
        *args,
        operation: str = "Operation",
        **kwargs,
    ) -> T:
        """Await ``fn(*args, **kwargs)`` until it succeeds or attempts run out.

        Raises:
            PersistenceError: When every attempt failed with a retryable error.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, max=self.max_delay),
            retry=retry_if_exception_type(self._retry_on),
            before_sleep=self._log_retry(operation),
            sleep=self._sleep,
            reraise=False,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await fn(*args, **kwargs)
        except RetryError as exc:
            last = exc.last_attempt.exception()
            logger.error(
                "%s failed after %d attempts: %s", operation, self.max_attempts, last
            )
            raise PersistenceError(operation, self.max_attempts, str(last)) from last
        raise AssertionError("unreachable")  # pragma: no cover

    def _log_retry(self, operation: str) -> Callable[[RetryCallState], None]:
        def before_sleep(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            delay = state.next_action.sleep if state.next_action else 0.0
            logger.warning(
                "%s attempt %d/%d failed (%s); retrying in %.1fs",
                operation,
                state.attempt_number,
                self.max_attempts,
                exc,
                delay,
            )

        return before_sleep


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
) -> T:
    """Convenience wrapper: run *fn* under a default ``RetryPolicy``."""
    return await RetryPolicy(max_attempts=max_attempts, base_delay=base_delay).run(fn)
