"""Bounded exponential-backoff retry for provider calls.

Each call is tracked as a small state machine:
Pending -> Executing -> Succeeded, or Executing -> RetryScheduled -> Executing
until the attempt budget runs out (Failed). Only network errors and
timeouts are retried; auth and rate-limit errors fail on the spot.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from ..errors import NetworkError

logger = logging.getLogger(__name__)


class RetryState(str, Enum):
    PENDING = 'pending'
    EXECUTING = 'executing'
    RETRY_SCHEDULED = 'retry_scheduled'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0
    retry_on: Tuple[Type[BaseException], ...] = (NetworkError,)

    def delay_for(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


@dataclass
class RetryRun:
    """State of one retried call"""
    label: str
    policy: RetryPolicy
    state: RetryState = RetryState.PENDING
    attempt: int = 0
    next_delay: float = 0.0
    last_error: Optional[BaseException] = field(default=None, repr=False)

    def begin_attempt(self) -> None:
        self.state = RetryState.EXECUTING
        self.attempt += 1

    def succeed(self) -> None:
        self.state = RetryState.SUCCEEDED
        self.last_error = None

    def record_failure(self, error: BaseException) -> None:
        """Move to RetryScheduled or Failed depending on the error and budget."""
        self.last_error = error
        retryable = isinstance(error, self.policy.retry_on)
        if retryable and self.attempt < self.policy.max_attempts:
            self.state = RetryState.RETRY_SCHEDULED
            self.next_delay = self.policy.delay_for(self.attempt)
        else:
            self.state = RetryState.FAILED
            self.next_delay = 0.0


async def with_retry(operation: Callable[[], Awaitable[Any]],
                     policy: Optional[RetryPolicy] = None,
                     label: str = "request",
                     sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> Any:
    """
    Run operation, retrying network failures with exponential backoff.

    Args:
        operation: Zero-argument coroutine function; called once per attempt.
        policy: Attempt budget and delays (3 attempts, 1s/2s by default).
        label: Name used in log messages.
        sleep: Injected for tests.

    Returns:
        The operation's result.

    Raises:
        The last error once the run is Failed.
    """
    run = RetryRun(label=label, policy=policy or RetryPolicy())

    while True:
        run.begin_attempt()
        try:
            result = await operation()
        except Exception as e:
            run.record_failure(e)
            if run.state == RetryState.FAILED:
                if run.attempt > 1:
                    logger.warning(f"[Retry] {label} failed after {run.attempt} attempts: {e}")
                raise
            logger.debug(f"[Retry] {label} attempt {run.attempt} failed ({e}), retrying in {run.next_delay}s")
            await sleep(run.next_delay)
            continue

        run.succeed()
        return result
