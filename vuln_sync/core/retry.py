"""
Retry helper shared by feed fetches, enrichment lookups and store writes.

A failing operation is retried with a fixed backoff until the total time
budget, measured from the first attempt, would be exceeded. Only the
exception classes listed in ``retry_on`` are retried; anything else
propagates on the first occurrence.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from .exceptions import FetchException, RetryBudgetExhausted, StoreException

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (FetchException, StoreException)


async def with_retry(operation: Callable[[], Awaitable[T]],
                     backoff: float,
                     budget: float,
                     retry_on: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS,
                     description: str = "operation",
                     sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                     clock: Callable[[], float] = time.monotonic) -> T:
    """
    Run ``operation`` until it succeeds or the retry budget is spent.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        backoff: Seconds to wait between attempts
        budget: Total seconds allowed from the first attempt
        retry_on: Exception classes treated as transient
        description: Used in log messages
        sleep: Awaitable sleep, replaceable in tests
        clock: Monotonic clock, replaceable in tests

    Returns:
        The operation's result

    Raises:
        RetryBudgetExhausted: If the next attempt would start after the budget
    """
    deadline = clock() + budget
    attempts = 0
    while True:
        attempts += 1
        try:
            return await operation()
        except retry_on as e:
            if clock() + backoff >= deadline:
                raise RetryBudgetExhausted(
                    f"{description} failed after {attempts} attempts: {e}",
                    attempts=attempts,
                    last_error=e,
                ) from e
            logger.warning(f"{description} attempt {attempts} failed: {e}. Retrying in {backoff}s")
            await sleep(backoff)


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed backoff and total budget, applied identically everywhere"""
    backoff_seconds: float = 10.0
    budget_seconds: float = 300.0

    async def run(self, operation: Callable[[], Awaitable[T]],
                  description: str = "operation",
                  retry_on: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS) -> T:
        return await with_retry(
            operation,
            backoff=self.backoff_seconds,
            budget=self.budget_seconds,
            retry_on=retry_on,
            description=description,
        )
