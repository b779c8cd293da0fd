"""
Retry Policy for cache producers and upstream fetches

Purpose
-------
Implement bounded retry with a pluggable backoff for transient failures of
producers: upstream HTTP fetches and asset sprite-sheet downloads made
through the UpstreamClient.

Responsibilities
----------------
- Execute operations with automatic retry on configured exception types
- Apply the injected backoff function between attempts
- Respect the maximum attempt count
- Log retry attempts and outcomes

Non-Responsibilities
--------------------
- No cancellation or timeouts (callers own those)
- No caching of results
- No business logic

Architecture Notes
------------------
- Defaults to three immediate attempts (`no_backoff`)
- `exponential_backoff` builds delay = min(initial * multiplier^(attempt-1), max)
  with optional 10% jitter
- Exceptions outside `retry_on` fail immediately
- Exhaustion re-raises the last error unchanged
"""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from ggetracker.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

BackoffFunction = Callable[[int], float]


# ═══════════════════════════════════════════════════════════════════════
# BACKOFF FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════


def no_backoff(attempt: int) -> float:
    """Retry immediately."""
    return 0.0


def exponential_backoff(
    initial: float = 0.1,
    multiplier: float = 2.0,
    max_delay: float = 2.0,
    jitter: bool = True,
) -> BackoffFunction:
    """
    Build an exponential backoff function.

    Parameters
    ----------
    initial : float
        Delay before the second attempt, in seconds
    multiplier : float
        Growth factor between consecutive delays
    max_delay : float
        Upper bound for any single delay
    jitter : bool
        Add up to +/-10% random jitter

    Returns
    -------
    BackoffFunction
        Callable mapping a 1-indexed failed attempt to a delay in seconds
    """

    def _delay(attempt: int) -> float:
        delay = initial * (multiplier ** (attempt - 1))
        delay = min(delay, max_delay)

        if jitter:
            jitter_amount = delay * 0.1
            delay += random.uniform(-jitter_amount, jitter_amount)

        return max(0.0, delay)

    return _delay


# ═══════════════════════════════════════════════════════════════════════
# RETRY POLICY
# ═══════════════════════════════════════════════════════════════════════


class RetryPolicy:
    """
    Bounded retry with an injectable backoff.

    Example
    -------
    >>> policy = RetryPolicy(max_attempts=3)
    >>> data = await policy.execute(lambda: client.fetch_json(url), "fetch:sprite")
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff: BackoffFunction = no_backoff,
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self._max_attempts = max_attempts
        self._backoff = backoff
        self._retry_on = retry_on

        logger.debug(
            "RetryPolicy initialized",
            extra={
                "max_attempts": self._max_attempts,
                "backoff": getattr(backoff, "__name__", repr(backoff)),
                "retry_on": [exc.__name__ for exc in retry_on],
            },
        )

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str,
        max_attempts: Optional[int] = None,
    ) -> T:
        """
        Execute operation with retry logic.

        Parameters
        ----------
        operation : Callable
            Zero-argument coroutine function to run
        operation_name : str
            Human-readable operation name for logging
        max_attempts : Optional[int]
            Override default max attempts

        Returns
        -------
        T
            The result of the first successful attempt

        Raises
        ------
        Exception
            The last exception once all attempts are exhausted, or the first
            exception that is not retryable
        """
        attempts = max_attempts if max_attempts is not None else self._max_attempts

        for attempt in range(1, attempts + 1):
            try:
                result = await operation()
            except self._retry_on as exc:
                if attempt >= attempts:
                    logger.error(
                        "Operation failed after all retries",
                        extra={
                            "operation": operation_name,
                            "attempts": attempt,
                            "error": str(exc),
                            "error_type": type(exc).__name__,
                        },
                    )
                    raise

                delay = self._backoff(attempt)

                logger.warning(
                    "Operation failed, retrying",
                    extra={
                        "operation": operation_name,
                        "attempt": attempt,
                        "total_attempts": attempts,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "retry_delay_seconds": round(delay, 3),
                    },
                )

                if delay > 0:
                    await asyncio.sleep(delay)
                continue

            if attempt > 1:
                logger.info(
                    "Operation succeeded after retry",
                    extra={
                        "operation": operation_name,
                        "attempt": attempt,
                        "total_attempts": attempts,
                    },
                )
            return result

        raise RuntimeError(f"Operation '{operation_name}' ran zero attempts")
