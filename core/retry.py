"""
Bounded retry with backoff.

with_retry() is the generic primitive: it runs a thunk up to max_attempts
times and re-raises the last error unchanged. retry_transient() is what the
stores use: only transient infrastructure faults are retried, and once the
attempts are exhausted the fault is surfaced as TransientInfrastructureError
with the driver error chained for server-side logging.

Backoff functions take the upcoming attempt number k (k >= 2) and the base
delay in seconds:

    linear_backoff       base_delay * (k - 1)      1s, 2s, 3s, ...
    exponential_backoff  base_delay * 2 ** (k - 2) 1s, 2s, 4s, ...
"""

import logging
import time
from typing import Callable, TypeVar

from core.errors import TransientInfrastructureError, is_transient

logger = logging.getLogger(__name__)

T = TypeVar("T")


def linear_backoff(attempt: int, base_delay: float) -> float:
    """Delay before `attempt`, growing by base_delay each time."""
    return base_delay * (attempt - 1)


def exponential_backoff(attempt: int, base_delay: float) -> float:
    """Delay before `attempt`, doubling each time."""
    return base_delay * 2 ** (attempt - 2)


def with_retry(
    operation: Callable[[], T],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    label: str | None = None,
    *,
    backoff: Callable[[int, float], float] = linear_backoff,
    retry_on: Callable[[BaseException], bool] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call `operation` until it succeeds or `max_attempts` is reached.

    Args:
        operation: Zero-argument callable. Must leave no partial state on failure.
        max_attempts: Upper bound on calls to `operation` (>= 1)
        base_delay: Base delay in seconds fed to `backoff`
        label: Name used in log messages
        backoff: fn(attempt, base_delay) -> seconds to wait before `attempt`
        retry_on: Predicate deciding whether an error is worth retrying.
            None retries every Exception.
        sleep: Injected for tests

    Returns:
        Whatever `operation` returns on the first successful attempt.

    Raises:
        The last error raised by `operation`, unchanged. A non-retryable
        error is raised immediately without further attempts.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    name = label or getattr(operation, "__name__", "operation")
    attempt = 1

    while True:
        try:
            return operation()
        except Exception as e:
            if retry_on is not None and not retry_on(e):
                raise

            if attempt >= max_attempts:
                logger.error(f"{name} failed after {attempt} attempt(s): {e!r}")
                raise

            attempt += 1
            delay = backoff(attempt, base_delay)
            logger.warning(
                f"{name} attempt {attempt - 1}/{max_attempts} failed: {e!r}. "
                f"Retrying in {delay:.2f}s"
            )
            if delay > 0:
                sleep(delay)


def retry_transient(
    operation: Callable[[], T],
    max_attempts: int,
    base_delay: float,
    label: str,
    *,
    backoff: Callable[[int, float], float] = linear_backoff,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Retry only transient infrastructure faults, then classify.

    Business-rule errors (conflict, validation, ...) pass through on the
    first occurrence. An exhausted transient fault is re-raised as
    TransientInfrastructureError chained to the original error.
    """
    try:
        return with_retry(
            operation,
            max_attempts,
            base_delay,
            label,
            backoff=backoff,
            retry_on=is_transient,
            sleep=sleep,
        )
    except TransientInfrastructureError:
        raise
    except Exception as e:
        if is_transient(e):
            raise TransientInfrastructureError(f"{label} is temporarily unavailable") from e
        raise
