"""Retry logic with exponential backoff.

This module provides:
- with_retry: Run a unit of work, retrying every failure with exponential backoff
- backoff_delays: The delay schedule with_retry follows
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0  # seconds
BACKOFF_MULTIPLIER = 2.0


def backoff_delays(max_retries: int, base_delay: float) -> list[float]:
    """Return the sleep before each retry: base, 2*base, 4*base, ..."""
    return [base_delay * BACKOFF_MULTIPLIER**attempt for attempt in range(max_retries)]


def with_retry(
    operation_name: str,
    max_retries: int,
    base_delay: float,
    work: Callable[[], T],
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Execute work() with exponential backoff retry.

    Makes up to ``max_retries + 1`` attempts. After failed attempt ``i``
    (0-based, not the last) sleeps ``base_delay * 2**i`` before trying again.
    Every exception is retried the same way; the caller decides what counts
    as success by what work() returns or raises.

    Args:
        operation_name: Name used in log messages (e.g. "put_object").
        max_retries: Retries after the first attempt.
        base_delay: Delay before the first retry, in seconds.
        work: Zero-argument callable performing one attempt.
        sleep: Sleep function, injectable for tests.

    Returns:
        Result of the first successful attempt.

    Raises:
        ValueError: If max_retries is negative.
        The last exception unchanged if every attempt fails.
    """
    if max_retries < 0:
        raise ValueError(f"max_retries must be >= 0, got {max_retries}")

    for attempt in range(max_retries + 1):
        try:
            return work()
        except Exception as e:
            if attempt == max_retries:
                logger.error(
                    f"{operation_name} failed after {max_retries + 1} attempt(s): {e}"
                )
                raise

            delay = base_delay * BACKOFF_MULTIPLIER**attempt
            logger.warning(
                f"{operation_name}: attempt {attempt + 1}/{max_retries + 1} failed: {e}. "
                f"Retrying in {delay:.1f}s..."
            )
            sleep(delay)

    # Should not reach here, but satisfy type checker
    raise RuntimeError("Unexpected retry loop exit")
