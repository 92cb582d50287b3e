"""Exponential backoff helpers shared by the stage adapters and the scheduler."""

import time
from typing import Callable, Optional, TypeVar

from ..errors import ProviderError
from ..logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def compute_backoff(attempt: int, base: float, cap: float) -> float:
    """Delay before the next try: ``min(cap, base * 2 ** attempt)``."""
    if attempt < 0:
        raise ValueError("Attempt cannot be negative")
    return min(cap, base * (2 ** attempt))


def call_with_retries(
    func: Callable[[], T],
    max_tries: int,
    base_delay: float,
    max_delay: float,
    operation: str = "provider call",
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    """
    Call ``func`` and retry transient provider failures with backoff.

    Only ``ProviderError`` with ``transient=True`` is retried; any other
    exception, including permanent provider errors, propagates on the first
    occurrence.

    Args:
        func: Zero-argument callable performing one provider call
        max_tries: Total number of calls allowed (>= 1)
        base_delay: Backoff base in seconds
        max_delay: Backoff cap in seconds
        operation: Name used in log records
        sleep: Sleep function (``time.sleep`` by default)

    Returns:
        Whatever ``func`` returns

    Raises:
        ProviderError: The last transient failure once tries are exhausted
    """
    if max_tries < 1:
        raise ValueError("max_tries must be at least 1")
    sleep = sleep or time.sleep

    for attempt in range(1, max_tries + 1):
        try:
            return func()
        except ProviderError as e:
            if not e.transient or attempt == max_tries:
                logger.warning(
                    "Provider call failed",
                    operation=operation,
                    attempt=attempt,
                    transient=e.transient,
                    status_code=e.status_code,
                    error=str(e),
                )
                raise
            delay = compute_backoff(attempt - 1, base_delay, max_delay)
            logger.info(
                "Transient provider failure, retrying",
                operation=operation,
                attempt=attempt,
                max_tries=max_tries,
                delay_seconds=delay,
                error=str(e),
            )
            sleep(delay)

    raise AssertionError("unreachable")
