"""Backoff delays between failed attempts.

Network and server errors back off exponentially from one second. Rate limit
errors use the server's Retry-After hint when it gives one, otherwise a
longer exponential schedule starting at five seconds. Every delay is capped.
"""

import logging
import math
from typing import Optional, Union

from pincho.domain.errors import ErrorKind, PinchoError, RateLimitError

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 30.0
BASE_BACKOFF_SECONDS = 1.0
RATE_LIMIT_BASE_BACKOFF_SECONDS = 5.0

# Both schedules pass the cap well before this many doublings.
MAX_EXPONENT = 16


def parse_retry_after(value: Optional[Union[str, int, float]]) -> Optional[float]:
    """Parses a Retry-After value given in seconds.

    Returns None for missing, empty, non-numeric, non-finite, zero or
    negative values. Never raises.
    """
    if value is None:
        return None
    try:
        seconds = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(seconds) or seconds <= 0:
        return None
    return seconds


def compute_backoff(error: PinchoError, attempt: int) -> float:
    """Returns the wait in seconds before the attempt after ``attempt``.

    Args:
        error: The error raised by the attempt that just failed.
        attempt: 0-based index of that attempt.

    Raises:
        ValueError: If the error kind is not retryable.
    """
    if not error.is_retryable():
        raise ValueError(f"no backoff for non-retryable error kind: {error.kind.name}")

    if error.kind is ErrorKind.RATE_LIMIT:
        hint = error.retry_after if isinstance(error, RateLimitError) else None
        if hint is not None and hint > 0:
            return min(hint, MAX_BACKOFF_SECONDS)
        return _exponential(RATE_LIMIT_BASE_BACKOFF_SECONDS, attempt)

    return _exponential(BASE_BACKOFF_SECONDS, attempt)


def _exponential(base: float, attempt: int) -> float:
    return min(base * 2 ** min(attempt, MAX_EXPONENT), MAX_BACKOFF_SECONDS)
