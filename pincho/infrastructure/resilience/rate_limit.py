"""Client-side record of the server's rate limit quota.

Unlike a limiter that throttles outgoing calls, this only remembers what the
server last reported in its RateLimit-* headers so callers can pace
themselves.
"""

import logging
from datetime import datetime, timezone
from typing import Mapping, Optional

from pincho.domain.models.notification import EPOCH, RateLimitInfo

logger = logging.getLogger(__name__)

LIMIT_HEADER = "RateLimit-Limit"
REMAINING_HEADER = "RateLimit-Remaining"
RESET_HEADER = "RateLimit-Reset"


def _parse_non_negative_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    # Plain ASCII digits only; int() would also take "+5" and "1_000"
    if not (text.isascii() and text.isdigit()):
        return None
    return int(text)


def _parse_unix_timestamp(value: Optional[str]) -> Optional[datetime]:
    seconds = _parse_non_negative_int(value)
    if seconds is None:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


class RateLimitState:
    """Holds the most recent RateLimitInfo seen on a successful response.

    Updates replace the snapshot in a single attribute assignment. Concurrent
    sends sharing one client race on it and the last writer wins; readers
    should treat the value as best-effort.
    """

    def __init__(self):
        self._snapshot: Optional[RateLimitInfo] = None

    @property
    def snapshot(self) -> Optional[RateLimitInfo]:
        """The current snapshot, or None if no response carried quota headers."""
        return self._snapshot

    def update_from_headers(self, headers: Mapping[str, str]) -> bool:
        """Replaces the snapshot from response headers.

        Fields missing from the response default to 0 / epoch in the new
        snapshot; they are not merged with the previous one.

        Returns:
            True if the snapshot was replaced, False if no header parsed.
        """
        limit = _parse_non_negative_int(headers.get(LIMIT_HEADER))
        remaining = _parse_non_negative_int(headers.get(REMAINING_HEADER))
        reset = _parse_unix_timestamp(headers.get(RESET_HEADER))

        if limit is None and remaining is None and reset is None:
            return False

        self._snapshot = RateLimitInfo(
            limit=limit or 0,
            remaining=remaining or 0,
            reset=reset or EPOCH,
        )
        logger.debug(f"Rate limit updated: {self._snapshot}")
        return True
