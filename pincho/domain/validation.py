"""Local input validation applied before a notification leaves the process."""

import logging
import re
from typing import Iterable, List, Optional

from pincho.domain.errors import ValidationError
from pincho.domain.models.notification import NotificationRequest

logger = logging.getLogger(__name__)

TAG_PATTERN = re.compile(r"^[a-z0-9_-]+$")
MAX_TAGS = 10


def normalize_tags(tags: Optional[Iterable[str]]) -> Optional[List[str]]:
    """Normalizes tags for transmission.

    Tags are lower-cased and trimmed; empty values, values with characters
    outside ``[a-z0-9_-]`` and case-insensitive duplicates are dropped. Order
    of first occurrence is kept and the result is capped at MAX_TAGS.

    Returns:
        The normalized list, or None when nothing survives.

    Example:
        >>> normalize_tags(["Production", "  Release  ", "production", "Deploy"])
        ['production', 'release', 'deploy']
    """
    if not tags:
        return None

    normalized: List[str] = []
    seen = set()
    for tag in tags:
        candidate = str(tag).strip().lower()
        if not candidate or candidate in seen:
            continue
        if not TAG_PATTERN.match(candidate):
            logger.debug(f"Dropping invalid tag: {tag!r}")
            continue
        seen.add(candidate)
        normalized.append(candidate)

    if len(normalized) > MAX_TAGS:
        logger.debug(f"Tag list truncated from {len(normalized)} to {MAX_TAGS}")
        normalized = normalized[:MAX_TAGS]

    return normalized or None


def validate_request(request: Optional[NotificationRequest]) -> NotificationRequest:
    """Checks required fields. Raises ValidationError (status 0) on failure."""
    if request is None:
        raise ValidationError("request cannot be None")
    if not isinstance(request.title, str) or not request.title:
        raise ValidationError("title is required")
    return request
