"""Error taxonomy for the Pincho API client.

Every failure a caller can observe from a send is exactly one of the kinds in
ErrorKind. Retryability is a property of the kind and is never decided
anywhere else; the retry orchestrator only asks ``error.is_retryable()``.
"""

import enum
import json
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


class ErrorKind(enum.Enum):
    """Closed set of error kinds with their fixed retryability."""

    VALIDATION = ("validation", False)
    AUTH = ("auth", False)
    RATE_LIMIT = ("rate limit", True)
    SERVER = ("server", True)
    NETWORK = ("network", True)
    GENERIC = ("generic", False)

    def __init__(self, label: str, retryable: bool):
        self.label = label
        self.retryable = retryable


class PinchoError(Exception):
    """Base error raised by the client. Also serves as the GENERIC kind."""

    kind: ErrorKind = ErrorKind.GENERIC

    def __init__(self, message: str, status_code: int = 0):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def is_retryable(self) -> bool:
        return self.kind.retryable

    def __str__(self) -> str:
        prefix = "pincho" if self.kind is ErrorKind.GENERIC else f"pincho {self.kind.label} error"
        if self.status_code > 0:
            return f"{prefix}: {self.message} (status: {self.status_code})"
        return f"{prefix}: {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, status_code={self.status_code})"


class ValidationError(PinchoError):
    """Invalid local input or HTTP 400."""

    kind = ErrorKind.VALIDATION


class AuthError(PinchoError):
    """HTTP 401 or 403."""

    kind = ErrorKind.AUTH


class RateLimitError(PinchoError):
    """HTTP 429. ``retry_after`` holds the server hint in seconds, if any."""

    kind = ErrorKind.RATE_LIMIT

    def __init__(self, message: str, status_code: int = 429, retry_after: Optional[float] = None):
        super().__init__(message, status_code)
        self.retry_after = retry_after


class ServerError(PinchoError):
    """HTTP 5xx."""

    kind = ErrorKind.SERVER


class NetworkError(PinchoError):
    """Transport failure: connect, DNS, reset or body read.

    The underlying exception is chained as ``__cause__`` for diagnostics.
    """

    kind = ErrorKind.NETWORK


class ConfigurationError(ValueError):
    """Raised by the client constructor when settings are unusable."""


class RequestCancelled(Exception):
    """The caller's cancellation token fired before the call finished."""

    def __init__(self, reason: str = "request cancelled"):
        self.reason = reason
        super().__init__(reason)


class DeadlineExceeded(RequestCancelled):
    """The caller's deadline passed before the call finished."""

    def __init__(self, reason: str = "deadline exceeded"):
        super().__init__(reason)


_KIND_TO_CLASS = {
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.AUTH: AuthError,
    ErrorKind.RATE_LIMIT: RateLimitError,
    ErrorKind.SERVER: ServerError,
    ErrorKind.NETWORK: NetworkError,
    ErrorKind.GENERIC: PinchoError,
}


def error_class_for(kind: ErrorKind) -> type:
    """Returns the exception class representing ``kind``."""
    return _KIND_TO_CLASS[kind]


def kind_for_status(status_code: int) -> ErrorKind:
    """Maps a non-2xx HTTP status to its ErrorKind. Unfollowed 3xx are generic."""
    if status_code == 400:
        return ErrorKind.VALIDATION
    if status_code in (401, 403):
        return ErrorKind.AUTH
    if status_code == 429:
        return ErrorKind.RATE_LIMIT
    if status_code >= 500:
        return ErrorKind.SERVER
    return ErrorKind.GENERIC


def format_error_message(body_text: str) -> str:
    """Builds a readable message from an API error body.

    Prefers the structured ``error.message`` field, suffixed with the
    parameter and code when present. Falls back to the raw body text.
    """
    try:
        payload: Any = json.loads(body_text)
    except ValueError:
        return body_text

    error = payload.get("error") if isinstance(payload, dict) else None
    if not isinstance(error, dict) or not error.get("message"):
        return body_text

    message = str(error["message"])
    if error.get("param"):
        message = f"{message} (parameter: {error['param']})"
    if error.get("code"):
        message = f"{message} [{error['code']}]"
    return message


def classify_response(
    status_code: int,
    body_text: str,
    retry_after: Optional[float] = None,
) -> PinchoError:
    """Classifies an HTTP error response into exactly one typed error.

    Args:
        status_code: Any non-2xx HTTP status.
        body_text: Raw response body.
        retry_after: Parsed Retry-After hint; only kept for 429 responses.
    """
    kind = kind_for_status(status_code)
    message = format_error_message(body_text)

    if kind is ErrorKind.RATE_LIMIT:
        logger.debug(f"Classified HTTP {status_code} as rate limit (Retry-After={retry_after})")
        return RateLimitError(message, status_code=status_code, retry_after=retry_after)

    logger.debug(f"Classified HTTP {status_code} as {kind.label}")
    return error_class_for(kind)(message, status_code=status_code)
