"""Python client for the Pincho push notification API.

    from pincho import PinchoClient

    async with PinchoClient("abc12345") as client:
        await client.send_simple("Hello", "World")
"""

from pincho.version import __version__
from pincho.core.client import PinchoClient
from pincho.domain.errors import (
    AuthError, ConfigurationError, DeadlineExceeded, ErrorKind, NetworkError,
    PinchoError, RateLimitError, RequestCancelled, ServerError, ValidationError,
)
from pincho.domain.models.notification import NotificationRequest, RateLimitInfo, SendResponse
from pincho.domain.validation import normalize_tags
from pincho.infrastructure.resilience.cancellation import CancellationToken

__all__ = [
    "__version__",
    "AuthError",
    "CancellationToken",
    "ConfigurationError",
    "DeadlineExceeded",
    "ErrorKind",
    "NetworkError",
    "NotificationRequest",
    "PinchoClient",
    "PinchoError",
    "RateLimitError",
    "RateLimitInfo",
    "RequestCancelled",
    "SendResponse",
    "ServerError",
    "ValidationError",
    "normalize_tags",
]
