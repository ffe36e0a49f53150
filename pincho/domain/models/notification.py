"""Value objects exchanged with the Pincho API.

NotificationRequest is what a caller hands to the client, SendResponse is the
optional body of a successful send, and RateLimitInfo is the quota snapshot
taken from the most recent successful response.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, NewType, Optional

Token = NewType("Token", str)        # Bearer token for the API
ApiUrl = NewType("ApiUrl", str)      # Send endpoint
Payload = NewType("Payload", Dict[str, Any])  # JSON body as transmitted

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


@dataclass
class NotificationRequest:
    """A single notification to send.

    ``encryption_password`` is only used locally to derive the key for
    client-side encryption and is never transmitted.
    """
    title: str
    message: Optional[str] = None
    type: Optional[str] = None
    tags: Optional[List[str]] = None
    image_url: Optional[str] = None
    action_url: Optional[str] = None
    encryption_password: Optional[str] = field(default=None, repr=False)


@dataclass
class SendResponse:
    """Parsed body of a successful send."""
    status: str = ""
    message: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SendResponse":
        return cls(status=str(data.get("status") or ""), message=str(data.get("message") or ""))


@dataclass(frozen=True)
class RateLimitInfo:
    """Quota reported by the server on the most recent successful response."""
    limit: int = 0
    remaining: int = 0
    reset: datetime = EPOCH

    @property
    def has_reset(self) -> bool:
        return self.reset != EPOCH
