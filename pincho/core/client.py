"""Pincho API client.

Connects local request preparation (validation, tag normalization,
encryption) with the resilience layer: each send is one logical call run by
the ApiRetryService, whose attempts are performed by the RequestExecutor.

Example:
    async with PinchoClient("abc12345") as client:
        await client.send_simple("Hello", "World")
        await client.send(NotificationRequest(
            title="Server Alert",
            message="CPU usage high",
            type="alert",
            tags=["monitoring", "production"],
        ))
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from pincho.version import __version__
from pincho.domain.errors import ConfigurationError, PinchoError
from pincho.domain.events.api_events import EventObserver
from pincho.domain.models.notification import (
    NotificationRequest, Payload, RateLimitInfo, SendResponse,
)
from pincho.domain.validation import normalize_tags, validate_request
from pincho.infrastructure.config.settings import ClientSettings, resolve_settings
from pincho.infrastructure.crypto.encryption import encrypt_message, generate_iv
from pincho.infrastructure.http.executor import PreparedRequest, RequestExecutor
from pincho.infrastructure.monitoring.logger_setup import truncate_token
from pincho.infrastructure.resilience.api_retry import ApiRetryService
from pincho.infrastructure.resilience.cancellation import CancellationToken
from pincho.infrastructure.resilience.rate_limit import RateLimitState

logger = logging.getLogger(__name__)

USER_AGENT = f"pincho-python/{__version__}"

# Fields encrypted when a password is given. Type and tags stay readable for routing.
ENCRYPTED_FIELDS = ("title", "message", "imageURL", "actionURL")


class PinchoClient:
    """Async client for the Pincho push notification API.

    A client may be shared by concurrent tasks. The only state they share is
    the rate limit snapshot, where the last response to arrive wins.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        observer: Optional[EventObserver] = None,
    ):
        """Initializes the client.

        Unset arguments fall back to PINCHO_TOKEN, PINCHO_API_URL,
        PINCHO_TIMEOUT and PINCHO_MAX_RETRIES, then ~/.pincho/config.yaml,
        then defaults.

        Args:
            token: Pincho API token.
            api_url: Send endpoint URL.
            timeout: Per-attempt HTTP timeout in seconds.
            max_retries: Retries after the first attempt; 0 disables retries.
            http_client: Optional preconfigured httpx.AsyncClient. The caller
                keeps ownership and must close it.
            observer: Optional callable receiving attempt/retry events.

        Raises:
            ConfigurationError: If the resolved settings are unusable.
        """
        self.settings = self._validate(resolve_settings(token, api_url, timeout, max_retries))

        self._owns_http_client = http_client is None
        # 307/308 redirects keep the POST body
        self.http_client = http_client or httpx.AsyncClient(timeout=self.settings.timeout, follow_redirects=True)

        self.rate_limit_state = RateLimitState()
        self.executor = RequestExecutor(self.http_client, self.rate_limit_state, attempt_timeout=self.settings.timeout)
        self.retry_service = ApiRetryService(max_retries=self.settings.max_retries, observer=observer)

        logger.debug(
            f"PinchoClient initialized: token={truncate_token(self.settings.token)}, "
            f"api_url={self.settings.api_url}, timeout={self.settings.timeout}s, "
            f"max_retries={self.settings.max_retries}"
        )

    @staticmethod
    def _validate(settings: ClientSettings) -> ClientSettings:
        if not settings.token:
            raise ConfigurationError("token is required (set PINCHO_TOKEN or pass token=)")
        if not settings.api_url:
            raise ConfigurationError("API URL cannot be empty")
        if settings.timeout is None or settings.timeout <= 0:
            raise ConfigurationError("timeout must be positive")
        if settings.max_retries is None or settings.max_retries < 0:
            raise ConfigurationError("max retries cannot be negative")
        return settings

    @property
    def token(self) -> str:
        return self.settings.token

    @property
    def api_url(self) -> str:
        return self.settings.api_url

    @property
    def max_retries(self) -> int:
        return self.settings.max_retries

    async def __aenter__(self) -> "PinchoClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Closes the HTTP client if this instance created it."""
        if self._owns_http_client:
            await self.http_client.aclose()

    def get_rate_limit_info(self) -> Optional[RateLimitInfo]:
        """Rate limit info from the most recent successful response, or None."""
        return self.rate_limit_state.snapshot

    async def send_simple(
        self,
        title: str,
        message: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Optional[SendResponse]:
        """Sends a notification with just a title and message."""
        return await self.send(NotificationRequest(title=title, message=message), cancel_token=cancel_token)

    async def send(
        self,
        request: NotificationRequest,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Optional[SendResponse]:
        """Sends a notification, retrying transient failures.

        Args:
            request: The notification to send.
            cancel_token: Optional cancellation token or deadline for the whole call.

        Returns:
            The parsed server response, or None if the 2xx body was empty or
            not parseable.

        Raises:
            ValidationError: Missing title (before any request) or HTTP 400.
            AuthError: HTTP 401/403.
            RateLimitError: HTTP 429 after retries.
            ServerError: HTTP 5xx after retries.
            NetworkError: Transport failure after retries.
            PinchoError: Local encryption failure or any other HTTP error.
            RequestCancelled: The token fired; DeadlineExceeded for deadlines.
        """
        validate_request(request)
        logger.debug(f"send() called with title: {request.title}")

        payload = self.build_payload(request)
        try:
            content = json.dumps(payload).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise PinchoError(f"failed to marshal request: {e}") from e

        prepared = PreparedRequest(
            method="POST",
            url=self.settings.api_url,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.settings.token}",
                "User-Agent": USER_AGENT,
            },
            content=content,
        )
        cancel_token = cancel_token or CancellationToken()
        return await self.retry_service.execute_with_retry(
            lambda: self.executor.execute(prepared, cancel_token),
            token=cancel_token,
            endpoint_name="send",
        )

    def build_payload(self, request: NotificationRequest) -> Payload:
        """Builds the JSON body, normalizing tags and encrypting if requested."""
        tags = normalize_tags(request.tags)
        if tags is not None and request.tags is not None and tags != list(request.tags):
            logger.debug(f"Tags normalized: {request.tags} -> {tags}")

        body: Dict[str, Any] = {"title": request.title}
        if request.message:
            body["message"] = request.message
        if request.type:
            body["type"] = request.type
        if tags:
            body["tags"] = tags
        if request.image_url:
            body["imageURL"] = request.image_url
        if request.action_url:
            body["actionURL"] = request.action_url

        if request.encryption_password:
            self._encrypt_fields(body, request.encryption_password)

        return Payload(body)

    @staticmethod
    def _encrypt_fields(body: Dict[str, Any], password: str) -> None:
        logger.debug("Encrypting title, message, imageURL, actionURL")
        try:
            iv, iv_hex = generate_iv()
        except (OSError, NotImplementedError) as e:
            logger.error(f"Failed to generate IV: {e}")
            raise PinchoError(f"failed to generate IV: {e}") from e
        for name in ENCRYPTED_FIELDS:
            if name not in body:
                continue
            try:
                body[name] = encrypt_message(body[name], password, iv)
            except (ValueError, TypeError) as e:
                logger.error(f"Failed to encrypt {name}: {e}")
                raise PinchoError(f"failed to encrypt {name}: {e}") from e
        body["iv"] = iv_hex
