"""Performs a single HTTP attempt against the Pincho API.

The executor never retries. It sends one request, reads the whole body and
turns the response into either a parsed success body or a typed error for
the retry service to judge.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from pincho.domain.errors import NetworkError, classify_response
from pincho.domain.models.notification import SendResponse
from pincho.infrastructure.resilience.backoff import parse_retry_after
from pincho.infrastructure.resilience.cancellation import CancellationToken
from pincho.infrastructure.resilience.rate_limit import RateLimitState

logger = logging.getLogger(__name__)


@dataclass
class PreparedRequest:
    """A fully built request, reusable across attempts."""
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    content: bytes = b""


class RequestExecutor:
    """Executes one round trip and classifies the response."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        rate_limit_state: RateLimitState,
        attempt_timeout: Optional[float] = None,
    ):
        """Initializes the executor.

        Args:
            http_client: Client used for the round trip.
            rate_limit_state: Updated from every successful response.
            attempt_timeout: Bound in seconds on one whole attempt, connect
                through body read. httpx timeouts only apply per phase.
        """
        self.http_client = http_client
        self.rate_limit_state = rate_limit_state
        self.attempt_timeout = attempt_timeout

    async def execute(
        self,
        request: PreparedRequest,
        token: Optional[CancellationToken] = None,
    ) -> Optional[SendResponse]:
        """Sends ``request`` once.

        Returns:
            The parsed success body, or None when a 2xx response had no
            usable JSON body.

        Raises:
            NetworkError: On any transport failure or when the attempt timed out.
            PinchoError: The classified error for any non-2xx status. A 3xx
                the client did not follow is a generic error.
            RequestCancelled: If ``token`` fired while the request was in flight.
        """
        token = token or CancellationToken()
        token.raise_if_cancelled()
        start_time = time.perf_counter()
        try:
            response = await token.run(self._send(request))
        except httpx.TransportError as e:
            logger.debug(f"Transport failure for {request.method} {request.url}: {type(e).__name__}: {e}")
            raise NetworkError(f"request failed: {type(e).__name__}") from e
        except asyncio.TimeoutError as e:
            logger.debug(f"{request.method} {request.url} exceeded {self.attempt_timeout}s")
            raise NetworkError(f"request timed out after {self.attempt_timeout:g}s") from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"{request.method} {request.url} -> {response.status_code} in {latency_ms:.1f}ms")

        if not response.is_success:
            retry_after = None
            if response.status_code == 429:
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
            raise classify_response(response.status_code, response.text, retry_after=retry_after)

        self.rate_limit_state.update_from_headers(response.headers)
        return self._parse_success(response)

    async def _send(self, request: PreparedRequest) -> httpx.Response:
        # Non-streaming: httpx reads the full body, so read failures surface here too.
        return await asyncio.wait_for(
            self.http_client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.content,
            ),
            timeout=self.attempt_timeout,
        )

    @staticmethod
    def _parse_success(response: httpx.Response) -> Optional[SendResponse]:
        if not response.content:
            return None
        try:
            data = json.loads(response.content)
        except ValueError:
            logger.debug("Successful response body is not JSON; treating as success")
            return None
        if not isinstance(data, dict):
            logger.debug("Successful response body is not an object; treating as success")
            return None
        return SendResponse.from_dict(data)
