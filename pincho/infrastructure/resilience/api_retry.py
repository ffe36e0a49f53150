"""Service for executing API calls with automatic retries.

Implements exponential backoff for transient errors like rate limits (429),
server errors (5xx) and network failures. Retry decisions live only here:
the request executor performs a single attempt and raises a typed error,
this service decides whether to wait and try again.
"""

import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pincho.domain.errors import ErrorKind, PinchoError, RequestCancelled
from pincho.domain.events.api_events import (
    AttemptFailed, AttemptStarted, AttemptSucceeded, CallFailed,
    DomainEvent, EventObserver, RetryScheduled,
)
from pincho.infrastructure.resilience.backoff import compute_backoff
from pincho.infrastructure.resilience.cancellation import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3


class ApiRetryService:
    """Runs one logical call as a sequence of attempts with backoff between them."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        observer: Optional[EventObserver] = None,
        backoff: Callable[[PinchoError, int], float] = compute_backoff,
    ):
        """Initializes the ApiRetryService.

        Args:
            max_retries: Retries after the first attempt. 0 disables retries.
            observer: Optional callable receiving a DomainEvent per step.
            backoff: Maps (failed error, 0-based attempt) to a delay in seconds.
        """
        if max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        self.max_retries = max_retries
        self.observer = observer
        self.backoff = backoff

    def _dispatch(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self.observer is None:
            return
        try:
            self.observer(event)
        except Exception as e:
            logger.error(f"Event observer failed on {type(event).__name__}: {e}", exc_info=True)

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        token: Optional[CancellationToken] = None,
        endpoint_name: str = "send",
    ) -> T:
        """Executes ``operation`` until it succeeds, fails permanently or retries run out.

        Args:
            operation: Zero-argument coroutine factory performing one attempt.
            token: Cancellation token raced against every backoff wait.
            endpoint_name: Name used in logs and events.

        Returns:
            Whatever the successful attempt returned.

        Raises:
            PinchoError: The error from the last attempt.
            RequestCancelled: If the token fired during a wait or a request.
        """
        token = token or CancellationToken()
        attempt = 0

        while True:
            if attempt > 0:
                logger.debug(f"Retry attempt {attempt}/{self.max_retries} for {endpoint_name}")
            self._dispatch(AttemptStarted(endpoint=endpoint_name, attempt_number=attempt + 1))

            start_time = time.perf_counter()
            try:
                result = await operation()
            except PinchoError as e:
                self._dispatch(AttemptFailed(
                    endpoint=endpoint_name,
                    attempt_number=attempt + 1,
                    error_kind=e.kind.name,
                    error_message=e.message,
                    status_code=e.status_code,
                    retryable=e.is_retryable(),
                ))

                if not e.is_retryable():
                    logger.debug(f"Error not retryable: {e}")
                    self._fail(endpoint_name, attempt + 1, e)
                    raise

                if attempt >= self.max_retries:
                    logger.warning(f"Max retries ({self.max_retries}) exceeded for {endpoint_name}: {e}")
                    self._fail(endpoint_name, attempt + 1, e)
                    raise

                delay = self.backoff(e, attempt)
                if e.kind is ErrorKind.RATE_LIMIT:
                    logger.warning(f"Rate limit hit, backing off for {delay:.2f}s")
                else:
                    logger.debug(f"Retryable error, backing off for {delay:.2f}s: {e}")
                self._dispatch(RetryScheduled(endpoint=endpoint_name, attempt_number=attempt + 1, delay_seconds=delay))

                try:
                    await token.sleep(delay)
                except RequestCancelled as cancel_error:
                    logger.debug(f"Cancelled during retry backoff for {endpoint_name}")
                    self._fail(endpoint_name, attempt + 1, cancel_error)
                    raise
                attempt += 1
                continue
            except Exception as e:
                # Cancellation or an unexpected fault inside the attempt
                self._fail(endpoint_name, attempt + 1, e)
                raise

            latency_ms = (time.perf_counter() - start_time) * 1000
            self._dispatch(AttemptSucceeded(
                endpoint=endpoint_name,
                attempt_number=attempt + 1,
                latency_ms=latency_ms,
                response_summary=result,
            ))
            return result

    def _fail(self, endpoint_name: str, attempts: int, error: Any) -> None:
        self._dispatch(CallFailed(
            endpoint=endpoint_name,
            attempts=attempts,
            error_type=type(error).__name__,
            error_message=str(error),
        ))
