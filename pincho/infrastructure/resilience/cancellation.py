"""Cancellation token shared by the backoff wait and the HTTP request.

A token fires either when ``cancel()`` is called or when its deadline
passes. Anything awaiting through the token then raises RequestCancelled
(or DeadlineExceeded), which callers can tell apart from HTTP errors.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Optional, TypeVar

from pincho.domain.errors import DeadlineExceeded, RequestCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Explicit cancellation signal with an optional monotonic deadline."""

    def __init__(self, deadline: Optional[float] = None):
        """Initializes the token.

        Args:
            deadline: Absolute ``time.monotonic()`` value after which the
                token counts as fired. None means no deadline.
        """
        self.deadline = deadline
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancellationToken":
        """Creates a token whose deadline is ``seconds`` from now."""
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self, reason: str = "request cancelled") -> None:
        """Fires the token. Later calls keep the first reason."""
        if self._reason is None:
            self._reason = reason
            logger.debug(f"Cancellation requested: {reason}")
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RequestCancelled(self._reason or "request cancelled")
        if self.expired:
            raise DeadlineExceeded()

    async def sleep(self, delay: float) -> None:
        """Waits ``delay`` seconds unless the token fires first.

        Raises:
            RequestCancelled: If ``cancel()`` was called during the wait.
            DeadlineExceeded: If the deadline passed during the wait.
        """
        self.raise_if_cancelled()
        remaining = self.remaining()
        timeout = delay if remaining is None else min(delay, remaining)
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        self.raise_if_cancelled()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Awaits ``awaitable`` but abandons it if the token fires first."""
        self.raise_if_cancelled()
        task: "asyncio.Task[Any]" = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
            if task in done:
                return task.result()
            self.raise_if_cancelled()
            # asyncio.wait only returns without the task once the token fired
            # or the deadline passed, both of which raised above.
            raise DeadlineExceeded()
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
