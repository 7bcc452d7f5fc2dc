"""
Retry executor: bounded retries with exponential backoff and a one-shot
credential refresh on authentication failure.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

import httpx

from shared.errors import GatewayTimeoutError, RequestCancelledError
from shared.logging import get_logger
from shared.retry import RetryExhaustedError
from ..models import CancellationToken, RawResponse, Session


DEFAULT_RETRIES = 3
DEFAULT_BACKOFF_BASE_MS = 1_000
UNAUTHORIZED = 401

# OSError covers connection failures raised by transports other than httpx.
RETRYABLE_EXCEPTIONS: Tuple[Type[BaseException], ...] = (httpx.HTTPError, OSError, GatewayTimeoutError)


@dataclass
class RetryOutcome:
    """Final raw response plus how it was reached."""
    response: RawResponse
    retry_count: int
    refreshed: bool = False


class RetryExecutor:
    """Runs a dispatch callable until it succeeds or the retry budget is spent.

    A 401 on the very first attempt triggers exactly one session refresh; a
    refreshed session replays the dispatch at once, outside the retry budget.
    Other failures, raised or returned, back off for base * 2**attempt. A
    cancellation token, when given, also interrupts the backoff wait.
    """

    def __init__(
        self,
        refresh_session: Optional[Callable[[], Awaitable[Optional[Session]]]] = None,
        backoff_base_ms: float = DEFAULT_BACKOFF_BASE_MS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        retryable_exceptions: Tuple[Type[BaseException], ...] = RETRYABLE_EXCEPTIONS,
    ):
        self.refresh_session = refresh_session
        self.backoff_base_ms = backoff_base_ms
        self.retryable_exceptions = retryable_exceptions
        self._sleep = sleep
        self.logger = get_logger("gateway.retry")

    async def execute_with_retry(
        self,
        dispatch: Callable[[], Awaitable[RawResponse]],
        retries: int = DEFAULT_RETRIES,
        cancel_token: Optional[CancellationToken] = None,
    ) -> RetryOutcome:
        attempt = 0
        refreshed = False

        while True:
            try:
                response = await dispatch()
            except RequestCancelledError as exc:
                raise RequestCancelledError(exc.message, details=exc.details, retry_count=attempt) from exc
            except self.retryable_exceptions as exc:
                if attempt >= retries:
                    self.logger.error(
                        "All retry attempts exhausted",
                        attempts=attempt + 1,
                        error=str(exc) or type(exc).__name__
                    )
                    raise RetryExhaustedError(
                        f"Request failed after {attempt + 1} attempts",
                        last_exception=exc,
                        attempts=attempt + 1
                    ) from exc

                await self._backoff(attempt, str(exc) or type(exc).__name__, cancel_token)
                attempt += 1
                continue

            if response.status == UNAUTHORIZED and attempt == 0 and not refreshed:
                refreshed = True
                if await self._refresh():
                    continue

            if response.ok or attempt >= retries:
                return RetryOutcome(response=response, retry_count=attempt, refreshed=refreshed)

            await self._backoff(attempt, f"status {response.status}", cancel_token)
            attempt += 1

    async def _refresh(self) -> bool:
        """Attempt a single session refresh; True when a new session was issued."""
        if self.refresh_session is None:
            return False

        try:
            session = await self.refresh_session()
        except Exception as exc:
            self.logger.warning("Session refresh failed", error=str(exc))
            return False

        if session is None:
            self.logger.warning("Session refresh returned no session")
            return False

        self.logger.info("Session refreshed after authentication failure")
        return True

    async def _backoff(self, attempt: int, reason: str, cancel_token: Optional[CancellationToken]) -> None:
        """Sleep before the next attempt; a cancel during the wait ends the call."""
        delay = backoff_delay(attempt, self.backoff_base_ms)
        self.logger.warning(
            "Attempt failed, waiting before next attempt",
            attempt=attempt + 1,
            delay=delay,
            reason=reason
        )
        if cancel_token is None:
            await self._sleep(delay)
            return

        if not cancel_token.cancelled:
            sleep_task = asyncio.ensure_future(self._sleep(delay))
            cancel_task = asyncio.ensure_future(cancel_token.wait())
            try:
                await asyncio.wait({sleep_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for task in (sleep_task, cancel_task):
                    if not task.done():
                        task.cancel()
            if sleep_task.done() and not cancel_token.cancelled:
                sleep_task.result()

        if cancel_token.cancelled:
            self.logger.info("Request cancelled during backoff", attempt=attempt + 1)
            raise RequestCancelledError(cancel_token.reason or "Request cancelled", retry_count=attempt)


def backoff_delay(attempt: int, base_ms: float) -> float:
    """Seconds to wait after the given (0-based) failed attempt: base * 2**attempt."""
    return base_ms * (2 ** attempt) / 1000
