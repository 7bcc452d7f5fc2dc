"""
Unit tests for the gateway retry executor.
"""

import asyncio

import pytest
import httpx
from unittest.mock import AsyncMock

from request_gateway.app.models import CancellationToken, Session
from request_gateway.app.resilience.retry_executor import RetryExecutor, backoff_delay
from shared.errors import GatewayTimeoutError, RequestCancelledError
from shared.retry import RetryExhaustedError
from shared.test_helpers import RecordingSleep, json_response


class TestRetryExecutor:
    """Test cases for RetryExecutor."""

    @pytest.fixture
    def sleep(self):
        return RecordingSleep()

    @pytest.fixture
    def executor(self, sleep):
        return RetryExecutor(sleep=sleep)

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, executor, sleep):
        dispatch = AsyncMock(return_value=json_response(200, {"ok": True}))

        outcome = await executor.execute_with_retry(dispatch)

        assert outcome.response.status == 200
        assert outcome.retry_count == 0
        assert dispatch.await_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_server_error_exhausts_budget(self, executor, sleep):
        dispatch = AsyncMock(return_value=json_response(503, {"message": "unavailable"}))

        outcome = await executor.execute_with_retry(dispatch, retries=3)

        assert dispatch.await_count == 4
        assert outcome.response.status == 503
        assert outcome.retry_count == 3
        assert sleep.delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_recovers_after_failures(self, executor, sleep):
        dispatch = AsyncMock(side_effect=[
            json_response(500),
            json_response(500),
            json_response(200, {"total": 42}),
        ])

        outcome = await executor.execute_with_retry(dispatch, retries=2)

        assert outcome.response.data == {"total": 42}
        assert outcome.retry_count == 2
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_zero_retries_returns_failure_immediately(self, executor, sleep):
        dispatch = AsyncMock(return_value=json_response(500))

        outcome = await executor.execute_with_retry(dispatch, retries=0)

        assert dispatch.await_count == 1
        assert outcome.response.status == 500
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_transport_errors_retried_then_raised(self, executor, sleep):
        error = httpx.ConnectError("connection refused")
        dispatch = AsyncMock(side_effect=error)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await executor.execute_with_retry(dispatch, retries=2)

        assert exc_info.value.last_exception is error
        assert exc_info.value.attempts == 3
        assert dispatch.await_count == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self, executor):
        dispatch = AsyncMock(side_effect=[GatewayTimeoutError(), json_response(200, {})])

        outcome = await executor.execute_with_retry(dispatch, retries=1)

        assert outcome.response.ok
        assert outcome.retry_count == 1

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates(self, executor, sleep):
        dispatch = AsyncMock(side_effect=RequestCancelledError())

        with pytest.raises(RequestCancelledError):
            await executor.execute_with_retry(dispatch, retries=3)

        assert dispatch.await_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_unauthorized_refreshes_once_without_consuming_budget(self, sleep):
        refresh = AsyncMock(return_value=Session(access_token="fresh"))
        executor = RetryExecutor(refresh_session=refresh, sleep=sleep)
        dispatch = AsyncMock(side_effect=[json_response(401), json_response(200, {"ok": True})])

        outcome = await executor.execute_with_retry(dispatch, retries=3)

        assert outcome.response.ok
        assert outcome.retry_count == 0
        assert outcome.refreshed is True
        assert refresh.await_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_repeated_unauthorized_refreshes_only_once(self, sleep):
        refresh = AsyncMock(return_value=Session(access_token="fresh"))
        executor = RetryExecutor(refresh_session=refresh, sleep=sleep)
        dispatch = AsyncMock(return_value=json_response(401))

        outcome = await executor.execute_with_retry(dispatch, retries=2)

        assert refresh.await_count == 1
        # One replay after refresh, then the full retry budget
        assert dispatch.await_count == 4
        assert outcome.response.status == 401
        assert outcome.retry_count == 2

    @pytest.mark.asyncio
    async def test_failed_refresh_falls_through_to_backoff(self, sleep):
        refresh = AsyncMock(return_value=None)
        executor = RetryExecutor(refresh_session=refresh, sleep=sleep)
        dispatch = AsyncMock(side_effect=[json_response(401), json_response(200, {})])

        outcome = await executor.execute_with_retry(dispatch, retries=2)

        assert refresh.await_count == 1
        assert outcome.response.ok
        assert outcome.retry_count == 1
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_refresh_exception_falls_through_to_backoff(self, sleep):
        refresh = AsyncMock(side_effect=RuntimeError("auth down"))
        executor = RetryExecutor(refresh_session=refresh, sleep=sleep)
        dispatch = AsyncMock(side_effect=[json_response(401), json_response(200, {})])

        outcome = await executor.execute_with_retry(dispatch, retries=1)

        assert outcome.response.ok
        assert outcome.retry_count == 1

    @pytest.mark.asyncio
    async def test_unauthorized_after_first_attempt_does_not_refresh(self, sleep):
        refresh = AsyncMock(return_value=Session(access_token="fresh"))
        executor = RetryExecutor(refresh_session=refresh, sleep=sleep)
        dispatch = AsyncMock(side_effect=[json_response(500), json_response(401), json_response(200, {})])

        outcome = await executor.execute_with_retry(dispatch, retries=2)

        assert refresh.await_count == 0
        assert outcome.retry_count == 2

    @pytest.mark.asyncio
    async def test_custom_backoff_base(self, sleep):
        executor = RetryExecutor(backoff_base_ms=250, sleep=sleep)
        dispatch = AsyncMock(return_value=json_response(502))

        await executor.execute_with_retry(dispatch, retries=3)

        assert sleep.delays == [0.25, 0.5, 1.0]

    @pytest.mark.asyncio
    async def test_os_level_connection_error_is_retried(self, executor, sleep):
        dispatch = AsyncMock(side_effect=[ConnectionResetError("reset by peer"), json_response(200, {"ok": True})])

        outcome = await executor.execute_with_retry(dispatch, retries=2)

        assert dispatch.await_count == 2
        assert outcome.response.status == 200
        assert outcome.retry_count == 1
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_interrupts_wait(self):
        executor = RetryExecutor(backoff_base_ms=5_000)
        dispatch = AsyncMock(return_value=json_response(500))
        token = CancellationToken()
        loop = asyncio.get_running_loop()
        loop.call_later(0.05, token.cancel, "shutting down")
        started = loop.time()

        with pytest.raises(RequestCancelledError) as exc_info:
            await executor.execute_with_retry(dispatch, retries=3, cancel_token=token)

        assert loop.time() - started < 1.0
        assert dispatch.await_count == 1
        assert exc_info.value.message == "shutting down"
        assert exc_info.value.retry_count == 0

    @pytest.mark.asyncio
    async def test_cancelled_dispatch_carries_retry_count(self, executor):
        dispatch = AsyncMock(side_effect=[json_response(500), json_response(500), RequestCancelledError()])

        with pytest.raises(RequestCancelledError) as exc_info:
            await executor.execute_with_retry(dispatch, retries=3)

        assert exc_info.value.retry_count == 2

    def test_backoff_delay_doubles_per_attempt(self):
        assert [backoff_delay(attempt, 1_000) for attempt in range(4)] == [1.0, 2.0, 4.0, 8.0]
