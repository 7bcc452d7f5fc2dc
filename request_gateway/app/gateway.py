"""
Gateway facade: the public call surface over caching, rate limiting,
retry/refresh, timeouts and the FIFO queue.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from shared.config import GatewayConfig, get_config
from shared.errors import GatewayTimeoutError, RateLimitError, RequestCancelledError
from shared.logging import clear_context, configure_logging, get_logger, set_endpoint_context, set_request_id
from shared.metrics import MetricsCollector
from shared.retry import RetryExhaustedError

from .adapters.auth_client import AuthProvider, SessionAuthClient
from .adapters.transport import HttpxTransport, Transport
from .caching.response_cache import ResponseCache
from .models import (
    CancellationToken,
    GatewayRequest,
    GatewayResult,
    HttpMethod,
    RateLimitRejection,
    RawResponse,
    ResponseEnvelope,
    ResponseMetrics,
    Session,
    now_ms,
)
from .queueing.request_queue import Operation, RequestQueue
from .ratelimit.fixed_window import FixedWindowRateLimiter, RateLimitConfig, load_rate_limit_policies
from .resilience.retry_executor import RetryExecutor


INTERNAL_ERROR_STATUS = 500
CANCELLED_STATUS = 499
BODY_METHODS = (HttpMethod.POST, HttpMethod.PUT)


class RequestGateway:
    """Resilient request gateway.

    Every ordinary outcome, including transport failures and timeouts, comes
    back as a ResponseEnvelope. The per-verb methods raise RateLimitError
    when client-side rate limiting refuses a call; send() and batch() return
    a RateLimitRejection instead.
    """

    def __init__(
        self,
        config: GatewayConfig,
        transport: Transport,
        auth_provider: Optional[AuthProvider] = None,
        *,
        rate_limits: Optional[Mapping[str, RateLimitConfig]] = None,
        session: Optional[Session] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], float] = now_ms,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config
        self.transport = transport
        self.auth_provider = auth_provider
        self.session = session
        self.rate_limits: Dict[str, RateLimitConfig] = dict(rate_limits or {})
        self.metrics = metrics or MetricsCollector("gateway")
        self._clock = clock

        self.cache = ResponseCache(default_ttl_ms=config.cache_ttl_ms, clock=clock)
        self.rate_limiter = FixedWindowRateLimiter(clock=clock)
        self.queue = RequestQueue(metrics=self.metrics)
        self.retry_executor = RetryExecutor(
            refresh_session=self._refresh_session if auth_provider is not None else None,
            backoff_base_ms=config.backoff_base_ms,
            sleep=sleep,
        )
        self.logger = get_logger("gateway.facade")

    # Public surface

    async def get(self, endpoint: str, headers: Optional[Dict[str, str]] = None, **options: Any) -> ResponseEnvelope:
        return await self._call(HttpMethod.GET, endpoint, None, headers, **options)

    async def post(self, endpoint: str, body: Any = None, headers: Optional[Dict[str, str]] = None,
                   **options: Any) -> ResponseEnvelope:
        return await self._call(HttpMethod.POST, endpoint, body, headers, **options)

    async def put(self, endpoint: str, body: Any = None, headers: Optional[Dict[str, str]] = None,
                  **options: Any) -> ResponseEnvelope:
        return await self._call(HttpMethod.PUT, endpoint, body, headers, **options)

    async def delete(self, endpoint: str, headers: Optional[Dict[str, str]] = None, **options: Any) -> ResponseEnvelope:
        return await self._call(HttpMethod.DELETE, endpoint, None, headers, **options)

    async def batch(self, requests: List[Union[GatewayRequest, Dict[str, Any]]]) -> List[GatewayResult]:
        """Send all requests concurrently; results are index-aligned with the input."""
        prepared = [
            request if isinstance(request, GatewayRequest) else GatewayRequest.model_validate(request)
            for request in requests
        ]
        return list(await asyncio.gather(*(self.send(request) for request in prepared)))

    def enqueue(self, operation: Operation) -> asyncio.Future:
        """Defer operation to the FIFO queue; the returned future may be ignored."""
        return self.queue.enqueue(operation)

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_metrics(self) -> Dict[str, Any]:
        return {
            "cache_size": self.cache.size,
            "queue_size": self.queue.size,
            "rate_limits": self.rate_limiter.snapshot(),
        }

    def set_rate_limit(self, endpoint: str, config: Optional[RateLimitConfig]) -> None:
        """Configure or remove the rate limit policy for an endpoint."""
        if config is None:
            self.rate_limits.pop(endpoint, None)
        else:
            self.rate_limits[endpoint] = config

    async def send(self, request: GatewayRequest, cancel_token: Optional[CancellationToken] = None) -> GatewayResult:
        """Run one request through the full pipeline without raising for ordinary outcomes."""
        set_request_id()
        set_endpoint_context(request.endpoint)
        try:
            return await self._send(request, cancel_token)
        finally:
            clear_context()

    async def aclose(self) -> None:
        await self.queue.close()
        await self.transport.aclose()

    async def __aenter__(self) -> "RequestGateway":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # Internals

    async def _send(self, request: GatewayRequest, cancel_token: Optional[CancellationToken]) -> GatewayResult:
        started = self._clock()
        method = request.method.value

        cache_key = None
        if request.cacheable:
            cache_key = ResponseCache.make_key(method, request.endpoint, request.payload)
            cached = self.cache.get(cache_key)
            if cached is not None:
                self.metrics.increment_counter("gateway_cache_hits_total", endpoint=request.endpoint)
                envelope = ResponseEnvelope(
                    data=cached,
                    status=200,
                    success=True,
                    metrics=ResponseMetrics(response_time_ms=self._elapsed(started), cached=True)
                )
                self._record(request, "cached", envelope)
                return envelope
            self.metrics.increment_counter("gateway_cache_misses_total", endpoint=request.endpoint)

        policy = self.rate_limits.get(request.endpoint)
        if not self.rate_limiter.check_rate_limit(request.endpoint, policy):
            bucket = self.rate_limiter.get_bucket(request.endpoint)
            self.metrics.increment_counter("gateway_rate_limit_rejections_total", endpoint=request.endpoint)
            return RateLimitRejection(
                endpoint=request.endpoint,
                limit=policy.max_requests,
                window_ms=policy.window_ms,
                reset_time_ms=bucket.reset_time_ms if bucket else None,
                message=f"Rate limit exceeded for {request.endpoint}"
            )

        retries = self.config.default_retries if request.retries is None else request.retries
        timeout_ms = self.config.default_timeout_ms if request.timeout_ms is None else request.timeout_ms

        try:
            outcome = await self.retry_executor.execute_with_retry(
                lambda: self._dispatch(request, timeout_ms, cancel_token),
                retries=retries,
                cancel_token=cancel_token,
            )
        except RetryExhaustedError as exc:
            last = exc.last_exception
            envelope = self._failure(str(last) or type(last).__name__, exc.attempts - 1, started)
        except RequestCancelledError as exc:
            envelope = self._failure(exc.message, exc.retry_count, started, status=CANCELLED_STATUS)
        except Exception as exc:
            self.logger.error("Unexpected gateway failure", error=str(exc), error_type=type(exc).__name__)
            envelope = self._failure(str(exc) or type(exc).__name__, 0, started)
        else:
            response = outcome.response
            # None marks a cache miss, so empty bodies are never cached.
            if cache_key is not None and response.ok and response.data is not None:
                self.cache.set(cache_key, response.data, request.cache_ttl_ms)
            envelope = ResponseEnvelope(
                data=response.data,
                status=response.status,
                success=response.ok,
                error=response.error_message,
                metrics=ResponseMetrics(
                    response_time_ms=self._elapsed(started),
                    retry_count=outcome.retry_count,
                    cached=False
                )
            )

        if envelope.metrics.retry_count:
            self.metrics.increment_counter(
                "gateway_retries_total", amount=envelope.metrics.retry_count, endpoint=request.endpoint
            )
        self._record(request, "success" if envelope.success else "failure", envelope)
        return envelope

    async def _call(self, method: HttpMethod, endpoint: str, body: Any, headers: Optional[Dict[str, str]],
                    cancel_token: Optional[CancellationToken] = None, **options: Any) -> ResponseEnvelope:
        request = GatewayRequest(endpoint=endpoint, method=method, payload=body, headers=headers, **options)
        result = await self.send(request, cancel_token=cancel_token)
        if isinstance(result, RateLimitRejection):
            raise RateLimitError(result.message, details=result.model_dump())
        return result

    async def _dispatch(self, request: GatewayRequest, timeout_ms: float,
                        cancel_token: Optional[CancellationToken]) -> RawResponse:
        """One timeout-bound transport call, abortable through cancel_token."""
        if cancel_token is not None and cancel_token.cancelled:
            raise RequestCancelledError(cancel_token.reason or "Request cancelled")

        body = request.payload if request.method in BODY_METHODS else None
        send_task = asyncio.ensure_future(self.transport.send(
            request.method.value,
            self._build_url(request.endpoint),
            self._build_headers(request.headers),
            body,
        ))
        waiters = {send_task}
        cancel_task = None
        if cancel_token is not None:
            cancel_task = asyncio.ensure_future(cancel_token.wait())
            waiters.add(cancel_task)

        try:
            done, _ = await asyncio.wait(waiters, timeout=timeout_ms / 1000, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in waiters:
                if not task.done():
                    task.cancel()

        if send_task in done:
            return send_task.result()
        if cancel_task is not None and cancel_task in done:
            raise RequestCancelledError(cancel_token.reason or "Request cancelled")
        raise GatewayTimeoutError(
            f"Request to {request.endpoint} timed out after {timeout_ms:g} ms",
            details={"endpoint": request.endpoint, "timeout_ms": timeout_ms}
        )

    async def _refresh_session(self) -> Optional[Session]:
        session = await self.auth_provider.refresh_session()
        if session is not None:
            self.session = session
        return session

    def _build_url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.config.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    def _build_headers(self, headers: Optional[Dict[str, str]]) -> Dict[str, str]:
        merged = dict(self.config.default_headers)
        if self.session is not None:
            merged["Authorization"] = f"Bearer {self.session.access_token}"
        if headers:
            merged.update(headers)
        return merged

    def _elapsed(self, started: float) -> float:
        return max(0.0, self._clock() - started)

    def _failure(self, message: str, retry_count: int, started: float,
                 status: int = INTERNAL_ERROR_STATUS) -> ResponseEnvelope:
        return ResponseEnvelope(
            data=None,
            status=status,
            success=False,
            error=message,
            metrics=ResponseMetrics(response_time_ms=self._elapsed(started), retry_count=retry_count, cached=False)
        )

    def _record(self, request: GatewayRequest, outcome: str, envelope: ResponseEnvelope) -> None:
        self.metrics.record_request(
            request.method.value, request.endpoint, outcome, envelope.metrics.response_time_ms / 1000
        )
        self.logger.info(
            "Gateway request completed",
            method=request.method.value,
            status=envelope.status,
            success=envelope.success,
            cached=envelope.metrics.cached,
            retry_count=envelope.metrics.retry_count,
            response_time_ms=round(envelope.metrics.response_time_ms, 2)
        )


def create_gateway(
    config: Optional[GatewayConfig] = None,
    *,
    transport: Optional[Transport] = None,
    auth_provider: Optional[AuthProvider] = None,
    session: Optional[Session] = None,
    rate_limits: Optional[Mapping[str, RateLimitConfig]] = None,
    metrics: Optional[MetricsCollector] = None,
) -> RequestGateway:
    """Build a gateway from configuration, filling in default collaborators."""
    config = config or get_config()
    configure_logging("gateway", config.log_level)

    policies: Dict[str, RateLimitConfig] = {}
    if config.rate_limits_file:
        policies.update(load_rate_limit_policies(config.rate_limits_file))
    if rate_limits:
        policies.update(rate_limits)

    if auth_provider is None:
        auth_provider = SessionAuthClient(config.auth_service_url, session=session)

    return RequestGateway(
        config,
        transport or HttpxTransport(),
        auth_provider,
        rate_limits=policies,
        session=session,
        metrics=metrics,
    )
