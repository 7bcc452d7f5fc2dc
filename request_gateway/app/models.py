"""
Request, response and result types for the request gateway.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def now_ms() -> float:
    """Monotonic time in milliseconds; only differences between readings are meaningful."""
    return time.monotonic() * 1000


class HttpMethod(str, Enum):
    """Supported request methods."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class GatewayRequest(BaseModel):
    """A single call through the gateway. Immutable once built."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    endpoint: str = Field(min_length=1)
    method: HttpMethod = HttpMethod.GET
    payload: Any = None
    headers: Optional[Dict[str, str]] = None
    retries: Optional[int] = Field(default=None, ge=0)
    timeout_ms: Optional[float] = Field(default=None, gt=0)
    cache_ttl_ms: Optional[float] = Field(default=None, gt=0)

    @property
    def cacheable(self) -> bool:
        return self.method == HttpMethod.GET


class ResponseMetrics(BaseModel):
    """Per-call timing and resilience counters."""

    response_time_ms: float = 0.0
    retry_count: int = 0
    cached: bool = False


class ResponseEnvelope(BaseModel):
    """Uniform outcome of every ordinary gateway call."""

    data: Any = None
    status: int
    success: bool
    error: Optional[str] = None
    metrics: ResponseMetrics = Field(default_factory=ResponseMetrics)


class RateLimitRejection(BaseModel):
    """Outcome of a call refused by client-side rate limiting before dispatch."""

    endpoint: str
    limit: int
    window_ms: float
    reset_time_ms: Optional[float] = None
    message: str = "Rate limit exceeded"


GatewayResult = Union[ResponseEnvelope, RateLimitRejection]


@dataclass
class RawResponse:
    """Transport-level response before it is wrapped in an envelope."""

    status: int
    data: Any = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def error_message(self) -> Optional[str]:
        """Message carried by an error body, if any."""
        if self.ok:
            return None
        if isinstance(self.data, dict):
            for key in ("message", "error", "detail"):
                value = self.data.get(key)
                if isinstance(value, str) and value:
                    return value
        if isinstance(self.data, str) and self.data:
            return self.data
        return f"Request failed with status {self.status}"


@dataclass
class Session:
    """Credentials issued by the authentication provider."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[float] = None


class CancellationToken:
    """Explicit cancel-on-demand signal for an in-flight request."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "Request cancelled") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()
