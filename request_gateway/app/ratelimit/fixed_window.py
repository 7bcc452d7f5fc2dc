"""
Fixed-window rate limiter for client-side self-throttling.
"""

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import yaml

from shared.logging import get_logger
from shared.errors import ValidationError
from ..models import now_ms


@dataclass(frozen=True)
class RateLimitConfig:
    """Per-endpoint limit: at most max_requests per window_ms."""
    max_requests: int
    window_ms: float

    def __post_init__(self):
        if self.max_requests < 1:
            raise ValidationError("max_requests must be at least 1", details={"max_requests": self.max_requests})
        if self.window_ms <= 0:
            raise ValidationError("window_ms must be positive", details={"window_ms": self.window_ms})


@dataclass
class RateLimitBucket:
    """Request count for the active window of one endpoint."""
    count: int
    reset_time_ms: float


class FixedWindowRateLimiter:
    """Per-endpoint fixed-window counters.

    Limiting is opt-in: a check without a config always passes. Bursts at a
    window boundary are tolerated.
    """

    def __init__(self, clock: Callable[[], float] = now_ms):
        self._clock = clock
        self._buckets: Dict[str, RateLimitBucket] = {}
        self._lock = threading.Lock()
        self.logger = get_logger("gateway.rate_limiter")

    def check_rate_limit(self, endpoint: str, config: Optional[RateLimitConfig] = None) -> bool:
        """Check whether a request to endpoint is within its limit, consuming a slot if so."""
        if config is None:
            return True

        with self._lock:
            now = self._clock()
            bucket = self._buckets.get(endpoint)

            if bucket is None or now > bucket.reset_time_ms:
                self._buckets[endpoint] = RateLimitBucket(count=1, reset_time_ms=now + config.window_ms)
                return True

            if bucket.count >= config.max_requests:
                self.logger.warning(
                    "Rate limit exceeded",
                    endpoint=endpoint,
                    current_count=bucket.count,
                    limit=config.max_requests,
                    reset_in_ms=bucket.reset_time_ms - now
                )
                return False

            bucket.count += 1
            return True

    def get_bucket(self, endpoint: str) -> Optional[RateLimitBucket]:
        with self._lock:
            bucket = self._buckets.get(endpoint)
            return RateLimitBucket(bucket.count, bucket.reset_time_ms) if bucket else None

    def snapshot(self) -> Dict[str, Dict[str, float]]:
        """Current count and window reset time for every endpoint seen so far."""
        with self._lock:
            return {
                endpoint: {"count": bucket.count, "reset_time": bucket.reset_time_ms}
                for endpoint, bucket in self._buckets.items()
            }

    def reset(self, endpoint: Optional[str] = None) -> None:
        """Reset rate limit state for one endpoint, or all of them."""
        with self._lock:
            if endpoint is None:
                self._buckets.clear()
            else:
                self._buckets.pop(endpoint, None)
        self.logger.info("Rate limit reset", endpoint=endpoint or "*")


def load_rate_limit_policies(path: Union[str, Path]) -> Dict[str, RateLimitConfig]:
    """Load per-endpoint policies from YAML.

    Expected shape::

        /emissions:
          max_requests: 10
          window_ms: 60000
    """
    with open(path, "r", encoding="utf-8") as handle:
        raw: Any = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ValidationError("Rate limit policy file must map endpoints to limits", details={"path": str(path)})

    policies: Dict[str, RateLimitConfig] = {}
    for endpoint, policy in raw.items():
        if not isinstance(policy, dict) or "max_requests" not in policy or "window_ms" not in policy:
            raise ValidationError(
                f"Invalid rate limit policy for {endpoint}",
                details={"path": str(path), "endpoint": endpoint}
            )
        policies[str(endpoint)] = RateLimitConfig(
            max_requests=int(policy["max_requests"]),
            window_ms=float(policy["window_ms"])
        )

    get_logger("gateway.rate_limiter").info("Loaded rate limit policies", path=str(path), endpoints=len(policies))
    return policies
