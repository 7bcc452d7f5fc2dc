"""
Rate limiting package for the Gateway.

Holds the per-endpoint fixed-window limiter used for client-side
self-throttling, and the YAML policy loader.
"""

from .fixed_window import FixedWindowRateLimiter, RateLimitConfig, RateLimitBucket, load_rate_limit_policies

__all__ = ["FixedWindowRateLimiter", "RateLimitConfig", "RateLimitBucket", "load_rate_limit_policies"]
