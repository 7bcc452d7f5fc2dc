"""
Shared utilities for the request gateway.

This package aggregates common building blocks consumed by the gateway:

- config: Gateway configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Backoff policy and retry decorator
- test_helpers: Fakes for transports, auth providers and time

Runtime modules in shared/ must not import from request_gateway; only
test_helpers does, to build fake collaborators.
"""
