"""
Retry and backoff for gateway dispatches.
"""

from .retry_executor import RetryExecutor, RetryOutcome, RETRYABLE_EXCEPTIONS

__all__ = ["RetryExecutor", "RetryOutcome", "RETRYABLE_EXCEPTIONS"]
