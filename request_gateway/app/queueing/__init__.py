"""
Opt-in FIFO serialization of deferred operations.
"""

from .request_queue import RequestQueue

__all__ = ["RequestQueue"]
