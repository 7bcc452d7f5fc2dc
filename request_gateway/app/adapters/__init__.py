"""
Adapters package for the Gateway.

Contains the collaborators the gateway consumes:

- Transport: issues the network call (httpx)
- Auth provider: refreshes the session after a 401

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .auth_client import AuthProvider, SessionAuthClient
from .transport import HttpxTransport, Transport

__all__ = [
    "AuthProvider",
    "SessionAuthClient",
    "HttpxTransport",
    "Transport",
]
