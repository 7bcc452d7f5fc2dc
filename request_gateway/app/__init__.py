"""
Request gateway application package.

Wires the response cache, rate limiter, retry executor and request queue
behind the RequestGateway facade.
"""

from .gateway import RequestGateway, create_gateway
from .models import (
    CancellationToken,
    GatewayRequest,
    GatewayResult,
    HttpMethod,
    RateLimitRejection,
    ResponseEnvelope,
    ResponseMetrics,
    Session,
)

__all__ = [
    "RequestGateway",
    "create_gateway",
    "CancellationToken",
    "GatewayRequest",
    "GatewayResult",
    "HttpMethod",
    "RateLimitRejection",
    "ResponseEnvelope",
    "ResponseMetrics",
    "Session",
]
