"""
Transport primitive: issues the actual network call for the gateway.
"""

from typing import Any, Dict, Optional, Protocol

import httpx

from shared.logging import get_logger
from ..models import RawResponse


class Transport(Protocol):
    """Sends one request and returns the raw response.

    Connectivity problems raise httpx.HTTPError subclasses; HTTP error
    statuses are returned, not raised.
    """

    async def send(self, method: str, url: str, headers: Dict[str, str], body: Any = None) -> RawResponse:
        ...

    async def aclose(self) -> None:
        ...


class HttpxTransport:
    """Transport backed by a shared httpx.AsyncClient."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, **client_kwargs: Any):
        # Deadlines are enforced by the gateway, so the client itself never times out.
        client_kwargs.setdefault("timeout", None)
        self._client = client or httpx.AsyncClient(**client_kwargs)
        self._owns_client = client is None
        self.logger = get_logger("gateway.transport")

    async def send(self, method: str, url: str, headers: Dict[str, str], body: Any = None) -> RawResponse:
        request_kwargs: Dict[str, Any] = {"headers": headers}
        if body is not None:
            if isinstance(body, (bytes, str)):
                request_kwargs["content"] = body
            else:
                request_kwargs["json"] = body

        response = await self._client.request(method, url, **request_kwargs)

        self.logger.debug(
            "Transport call completed",
            method=method,
            url=url,
            status_code=response.status_code
        )
        return RawResponse(
            status=response.status_code,
            data=_decode_body(response),
            headers=dict(response.headers)
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _decode_body(response: httpx.Response) -> Any:
    """JSON body when there is one, text otherwise, None when empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
