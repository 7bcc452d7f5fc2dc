"""
Auth service client used by the gateway to refresh sessions.
"""

from typing import Optional, Protocol

import httpx

from shared.logging import get_logger
from shared.errors import AuthenticationError
from shared.retry import retry_on_exception, RetryConfig
from ..models import Session


class AuthProvider(Protocol):
    """Authentication collaborator consumed by the gateway."""

    async def refresh_session(self) -> Optional[Session]:
        ...


class SessionAuthClient:
    """Client for refreshing sessions against the Auth service."""

    def __init__(self, auth_service_url: str, session: Optional[Session] = None,
                 client: Optional[httpx.AsyncClient] = None):
        self.auth_service_url = auth_service_url.rstrip("/")
        self.session = session
        self._client = client
        self.logger = get_logger("gateway.auth_client")

    async def refresh_session(self) -> Optional[Session]:
        """Exchange the current refresh token for a new session.

        Returns None when there is nothing to refresh or the Auth service
        declines; the gateway then falls back to its normal retry path.
        """
        if self.session is None or not self.session.refresh_token:
            self.logger.info("No refresh token available; skipping session refresh")
            return None

        try:
            payload = await self._post_refresh(self.session.refresh_token)
        except AuthenticationError as e:
            self.logger.warning("Session refresh rejected", error=e.message)
            return None

        access_token = payload.get("access_token")
        if not access_token:
            self.logger.warning("Auth service returned no access token")
            return None

        self.session = Session(
            access_token=access_token,
            refresh_token=payload.get("refresh_token") or self.session.refresh_token,
            expires_at=payload.get("expires_at")
        )
        self.logger.info("Session refreshed")
        return self.session

    @retry_on_exception((httpx.TransportError,), config=RetryConfig(max_attempts=2, base_delay=0.5))
    async def _post_refresh(self, refresh_token: str) -> dict:
        url = f"{self.auth_service_url}/auth/refresh"
        if self._client is not None:
            response = await self._client.post(url, json={"refresh_token": refresh_token})
        else:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(url, json={"refresh_token": refresh_token})

        if response.status_code == 200:
            return response.json()

        raise AuthenticationError(
            f"Auth service error: {response.status_code}",
            details={"status_code": response.status_code}
        )
