"""
Shared configuration management for the request gateway.
"""

from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewayConfig(BaseSettings):
    """Gateway configuration resolved once from the deployment environment."""

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Backend
    base_url: str = Field(default="http://localhost:8000")
    auth_service_url: str = Field(default="http://localhost:8010")
    default_headers: Dict[str, str] = Field(default_factory=lambda: {"Content-Type": "application/json"})

    # Request policy
    default_timeout_ms: float = Field(default=30_000, gt=0)
    default_retries: int = Field(default=3, ge=0)
    backoff_base_ms: float = Field(default=1_000, ge=0)

    # Caching
    cache_ttl_ms: float = Field(default=300_000, gt=0)

    # Rate limiting
    rate_limits_file: Optional[str] = Field(default=None)


def get_config(**overrides) -> GatewayConfig:
    """Get gateway configuration, with explicit overrides taking precedence over the environment."""
    return GatewayConfig(**overrides)
