#!/usr/bin/env python3
"""
Send a single request through the gateway and print the resulting envelope.

Useful for checking retry, timeout and rate limit settings against a live
backend from a developer workstation or CI job. Configuration comes from the
usual GATEWAY_* environment variables; flags override them.
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Optional

from request_gateway.app.gateway import create_gateway
from request_gateway.app.models import GatewayRequest, Session
from shared.config import get_config


async def probe(
    *,
    endpoint: str,
    method: str,
    body: Optional[str],
    retries: Optional[int],
    timeout_ms: Optional[float],
    access_token: Optional[str],
    refresh_token: Optional[str],
    overrides: dict,
) -> dict:
    """Run one request and return the serialized result."""
    config = get_config(**overrides)
    session = Session(access_token=access_token, refresh_token=refresh_token) if access_token else None

    request = GatewayRequest(
        endpoint=endpoint,
        method=method,
        payload=json.loads(body) if body else None,
        retries=retries,
        timeout_ms=timeout_ms,
    )
    async with create_gateway(config, session=session) as gateway:
        result = await gateway.send(request)
        summary = result.model_dump()
        summary["gateway"] = gateway.get_metrics()
    return summary


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Probe an endpoint through the request gateway.")
    parser.add_argument("endpoint", help="Endpoint path (joined to the base URL) or absolute URL")
    parser.add_argument("--method", default="GET", choices=["GET", "POST", "PUT", "DELETE"], help="Request method")
    parser.add_argument("--body", default=None, help="JSON body for POST/PUT")
    parser.add_argument("--base-url", default=None, help="Override GATEWAY_BASE_URL")
    parser.add_argument("--retries", type=int, default=None, help="Retry budget for this request")
    parser.add_argument("--timeout-ms", type=float, default=None, help="Per-attempt timeout in milliseconds")
    parser.add_argument("--rate-limits-file", type=Path, default=None, help="YAML rate limit policies")
    parser.add_argument("--access-token", default=os.getenv("GATEWAY_ACCESS_TOKEN"), help="Bearer access token")
    parser.add_argument("--refresh-token", default=os.getenv("GATEWAY_REFRESH_TOKEN"), help="Refresh token for 401 recovery")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write JSON result")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    overrides = {}
    if args.base_url:
        overrides["base_url"] = args.base_url
    if args.rate_limits_file:
        overrides["rate_limits_file"] = str(args.rate_limits_file)

    try:
        summary = asyncio.run(
            probe(
                endpoint=args.endpoint,
                method=args.method,
                body=args.body,
                retries=args.retries,
                timeout_ms=args.timeout_ms,
                access_token=args.access_token,
                refresh_token=args.refresh_token,
                overrides=overrides,
            )
        )
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        print(f"[gateway-probe] failed: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(summary, indent=2, default=str))

    if args.output:
        args.output.write_text(json.dumps(summary, indent=2, default=str))

    return 0 if summary.get("success", False) else 2


if __name__ == "__main__":
    raise SystemExit(main())
