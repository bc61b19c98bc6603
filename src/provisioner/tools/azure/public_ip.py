"""Discovery of the operator's public address for the SQL firewall."""

from __future__ import annotations

import ipaddress

import httpx

from provisioner.core.logging import get_logger
from provisioner.core.retry import transient_retry

logger = get_logger(__name__)

DEFAULT_ECHO_URL = "https://ifconfig.me/ip"


@transient_retry(max_attempts=3, max_wait=4)
async def _fetch(client: httpx.AsyncClient, url: str) -> str:
    resp = await client.get(url, headers={"Accept": "text/plain"})
    resp.raise_for_status()
    return resp.text.strip()


async def lookup_public_ip(
    url: str = DEFAULT_ECHO_URL,
    timeout: float = 5.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str | None:
    """Return the caller's public IP, or None when it cannot be determined."""
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            raw = await _fetch(client, url)
        return str(ipaddress.ip_address(raw))
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning(
            "public_ip.lookup_failed", url=url, error_type=type(exc).__name__, error=str(exc)
        )
        return None
