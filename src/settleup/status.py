"""Service connectivity checks."""

import logging

import httpx

from .clients.resource import ResourceClient
from .config import Settings
from .models import ServiceCheck

logger = logging.getLogger(__name__)


async def check_services(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> list[ServiceCheck]:
    """
    Probe every service's health and API docs endpoints.

    Failures are reported in the returned checks, never raised.

    Args:
        settings: Application settings (base URL and prefixes)
        transport: Optional httpx transport override

    Returns:
        One check per endpoint, in a stable order
    """
    services = [
        ("membership", settings.membership_prefix),
        ("expense", settings.expense_prefix),
        ("settlement", settings.settlement_prefix),
    ]

    checks: list[ServiceCheck] = []
    for name, prefix in services:
        async with ResourceClient(
            settings.api_base_url,
            prefix,
            timeout=settings.request_timeout,
            transport=transport,
        ) as client:
            checks.append(await client.probe(name, "/actuator/health"))
            checks.append(await client.probe(f"{name}-api-docs", "/v3/api-docs"))

    healthy = sum(1 for c in checks if c.ok)
    logger.info(f"{healthy}/{len(checks)} service checks passed")
    return checks
