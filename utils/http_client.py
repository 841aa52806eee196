"""Shared httpx client construction"""

from typing import Optional

import httpx

import settings


def create_async_client(
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: Optional[float] = None,
) -> httpx.AsyncClient:
    """Create an AsyncClient with the configured timeouts

    Args:
        transport: Optional transport override (tests pass httpx.MockTransport)
        timeout: Total timeout in seconds (defaults to settings.REQUEST_TIMEOUT)
    """
    return httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(
            timeout if timeout is not None else settings.REQUEST_TIMEOUT,
            connect=settings.CONNECT_TIMEOUT,
        ),
    )
