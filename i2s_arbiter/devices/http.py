"""
Shared HTTP client for talking to the managed services.

One ``httpx.AsyncClient`` is created at startup and reused for every status
and lock call, so connections to the (few) devices stay pooled.
"""

import logging
import platform

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS: float = 2.0


def create_client(
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Return an ``httpx.AsyncClient`` with a single fixed timeout for every phase.

    *transport* is only passed in tests (``httpx.MockTransport``).
    """
    client = httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        headers={
            "User-Agent": f"i2s-arbiter/0.1 Python/{platform.python_version()}",
            "Accept": "application/json",
        },
        transport=transport,
    )
    logger.debug("Created HTTP client with timeout=%.1fs", timeout)
    return client
