"""Bounded-wait request helper shared by every outbound call.

The wait is enforced with ``asyncio.wait_for`` on top of httpx's own timeout
so that it also bounds transports that ignore httpx timeouts. Exceeding it
cancels the underlying request.
"""

import asyncio
from typing import Any

import httpx

from console_session.core.exceptions import TransportError, TransportTimeoutError
from console_session.core.logging import logger


async def send_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    timeout: float,
    **kwargs: Any,
) -> httpx.Response:
    """Issue one request and wait at most ``timeout`` seconds for the response.

    Raises:
        TransportTimeoutError: The bounded wait was exceeded.
        TransportError: Any other network-level failure.
    """
    try:
        return await asyncio.wait_for(
            client.request(method, url, timeout=timeout, **kwargs),
            timeout=timeout,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        logger.warning("request_timed_out", method=method, url=url, timeout=timeout)
        raise TransportTimeoutError(f"{method} {url} timed out after {timeout}s") from e
    except httpx.HTTPError as e:
        logger.warning("request_failed", method=method, url=url, error=str(e))
        raise TransportError(f"{method} {url} failed: {e}") from e
