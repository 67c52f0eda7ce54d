"""Shared httpx client factory for remote media, thumbnails and watch pages."""

from typing import Dict, Optional

import httpx

import config


def build_async_client(
    *,
    timeout: Optional[float] = None,
    extra_headers: Optional[Dict[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create an AsyncClient that looks like a browser to the sites we fetch from.
    `transport` is accepted so tests can swap in an httpx.MockTransport.
    """
    headers = {
        "User-Agent": config.BROWSER_USER_AGENT,
        "Accept-Language": config.ACCEPT_LANGUAGE,
    }
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout if timeout is not None else config.HTTP_TIMEOUT_SECONDS),
        follow_redirects=True,
        headers=headers,
        transport=transport,
    )
