"""
HTTP client factory for the chat service.
Centralizes httpx.AsyncClient creation with consistent configuration.
"""

from __future__ import annotations

from typing import Any

import httpx

from hfchat.core.constants import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_POOL_TIMEOUT,
    DEFAULT_WRITE_TIMEOUT,
    SESSION_COOKIE_NAME,
    Settings,
    get_settings,
)
from hfchat.utils.http_logger import create_logging_client


def build_timeout(read_timeout: float) -> httpx.Timeout:
    """Timeouts for streaming: long reads, short everything else."""
    return httpx.Timeout(
        connect=DEFAULT_CONNECT_TIMEOUT,
        read=read_timeout,
        write=DEFAULT_WRITE_TIMEOUT,
        pool=DEFAULT_POOL_TIMEOUT,
    )


def create_http_client(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create HTTP client for the chat service.

    Args:
        settings: Environment settings (default: cached get_settings())
        transport: Optional transport override (e.g. httpx.MockTransport in tests)

    Returns:
        Configured httpx.AsyncClient rooted at the service base URL
    """
    settings = settings or get_settings()

    headers = {"Accept": "application/json"}
    if settings.hf_token:
        headers["Authorization"] = f"Bearer {settings.hf_token}"

    cookies = {SESSION_COOKIE_NAME: settings.session_cookie} if settings.session_cookie else None

    kwargs: dict[str, Any] = {
        "base_url": settings.service_base_url,
        "headers": headers,
        "cookies": cookies,
        "timeout": build_timeout(settings.read_timeout),
    }
    if transport is not None:
        kwargs["transport"] = transport

    if settings.http_request_logging:
        return create_logging_client(enabled=True, **kwargs)

    return httpx.AsyncClient(**kwargs)
