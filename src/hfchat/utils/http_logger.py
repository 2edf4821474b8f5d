"""
HTTP request/response logging for debugging chat service traffic.

Captures request payloads and response status using httpx event hooks.
"""

from __future__ import annotations

import json

from typing import Any

import httpx

from hfchat.utils.logger import logger

SENSITIVE_HEADERS = ("authorization", "cookie", "set-cookie")


class HTTPLogger:
    """Logs HTTP requests and responses for debugging."""

    def __init__(self, enabled: bool = True):
        """Initialize HTTP logger.

        Args:
            enabled: Whether to enable HTTP logging (default: True)
        """
        self.enabled = enabled
        self._request_data: dict[int, dict[str, Any]] = {}

    async def log_request(self, request: httpx.Request) -> None:
        """Log outgoing HTTP request.

        Args:
            request: The httpx request object
        """
        if not self.enabled:
            return

        try:
            body_str = request.content.decode("utf-8") if request.content else ""
            body_json = json.loads(body_str) if body_str else {}
        except (UnicodeDecodeError, json.JSONDecodeError):
            body_json = {"_note": "non-JSON request body"}

        self._request_data[id(request)] = {
            "method": request.method,
            "url": str(request.url),
        }

        logger.info(
            f"HTTP Request: {request.method} {request.url}",
            http_request=True,
            headers=self._sanitize_headers(dict(request.headers)),
            payload=body_json,
        )

        if body_json:
            logger.debug(f"Request Payload:\n{json.dumps(body_json, indent=2)}")

    async def log_response(self, response: httpx.Response) -> None:
        """Log HTTP response status.

        Streaming bodies are never read here; reading would consume the stream.

        Args:
            response: The httpx response object
        """
        if not self.enabled:
            return

        request_data = self._request_data.pop(id(response.request), {})
        logger.info(
            f"HTTP Response: {response.status_code} "
            f"{request_data.get('method', 'UNKNOWN')} {request_data.get('url', 'UNKNOWN')}",
            http_response=True,
            status_code=response.status_code,
            headers=self._sanitize_headers(dict(response.headers)),
        )

    def _sanitize_headers(self, headers: dict[str, str]) -> dict[str, str]:
        """Remove sensitive data from headers.

        Args:
            headers: Original headers dictionary

        Returns:
            Sanitized headers with sensitive values redacted
        """
        sanitized = headers.copy()
        for key, value in headers.items():
            if key.lower() not in SENSITIVE_HEADERS:
                continue
            if key.lower() == "authorization" and len(value) > 4:
                # Show last 4 chars only
                sanitized[key] = f"***{value[-4:]}"
            else:
                sanitized[key] = "***"
        return sanitized


def create_logging_client(
    enabled: bool = True,
    **client_kwargs: Any,
) -> httpx.AsyncClient:
    """Create an httpx client with request/response logging.

    Args:
        enabled: Whether to enable HTTP logging
        **client_kwargs: Passed through to httpx.AsyncClient

    Returns:
        Configured httpx.AsyncClient with event hooks
    """
    http_logger = HTTPLogger(enabled=enabled)

    event_hooks: dict[str, list[Any]] = {
        "request": [http_logger.log_request],
        "response": [http_logger.log_response],
    }

    return httpx.AsyncClient(event_hooks=event_hooks, **client_kwargs)
