"""Tests for HTTP request/response logging utilities.

Tests HTTPLogger class and create_logging_client function.
"""

from __future__ import annotations

import json

from unittest.mock import Mock, patch

import httpx
import pytest

from hfchat.utils.http_logger import HTTPLogger, create_logging_client


class TestHTTPLogger:
    """Tests for HTTPLogger class."""

    def test_init_enabled(self) -> None:
        """Test HTTPLogger initialization with logging enabled."""
        logger = HTTPLogger(enabled=True)

        assert logger.enabled is True
        assert logger._request_data == {}

    @pytest.mark.asyncio
    async def test_log_request_when_disabled(self) -> None:
        """Test log_request does nothing when disabled."""
        logger = HTTPLogger(enabled=False)
        request = httpx.Request("GET", "https://chat.example.test/chat/api/models")

        with patch("hfchat.utils.http_logger.logger") as mock_logger:
            await logger.log_request(request)

            mock_logger.info.assert_not_called()

    @pytest.mark.asyncio
    async def test_log_request_with_json_body(self) -> None:
        """Test logging request with JSON body."""
        logger = HTTPLogger(enabled=True)
        payload = {"id": "root", "inputs": "hello", "web_search": False}
        request = httpx.Request("POST", "https://chat.example.test/chat/conversation/c1", json=payload)

        with patch("hfchat.utils.http_logger.logger") as mock_logger:
            await logger.log_request(request)

            mock_logger.info.assert_called_once()
            call_args = mock_logger.info.call_args
            assert "HTTP Request: POST" in call_args[0][0]
            assert call_args[1]["http_request"] is True
            assert call_args[1]["payload"] == payload

    @pytest.mark.asyncio
    async def test_log_request_with_empty_body(self) -> None:
        """Test logging request with no body."""
        logger = HTTPLogger(enabled=True)
        request = httpx.Request("GET", "https://chat.example.test/chat/api/conversation/c1")

        with patch("hfchat.utils.http_logger.logger") as mock_logger:
            await logger.log_request(request)

            assert mock_logger.info.call_args[1]["payload"] == {}

    @pytest.mark.asyncio
    async def test_log_request_with_non_json_body(self) -> None:
        """Test non-JSON bodies are noted rather than logged."""
        logger = HTTPLogger(enabled=True)
        request = httpx.Request("POST", "https://chat.example.test/upload", content=b"\xff\xfe binary")

        with patch("hfchat.utils.http_logger.logger") as mock_logger:
            await logger.log_request(request)

            assert "_note" in mock_logger.info.call_args[1]["payload"]

    @pytest.mark.asyncio
    async def test_log_request_with_sensitive_headers(self) -> None:
        """Test logging request sanitizes sensitive headers."""
        logger = HTTPLogger(enabled=True)
        request = httpx.Request(
            "POST",
            "https://chat.example.test/chat/conversation",
            headers={"Authorization": "Bearer hf_1234567890abcdef", "Cookie": "hf-chat=secret"},
            json={"model": "m"},
        )

        with patch("hfchat.utils.http_logger.logger") as mock_logger:
            await logger.log_request(request)

            headers = mock_logger.info.call_args[1]["headers"]
            assert headers["authorization"] == "***cdef"
            assert headers["cookie"] == "***"

    @pytest.mark.asyncio
    async def test_log_response(self) -> None:
        """Test the response is logged with the originating request."""
        logger = HTTPLogger(enabled=True)
        request = httpx.Request("GET", "https://chat.example.test/chat/api/models")
        response = httpx.Response(200, request=request, headers={"set-cookie": "hf-chat=new"})

        with patch("hfchat.utils.http_logger.logger") as mock_logger:
            await logger.log_request(request)
            await logger.log_response(response)

            call_args = mock_logger.info.call_args
            assert call_args[0][0] == "HTTP Response: 200 GET https://chat.example.test/chat/api/models"
            assert call_args[1]["status_code"] == 200
            assert call_args[1]["headers"]["set-cookie"] == "***"
        assert logger._request_data == {}

    @pytest.mark.asyncio
    async def test_log_response_does_not_read_stream(self) -> None:
        """Test streaming bodies stay unread."""
        logger = HTTPLogger(enabled=True)
        request = httpx.Request("POST", "https://chat.example.test/chat/conversation/c1")
        response = Mock(spec=httpx.Response)
        response.request = request
        response.status_code = 200
        response.headers = {}

        with patch("hfchat.utils.http_logger.logger"):
            await logger.log_response(response)

        response.aread.assert_not_called()

    def test_sanitize_short_authorization(self) -> None:
        """Test very short authorization values are fully masked."""
        assert HTTPLogger()._sanitize_headers({"Authorization": "abc"}) == {"Authorization": "***"}


class TestCreateLoggingClient:
    """Tests for create_logging_client."""

    @pytest.mark.asyncio
    async def test_hooks_installed(self) -> None:
        """Test requests through the client are logged."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"ok": True})

        client = create_logging_client(enabled=True, transport=httpx.MockTransport(handler))

        with patch("hfchat.utils.http_logger.logger") as mock_logger:
            response = await client.post("https://chat.example.test/x", json={"a": 1})
            await client.aclose()

        assert json.loads(response.content) == {"ok": True}
        messages = [call[0][0] for call in mock_logger.info.call_args_list]
        assert messages[0].startswith("HTTP Request: POST")
        assert messages[1].startswith("HTTP Response: 200")
