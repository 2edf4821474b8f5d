"""
Transport client for the HuggingChat service.

Issues the conversation requests and exposes the streaming prompt response as
an async iterator of decoded ``MessageUpdate`` lines. All failures surface as
``ChatServiceError`` subclasses.
"""

from __future__ import annotations

import json

from collections.abc import AsyncIterator
from typing import Any, Protocol

import httpx

from pydantic import ValidationError

from hfchat.core.constants import Settings, get_settings
from hfchat.core.preferences import PreferencesStore
from hfchat.models.conversation_models import Conversation, ModelDescriptor, PromptRequest
from hfchat.models.error_models import DecodeError, RateLimitError, TransportError
from hfchat.models.event_models import MessageUpdate
from hfchat.utils.client_factory import create_http_client
from hfchat.utils.logger import logger

HTTP_TOO_MANY_REQUESTS = 429


class TransportClient(Protocol):
    """Operations the ConversationController needs from the chat service."""

    async def get_conversation(self, conversation_id: str) -> Conversation: ...

    async def create_conversation(self, model: ModelDescriptor) -> Conversation: ...

    def stream_prompt(self, conversation_id: str, request: PromptRequest) -> AsyncIterator[MessageUpdate]: ...

    async def get_active_model(self) -> ModelDescriptor: ...


def raise_for_status(response: httpx.Response) -> None:
    """Translate an error status into the transport error taxonomy.

    Raises:
        RateLimitError: On 429 Too Many Requests
        TransportError: On any other 4xx/5xx status
    """
    if response.status_code == HTTP_TOO_MANY_REQUESTS:
        raise RateLimitError()
    if response.status_code >= 400:
        raise TransportError(
            f"HTTP {response.status_code} {response.reason_phrase} for {response.request.url}",
            status_code=response.status_code,
        )


def decode_update(line: str) -> MessageUpdate:
    """Decode one line of a streaming response.

    Raises:
        DecodeError: If the line is not a JSON object with a ``type``
    """
    try:
        data = json.loads(line)
        return MessageUpdate.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise DecodeError(f"Invalid stream update: {line[:80]!r}") from e


class HuggingChatClient:
    """TransportClient implementation over httpx.AsyncClient."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
        preferences: PreferencesStore | None = None,
    ):
        """Initialize the client.

        Args:
            http_client: Preconfigured client (default: create_http_client(settings))
            settings: Environment settings (default: cached get_settings())
            preferences: Used to prefer the selected model in get_active_model()
        """
        self.settings = settings or get_settings()
        self.preferences = preferences
        self._owns_client = http_client is None
        self._client = http_client or create_http_client(self.settings)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HuggingChatClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        raise_for_status(response)

        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"{method} {path} returned invalid JSON") from e

    async def get_conversation(self, conversation_id: str) -> Conversation:
        """Fetch a conversation with its full message history."""
        data = await self._request_json("GET", f"/chat/api/conversation/{conversation_id}")
        if not isinstance(data, dict):
            raise DecodeError(f"Unexpected conversation payload for {conversation_id}")
        if not any(key in data for key in ("id", "_id", "conversationId")):
            data["id"] = conversation_id

        try:
            return Conversation.model_validate(data)
        except ValidationError as e:
            raise DecodeError(f"Invalid conversation {conversation_id}: {e.error_count()} errors") from e

    async def create_conversation(self, model: ModelDescriptor) -> Conversation:
        """Create a conversation for ``model`` and fetch it.

        The follow-up fetch returns the server-assigned root message id
        the first prompt must reference.
        """
        data = await self._request_json("POST", "/chat/conversation", json={"model": model.id, "preprompt": ""})
        conversation_id = data.get("conversationId") if isinstance(data, dict) else None
        if not conversation_id:
            raise DecodeError("Create conversation response has no conversationId")

        logger.info(f"Created conversation {conversation_id} with model {model.id}")
        return await self.get_conversation(conversation_id)

    async def get_active_model(self) -> ModelDescriptor:
        """Return the active model descriptor.

        Preference order: the entry flagged ``active``, the model named by the
        ``externalModel`` preference, then the first model listed.
        """
        data = await self._request_json("GET", "/chat/api/models")
        entries = data.get("models", []) if isinstance(data, dict) else data
        if not isinstance(entries, list) or not entries:
            raise DecodeError("No models available")

        try:
            models = [ModelDescriptor.model_validate(entry) for entry in entries]
        except ValidationError as e:
            raise DecodeError(f"Invalid model list: {e.error_count()} errors") from e

        for model in models:
            if model.active:
                return model

        if self.preferences is not None:
            selected = self.preferences.external_model
            for model in models:
                if selected in (model.id, model.name):
                    return model

        return models[0]

    async def stream_prompt(self, conversation_id: str, request: PromptRequest) -> AsyncIterator[MessageUpdate]:
        """Send a prompt and yield its updates as they arrive.

        Closing the iterator closes the underlying response.

        Raises:
            RateLimitError: The service answered 429
            TransportError: Network failure, error status or a broken response stream
            DecodeError: A line could not be decoded
        """
        path = f"/chat/conversation/{conversation_id}"
        try:
            async with self._client.stream("POST", path, json=request.to_body()) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise_for_status(response)

                async for line in response.aiter_lines():
                    line = line.strip().strip("\x00")
                    if not line:
                        continue
                    yield decode_update(line)
        except (httpx.HTTPError, httpx.StreamError) as e:
            raise TransportError(f"POST {path} failed: {e}") from e


__all__ = ["HuggingChatClient", "TransportClient", "decode_update", "raise_for_status"]
