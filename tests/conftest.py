"""Shared test fixtures for the hfchat test suite.

Provides settings isolated from the environment, an in-memory preferences
store and a scripted in-process transport for the controller tests.
"""

from __future__ import annotations

import asyncio
import tempfile

from collections.abc import AsyncIterator, Generator
from pathlib import Path
from typing import Any

import pytest

from hfchat.core.constants import Settings, get_settings
from hfchat.core.preferences import PreferencesStore
from hfchat.models.conversation_models import Conversation, Message, ModelDescriptor, PromptRequest
from hfchat.models.error_models import TransportError
from hfchat.models.event_models import MessageUpdate

# ============================================================================
# Test Isolation: Settings Cache
# ============================================================================


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the cached Settings so environment patches take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================================
# File System Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def settings(temp_dir: Path) -> Settings:
    """Settings pointing at a test host, independent of the environment."""
    return Settings(
        service_base_url="https://chat.example.test",
        log_dir=temp_dir / "logs",
        preferences_path=None,
    )


@pytest.fixture
def preferences() -> PreferencesStore:
    """In-memory preferences store."""
    return PreferencesStore()


# ============================================================================
# Transport Fixtures
# ============================================================================


class FakeTransport:
    """Scripted TransportClient.

    ``updates`` is replayed by the next ``stream_prompt`` call. When
    ``pause_after`` is set, the stream sets ``paused`` after yielding that
    many updates and waits for ``resume`` before continuing. When ``gate`` is
    set, conversation fetches and creation set ``gated`` and wait for the
    gate before answering.
    """

    def __init__(self) -> None:
        self.conversations: dict[str, Conversation] = {}
        self.model = ModelDescriptor(id="meta-llama/Meta-Llama-3.1-70B-Instruct", multimodal=False, tools=False)
        self.updates: list[dict[str, Any]] = []
        self.stream_error: Exception | None = None
        self.pause_after: int | None = None
        self.paused = asyncio.Event()
        self.resume = asyncio.Event()
        self.stream_closed = False
        self.gate: asyncio.Event | None = None
        self.gated = asyncio.Event()

        self.get_conversation_error: Exception | None = None
        self.create_error: Exception | None = None
        self.model_error: Exception | None = None

        self.requests: list[tuple[str, PromptRequest]] = []
        self.created: list[Conversation] = []
        self.fetched: list[str] = []

    async def _wait_for_gate(self) -> None:
        if self.gate is not None:
            self.gated.set()
            await self.gate.wait()

    def add_conversation(self, conversation: Conversation) -> Conversation:
        self.conversations[conversation.id] = conversation
        return conversation

    async def get_conversation(self, conversation_id: str) -> Conversation:
        self.fetched.append(conversation_id)
        await self._wait_for_gate()
        if self.get_conversation_error is not None:
            raise self.get_conversation_error
        if conversation_id not in self.conversations:
            raise TransportError(f"HTTP 404 Not Found for {conversation_id}", status_code=404)
        return self.conversations[conversation_id]

    async def create_conversation(self, model: ModelDescriptor) -> Conversation:
        await self._wait_for_gate()
        if self.create_error is not None:
            raise self.create_error
        index = len(self.created) + 1
        conversation = Conversation(
            id=f"conv-{index}",
            model=model.id,
            messages=[Message(id=f"root-{index}", role="system", content="")],
        )
        self.created.append(conversation)
        return self.add_conversation(conversation)

    async def get_active_model(self) -> ModelDescriptor:
        if self.model_error is not None:
            raise self.model_error
        return self.model

    async def stream_prompt(self, conversation_id: str, request: PromptRequest) -> AsyncIterator[MessageUpdate]:
        self.requests.append((conversation_id, request))
        self.stream_closed = False
        try:
            for index, data in enumerate(self.updates):
                if self.pause_after is not None and index == self.pause_after:
                    self.paused.set()
                    await self.resume.wait()
                yield MessageUpdate.model_validate(data)
                await asyncio.sleep(0)
            if self.pause_after is not None and self.pause_after >= len(self.updates):
                self.paused.set()
                await self.resume.wait()
            if self.stream_error is not None:
                raise self.stream_error
        finally:
            self.stream_closed = True


@pytest.fixture
def fake_transport() -> FakeTransport:
    """Scripted transport with no conversations and a default model."""
    return FakeTransport()


@pytest.fixture
def existing_conversation(fake_transport: FakeTransport) -> Conversation:
    """A stored conversation with one completed exchange."""
    return fake_transport.add_conversation(
        Conversation(
            id="conv-existing",
            title="Existing",
            model="meta-llama/Meta-Llama-3.1-70B-Instruct",
            messages=[
                Message(id="m0", role="system", content=""),
                Message(id="m1", role="user", content="What is 2 + 2?"),
                Message(id="m2", role="assistant", content="4"),
            ],
        )
    )


# ============================================================================
# Payload Fixtures
# ============================================================================


@pytest.fixture
def sample_conversation_payload() -> dict[str, Any]:
    """Conversation JSON as returned by the chat service."""
    return {
        "id": "66f0c0ffee",
        "title": "Python sorting",
        "model": "meta-llama/Meta-Llama-3.1-70B-Instruct",
        "messages": [
            {"id": "root", "from": "system", "content": ""},
            {"id": "u1", "from": "user", "content": "How do I sort a list?"},
            {
                "id": "a1",
                "from": "assistant",
                "content": "Use sorted().",
                "webSearch": {
                    "prompt": "python sort list",
                    "contextSources": [
                        {"link": "https://docs.python.org/3/howto/sorting.html", "title": "Sorting HOW TO"},
                    ],
                },
                "files": [{"name": "chart.png", "value": "abc123", "mime": "image/png"}],
            },
        ],
    }
