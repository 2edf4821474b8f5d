"""Tests for StreamingResponseReducer."""

from __future__ import annotations

import asyncio

from collections.abc import AsyncIterator
from typing import Any

import pytest

from hfchat.core.cancellation import CancellationToken
from hfchat.core.reducer import StreamingResponseReducer
from hfchat.models.conversation_models import MessageRow
from hfchat.models.error_models import TransportError
from hfchat.models.event_models import MessageUpdate


def update(**data: Any) -> MessageUpdate:
    return MessageUpdate.model_validate(data)


async def stream_of(*updates: MessageUpdate, error: Exception | None = None) -> AsyncIterator[MessageUpdate]:
    for item in updates:
        yield item
    if error is not None:
        raise error


class TestApply:
    """Tests for folding single updates."""

    def test_stream_tokens_append(self) -> None:
        """Test stream tokens accumulate in order."""
        reducer = StreamingResponseReducer()

        reducer.apply(update(type="stream", token="Hello"))
        row = reducer.apply(update(type="stream", token=", world"))

        assert row is not None
        assert row.content == "Hello, world"
        assert reducer.count == 2

    def test_padding_is_stripped(self) -> None:
        """Test NUL padding never reaches the content."""
        reducer = StreamingResponseReducer()

        row = reducer.apply(update(type="stream", token="Hi\x00\x00\x00"))

        assert row is not None
        assert row.content == "Hi"

    def test_padding_only_token_is_ignored(self) -> None:
        """Test a token made of padding produces no snapshot."""
        reducer = StreamingResponseReducer()

        assert reducer.apply(update(type="stream", token="\x00\x00")) is None
        assert reducer.count == 0

    def test_final_answer_replaces_content(self) -> None:
        """Test the final answer supersedes streamed tokens."""
        reducer = StreamingResponseReducer()
        reducer.apply(update(type="stream", token="Hel"))

        row = reducer.apply(update(type="finalAnswer", text="Hello there"))

        assert row is not None
        assert row.content == "Hello there"

    def test_shorter_final_answer_is_ignored(self) -> None:
        """Test content length never decreases."""
        reducer = StreamingResponseReducer()
        reducer.apply(update(type="stream", token="Hello there"))

        assert reducer.apply(update(type="finalAnswer", text="Hello")) is None
        assert reducer.row.content == "Hello there"

    def test_identical_final_answer_emits_nothing(self) -> None:
        """Test a final answer equal to the streamed content is a no-op."""
        reducer = StreamingResponseReducer()
        reducer.apply(update(type="stream", token="Done"))

        assert reducer.apply(update(type="finalAnswer", text="Done")) is None
        assert reducer.count == 1

    def test_web_search_status_and_sources(self) -> None:
        """Test web search messages set the status and sources the web search."""
        reducer = StreamingResponseReducer()

        row = reducer.apply(update(type="webSearch", message="Searching"))
        assert row is not None
        assert row.status == "Searching"

        row = reducer.apply(
            update(
                type="webSearch",
                sources=[{"link": "https://a.example/", "title": "A"}, {"link": "https://b.example/"}],
            )
        )
        assert row is not None
        assert row.web_search is not None
        assert [source.link for source in row.web_search.sources] == ["https://a.example/", "https://b.example/"]

    def test_file_update_sets_file_info(self) -> None:
        """Test file updates attach file metadata."""
        reducer = StreamingResponseReducer()

        row = reducer.apply(update(type="file", name="out.png", sha="f00d", mime="image/png"))

        assert row is not None
        assert row.file_info is not None
        assert row.file_info.sha == "f00d"
        assert row.file_info.is_image is True
        assert row.files == [row.file_info]

    @pytest.mark.parametrize(
        "data",
        [
            {"type": "status", "status": "started"},
            {"type": "status", "status": "keepAlive"},
            {"type": "title", "title": "A title"},
            {"type": "tool", "name": "websearch"},
            {"type": "reasoning", "token": "thinking"},
            {"type": "somethingNew", "payload": 1},
        ],
    )
    def test_other_updates_change_nothing(self, data: dict[str, Any]) -> None:
        """Test updates with no visible effect are skipped."""
        reducer = StreamingResponseReducer()

        assert reducer.apply(update(**data)) is None
        assert reducer.count == 0

    def test_error_status_raises(self) -> None:
        """Test an in-stream error fails the reducer."""
        reducer = StreamingResponseReducer()

        with pytest.raises(TransportError, match="Model overloaded"):
            reducer.apply(update(type="status", status="error", message="Model overloaded"))

        assert reducer.failure is not None
        assert reducer.is_terminated is True

    def test_apply_after_termination_raises(self) -> None:
        """Test no update is accepted after completion."""
        reducer = StreamingResponseReducer()
        reducer.complete()

        with pytest.raises(RuntimeError):
            reducer.apply(update(type="stream", token="late"))

    def test_snapshots_keep_placeholder_id(self) -> None:
        """Test every snapshot replaces the same row."""
        placeholder = MessageRow.placeholder()
        reducer = StreamingResponseReducer(placeholder)

        first = reducer.apply(update(type="stream", token="a"))
        second = reducer.apply(update(type="stream", token="b"))

        assert first is not None and second is not None
        assert first.id == second.id == placeholder.id
        assert placeholder.content == ""

    def test_complete_freezes_row(self) -> None:
        """Test completion clears the interacting flag and status."""
        reducer = StreamingResponseReducer()
        reducer.apply(update(type="webSearch", message="Searching"))

        row = reducer.complete()

        assert row.is_interacting is False
        assert row.status is None
        assert reducer.completed is True


class TestReduce:
    """Tests for consuming a whole update stream."""

    @pytest.mark.asyncio
    async def test_yields_increasing_counts(self) -> None:
        """Test snapshots come with strictly increasing counts."""
        reducer = StreamingResponseReducer()
        updates = stream_of(
            update(type="status", status="started"),
            update(type="stream", token="a"),
            update(type="stream", token="b"),
            update(type="finalAnswer", text="abc"),
        )

        results = [(count, row.content) async for count, row in reducer.reduce(updates)]

        assert results == [(1, "a"), (2, "ab"), (3, "abc")]
        assert reducer.completed is True
        assert reducer.row.is_interacting is False

    @pytest.mark.asyncio
    async def test_content_length_is_monotonic(self) -> None:
        """Test snapshot content never shrinks."""
        reducer = StreamingResponseReducer()
        updates = stream_of(
            update(type="stream", token="Hello world"),
            update(type="finalAnswer", text="Hello"),
            update(type="stream", token="!"),
        )

        lengths = [len(row.content) async for _, row in reducer.reduce(updates)]

        assert lengths == sorted(lengths)

    @pytest.mark.asyncio
    async def test_transport_error_fails_reducer(self) -> None:
        """Test a stream error is recorded and re-raised."""
        reducer = StreamingResponseReducer()
        updates = stream_of(update(type="stream", token="a"), error=TransportError("connection reset"))

        seen: list[str] = []
        with pytest.raises(TransportError):
            async for _, row in reducer.reduce(updates):
                seen.append(row.content)

        assert seen == ["a"]
        assert reducer.failure is not None
        assert reducer.completed is False

    @pytest.mark.asyncio
    async def test_cancelled_token_stops_reduction(self) -> None:
        """Test nothing is yielded after the token is cancelled."""
        token = CancellationToken()
        reducer = StreamingResponseReducer()
        updates = stream_of(update(type="stream", token="a"), update(type="stream", token="b"))

        seen: list[str] = []
        with pytest.raises(asyncio.CancelledError):
            async for _, row in reducer.reduce(updates, token):
                seen.append(row.content)
                await token.cancel("stopped")

        assert seen == ["a"]
        assert reducer.completed is False
        assert reducer.failure is None

    @pytest.mark.asyncio
    async def test_stream_closed_on_early_exit(self) -> None:
        """Test the transport iterator is closed when reduction stops."""
        closed = asyncio.Event()

        async def updates() -> AsyncIterator[MessageUpdate]:
            try:
                yield update(type="status", status="error", message="boom")
                yield update(type="stream", token="never")
            finally:
                closed.set()

        reducer = StreamingResponseReducer()
        with pytest.raises(TransportError):
            async for _ in reducer.reduce(updates()):
                pass

        assert closed.is_set()
