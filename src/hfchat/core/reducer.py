"""Streaming response reducer.

Folds the ``MessageUpdate`` sequence of one prompt into successive snapshots
of the placeholder ``MessageRow``. Each snapshot is a complete replacement
for the row, and the row's content length never decreases, so applying
snapshots in arrival order is always safe.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from hfchat.core.cancellation import CancellationToken
from hfchat.models.conversation_models import MessageRow, WebSearch
from hfchat.models.error_models import ChatServiceError, TransportError
from hfchat.models.event_models import (
    UPDATE_FILE,
    UPDATE_FINAL_ANSWER,
    UPDATE_STREAM,
    UPDATE_WEB_SEARCH,
    MessageUpdate,
)
from hfchat.utils.logger import logger

#: Padding the service appends to stream tokens to force proxies to flush.
STREAM_PADDING = "\x00"


class StreamingResponseReducer:
    """Accumulates one prompt's updates into MessageRow snapshots.

    Attributes:
        row: Latest accumulated snapshot
        count: Number of snapshots emitted so far
        completed: Stream ended normally
        failure: Terminal failure, if the stream failed
    """

    def __init__(self, row: MessageRow | None = None):
        self.row = row or MessageRow.placeholder()
        self.count = 0
        self.completed = False
        self.failure: ChatServiceError | None = None

    @property
    def is_terminated(self) -> bool:
        return self.completed or self.failure is not None

    def apply(self, update: MessageUpdate) -> MessageRow | None:
        """Fold one update into the row.

        Args:
            update: Decoded stream update

        Returns:
            The new snapshot, or None when the update changes nothing visible

        Raises:
            RuntimeError: If the stream already terminated
            TransportError: If the update reports a generation error
        """
        if self.is_terminated:
            raise RuntimeError("Update received after the stream terminated")

        if update.is_error:
            error = TransportError(update.message or "Generation failed")
            self.failure = error
            raise error

        changes: dict[str, object] = {}

        if update.type == UPDATE_STREAM:
            token = (update.token or "").replace(STREAM_PADDING, "")
            if token:
                changes["content"] = self.row.content + token

        elif update.type == UPDATE_FINAL_ANSWER:
            text = update.text
            if text is not None and text != self.row.content:
                if len(text) >= len(self.row.content):
                    changes["content"] = text
                else:
                    logger.debug(
                        f"Final answer shorter than streamed content ({len(text)} < {len(self.row.content)}), keeping"
                    )

        elif update.type == UPDATE_WEB_SEARCH:
            if update.sources:
                changes["web_search"] = WebSearch(sources=list(update.sources))
            elif update.message:
                changes["status"] = update.message

        elif update.type == UPDATE_FILE:
            file_info = update.file_info
            if file_info is not None:
                changes["file_info"] = file_info
                changes["files"] = [*(self.row.files or []), file_info]

        if not changes:
            return None

        self.row = self.row.model_copy(update=changes)
        self.count += 1
        return self.row

    def complete(self) -> MessageRow:
        """Mark the stream finished and return the frozen row."""
        if self.is_terminated:
            raise RuntimeError("Stream already terminated")
        self.completed = True
        self.row = self.row.model_copy(update={"is_interacting": False, "status": None})
        return self.row

    def fail(self, error: ChatServiceError) -> None:
        """Record a terminal failure raised outside ``apply``."""
        if not self.is_terminated:
            self.failure = error

    async def reduce(
        self,
        updates: AsyncIterator[MessageUpdate],
        token: CancellationToken | None = None,
    ) -> AsyncIterator[tuple[int, MessageRow]]:
        """Consume ``updates`` and yield ``(count, snapshot)`` pairs.

        Normal exhaustion means completion; a ``ChatServiceError`` means
        failure. Exactly one of the two happens unless the token is
        cancelled, in which case ``asyncio.CancelledError`` is raised and
        nothing further is yielded.

        Args:
            updates: Update stream from the transport client
            token: Cancellation token of the owning subscription

        Yields:
            Strictly increasing snapshot count and the snapshot
        """
        try:
            async for update in updates:
                if token is not None:
                    token.check()
                snapshot = self.apply(update)
                if snapshot is None:
                    continue
                if token is not None:
                    token.check()
                yield self.count, snapshot
            if token is not None:
                token.check()
        except ChatServiceError as e:
            self.fail(e)
            raise
        finally:
            aclose = getattr(updates, "aclose", None)
            if aclose is not None:
                await aclose()

        self.complete()


__all__ = ["StreamingResponseReducer"]
