"""
Stream event models for hfchat.
One ``MessageUpdate`` is decoded from each line of a streaming prompt response.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from hfchat.models.conversation_models import FileInfo, WebSearchSource

# Update types emitted by the chat service
UPDATE_STATUS = "status"
UPDATE_STREAM = "stream"
UPDATE_FINAL_ANSWER = "finalAnswer"
UPDATE_WEB_SEARCH = "webSearch"
UPDATE_FILE = "file"
UPDATE_TITLE = "title"
UPDATE_TOOL = "tool"
UPDATE_REASONING = "reasoning"

# Values of MessageUpdate.status
STATUS_STARTED = "started"
STATUS_ERROR = "error"
STATUS_FINISHED = "finished"
STATUS_KEEP_ALIVE = "keepAlive"


class MessageUpdate(BaseModel):
    """A partial update for the in-flight assistant message.

    Only the fields used by ``type`` are populated; unknown types are kept
    so the reducer can skip them.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str
    token: str | None = None
    text: str | None = None
    status: str | None = None
    message: str | None = None
    sources: list[WebSearchSource] | None = None
    name: str | None = None
    sha: str | None = None
    mime: str | None = None
    title: str | None = None
    interrupted: bool | None = None

    @property
    def file_info(self) -> FileInfo | None:
        """File metadata carried by a ``file`` update."""
        if self.type != UPDATE_FILE or not self.sha:
            return None
        return FileInfo(name=self.name or "", sha=self.sha, mime=self.mime or "application/octet-stream")

    @property
    def is_error(self) -> bool:
        return self.type == UPDATE_STATUS and self.status == STATUS_ERROR

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


__all__ = [
    "STATUS_ERROR",
    "STATUS_FINISHED",
    "STATUS_KEEP_ALIVE",
    "STATUS_STARTED",
    "UPDATE_FILE",
    "UPDATE_FINAL_ANSWER",
    "UPDATE_REASONING",
    "UPDATE_STATUS",
    "UPDATE_STREAM",
    "UPDATE_TITLE",
    "UPDATE_TOOL",
    "UPDATE_WEB_SEARCH",
    "MessageUpdate",
]
