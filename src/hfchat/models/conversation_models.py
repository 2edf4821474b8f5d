"""
Conversation models for hfchat.
Provides Pydantic models for conversations, messages and the streaming message
row, accepting the chat service's JSON field names.
"""

from __future__ import annotations

import uuid

from enum import Enum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

Role = Literal["user", "assistant", "system"]


class ConversationState(str, Enum):
    """Lifecycle state of a ConversationController.

    ``generating`` holds iff exactly one streaming request is in flight.
    """

    NONE = "none"
    EMPTY = "empty"
    LOADING = "loading"
    LOADED = "loaded"
    GENERATING = "generating"
    ERROR = "error"


class FileInfo(BaseModel):
    """File attached to or generated by a message."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = ""
    mime: str = Field(default="application/octet-stream")
    sha: str = Field(validation_alias=AliasChoices("sha", "value"))

    @property
    def is_image(self) -> bool:
        return self.mime.startswith("image/")


class WebSearchSource(BaseModel):
    """One link returned by a web search."""

    model_config = ConfigDict(extra="ignore")

    link: str
    title: str | None = None
    hostname: str | None = None


class WebSearch(BaseModel):
    """Web search results attached to an assistant message, in service order."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    prompt: str | None = None
    sources: list[WebSearchSource] = Field(
        default_factory=list,
        validation_alias=AliasChoices("sources", "contextSources"),
    )


class Message(BaseModel):
    """A persisted conversation message."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    role: Role = Field(validation_alias=AliasChoices("from", "role"), serialization_alias="from")
    content: str = ""
    files: list[FileInfo] | None = None
    web_search: WebSearch | None = Field(
        default=None,
        validation_alias=AliasChoices("webSearch", "web_search"),
        serialization_alias="webSearch",
    )


class Conversation(BaseModel):
    """Server-tracked conversation with its ordered message history."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(validation_alias=AliasChoices("id", "_id", "conversationId"))
    title: str = ""
    model: str = ""
    messages: list[Message] = Field(default_factory=list)

    @property
    def last_message_id(self) -> str | None:
        """Id the next prompt must reference as its previous message."""
        if not self.messages:
            return None
        return self.messages[-1].id


class MessageRow(BaseModel):
    """Projection of a Message used while a response is streaming.

    The placeholder row for an in-flight assistant message gets a client
    generated id; every streaming snapshot keeps that id so it can replace
    the row in place.
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Role = "assistant"
    content: str = ""
    is_interacting: bool = False
    file_info: FileInfo | None = None
    files: list[FileInfo] | None = None
    web_search: WebSearch | None = None
    status: str | None = None

    @classmethod
    def from_message(cls, message: Message) -> MessageRow:
        """Build a frozen row from a persisted message."""
        file_info = message.files[-1] if message.files else None
        return cls(
            id=message.id,
            role=message.role,
            content=message.content,
            is_interacting=False,
            file_info=file_info,
            files=message.files,
            web_search=message.web_search,
        )

    @classmethod
    def placeholder(cls) -> MessageRow:
        """Empty assistant row awaiting streamed content."""
        return cls(role="assistant", is_interacting=True)


class ModelDescriptor(BaseModel):
    """A model offered by the chat service and its capabilities."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str = ""
    display_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("displayName", "display_name"),
    )
    multimodal: bool = False
    tools: bool = False
    active: bool = False

    def model_post_init(self, __context: Any) -> None:
        if not self.name:
            self.name = self.id


class PromptRequest(BaseModel):
    """Body of a streaming prompt request."""

    id: str  # previous message id
    inputs: str
    is_retry: bool = False
    is_continue: bool = False
    web_search: bool = False
    files: list[str] | None = None
    tools: list[str] | None = None

    def to_body(self) -> dict[str, Any]:
        """Serialize for the request body, omitting unset optional lists."""
        return self.model_dump(exclude_none=True)


__all__ = [
    "Conversation",
    "ConversationState",
    "FileInfo",
    "Message",
    "MessageRow",
    "ModelDescriptor",
    "PromptRequest",
    "Role",
    "WebSearch",
    "WebSearchSource",
]
