"""
Models Module - Data Models and Type Definitions
=================================================

Pydantic v2 models for the conversation domain, stream events and errors.

Modules:
    conversation_models: Conversation, Message, MessageRow, ModelDescriptor, PromptRequest
    event_models: MessageUpdate decoded from each streamed response line
    error_models: ChatServiceError hierarchy and the published ErrorNotification

Conversation Models (conversation_models.py):
    Accept the chat service's JSON field names (``from``, ``webSearch``,
    ``displayName``) as well as the Python field names. ``MessageRow`` is the
    streaming projection of a message; its id is stable across snapshots.

Event Models (event_models.py):
    ``MessageUpdate`` covers status, stream, finalAnswer, webSearch, file,
    title, tool and reasoning updates; unknown types are preserved.

Error Models (error_models.py):
    - RateLimitError: HTTP 429, triggers rollback of the exchange
    - TransportError / DecodeError: generic failures
    - ErrorNotification: user-facing message plus underlying cause
"""

from hfchat.models.conversation_models import (
    Conversation,
    ConversationState,
    FileInfo,
    Message,
    MessageRow,
    ModelDescriptor,
    PromptRequest,
    WebSearch,
    WebSearchSource,
)
from hfchat.models.error_models import (
    ChatServiceError,
    ConversationBusyError,
    DecodeError,
    ErrorCode,
    ErrorNotification,
    RateLimitError,
    TransportError,
)
from hfchat.models.event_models import MessageUpdate

__all__ = [
    "ChatServiceError",
    "Conversation",
    "ConversationBusyError",
    "ConversationState",
    "DecodeError",
    "ErrorCode",
    "ErrorNotification",
    "FileInfo",
    "Message",
    "MessageRow",
    "MessageUpdate",
    "ModelDescriptor",
    "PromptRequest",
    "RateLimitError",
    "TransportError",
    "WebSearch",
    "WebSearchSource",
]
