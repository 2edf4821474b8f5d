"""
Error taxonomy for hfchat.

Transport failures are raised as ``ChatServiceError`` subclasses and caught at
the ConversationController boundary, where they are translated into an
``ErrorNotification`` published alongside the ``error`` state.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Application-specific error codes for categorization."""

    # Transport errors (1xxx)
    TRANSPORT_ERROR = "TRN_1001"
    TRANSPORT_DECODE_ERROR = "TRN_1002"
    TRANSPORT_RATE_LIMITED = "TRN_1003"

    # Conversation errors (2xxx)
    CONVERSATION_LOAD_FAILED = "CNV_2001"
    CONVERSATION_CREATE_FAILED = "CNV_2002"
    CONVERSATION_RECONCILE_FAILED = "CNV_2003"
    CONVERSATION_BUSY = "CNV_2004"

    # Model errors (3xxx)
    ACTIVE_MODEL_FAILED = "MDL_3001"

    # Generation errors (4xxx)
    GENERATION_FAILED = "GEN_4001"


class ChatServiceError(Exception):
    """Base class for failures surfaced by the transport and reducer.

    Attributes:
        code: Error category
        description: Human-readable description of the failure
        status_code: HTTP status code when the failure came from a response
    """

    code: ErrorCode = ErrorCode.TRANSPORT_ERROR

    def __init__(self, description: str, status_code: int | None = None):
        super().__init__(description)
        self.description = description
        self.status_code = status_code


class TransportError(ChatServiceError):
    """Network failure, non-success HTTP status, or an error reported in-stream."""

    code = ErrorCode.TRANSPORT_ERROR


class DecodeError(TransportError):
    """Response body could not be decoded into the expected shape."""

    code = ErrorCode.TRANSPORT_DECODE_ERROR


class RateLimitError(ChatServiceError):
    """The service answered 429 Too Many Requests."""

    code = ErrorCode.TRANSPORT_RATE_LIMITED

    def __init__(self, description: str = "Too many requests", status_code: int | None = 429):
        super().__init__(description, status_code=status_code)


class ConversationBusyError(RuntimeError):
    """Raised when a prompt is sent while another one is still generating."""

    code = ErrorCode.CONVERSATION_BUSY


class ErrorNotification(BaseModel):
    """Error published by the ConversationController.

    ``message`` is the user-facing text, ``cause`` the underlying failure
    description when one exists.
    """

    code: ErrorCode
    message: str
    cause: str | None = None
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())

    @property
    def description(self) -> str:
        """User-facing message with the underlying cause appended."""
        if self.cause:
            return f"{self.message}\n\n{self.cause}"
        return self.message


__all__ = [
    "ChatServiceError",
    "ConversationBusyError",
    "DecodeError",
    "ErrorCode",
    "ErrorNotification",
    "RateLimitError",
    "TransportError",
]
