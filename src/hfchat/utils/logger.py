"""
Logging setup for hfchat using Python's standard logging
with JSON formatting for structured logs.

Log destinations:
- Console (stderr): Human-readable format for debugging
- <log_dir>/conversations.jsonl: JSON format for conversation history
- <log_dir>/errors.jsonl: JSON format for error tracking
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
import uuid

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pythonjsonlogger import json as jsonlogger

from hfchat.core.constants import (
    LOG_BACKUP_COUNT_CONVERSATIONS,
    LOG_BACKUP_COUNT_ERRORS,
    LOG_MAX_SIZE,
    LOG_PREVIEW_LENGTH,
    SESSION_ID_LENGTH,
    get_settings,
)


@dataclass
class ConversationTurn:
    """Structured representation of a conversation turn for logging."""

    user_input: str
    response: str
    conversation_id: str = ""
    duration_ms: float | None = None
    session_id: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())


class ConversationFilter(logging.Filter):
    """Filter to allow all INFO level logs for conversations"""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.INFO


class ErrorFilter(logging.Filter):
    """Filter to only allow ERROR and CRITICAL logs"""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(
    name: str = "hfchat",
    debug: bool | None = None,
    log_dir: Path | None = None,
) -> logging.Logger:
    """
    Set up logging with console and rotating JSON file handlers.

    Args:
        name: Logger name
        debug: Enable debug logging (overrides HFCHAT_DEBUG)
        log_dir: Directory for JSON log files (overrides HFCHAT_LOG_DIR)

    Returns:
        Configured logger instance
    """
    settings = get_settings()

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)  # Capture all, filter at handler level
    logger.handlers = []

    if debug is None:
        debug = settings.debug
    if log_dir is None:
        log_dir = settings.log_dir

    # --- Console Handler (Human-readable) ---
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)8s] %(name)s - %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    logger.addHandler(console_handler)

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    # --- Conversation Log Handler (JSON) ---
    conv_handler = logging.handlers.RotatingFileHandler(
        log_dir / "conversations.jsonl",
        maxBytes=LOG_MAX_SIZE,
        backupCount=LOG_BACKUP_COUNT_CONVERSATIONS,
    )
    conv_handler.setLevel(logging.INFO)
    conv_handler.addFilter(ConversationFilter())
    conv_handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(timestamp)s %(levelname)s %(message)s %(session_id)s %(conversation_id)s",
            timestamp=True,
        )
    )
    logger.addHandler(conv_handler)

    # --- Error Log Handler (JSON) ---
    error_handler = logging.handlers.RotatingFileHandler(
        log_dir / "errors.jsonl",
        maxBytes=LOG_MAX_SIZE,
        backupCount=LOG_BACKUP_COUNT_ERRORS,
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.addFilter(ErrorFilter())
    error_handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(timestamp)s %(levelname)s %(name)s %(message)s",
            timestamp=True,
        )
    )
    logger.addHandler(error_handler)

    return logger


def _preview(text: str) -> str:
    preview = text[:LOG_PREVIEW_LENGTH].replace("\n", " ")
    if len(text) > LOG_PREVIEW_LENGTH:
        preview += "..."
    return preview


class ChatLogger:
    """
    High-level logging interface for hfchat.
    Wraps standard Python logging with convenience methods.
    """

    def __init__(self, name: str = "hfchat"):
        self.logger = setup_logging(name)
        self.session_id = str(uuid.uuid4())[:SESSION_ID_LENGTH]

    def debug(self, message: str, **kwargs: Any) -> None:
        """Debug level logging"""
        kwargs["session_id"] = self.session_id
        self.logger.debug(message, extra=kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Info level logging"""
        kwargs["session_id"] = self.session_id
        self.logger.info(message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Warning level logging"""
        kwargs["session_id"] = self.session_id
        self.logger.warning(message, extra=kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        """Error level logging with optional exception info"""
        kwargs["session_id"] = self.session_id
        self.logger.error(message, extra=kwargs, exc_info=exc_info)

    def log_conversation_turn(
        self,
        user_input: str,
        response: str,
        conversation_id: str = "",
        duration_ms: float | None = None,
    ) -> None:
        """
        Log a completed prompt/response exchange to conversations.jsonl

        Args:
            user_input: The prompt text that was sent
            response: The final assistant response text
            conversation_id: Server-assigned conversation id
            duration_ms: Time from send to stream completion in milliseconds
        """
        turn = ConversationTurn(
            user_input=user_input,
            response=response,
            conversation_id=conversation_id,
            duration_ms=duration_ms,
            session_id=self.session_id,
        )

        msg_parts = [f"User: {_preview(turn.user_input)} → AI: {_preview(turn.response)}"]
        if turn.duration_ms:
            msg_parts.append(f"[{turn.duration_ms:.0f}ms]")

        extra_data: dict[str, Any] = {
            "conversation_turn": True,
            "timestamp": turn.timestamp,
            "session_id": turn.session_id,
            "conversation_id": turn.conversation_id,
            "chars": len(turn.user_input) + len(turn.response),
        }
        if turn.duration_ms is not None:
            extra_data["ms"] = int(turn.duration_ms)

        self.logger.info(" ".join(msg_parts), extra=extra_data)


# Global logger instance
logger = ChatLogger()
