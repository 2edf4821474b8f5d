"""
Constants and configuration for hfchat.
Centralizes all magic numbers and configuration values.
Includes Pydantic validation for environment variables.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ============================================================================
# Service Configuration
# ============================================================================

#: Default chat service host. Image outputs are served from
#: ``{base}/chat/conversation/{conversation_id}/output/{sha}``.
DEFAULT_SERVICE_BASE_URL = "https://huggingface.co"

#: Model used when the ``externalModel`` preference has never been written.
DEFAULT_EXTERNAL_MODEL = "meta-llama/Meta-Llama-3.1-70B-Instruct"

#: Value of the ``localModel`` preference when no local model is selected.
NO_LOCAL_MODEL = "None"

#: Tool ids attached to prompts when the active model supports tools
#: (web search, image generation, document parser).
DEFAULT_TOOL_IDS: tuple[str, ...] = (
    "000000000000000000000001",
    "000000000000000000000002",
    "00000000000000000000000a",
)

# ============================================================================
# Context Capture
# ============================================================================

#: Maximum characters of the foreground application's full text prepended
#: to a prompt. Text beyond this limit is dropped from the end.
CONTEXT_FULL_TEXT_LIMIT = 3000

# ============================================================================
# Chat Auto-Clear
# ============================================================================

#: Allowed values of the ``chatClearInterval`` preference mapped to seconds.
#: ``never`` maps to None and disables clearing.
CHAT_CLEAR_INTERVALS: dict[str, int | None] = {
    "never": None,
    "15min": 15 * 60,
    "1hour": 60 * 60,
    "1day": 24 * 60 * 60,
}

# ============================================================================
# User-Facing Error Messages
# ============================================================================

MSG_CONNECTION_ERROR = "Something's wrong. Check your internet connection and try again."
MSG_RATE_LIMITED = "You've sent too many requests. Please try logging in before sending a message."
MSG_RECONCILE_ERROR = "Uh oh, something's not right! Please check your connection and try again later."
MSG_ACTIVE_MODEL_ERROR = "Hmm, that didn't go as planned. Please check your connection and try again."
MSG_LOAD_ERROR = "Couldn't load this conversation. Check your internet connection and try again."
MSG_GENERATION_ERROR = "Something went wrong while generating a response."

# ============================================================================
# HTTP Configuration
# ============================================================================

DEFAULT_CONNECT_TIMEOUT = 30.0
#: Generation can idle for a long time between tokens while tools run.
DEFAULT_READ_TIMEOUT = 300.0
DEFAULT_WRITE_TIMEOUT = 30.0
DEFAULT_POOL_TIMEOUT = 30.0

#: Name of the session cookie the chat service uses for authentication.
SESSION_COOKIE_NAME = "hf-chat"

# ============================================================================
# Logging Configuration
# ============================================================================

#: Maximum size in bytes for log files before rotation (10MB).
LOG_MAX_SIZE = 10 * 1024 * 1024

#: Number of conversation log backups to retain during rotation.
LOG_BACKUP_COUNT_CONVERSATIONS = 5

#: Number of error log backups to retain during rotation.
LOG_BACKUP_COUNT_ERRORS = 3

#: Maximum characters to show in log previews for user input/response.
LOG_PREVIEW_LENGTH = 50

#: Length of the per-process logging session id (hex characters).
SESSION_ID_LENGTH = 8

# ============================================================================
# Environment Configuration with Pydantic Validation
# ============================================================================


class Settings(BaseSettings):
    """Environment settings with validation.

    Loads from ``HFCHAT_*`` environment variables and a ``.env`` file.
    Every field has a default so the client starts without configuration.
    """

    service_base_url: str = Field(default=DEFAULT_SERVICE_BASE_URL, description="Chat service base URL")

    # Authentication (both optional - anonymous use is rate limited by the service)
    hf_token: str | None = Field(default=None, description="Bearer token sent as Authorization header")
    session_cookie: str | None = Field(default=None, description="Value of the hf-chat session cookie")

    # Local storage
    preferences_path: Path | None = Field(
        default=None,
        description="JSON file for persisted preferences (None keeps preferences in memory)",
    )
    log_dir: Path = Field(default=Path("logs"), description="Directory for rotating JSON log files")

    debug: bool = Field(default=False, description="Enable debug logging")
    http_request_logging: bool = Field(default=False, description="Enable HTTP request/response logging")
    read_timeout: float = Field(default=DEFAULT_READ_TIMEOUT, gt=0, description="Streaming read timeout (seconds)")

    model_config = SettingsConfigDict(
        env_prefix="HFCHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("service_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL and strip the trailing slash for path joining."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("service_base_url must start with http:// or https://")
        return v.rstrip("/")

    def output_url(self, conversation_id: str, sha: str) -> str:
        """Build the display URL of a generated file output."""
        return f"{self.service_base_url}/chat/conversation/{conversation_id}/output/{sha}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses LRU cache to ensure we only load and validate settings once.
    """
    return Settings()
