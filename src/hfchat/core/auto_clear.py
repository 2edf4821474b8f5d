"""Chat auto-clear interval policy."""

from __future__ import annotations

from datetime import datetime

from hfchat.core.constants import CHAT_CLEAR_INTERVALS
from hfchat.utils.logger import logger


def should_clear(interval: str, last_chat_time: datetime, now: datetime) -> bool:
    """Decide whether an idle chat should be cleared.

    Args:
        interval: Value of the ``chatClearInterval`` preference
        last_chat_time: When the chat was last used
        now: Current time

    Returns:
        True when at least ``interval`` has elapsed; always False for
        ``never`` and for unknown intervals
    """
    if interval not in CHAT_CLEAR_INTERVALS:
        logger.warning(f"Unexpected chat clear interval: {interval}")
        return False

    seconds = CHAT_CLEAR_INTERVALS[interval]
    if seconds is None:
        return False

    return (now - last_chat_time).total_seconds() >= seconds
