"""
Cancellation token for a foreground controller operation.

The ConversationController creates one token per load or send and replaces
it on every new operation. Tasks registered with ``on_cancel`` are cancelled
with the token, the reducer stops applying updates once it is cancelled, and
an operation that was cancelled while awaiting the transport discards its
result.
"""

from __future__ import annotations

import asyncio
import contextlib

from collections.abc import Callable

from hfchat.utils.logger import logger


class CancellationToken:
    """Cooperative cancellation for one controller operation.

    Usage:
        token = CancellationToken()
        token.on_cancel(stream_task.cancel)

        # Stop generation: cancels stream_task
        await token.cancel("generation stopped")

        # After awaiting the transport:
        if token.is_cancelled:
            return None

        # Per streamed update:
        token.check()  # Raises CancelledError if cancelled
    """

    __slots__ = ("_callbacks", "_cancel_reason", "_cancelled", "_lock")

    def __init__(self) -> None:
        self._cancelled = asyncio.Event()
        self._callbacks: list[Callable[[], None]] = []
        self._cancel_reason: str | None = None
        self._lock = asyncio.Lock()

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested."""
        return self._cancelled.is_set()

    @property
    def cancel_reason(self) -> str | None:
        """Get the reason for cancellation, if any."""
        return self._cancel_reason

    async def cancel(self, reason: str | None = None) -> None:
        """Request cancellation and notify all callbacks.

        Args:
            reason: Optional reason for cancellation (for logging/debugging)
        """
        async with self._lock:
            if self._cancelled.is_set():
                return

            self._cancel_reason = reason
            self._cancelled.set()

            for callback in list(self._callbacks):
                self._invoke_callback(callback)

    def _invoke_callback(self, callback: Callable[[], None]) -> None:
        """Invoke a callback, logging any errors."""
        try:
            callback()
        except Exception as e:
            logger.warning(f"Cancellation callback error: {e}")

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback to be called when cancelled.

        Runs immediately if the token is already cancelled.

        Args:
            callback: Function to call on cancellation

        Returns:
            The callback (for use as decorator)
        """
        if self._cancelled.is_set():
            self._invoke_callback(callback)
            return callback

        self._callbacks.append(callback)
        return callback

    def remove_callback(self, callback: Callable[[], None]) -> None:
        """Remove a previously registered callback."""
        with contextlib.suppress(ValueError):
            self._callbacks.remove(callback)

    def check(self) -> None:
        """Check cancellation and raise if cancelled.

        Raises:
            asyncio.CancelledError: If token is cancelled
        """
        if self.is_cancelled:
            raise asyncio.CancelledError(self._cancel_reason or "Cancellation requested")


__all__ = ["CancellationToken"]
