"""
Context capture collaborator interface.

The text of the user's foreground application is read by a platform-specific
provider outside this package; the ConversationController only consumes the
result shape defined here.
"""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel


class ActiveEditorContent(BaseModel):
    """Content captured from the foreground application."""

    application_name: str | None = None
    selected_text: str | None = None
    full_text: str | None = None
    is_supported: bool = False


class ContextProvider(Protocol):
    """Supplies the foreground application's content, if any."""

    async def get_active_editor_content(self) -> ActiveEditorContent | None:
        """Return the current content, or None when nothing can be read."""
        ...


class StaticContextProvider:
    """ContextProvider returning fixed content (headless use and tests)."""

    def __init__(self, content: ActiveEditorContent | None = None):
        self.content = content

    async def get_active_editor_content(self) -> ActiveEditorContent | None:
        return self.content


__all__ = ["ActiveEditorContent", "ContextProvider", "StaticContextProvider"]
