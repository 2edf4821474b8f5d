"""
hfchat - Conversation session core for HuggingChat-style chat services.

Owns conversation state, drives the streaming prompt protocol against the
remote service and keeps message history consistent under cancellation,
errors and resets.
"""

from __future__ import annotations

__version__ = "0.1.0"
