"""
Core Layer - Conversation Orchestration and Configuration
=========================================================

Modules:
    constants: Configuration values, user-facing messages and Pydantic settings validation
    cancellation: Cooperative cancellation token guarding the active stream
    reducer: Folds streamed message updates into message row snapshots
    conversation: ConversationController, the owner of conversation state
    preferences: Persisted key-value preferences with change notification
    auto_clear: Chat auto-clear interval policy

Key Components:

Conversation Controller (conversation.py):
    Single owner of the active conversation and its message rows. Creates
    conversations on demand, streams prompts through the transport client,
    applies reducer snapshots in arrival order and translates every
    transport failure into the ``error`` state.

Streaming Reducer (reducer.py):
    Accumulates ``stream`` tokens, final answers, web search sources and
    file outputs into one evolving ``MessageRow`` per prompt.

Configuration (constants.py):
    Centralized configuration using Pydantic Settings:
    - Service base URL and authentication
    - Preferences and log locations
    - HTTP timeouts and request logging

See Also:
    :mod:`hfchat.integrations.transport`: HTTP transport for the chat service
    :mod:`hfchat.models`: Conversation, message and error models
"""
