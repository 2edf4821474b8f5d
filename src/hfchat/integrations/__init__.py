"""
Integrations Module - External Collaborators
============================================

Modules:
    transport: TransportClient protocol and the httpx-based HuggingChatClient
    context_capture: ContextProvider protocol for foreground application text
"""
