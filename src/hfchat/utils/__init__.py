"""
Utils Module - Infrastructure Utilities
=======================================

Modules:
    logger: JSON structured logging with rotation
    http_logger: httpx event hooks logging requests and responses
    client_factory: httpx.AsyncClient creation for the chat service

Logging (logger.py):
    - Console handler: Human-readable format to stderr
    - Conversation handler: JSON Lines format to <log_dir>/conversations.jsonl
    - Error handler: JSON Lines format to <log_dir>/errors.jsonl
"""
