"""Application initialization for hfchat.

Builds every collaborator explicitly and hands them to the
ConversationController; nothing is shared through module-level singletons
except the cached settings and the logger.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from hfchat.core.constants import Settings, get_settings
from hfchat.core.conversation import ConversationController
from hfchat.core.preferences import PreferencesStore
from hfchat.integrations.context_capture import ContextProvider
from hfchat.integrations.transport import HuggingChatClient
from hfchat.utils.logger import logger


@dataclass
class AppState:
    """Application state container.

    Attributes:
        settings: Validated environment settings
        preferences: Persisted user preferences
        transport: Chat service client
        controller: Owner of the conversation state
    """

    settings: Settings
    preferences: PreferencesStore
    transport: HuggingChatClient
    controller: ConversationController

    async def shutdown(self) -> None:
        """Cancel in-flight work and close the HTTP client."""
        await self.controller.close()
        await self.transport.aclose()
        logger.info("hfchat shut down")


async def initialize_application(
    settings: Settings | None = None,
    context_provider: ContextProvider | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AppState:
    """Initialize hfchat and return populated state.

    1. Load and validate settings
    2. Open the preferences store
    3. Create the chat service client
    4. Create the controller and reset it, which fetches the active model

    Args:
        settings: Settings override (default: cached get_settings())
        context_provider: Foreground application text source
        http_client: httpx client override (default: built from settings). A
            supplied client is used as-is, so ``http_request_logging`` does
            not install logging hooks on it

    Returns:
        AppState ready for use; the controller is in the ``empty`` state
    """
    settings = settings or get_settings()
    logger.info(f"Settings loaded (service: {settings.service_base_url})")

    preferences = PreferencesStore(settings.preferences_path)
    transport = HuggingChatClient(http_client=http_client, settings=settings, preferences=preferences)
    if settings.http_request_logging:
        if http_client is None:
            logger.info("HTTP request/response logging enabled")
        else:
            logger.warning("HTTP request/response logging not applied to the supplied HTTP client")

    controller = ConversationController(
        transport=transport,
        preferences=preferences,
        context_provider=context_provider,
        settings=settings,
    )
    await controller.reset()

    return AppState(settings=settings, preferences=preferences, transport=transport, controller=controller)
