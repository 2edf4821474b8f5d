"""Conversation state controller.

``ConversationController`` is the single owner of the active conversation and
its message rows. All mutation happens on one asyncio event loop: transport
calls are awaited and their results applied by the coroutine that awaited
them, so there is never more than one writer.

State machine::

    none -> empty -> loading -> loaded <-> generating
    (any) -> error -> loaded (cancel) | empty (reset)

Every foreground operation (a load, or a send from conversation creation
through the end of its stream) runs under its own ``CancellationToken``.
``cancel_generation``, ``reset`` and ``load_conversation`` cancel the
current token; the stream and reconciliation tasks are registered on it, and
an operation whose token was cancelled while it awaited the transport
publishes nothing.
"""

from __future__ import annotations

import asyncio
import time

from collections.abc import Callable, Coroutine
from datetime import datetime
from typing import Any

from hfchat.core.auto_clear import should_clear
from hfchat.core.cancellation import CancellationToken
from hfchat.core.constants import (
    CONTEXT_FULL_TEXT_LIMIT,
    DEFAULT_TOOL_IDS,
    MSG_ACTIVE_MODEL_ERROR,
    MSG_CONNECTION_ERROR,
    MSG_GENERATION_ERROR,
    MSG_LOAD_ERROR,
    MSG_RATE_LIMITED,
    MSG_RECONCILE_ERROR,
    Settings,
    get_settings,
)
from hfchat.core.preferences import PreferencesStore
from hfchat.core.reducer import StreamingResponseReducer
from hfchat.integrations.context_capture import ContextProvider
from hfchat.integrations.transport import TransportClient
from hfchat.models.conversation_models import (
    Conversation,
    ConversationState,
    FileInfo,
    MessageRow,
    ModelDescriptor,
    PromptRequest,
    WebSearchSource,
)
from hfchat.models.error_models import (
    ChatServiceError,
    ConversationBusyError,
    DecodeError,
    ErrorCode,
    ErrorNotification,
    RateLimitError,
    TransportError,
)
from hfchat.utils.logger import logger

#: Called with the name of each published field after it changes.
StateListener = Callable[[str], None]


class ConversationController:
    """Owns conversation state and drives the streaming prompt protocol.

    Published fields (observe with ``add_listener``):
        state, conversation, messages, message, error, is_interacting,
        is_multimodal, is_tools, model, image_url, sources,
        context_app_name, context_selected_text, context_full_text,
        context_is_supported
    """

    def __init__(
        self,
        transport: TransportClient,
        preferences: PreferencesStore,
        context_provider: ContextProvider | None = None,
        settings: Settings | None = None,
    ):
        """Initialize the controller.

        Args:
            transport: Client for the chat service
            preferences: Persisted user preferences
            context_provider: Source of foreground application text (optional)
            settings: Environment settings (default: cached get_settings())
        """
        self.transport = transport
        self.preferences = preferences
        self.context_provider = context_provider
        self.settings = settings or get_settings()

        self.state = ConversationState.NONE
        self.conversation: Conversation | None = None
        self.messages: list[MessageRow] = []
        self.message: MessageRow | None = None
        self.error: ErrorNotification | None = None
        self.is_interacting = False

        # Active model
        self.model: ModelDescriptor | None = None
        self.is_multimodal = False
        self.is_tools = False

        # Tool outputs
        self.image_url: str | None = None
        self.sources: list[WebSearchSource] = []

        # Context
        self.context_app_name: str | None = None
        self.context_selected_text: str | None = None
        self.context_full_text: str | None = None
        self.context_is_supported = False

        self.last_chat_time = datetime.now()

        self._listeners: list[StateListener] = []
        self._stream_task: asyncio.Task[None] | None = None
        self._cancellation_token: CancellationToken | None = None
        self._reconcile_task: asyncio.Task[None] | None = None
        self._background_tasks: set[asyncio.Task[Any]] = set()
        # Token of a send that has not started streaming yet
        self._send_token: CancellationToken | None = None

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _update(self, **changes: Any) -> None:
        """Assign published fields and notify listeners of each one."""
        for name, value in changes.items():
            setattr(self, name, value)
        for name in changes:
            for listener in list(self._listeners):
                try:
                    listener(name)
                except Exception as e:
                    logger.warning(f"State listener error for {name}: {e}")

    @property
    def is_busy(self) -> bool:
        """True while a prompt is being prepared or generated."""
        return self._send_token is not None or self.state == ConversationState.GENERATING

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_conversation(self, conversation_id: str) -> None:
        """Replace the owned conversation with the server's copy.

        Args:
            conversation_id: Server-assigned conversation id
        """
        await self._cancel_active_work("loading another conversation", include_background=False)
        token = CancellationToken()
        self._cancellation_token = token
        self._update(state=ConversationState.LOADING, is_interacting=False)

        try:
            conversation = await self.transport.get_conversation(conversation_id)
        except ChatServiceError as e:
            if token.is_cancelled:
                return
            logger.error(f"Error loading conversation {conversation_id}: {e.description}")
            self._fail(ErrorCode.CONVERSATION_LOAD_FAILED, MSG_LOAD_ERROR, e)
            return
        finally:
            self._release_token(token)

        if token.is_cancelled:
            logger.debug(f"Discarding load of {conversation_id}: {token.cancel_reason}")
            return

        self._update(
            conversation=conversation,
            messages=self._build_history(conversation),
            message=None,
            error=None,
            state=ConversationState.LOADED,
        )
        logger.info(f"Loaded conversation {conversation.id} ({len(conversation.messages)} messages)")

    @staticmethod
    def _build_history(conversation: Conversation) -> list[MessageRow]:
        return [MessageRow.from_message(message) for message in conversation.messages]

    async def refresh_active_model(self, token: CancellationToken | None = None) -> ModelDescriptor | None:
        """Fetch the active model and mirror its capabilities.

        Args:
            token: Token of the operation waiting on the model; nothing is
                published if it is cancelled during the fetch

        Returns:
            The model, or None when the fetch failed or was cancelled
        """
        try:
            model = await self.transport.get_active_model()
        except ChatServiceError as e:
            if token is not None and token.is_cancelled:
                return None
            logger.error(f"Active model fetch failed: {e.description}")
            self._fail(ErrorCode.ACTIVE_MODEL_FAILED, MSG_ACTIVE_MODEL_ERROR, e)
            return None

        if token is not None and token.is_cancelled:
            return None

        self.preferences.external_model = model.name
        self._update(model=model, is_multimodal=model.multimodal, is_tools=model.tools)
        logger.debug(f"Active model {model.name} (multimodal={model.multimodal}, tools={model.tools})")
        return model

    async def _create_conversation(self, token: CancellationToken) -> Conversation | None:
        model = self.model or await self.refresh_active_model(token)
        if model is None or token.is_cancelled:
            return None

        self._update(state=ConversationState.LOADING)
        try:
            conversation = await self.transport.create_conversation(model)
        except ChatServiceError as e:
            if token.is_cancelled:
                return None
            logger.error(f"Create conversation failed: {e.description}")
            self._fail(ErrorCode.CONVERSATION_CREATE_FAILED, MSG_CONNECTION_ERROR, e)
            return None

        if token.is_cancelled:
            logger.debug(f"Discarding created conversation {conversation.id}: {token.cancel_reason}")
            return None

        self._update(conversation=conversation, state=ConversationState.LOADED)
        return conversation

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send_message(self, text: str, files: list[str] | None = None) -> asyncio.Task[None] | None:
        """Send a prompt, creating the conversation first if needed.

        When the context preference is on, the captured selected and full
        text are prepended to the prompt.

        Args:
            text: Prompt text
            files: Optional file references to attach

        Returns:
            The streaming task, or None when the send failed before streaming

        Raises:
            ConversationBusyError: If a prompt is already being generated
        """
        return await self._send(self._compose_prompt(text, with_context=True), files=files, use_tools=True)

    async def send_transcript(self, text: str) -> asyncio.Task[None] | None:
        """Send dictated text as-is: no context, files or tools."""
        return await self._send(self._compose_prompt(text, with_context=False), files=None, use_tools=False)

    def _compose_prompt(self, text: str, with_context: bool) -> str:
        prompt = ""
        if with_context and self.preferences.use_context:
            if self.context_selected_text:
                prompt += f"Selected Text: ```{self.context_selected_text}```"
            if self.context_full_text:
                prompt += f"\n\nFull Text:```{self.context_full_text[:CONTEXT_FULL_TEXT_LIMIT]}```"
            if prompt:
                prompt += "\n\n"
        return prompt + text.strip()

    async def _send(self, prompt: str, files: list[str] | None, use_tools: bool) -> asyncio.Task[None] | None:
        if self.is_busy:
            raise ConversationBusyError("A response is already being generated")

        token = CancellationToken()
        self._cancellation_token = token
        self._send_token = token
        try:
            self.last_chat_time = datetime.now()

            conversation = self.conversation
            if conversation is None or conversation.last_message_id is None:
                conversation = await self._create_conversation(token)
                if conversation is None:
                    return None

            previous_id = conversation.last_message_id
            if previous_id is None:
                self._fail(
                    ErrorCode.CONVERSATION_CREATE_FAILED,
                    MSG_CONNECTION_ERROR,
                    DecodeError(f"Conversation {conversation.id} has no root message"),
                )
                return None

            request = PromptRequest(
                id=previous_id,
                inputs=prompt,
                web_search=self.preferences.use_web_search,
                files=files or None,
                tools=list(DEFAULT_TOOL_IDS) if use_tools and self.is_tools else None,
            )

            user_row = MessageRow(
                role="user",
                content=prompt,
                files=[FileInfo(sha=ref) for ref in files] if files else None,
            )
            self._update(messages=[*self.messages, user_row])
            return self._start_stream(conversation.id, request, token)
        finally:
            if self._send_token is token:
                self._send_token = None
            self._release_token(token)

    def _release_token(self, token: CancellationToken) -> None:
        """Drop ``token`` unless it still guards a running stream."""
        if self._cancellation_token is token and self._stream_task is None:
            self._cancellation_token = None

    def _start_stream(
        self, conversation_id: str, request: PromptRequest, token: CancellationToken
    ) -> asyncio.Task[None]:
        placeholder = MessageRow.placeholder()

        self._update(
            state=ConversationState.GENERATING,
            is_interacting=True,
            image_url=None,
            error=None,
            message=placeholder,
            messages=[*self.messages, placeholder],
        )

        task = asyncio.create_task(self._run_stream(conversation_id, request, placeholder, token))
        self._stream_task = task
        self._cancel_on(token, task)
        return task

    @staticmethod
    def _cancel_on(token: CancellationToken, task: asyncio.Task[Any]) -> None:
        """Cancel ``task`` when ``token`` is cancelled, until the task finishes."""

        def cancel_task() -> None:
            if task is not asyncio.current_task():
                task.cancel()

        token.on_cancel(cancel_task)
        task.add_done_callback(lambda _: token.remove_callback(cancel_task))

    async def _run_stream(
        self,
        conversation_id: str,
        request: PromptRequest,
        placeholder: MessageRow,
        token: CancellationToken,
    ) -> None:
        reducer = StreamingResponseReducer(placeholder)
        started = time.monotonic()

        try:
            updates = self.transport.stream_prompt(conversation_id, request)
            async for count, row in reducer.reduce(updates, token):
                if count == 1:
                    self._start_reconcile(conversation_id, token)
                self._apply_snapshot(row, conversation_id)

        except asyncio.CancelledError:
            logger.info(f"Generation cancelled for conversation {conversation_id}")
            raise

        except RateLimitError as e:
            self._end_stream(token)
            logger.warning(f"Rate limited: {e.description}")
            del self.messages[-2:]
            self._update(messages=self.messages, message=None, is_interacting=False)
            self._fail(ErrorCode.TRANSPORT_RATE_LIMITED, MSG_RATE_LIMITED, None)

        except ChatServiceError as e:
            self._end_stream(token)
            logger.error(f"Generation failed: {e.description}")
            self._stop_generation(reducer.row, conversation_id, e)

        except Exception as e:
            self._end_stream(token)
            logger.error(f"Unexpected error during generation: {e}", exc_info=True)
            self._stop_generation(reducer.row, conversation_id, TransportError(str(e) or type(e).__name__))

        else:
            self._end_stream(token)
            self._apply_snapshot(reducer.row, conversation_id)
            # A failed reconciliation during the stream leaves the error in place
            final_state = ConversationState.ERROR if self.error is not None else ConversationState.LOADED
            self._update(is_interacting=False, state=final_state)
            logger.log_conversation_turn(
                user_input=request.inputs,
                response=reducer.row.content,
                conversation_id=conversation_id,
                duration_ms=(time.monotonic() - started) * 1000,
            )

    def _stop_generation(self, row: MessageRow, conversation_id: str, cause: ChatServiceError) -> None:
        """Freeze the partial row and publish a generation failure."""
        self._apply_snapshot(row.model_copy(update={"is_interacting": False}), conversation_id)
        self._update(is_interacting=False)
        self._fail(ErrorCode.GENERATION_FAILED, MSG_GENERATION_ERROR, cause)

    def _end_stream(self, token: CancellationToken) -> None:
        """Release the stream handle if it still belongs to ``token``."""
        if self._cancellation_token is token:
            self._cancellation_token = None
            self._stream_task = None

    def _apply_snapshot(self, row: MessageRow, conversation_id: str) -> None:
        """Replace the row with the same id and derive tool outputs."""
        changes: dict[str, Any] = {"message": row}

        for index in range(len(self.messages) - 1, -1, -1):
            if self.messages[index].id == row.id:
                self.messages[index] = row
                changes["messages"] = self.messages
                break

        if row.file_info is not None and row.file_info.is_image:
            changes["image_url"] = self.settings.output_url(conversation_id, row.file_info.sha)

        if row.web_search is not None and row.web_search.sources:
            changes["sources"] = list(row.web_search.sources)

        self._update(**changes)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def _start_reconcile(self, conversation_id: str, token: CancellationToken) -> None:
        if self._reconcile_task is not None and not self._reconcile_task.done():
            self._reconcile_task.cancel()
        self._reconcile_task = asyncio.create_task(self._reconcile_conversation(conversation_id))
        self._cancel_on(token, self._reconcile_task)

    async def _reconcile_conversation(self, conversation_id: str) -> None:
        """Refetch the conversation so server-assigned ids are known."""
        try:
            conversation = await self.transport.get_conversation(conversation_id)
        except ChatServiceError as e:
            logger.error(f"Conversation reconciliation failed: {e.description}")
            self._fail(ErrorCode.CONVERSATION_RECONCILE_FAILED, MSG_RECONCILE_ERROR, e)
            return

        self._update(conversation=conversation)
        logger.debug(f"Reconciled conversation {conversation_id}")

    # ------------------------------------------------------------------
    # Cancellation and reset
    # ------------------------------------------------------------------

    async def _cancel_active_work(self, reason: str, include_background: bool = True) -> None:
        """Cancel the current operation, reconciliation and background tasks, and wait for them.

        Cancelling the operation's token cancels the tasks registered on it
        and makes a load or send that is still awaiting the transport
        discard its result.
        """
        candidates = [self._stream_task, self._reconcile_task]
        if include_background:
            candidates.extend(self._background_tasks)

        token = self._cancellation_token
        self._stream_task = None
        self._cancellation_token = None
        self._send_token = None
        self._reconcile_task = None
        if token is not None:
            await token.cancel(reason)

        current = asyncio.current_task()
        tasks = [task for task in candidates if task is not None and task is not current and not task.done()]

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def cancel_generation(self) -> None:
        """Stop the active stream; the partial placeholder row is kept.

        A send still creating its conversation is abandoned before its user
        row is appended.
        """
        await self._cancel_active_work("generation stopped", include_background=False)
        self._update(is_interacting=False, state=ConversationState.LOADED, error=None)

    async def reset(self) -> None:
        """Drop the conversation and start over with a fresh model fetch."""
        await self._cancel_active_work("reset")
        self._update(
            state=ConversationState.EMPTY,
            conversation=None,
            messages=[],
            message=None,
            error=None,
            is_interacting=False,
            image_url=None,
            sources=[],
        )
        self.clear_context()
        self._spawn(self.refresh_active_model())

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def close(self) -> None:
        """Cancel all in-flight work without touching published state."""
        await self._cancel_active_work("shutdown")

    async def wait_until_idle(self) -> None:
        """Wait for the active stream and pending background fetches.

        Loops because a finishing stream can start a reconciliation fetch.
        """
        while True:
            tasks = [
                task
                for task in (self._stream_task, self._reconcile_task, *self._background_tasks)
                if task is not None and not task.done()
            ]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def check_and_clear(self, now: datetime | None = None) -> bool:
        """Clear the chat if it has been idle longer than the auto-clear interval.

        Returns:
            True if the chat was cleared
        """
        now = now or datetime.now()
        cleared = should_clear(self.preferences.chat_clear_interval, self.last_chat_time, now)
        if cleared:
            logger.info(f"Auto-clearing chat after interval {self.preferences.chat_clear_interval}")
            await self.cancel_generation()
            await self.reset()
        self.last_chat_time = now
        return cleared

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def _fail(self, code: ErrorCode, message: str, cause: ChatServiceError | None) -> None:
        """Publish an error, replacing any previous one.

        The state only moves to ``error`` when no stream is in flight; a
        running stream ends in ``error`` once it finishes.
        """
        notification = ErrorNotification(code=code, message=message, cause=cause.description if cause else None)
        if self._stream_task is not None and not self._stream_task.done():
            self._update(error=notification)
        else:
            self._update(error=notification, state=ConversationState.ERROR)

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    async def fetch_context(self) -> None:
        """Capture text from the foreground application."""
        self.clear_context()
        self._update(context_is_supported=False)
        if self.context_provider is None:
            return

        try:
            content = await self.context_provider.get_active_editor_content()
        except Exception as e:
            logger.warning(f"Context capture failed: {e}")
            return
        if content is None:
            return

        self._update(context_is_supported=content.is_supported, context_app_name=content.application_name)
        if content.is_supported:
            self._update(context_selected_text=content.selected_text, context_full_text=content.full_text)

    def clear_context(self) -> None:
        self._update(context_app_name=None, context_selected_text=None, context_full_text=None)


__all__ = ["ConversationController", "StateListener"]
