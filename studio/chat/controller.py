import asyncio
import logging
from typing import Optional

from ..ollama import (
    ChatOptions,
    EmptyResponseError,
    ModelDescriptor,
    OllamaClient,
    OllamaConnectionError,
    OllamaError,
)
from .context import ChatContext, StreamEvent
from .models import Message, MessageStats, make_title, now_ms
from .storage import ChatStore

logger = logging.getLogger(__name__)

STOPPED_MESSAGE = "⏹️ Generation stopped"

CONNECTION_ERROR_MESSAGE = (
    "❌ **Cannot Connect to Ollama**\n\n"
    "Please check:\n"
    "- Ollama is running on {host}\n"
    "- Run: `ollama serve`\n"
    '- Model "{model}" is installed'
)

EMPTY_RESPONSE_MESSAGE = (
    "⚠️ **Empty Response**\n\n"
    "The model did not generate a response. Try:\n"
    "- Pulling the model: `ollama pull {model}`\n"
    "- Using a different model\n"
    "- Rephrasing your question"
)


class ChatController:
    """Drives one chat UI: sending, streaming, stopping and history.

    The in-flight generation is a single asyncio task. Updates are pushed
    to ``events`` as the reply streams in.
    """

    def __init__(
        self,
        client: OllamaClient,
        store: ChatStore,
        context: Optional[ChatContext] = None,
        options: Optional[ChatOptions] = None,
        fallback_models: Optional[list[str]] = None,
    ) -> None:
        self.client = client
        self.store = store
        self.context = context or ChatContext()
        self.options = options
        self.fallback_models = fallback_models or []
        self.events: asyncio.Queue[StreamEvent] = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None

    # ---- History ----

    def load_history(self) -> dict[int, str]:
        self.context.history = self.store.titles()
        return self.context.history

    def new_chat(self) -> int:
        self.context.chat_id = now_ms()
        self.context.messages = []
        return self.context.chat_id

    def switch_chat(self, chat_id: int) -> bool:
        chat = self.store.get_chat(chat_id)
        self.context.chat_id = chat_id
        self.context.messages = list(chat.messages) if chat else []
        return chat is not None

    def delete_chat(self, chat_id: int) -> bool:
        deleted = self.store.delete_chat(chat_id)
        self.context.history.pop(chat_id, None)
        if chat_id == self.context.chat_id:
            self.new_chat()
        return deleted

    def _persist(self, chat_id: int, messages: list[Message], model: str) -> None:
        try:
            chat = self.store.save_chat(chat_id, messages, model)
        except OSError as e:
            logger.error("Failed to save chat %s: %s", chat_id, e)
            return
        if chat is not None:
            self.context.history[chat.id] = chat.title

    # ---- Models ----

    async def refresh_models(self) -> list[ModelDescriptor]:
        """Reload the model list, keeping the current model when still installed."""
        ctx = self.context
        try:
            models = await self.client.list_models()
        except OllamaError as e:
            logger.warning("Failed to load models, using defaults: %s", e)
            models = [ModelDescriptor(name=name) for name in self.fallback_models]
        ctx.models = models
        names = [m.name for m in models]
        if names and ctx.model not in names:
            ctx.model = names[0]
        return models

    def set_model(self, name: str) -> None:
        self.context.model = name

    async def check_status(self) -> bool:
        ctx = self.context
        ctx.online = await self.client.ping()
        ctx.model_count = len(ctx.models) if ctx.online else 0
        return ctx.online

    # ---- Generation ----

    @property
    def is_generating(self) -> bool:
        return self.context.is_generating

    def send(self, content: str) -> Optional[asyncio.Task]:
        """Submit a user message, or stop the running generation.

        Returns the generation task, or None when nothing was started.
        """
        if self.context.is_generating:
            self.stop()
            return None
        if not content.strip():
            return None

        ctx = self.context
        history = [
            {"role": m.role, "content": m.content}
            for m in ctx.messages
            if not m.is_error
        ]
        history.append({"role": "user", "content": content})

        if ctx.chat_id not in ctx.history:
            ctx.history[ctx.chat_id] = make_title(content, self.store.title_length)

        last_id = max((m.id or 0 for m in ctx.messages), default=0)
        placeholder = Message(
            role="assistant",
            content="",
            id=max(now_ms(), last_id + 1),
            is_loading=True,
        )
        ctx.messages.append(Message(role="user", content=content))
        ctx.messages.append(placeholder)
        self._persist(ctx.chat_id, ctx.messages, ctx.model)
        ctx.is_generating = True

        # Bound to this chat's message list even if the user switches chats
        turn = (placeholder, ctx.chat_id, ctx.messages, ctx.model)
        task = asyncio.create_task(self._generate(history, *turn))
        # A task cancelled before its first step never enters _generate
        task.add_done_callback(
            lambda t: self._finish(*turn) if t.cancelled() else None
        )
        self._task = task
        return task

    def stop(self) -> bool:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            return True
        return False

    async def wait(self) -> None:
        """Block until the current generation, if any, has finished."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def _generate(
        self,
        history: list[dict],
        reply: Message,
        chat_id: int,
        messages: list[Message],
        model: str,
    ) -> None:
        def emit(kind: str, content: str = "") -> None:
            self.events.put_nowait(StreamEvent(kind=kind, message_id=reply.id, content=content))

        try:
            async for chunk in self.client.chat_stream(history, model, self.options):
                if chunk.content:
                    reply.content += chunk.content
                    reply.is_loading = False
                    emit("token", chunk.content)
                if chunk.done:
                    reply.stats = MessageStats.from_counters(
                        chunk.total_duration,
                        chunk.eval_count,
                        chunk.eval_duration,
                        chunk.model or model,
                    )
                    emit("stats")
            if not reply.content.strip():
                raise EmptyResponseError()
            reply.status = "complete"
        except asyncio.CancelledError:
            logger.info("Generation stopped after %d chars", len(reply.content))
        except OllamaConnectionError as e:
            logger.error("Cannot reach Ollama at %s: %s", self.client.base_url, e)
            self._fail(reply, CONNECTION_ERROR_MESSAGE.format(host=self.client.base_url, model=model))
        except EmptyResponseError:
            logger.warning("Empty response from %s", model)
            self._fail(reply, EMPTY_RESPONSE_MESSAGE.format(model=model))
        except Exception as e:
            logger.error("Generation failed: %s", e, exc_info=True)
            self._fail(reply, f"❌ {e}")
        finally:
            self._finish(reply, chat_id, messages, model)

    def _finish(
        self, reply: Message, chat_id: int, messages: list[Message], model: str
    ) -> None:
        if not reply.status:
            reply.status = "stopped"
            if not reply.content:
                reply.content = STOPPED_MESSAGE
        reply.is_loading = False
        self.context.is_generating = False
        self._task = None
        self.events.put_nowait(
            StreamEvent(kind="done", message_id=reply.id, status=reply.status)
        )
        self._persist(chat_id, messages, model)

    @staticmethod
    def _fail(reply: Message, text: str) -> None:
        reply.content = text
        reply.is_error = True
        reply.status = "error"
