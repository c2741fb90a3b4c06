import asyncio
import logging
import time
from contextlib import aclosing, suppress
from typing import AsyncGenerator, AsyncIterator, Optional, TypeVar

from ..ollama import (
    ChatOptions,
    ModelNotFoundError,
    OllamaClient,
    OllamaConnectionError,
    OllamaError,
    OllamaTimeoutError,
)
from .sessions import SessionStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

EMPTY_RESPONSE_TEXT = "\n\n⚠️ Empty response. Please try again."


def model_missing_text(model: str, available: list[str]) -> str:
    listing = "\n".join(f"  • {m}" for m in available)
    return (
        f"❌ Model '{model}' not found.\n\n"
        f"Available models:\n{listing}\n\n"
        f"To install: ollama pull {model}"
    )


def describe_error(error: BaseException, model: str) -> str:
    """Canned, human-readable text for a failed relay turn."""
    message = str(error)
    lowered = message.lower()
    if isinstance(error, OllamaConnectionError) or "econnrefused" in lowered:
        return "❌ Cannot connect to Ollama.\n\nStart Ollama: ollama serve"
    if isinstance(error, ModelNotFoundError) or "not found" in lowered:
        return f"❌ Model not found.\n\nInstall: ollama pull {model}"
    if isinstance(error, OllamaTimeoutError) or "timeout" in lowered:
        return "❌ Request timeout. Try a smaller model."
    if "memory" in lowered:
        return "❌ Out of memory. Use a smaller model."
    return f"❌ Error: {message}"


async def until_cancelled(
    source: AsyncIterator[T], cancel_event: asyncio.Event
) -> AsyncGenerator[T, None]:
    """Relay items from ``source`` until it ends or ``cancel_event`` is set.

    A pending read is cancelled as soon as the event fires, so a stop does
    not wait for the next upstream chunk.
    """
    waiter = asyncio.ensure_future(cancel_event.wait())
    pending: Optional[asyncio.Future] = None
    try:
        while not cancel_event.is_set():
            pending = asyncio.ensure_future(source.__anext__())
            done, _ = await asyncio.wait(
                {pending, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
            if pending not in done:
                break
            try:
                item = pending.result()
            except StopAsyncIteration:
                return
            finally:
                pending = None
            yield item
    finally:
        waiter.cancel()
        if pending is not None and not pending.done():
            pending.cancel()
            with suppress(asyncio.CancelledError, StopAsyncIteration):
                await pending


async def relay_chat(
    client: OllamaClient,
    sessions: SessionStore,
    chat_id: str,
    model: str,
    options: Optional[ChatOptions] = None,
) -> AsyncGenerator[str, None]:
    """Stream one assistant turn for ``chat_id`` as plain text fragments.

    The user message must already be in the session. Failures are written
    into the stream; nothing is raised to the caller except cancellation.
    """
    session = sessions.get(chat_id)
    if session is None:
        return
    cancel_event = sessions.begin_turn(chat_id)
    full_reply: list[str] = []
    start = time.monotonic()

    try:
        try:
            available = [m.name for m in await client.list_models()]
        except OllamaError as e:
            logger.error("[Chat %s] Error listing models: %s", chat_id, e)
        else:
            if model not in available:
                yield model_missing_text(model, available)
                return

        logger.info("[Chat %s] Calling Ollama API...", chat_id)
        async with aclosing(client.chat_stream(list(session.messages), model, options)) as chunks:
            async with aclosing(until_cancelled(chunks, cancel_event)) as relayed:
                async for chunk in relayed:
                    if chunk.content:
                        full_reply.append(chunk.content)
                        yield chunk.content

        reply = "".join(full_reply)
        if cancel_event.is_set():
            logger.info("[Chat %s] Stopped after %d chars", chat_id, len(reply))
        elif not reply.strip():
            logger.warning("[Chat %s] Empty response", chat_id)
            yield EMPTY_RESPONSE_TEXT
        else:
            sessions.add_assistant_message(chat_id, reply)
            logger.info(
                "[Chat %s] ✓ %d chars, %.2fs", chat_id, len(reply), time.monotonic() - start
            )
    except Exception as e:
        logger.error("[Chat %s] Error: %s", chat_id, e)
        yield describe_error(e, model)
    finally:
        sessions.end_turn(chat_id, cancel_event)
