import logging
from datetime import datetime, timezone
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from ..config import get_config
from ..ollama import ChatOptions, OllamaClient
from ..relay.sessions import SessionStore
from ..relay.stream import relay_chat
from .deps import get_ollama, get_sessions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = ""
    chat_id: Optional[Union[int, str]] = Field(default=None, alias="chatId")
    model: Optional[str] = None


def _preview(text: str, limit: int = 80) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


@router.post("")
async def send_message(
    req: ChatRequest,
    ollama: OllamaClient = Depends(get_ollama),
    sessions: SessionStore = Depends(get_sessions),
):
    if not req.message or not req.message.strip():
        raise HTTPException(status_code=400, detail="Message cannot be empty")
    if req.chat_id is None or req.chat_id == "":
        raise HTTPException(status_code=400, detail="Chat ID is required")

    config = get_config().ollama
    chat_id = str(req.chat_id)
    model = req.model or config.default_model

    sessions.add_user_message(chat_id, req.message, model)

    now = datetime.now(timezone.utc).isoformat()
    logger.info("[%s] [Chat %s] Model: %s", now, chat_id, model)
    logger.info("[%s] [Chat %s] User: %s", now, chat_id, _preview(req.message))

    options = ChatOptions(temperature=config.temperature, num_predict=config.num_predict)
    return StreamingResponse(
        relay_chat(ollama, sessions, chat_id, model, options),
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/{chat_id}/stop")
async def stop_generation(chat_id: str, sessions: SessionStore = Depends(get_sessions)):
    if sessions.cancel(chat_id):
        return {"status": "stopped"}
    return {"status": "no_active_generation"}


@router.delete("/{chat_id}")
async def delete_session(chat_id: str, sessions: SessionStore = Depends(get_sessions)):
    if sessions.delete(chat_id):
        logger.info("Cleared chat: %s", chat_id)
        return {"success": True}
    return JSONResponse({"success": False}, status_code=404)
