from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..chat.models import Message
from ..chat.storage import ChatStore
from .deps import get_chat_store

router = APIRouter(prefix="/api/chats", tags=["chats"])


class SaveChatRequest(BaseModel):
    messages: list[Message]
    model: str = ""


@router.get("")
async def list_chats(store: ChatStore = Depends(get_chat_store)):
    return {"chats": [s.model_dump() for s in store.list_chats()]}


@router.get("/{chat_id}")
async def get_chat(chat_id: int, store: ChatStore = Depends(get_chat_store)):
    chat = store.get_chat(chat_id)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    return {"chat": chat.model_dump()}


@router.put("/{chat_id}")
async def save_chat(
    chat_id: int, req: SaveChatRequest, store: ChatStore = Depends(get_chat_store)
):
    chat = store.save_chat(chat_id, req.messages, req.model)
    if not chat:
        raise HTTPException(status_code=400, detail="Chat has no messages")
    return {"chat": chat.model_dump()}


@router.delete("/{chat_id}")
async def delete_chat(chat_id: int, store: ChatStore = Depends(get_chat_store)):
    if store.delete_chat(chat_id):
        return {"status": "deleted"}
    raise HTTPException(status_code=404, detail="Chat not found")
