import logging

from fastapi import APIRouter, Request

from ..config import AppConfig, get_config, update_config
from ..ollama import OllamaClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("")
async def get_settings():
    return get_config().model_dump()


@router.put("")
async def update_settings(config: AppConfig, request: Request):
    previous = get_config().ollama
    updated = update_config(config)
    if (updated.ollama.base_url, updated.ollama.timeout) != (previous.base_url, previous.timeout):
        # Turns still streaming keep the old client; it is closed on shutdown
        request.app.state.retired_clients.append(request.app.state.ollama)
        request.app.state.ollama = OllamaClient(updated.ollama.base_url, updated.ollama.timeout)
        logger.info("Inference server changed to %s", updated.ollama.base_url)
    return updated.model_dump()
