import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..ollama import OllamaClient, OllamaError
from .deps import get_ollama

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/models", tags=["models"])


@router.get("")
async def list_models(ollama: OllamaClient = Depends(get_ollama)):
    try:
        models = await ollama.list_models()
    except OllamaError as e:
        logger.error("Error fetching models: %s", e)
        return JSONResponse(
            {"error": "Cannot fetch models from Ollama", "message": str(e)},
            status_code=500,
        )
    return {"models": [m.model_dump() for m in models]}
