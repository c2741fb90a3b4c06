import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .api.routes_chat import router as chat_router
from .api.routes_chats import router as chats_router
from .api.routes_logs import LOG_FORMAT, log_handler, router as logs_router
from .api.routes_models import router as models_router
from .api.routes_settings import router as settings_router
from .api.routes_viewer import router as viewer_router
from .chat.storage import ChatStore
from .config import get_config, get_config_dir
from .middleware.cache_control import CacheControlMiddleware
from .ollama import OllamaClient, OllamaError
from .relay.sessions import SessionStore
from .relay.sweeper import start_sweeper, stop_sweeper

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    stream=sys.stdout,
)
if log_handler not in logging.getLogger().handlers:
    logging.getLogger().addHandler(log_handler)

logger = logging.getLogger(__name__)

_static_dir = Path(__file__).parent / "static"


def create_app(
    ollama: Optional[OllamaClient] = None,
    chat_store: Optional[ChatStore] = None,
    sessions: Optional[SessionStore] = None,
    sweep: bool = True,
) -> FastAPI:
    """Build the relay app. Collaborators default to ones built from config."""
    config = get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if sweep:
            start_sweeper(
                app.state.sessions,
                max_age=config.server.session_ttl,
                interval=config.server.sweep_interval,
            )
        yield
        if sweep:
            stop_sweeper()
        for client in [app.state.ollama, *app.state.retired_clients]:
            await client.aclose()

    app = FastAPI(title="Qwen Studio", version=__version__, lifespan=lifespan)
    if ollama is None:
        ollama = OllamaClient(config.ollama.base_url, config.ollama.timeout)
    if chat_store is None:
        chat_store = ChatStore(get_config_dir() / "chats", title_length=config.chat.title_length)
    app.state.ollama = ollama
    app.state.chat_store = chat_store
    app.state.sessions = sessions if sessions is not None else SessionStore()
    app.state.retired_clients = []

    app.add_middleware(CacheControlMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.include_router(chat_router)
    app.include_router(chats_router)
    app.include_router(models_router)
    app.include_router(settings_router)
    app.include_router(logs_router)
    app.include_router(viewer_router)
    app.mount("/static", StaticFiles(directory=_static_dir), name="static")

    @app.get("/api/health")
    async def health_check(request: Request):
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            models = await request.app.state.ollama.list_models()
        except OllamaError as e:
            return JSONResponse(
                {
                    "status": "degraded",
                    "timestamp": timestamp,
                    "ollama": "disconnected",
                    "error": str(e),
                },
                status_code=503,
            )
        return {
            "status": "ok",
            "version": __version__,
            "timestamp": timestamp,
            "ollama": "connected",
            "model_count": len(models),
        }

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            return JSONResponse(
                {"error": "Not Found", "path": request.url.path}, status_code=404
            )
        return JSONResponse(
            {"detail": exc.detail}, status_code=exc.status_code, headers=exc.headers
        )

    @app.exception_handler(Exception)
    async def server_error(request: Request, exc: Exception):
        logger.error("Server error: %s", exc, exc_info=True)
        return JSONResponse(
            {"error": "Internal Server Error", "message": str(exc)}, status_code=500
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    server = get_config().server
    uvicorn.run(app, host=server.host, port=server.port)
