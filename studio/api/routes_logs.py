import asyncio
import json
import logging
import threading
from collections import deque
from datetime import datetime

from fastapi import APIRouter
from starlette.responses import StreamingResponse

router = APIRouter(prefix="/api/logs", tags=["logs"])

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class BufferedLogHandler(logging.Handler):
    """Keeps the last records in memory and pushes new ones to SSE listeners."""

    def __init__(self, maxlen: int = 500):
        super().__init__()
        self._buffer: deque[dict] = deque(maxlen=maxlen)
        self._lock = threading.Lock()
        self._subscribers: list[tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = []

    def emit(self, record: logging.LogRecord):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": self.format(record),
        }
        with self._lock:
            self._buffer.append(entry)
            subscribers = list(self._subscribers)

        for loop, queue in subscribers:
            try:
                loop.call_soon_threadsafe(queue.put_nowait, entry)
            except RuntimeError:
                # Listener's loop already closed
                self.unsubscribe(queue)

    def get_buffer(self) -> list[dict]:
        with self._lock:
            return list(self._buffer)

    def clear(self):
        with self._lock:
            self._buffer.clear()

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        with self._lock:
            self._subscribers.append((asyncio.get_running_loop(), queue))
        return queue

    def unsubscribe(self, queue: asyncio.Queue):
        with self._lock:
            self._subscribers = [s for s in self._subscribers if s[1] is not queue]


log_handler = BufferedLogHandler()
log_handler.setFormatter(logging.Formatter(LOG_FORMAT))


async def _log_stream_generator(handler: BufferedLogHandler, follow: bool = True):
    queue = handler.subscribe()
    try:
        for entry in handler.get_buffer():
            yield f"data: {json.dumps(entry)}\n\n"
        while follow:
            try:
                entry = await asyncio.wait_for(queue.get(), timeout=30)
                yield f"data: {json.dumps(entry)}\n\n"
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
    finally:
        handler.unsubscribe(queue)


@router.get("/stream")
async def stream_logs(follow: bool = True):
    return StreamingResponse(
        _log_stream_generator(log_handler, follow),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("")
async def get_logs():
    return {"logs": log_handler.get_buffer()}


@router.delete("")
async def clear_logs():
    log_handler.clear()
    return {"status": "ok"}
