"""Cache headers for the offline-capable web UI.

Same-origin GETs for static assets may be served from the browser cache.
Everything under ``/api/`` and every non-GET request always goes to the
network.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

STATIC_PREFIX = "/static/"
STATIC_MAX_AGE = 86400


def cache_policy(method: str, path: str, status_code: int) -> str:
    if method.upper() != "GET" or path.startswith("/api/") or path == "/api":
        return "no-store"
    if path.startswith(STATIC_PREFIX) and status_code == 200:
        return f"public, max-age={STATIC_MAX_AGE}"
    return "no-cache"


class CacheControlMiddleware(BaseHTTPMiddleware):
    """Stamp a Cache-Control header on every response that lacks a stricter one."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        policy = cache_policy(request.method, request.url.path, response.status_code)
        if policy == "no-store" or "cache-control" not in response.headers:
            response.headers["Cache-Control"] = policy
        return response
