"""Caller identity and request logging middleware.

The upstream gateway authenticates the caller and forwards a trusted user
id in the X-User-ID header. IdentityMiddleware stores it in a ContextVar so
that any downstream code (routers, services, event handlers) can call
get_current_user() without explicit parameter passing.
"""

import time
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from core.errors import Unauthorized
from core.logging_setup import get_logger

USER_HEADER = "X-User-ID"

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Context variable: per-request identity state
# ---------------------------------------------------------------------------

_current_user: ContextVar[Optional[str]] = ContextVar("current_user", default=None)


def get_current_user() -> Optional[str]:
    """Return the caller's user id for the current request, or None."""
    return _current_user.get()


async def require_user() -> str:
    """FastAPI dependency: the caller's user id, or 401 when absent.

    Usage::

        @router.post("/")
        async def create(user_id: str = Depends(require_user)):
            ...
    """
    user_id = get_current_user()
    if not user_id:
        raise Unauthorized()
    return user_id


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

class IdentityMiddleware(BaseHTTPMiddleware):
    """Expose the X-User-ID header through get_current_user()."""

    async def dispatch(self, request: Request, call_next) -> Response:
        user_id = (request.headers.get(USER_HEADER) or "").strip()

        token = _current_user.set(user_id or None)
        try:
            response = await call_next(request)
            return response
        finally:
            _current_user.reset(token)


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One log line per request: method, path, status and duration."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "Request completed",
            extra={"extra_data": {
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round((time.perf_counter() - start) * 1000, 1),
            }},
        )
        return response
