from __future__ import annotations
import time
from collections import deque, defaultdict
from typing import Deque, Dict
from fastapi import Header, HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
from delivery.core.config import settings


# -------- API Key Dependency --------
async def require_api_key(
    request: Request, x_api_key: str | None = Header(default=None)
):
    expected = settings.API_KEY
    if not expected:
        return
    provided = x_api_key or request.query_params.get("api_key")
    if not provided or provided != expected:
        raise HTTPException(
            status_code=401, detail="Unauthorized: invalid or missing API key"
        )


# -------- Subscriber identity --------
def subscriber_identity(request: Request) -> int:
    """User id of the SSE caller.

    An upstream auth layer may already have put ``user_id`` on
    ``request.state``; otherwise the ``userId`` query parameter is used.
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id is not None:
        return int(user_id)
    raw = request.query_params.get("userId")
    if not raw:
        raise HTTPException(status_code=400, detail="userId query parameter is required")
    try:
        return int(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="userId must be a valid integer")


# -------- Rate Limiting Middleware --------
class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP, per-path-prefix sliding window.

    Limits are re-read from settings on each request so tests can tweak them.
    Only paths under settings.RATE_LIMIT_PATHS are counted.
    """

    def __init__(self, app, max_per_minute: int):
        super().__init__(app)
        self._default = max_per_minute
        self.bucket: Dict[str, Deque[float]] = defaultdict(deque)

    async def dispatch(self, request: Request, call_next):
        limit = int(getattr(settings, "RATE_LIMIT_PER_MINUTE", self._default) or 0)
        if limit <= 0:
            return await call_next(request)

        path = request.url.path or "/"
        matched = next(
            (p for p in settings.RATE_LIMIT_PATHS if path.startswith(p)), None
        )
        if matched is None:
            return await call_next(request)

        client_ip = (
            request.client.host
            if request.client
            else request.headers.get("x-forwarded-for", "local")
        )
        dq = self.bucket[f"{client_ip}|{matched}"]
        now = time.time()
        window_start = now - float(settings.RATE_LIMIT_WINDOW_SECONDS)
        while dq and dq[0] < window_start:
            dq.popleft()

        if len(dq) >= limit:
            return JSONResponse({"detail": "Too Many Requests"}, status_code=429)

        dq.append(now)
        return await call_next(request)
