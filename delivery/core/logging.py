from __future__ import annotations
import json, logging, sys, time, uuid, contextvars
from typing import Any, Dict
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from delivery.core.config import settings

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default="-"
)

_EXTRA_FIELDS = (
    "user_id",
    "event",
    "order_id",
    "dropped",
    "delivered",
    "subscribers",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base: Dict[str, Any] = {
            "ts": time.strftime(
                "%Y-%m-%dT%H:%M:%S",
                time.gmtime(getattr(record, "created", time.time())),
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(
                record, "correlation_id", correlation_id_var.get("-")
            ),
        }
        # Add common extras if present
        for k in _EXTRA_FIELDS:
            if hasattr(record, k):
                base[k] = getattr(record, k)
        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False, default=str)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Bind X-Request-ID (or a fresh uuid) to every log line of the request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        token = correlation_id_var.set(cid)
        try:
            response: Response = await call_next(request)
        finally:
            correlation_id_var.reset(token)
        response.headers["X-Request-ID"] = cid
        return response


_configured = False


def setup_logging() -> None:
    global _configured
    root = logging.getLogger()
    root.setLevel(
        logging.INFO
        if (settings.LOG_LEVEL or "INFO") == "INFO"
        else logging.getLevelName(settings.LOG_LEVEL.upper())
    )
    # Route uvicorn logs through root JSON handler
    for lg in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        lgr = logging.getLogger(lg)
        # Remove their own handlers to avoid duplicate emission
        lgr.handlers.clear()
        lgr.propagate = True
        lgr.setLevel(root.level)
    if _configured:
        return
    sh = logging.StreamHandler(sys.stdout)
    sh.setFormatter(JsonFormatter())
    root.addHandler(sh)
    _configured = True
