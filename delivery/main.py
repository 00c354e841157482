from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from delivery.core.config import settings
from delivery.core.auth import RateLimitMiddleware
from delivery.core.logging import CorrelationIdMiddleware, setup_logging
from delivery.infra.db import Base, engine
from delivery.realtime.broker import NotificationBroker
from delivery.api.order_routes import router as order_router
from delivery.api.sse_routes import router as sse_router
from delivery.api.user_routes import router as user_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("%s started", settings.APP_NAME)
    try:
        yield
    finally:
        # ends every open stream after it drains
        app.state.broker.close()


def create_app(broker: NotificationBroker | None = None) -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.state.broker = broker or NotificationBroker(capacity=settings.MAILBOX_CAPACITY)

    # Rate limiting middleware (per-IP, per-path)
    app.add_middleware(RateLimitMiddleware, max_per_minute=settings.RATE_LIMIT_PER_MINUTE)
    if settings.CORS_ALLOW_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ALLOW_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(sse_router)
    app.include_router(user_router)
    app.include_router(order_router)

    @app.get("/health")
    def health():
        return {"status": "ok", "app": settings.APP_NAME}

    return app


app = create_app()
