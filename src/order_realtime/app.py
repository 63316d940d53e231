from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from order_realtime.api.middleware.correlation_id import CorrelationIdMiddleware
from order_realtime.api.v1.routers import events, health, ws
from order_realtime.application.exceptions import ValidationError
from order_realtime.config import settings
from order_realtime.infrastructure.bus.redis_pubsub import (
    OnEventCallback,
    RedisPubSubPublisher,
    RedisPubSubSubscriber,
)
from order_realtime.infrastructure.ws.manager import UserSocketManager
from order_realtime.services import relay_service

logger = logging.getLogger(__name__)


def fanout_callback(sockets: UserSocketManager) -> OnEventCallback:
    """Bus callback delivering fan-out events to this process's sockets."""

    async def _on_event(event_type: str, data: dict[str, Any]) -> None:
        if event_type != relay_service.FANOUT_EVENT:
            logger.debug("Ignoring bus event %s", event_type)
            return
        await relay_service.deliver_fanout(sockets, data)

    return _on_event


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    app.state.publisher = RedisPubSubPublisher(app.state.redis)
    logger.info("Redis connection pool created")

    subscriber = RedisPubSubSubscriber(
        app.state.redis,
        settings.REDIS_PUBSUB_CHANNEL,
        fanout_callback(app.state.sockets),
    )
    await subscriber.start()
    app.state.pubsub_subscriber = subscriber

    yield

    await subscriber.stop()
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Order Realtime Relay",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.sockets = UserSocketManager()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(events.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})
