from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from order_realtime.api.deps import SocketManagerDep
from order_realtime.config import settings

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(request: Request, sockets: SocketManagerDep) -> JSONResponse:
    """Ready when the fan-out bus answers and this process is subscribed to it."""
    state = request.app.state
    errors: list[str] = []

    try:
        await state.redis.ping()
    except Exception as exc:  # noqa: BLE001
        errors.append(f"fan-out bus unreachable: {exc}")

    subscriber = getattr(state, "pubsub_subscriber", None)
    if subscriber is None or not subscriber.is_running:
        errors.append(f"not subscribed to {settings.REDIS_PUBSUB_CHANNEL}")

    body = {"channel": settings.REDIS_PUBSUB_CHANNEL, "connected_users": sockets.user_count}
    if errors:
        return JSONResponse(status_code=503, content={"status": "unavailable", "errors": errors, **body})
    return JSONResponse(content={"status": "ready", **body})
