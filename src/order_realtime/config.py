from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_PUBSUB_CHANNEL: str = "order.realtime.fanout"
    REDIS_CHAT_INBOUND_CHANNEL: str = "order.chat.inbound"

    CORS_ORIGINS: list[str] = ["*"]

    WS_PATH: str = "/ws"
    WS_AUTH_TIMEOUT_SECONDS: float = 10.0

    # Client side
    REALTIME_URL: str = "ws://localhost:8000/ws"
    API_BASE_URL: str = "http://localhost:8000"

    RECONNECT_MAX_ATTEMPTS: int = 5
    RECONNECT_BASE_DELAY: float = 1.0
    RECONNECT_MAX_DELAY: float = 30.0
    CONNECT_TIMEOUT_SECONDS: float = 10.0
    HTTP_TIMEOUT_SECONDS: float = 10.0

    WATERMARK_STORE_PATH: str = ".order_realtime/watermarks.json"

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
