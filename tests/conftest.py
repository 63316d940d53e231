"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Callable

import pytest

from order_realtime.domain.entities.chat_message import ChatMessage

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def make_message(
    *,
    ts: float,
    from_user: bool = False,
    content: str = "hello",
) -> ChatMessage:
    return ChatMessage(content=content, is_from_user=from_user, timestamp=at(ts))


async def eventually(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate()`` holds."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0)

    await asyncio.wait_for(_poll(), timeout)


_CLOSE = object()


class FakeTransport:
    """In-memory Transport: the test feeds frames, the client reads them."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False
        self.auth_sent = asyncio.Event()
        self._inbound: asyncio.Queue[Any] = asyncio.Queue()

    async def send(self, data: str) -> None:
        if self.closed:
            raise ConnectionError("transport closed")
        self.sent.append(data)
        self.auth_sent.set()

    async def close(self) -> None:
        self.closed = True
        self._inbound.put_nowait(_CLOSE)

    def feed(self, frame: dict[str, Any] | str) -> None:
        self._inbound.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def drop(self) -> None:
        """Peer closes the connection."""
        self._inbound.put_nowait(_CLOSE)

    def fail(self, exc: BaseException) -> None:
        self._inbound.put_nowait(exc)

    def sent_json(self) -> list[dict[str, Any]]:
        return [json.loads(s) for s in self.sent]

    async def __aiter__(self) -> AsyncIterator[str]:
        while True:
            item = await self._inbound.get()
            if item is _CLOSE:
                return
            if isinstance(item, BaseException):
                raise item
            yield item


@dataclass
class FakeTransportFactory:
    """Hands out scripted transports; refuses once the script runs out."""

    script: list[Any] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)
    opened: list[FakeTransport] = field(default_factory=list)

    async def __call__(self, url: str) -> FakeTransport:
        self.calls.append(url)
        item = self.script.pop(0) if self.script else ConnectionRefusedError("refused")
        if isinstance(item, BaseException):
            raise item
        self.opened.append(item)
        return item


@dataclass
class RecordingSleep:
    delays: list[float] = field(default_factory=list)

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@dataclass
class BlockingSleep:
    """Never wakes up; lets a test catch the manager mid-backoff."""

    delays: list[float] = field(default_factory=list)
    called: asyncio.Event = field(default_factory=asyncio.Event)

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        self.called.set()
        await asyncio.Event().wait()


@dataclass
class FakeInvalidator:
    keys: list[str] = field(default_factory=list)

    def invalidate(self, key: str) -> None:
        self.keys.append(key)


@dataclass
class RecordingAlerts:
    alerts: list[tuple[str, str]] = field(default_factory=list)

    def alert(self, title: str, message: str) -> None:
        self.alerts.append((title, message))


@dataclass
class FakeClock:
    current: datetime = T0

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


@dataclass
class FakePublisher:
    records: list[tuple[str, str, dict[str, Any]]] = field(default_factory=list)

    async def publish(self, channel: str, event_type: str, data: dict[str, Any]) -> None:
        self.records.append((channel, event_type, data))


@dataclass(eq=False)
class FakeSocket:
    sent: list[str] = field(default_factory=list)
    broken: bool = False

    async def send_text(self, raw: str) -> None:
        if self.broken:
            raise RuntimeError("socket is gone")
        self.sent.append(raw)


@dataclass
class FakeFetcher:
    values: dict[str, Any] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)
    fail: bool = False

    async def fetch(self, key: str) -> Any:
        self.calls.append(key)
        if self.fail:
            raise RuntimeError(f"fetch {key} failed")
        return self.values.get(key, {"key": key, "n": len(self.calls)})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()
