"""Read-through cache for collaborator REST resources."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx

from order_realtime.application.ports.cache import ResourceFetcher

logger = logging.getLogger(__name__)


class HttpResourceFetcher:
    """Implements application.ports.cache.ResourceFetcher.

    Key ``orders/17`` maps to ``GET {base_url}/api/orders/17``.
    """

    def __init__(self, client: httpx.AsyncClient, *, prefix: str = "/api") -> None:
        self._client = client
        self._prefix = prefix.rstrip("/")

    async def fetch(self, key: str) -> Any:
        response = await self._client.get(f"{self._prefix}/{key}")
        response.raise_for_status()
        return response.json()


@dataclass(slots=True)
class CacheEntry:
    value: Any
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    stale: bool = False


class ResourceCache:
    """Implements application.ports.cache.CacheInvalidator.

    ``invalidate`` marks exactly one key stale; the next ``get`` refetches.
    Keys that were loaded before are also refetched in the background so
    readers see fresh data without polling. A key invalidated again while
    its refetch is in flight is fetched once more afterwards.
    """

    def __init__(
        self,
        fetcher: ResourceFetcher,
        *,
        refetch_on_invalidate: bool = True,
    ) -> None:
        self._fetcher = fetcher
        self._refetch_on_invalidate = refetch_on_invalidate
        self._entries: dict[str, CacheEntry] = {}
        self._refreshing: dict[str, asyncio.Task[None]] = {}
        self._dirty: set[str] = set()

    async def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is not None and not entry.stale:
            return entry.value
        return await self._load(key)

    def peek(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def is_stale(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is None or entry.stale

    def invalidate(self, key: str) -> None:
        entry = self._entries.get(key)
        if entry is None:
            return
        entry.stale = True
        if not self._refetch_on_invalidate:
            return
        if key in self._refreshing:
            self._dirty.add(key)
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._refresh(key), name=f"cache-refresh-{key}")
        self._refreshing[key] = task

    async def wait_idle(self) -> None:
        """Wait for in-flight background refetches."""
        while self._refreshing:
            await asyncio.gather(*self._refreshing.values(), return_exceptions=True)

    async def aclose(self) -> None:
        tasks = list(self._refreshing.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._refreshing.clear()
        self._dirty.clear()

    async def _load(self, key: str) -> Any:
        value = await self._fetcher.fetch(key)
        self._entries[key] = CacheEntry(value=value)
        return value

    async def _refresh(self, key: str) -> None:
        try:
            while True:
                self._dirty.discard(key)
                try:
                    await self._load(key)
                except Exception as exc:
                    logger.warning("Background refetch of %s failed: %s", key, exc)
                    return
                if key not in self._dirty:
                    return
                self._entries[key].stale = True
        finally:
            if self._refreshing.get(key) is asyncio.current_task():
                del self._refreshing[key]
            self._dirty.discard(key)
