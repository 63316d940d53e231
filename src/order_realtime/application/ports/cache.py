from __future__ import annotations

from typing import Any, Protocol


class CacheInvalidator(Protocol):
    def invalidate(self, key: str) -> None: ...


class ResourceFetcher(Protocol):
    async def fetch(self, key: str) -> Any: ...
