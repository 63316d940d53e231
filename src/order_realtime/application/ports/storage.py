from __future__ import annotations

from typing import Protocol


class WatermarkStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...
