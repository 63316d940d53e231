from __future__ import annotations

from typing import AsyncIterator, Awaitable, Callable, Protocol


class Transport(Protocol):
    """An open bidirectional text channel.

    Iterating yields inbound frames until the peer closes; an abrupt close
    may raise instead of ending the iteration.
    """

    async def send(self, data: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[str]: ...


TransportFactory = Callable[[str], Awaitable[Transport]]
