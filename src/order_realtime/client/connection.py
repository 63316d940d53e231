"""Client-side connection manager for the realtime channel.

One instance owns one logical channel for one authenticated user. The
lifecycle is::

    idle -> connecting -> open -> closed
              ^   |        |
              |   v        v
              +-- (retry) -+        connecting -> idle when retries run out

``open`` is entered only after the server acknowledges the ``auth`` frame,
not when the transport opens. ``closed`` is entered only through
:meth:`ConnectionManager.disconnect`.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from order_realtime.application.ports.transport import Transport, TransportFactory
from order_realtime.client.router import EventRouter
from order_realtime.domain.entities.envelope import Envelope
from order_realtime.domain.value_objects.enums import ConnectionState, EventKind
from order_realtime.infrastructure.ws.protocol import AuthFrame

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 30.0


def backoff_delay(
    attempt: int,
    *,
    base: float = DEFAULT_BASE_DELAY,
    ceiling: float = DEFAULT_MAX_DELAY,
) -> float:
    """Seconds to wait before reconnect ``attempt`` (1-based)."""
    if attempt < 1:
        raise ValueError("attempt is 1-based")
    return min(base * (2 ** (attempt - 1)), ceiling)


class ConnectionManager:
    """Owns the transport, the auth handshake and the reconnect loop.

    Inbound frames go straight to ``router.dispatch``; the manager registers
    itself on the router for ``auth_ack``. After a transport failure or an
    unexpected close it retries up to ``max_attempts`` times with exponential
    backoff, then goes ``idle`` until the next :meth:`connect`.

    Nothing here raises to the caller for transport problems; they are
    logged and fed into the retry loop.
    """

    def __init__(
        self,
        url: str,
        transport_factory: TransportFactory,
        router: EventRouter,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._url = url
        self._transport_factory = transport_factory
        self._router = router
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._sleep = sleep

        self._state = ConnectionState.IDLE
        self._identity: int | None = None
        self._transport: Transport | None = None
        self._attempts = 0
        self._task: asyncio.Task[None] | None = None
        self._opened = asyncio.Event()

        router.register(EventKind.AUTH_ACK, self._on_auth_ack)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def identity(self) -> int | None:
        return self._identity

    @property
    def attempts(self) -> int:
        """Reconnect attempts made since the last successful open."""
        return self._attempts

    @property
    def is_open(self) -> bool:
        return self._state == ConnectionState.OPEN

    async def connect(self, identity: int) -> None:
        """Start (or restart) the channel for ``identity``.

        Returns as soon as the background connection task is scheduled.
        Any previous channel, including a pending reconnect, is torn down.
        """
        await self._stop_task()
        self._identity = identity
        self._attempts = 0
        self._set_state(ConnectionState.CONNECTING)
        self._task = asyncio.create_task(
            self._run(identity), name=f"realtime-connection-{identity}",
        )

    async def disconnect(self) -> None:
        """Close the channel. Safe in any state, safe to call twice."""
        await self._stop_task()
        self._identity = None
        if self._state != ConnectionState.CLOSED:
            self._set_state(ConnectionState.CLOSED)

    async def send(self, frame: str) -> bool:
        """Deliver an encoded frame if the channel is open.

        Returns whether the frame was handed to the transport. Frames are
        never queued.
        """
        transport = self._transport
        if self._state != ConnectionState.OPEN or transport is None:
            logger.warning("Realtime channel is %s, dropping outbound frame", self._state)
            return False
        try:
            await transport.send(frame)
        except Exception as exc:
            logger.warning("Realtime send failed: %s", exc)
            return False
        return True

    async def wait_open(self, timeout: float | None = None) -> bool:
        try:
            await asyncio.wait_for(self._opened.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def join(self) -> None:
        """Wait until the connection task ends (gave up or was stopped)."""
        task = self._task
        if task is None:
            return
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        logger.debug("Realtime connection %s -> %s", self._state, state)
        self._state = state
        if state != ConnectionState.OPEN:
            self._opened.clear()

    def _on_auth_ack(self, _envelope: Envelope) -> None:
        if self._state != ConnectionState.CONNECTING or self._transport is None:
            logger.debug("Ignoring auth_ack in state %s", self._state)
            return
        self._attempts = 0
        self._set_state(ConnectionState.OPEN)
        self._opened.set()
        logger.info("Realtime channel open for user %s", self._identity)

    async def _stop_task(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        transport, self._transport = self._transport, None
        if transport is not None:
            await self._close_quietly(transport)

    async def _run(self, identity: int) -> None:
        while True:
            await self._session(identity)

            if self._attempts >= self._max_attempts:
                self._set_state(ConnectionState.IDLE)
                logger.warning(
                    "Realtime channel for user %s gave up after %d reconnect attempts",
                    identity, self._attempts,
                )
                return

            self._attempts += 1
            delay = backoff_delay(
                self._attempts, base=self._base_delay, ceiling=self._max_delay,
            )
            self._set_state(ConnectionState.CONNECTING)
            logger.info(
                "Reconnecting in %.1fs (attempt %d/%d)",
                delay, self._attempts, self._max_attempts,
            )
            await self._sleep(delay)

    async def _session(self, identity: int) -> None:
        """One transport lifetime: open, authenticate, pump frames until closed."""
        self._set_state(ConnectionState.CONNECTING)
        try:
            transport = await self._transport_factory(self._url)
        except Exception as exc:
            logger.warning("Realtime connect to %s failed: %s", self._url, exc)
            return

        self._transport = transport
        try:
            await transport.send(AuthFrame(user_id=identity).encode())
            async for raw in transport:
                self._router.dispatch(raw)
            logger.info("Realtime channel closed by peer")
        except Exception as exc:
            logger.warning("Realtime channel lost: %s", exc)
        finally:
            if self._transport is transport:
                self._transport = None
                await self._close_quietly(transport)

    @staticmethod
    async def _close_quietly(transport: Transport) -> None:
        try:
            await transport.close()
        except Exception:
            logger.debug("Error closing realtime transport", exc_info=True)
