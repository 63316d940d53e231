"""Listener: python -m order_realtime.client --user-id 42"""
from __future__ import annotations

import argparse
import asyncio
import logging

from order_realtime.client.session import RealtimeSession
from order_realtime.config import settings
from order_realtime.domain.entities.envelope import Envelope
from order_realtime.domain.value_objects.enums import EventKind

logger = logging.getLogger("order_realtime.client")


def _log_envelope(envelope: Envelope) -> None:
    if envelope.subkind is not None:
        logger.info("%s/%s %s", envelope.kind, envelope.subkind, envelope.payload)
    else:
        logger.info("%s %s", envelope.kind, envelope.payload)


async def run_listener(user_id: int, url: str) -> None:
    session = RealtimeSession.from_settings(url=url)
    for kind in EventKind:
        session.router.register(kind, _log_envelope)

    async with session:
        await session.start(user_id)
        await session.connection.join()
        logger.info("Listener stopped (state=%s)", session.connection.state)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="python -m order_realtime.client",
        description="Connect to the realtime channel and log every event.",
    )
    parser.add_argument("--user-id", type=int, required=True)
    parser.add_argument("--url", default=settings.REALTIME_URL)
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(run_listener(args.user_id, args.url))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
