"""Outbound real-time events.

The order engine publishes through the narrow ``Notifier`` port after a
commit. Delivery is best-effort: events may be late, dropped or reordered,
and a failed publish never reaches the HTTP caller. Clients treat an event as
a hint to re-read the order.
"""
import asyncio
import logging
from typing import Optional, Protocol

logger = logging.getLogger("chopnow.notifier")

NEW_ORDER = "newOrder"
ORDER_STATUS_UPDATE = "orderStatusUpdate"
ORDER_UPDATE = "orderUpdate"
ORDER_CANCELLED = "orderCancelled"


def order_channel(order_id) -> str:
    return f"order-{order_id}"


def restaurant_channel(restaurant_id) -> str:
    return f"restaurant-{restaurant_id}"


def rider_channel(rider_id) -> str:
    return f"rider-{rider_id}"


class Notifier(Protocol):
    def notify(self, channel: str, event: str, payload: dict) -> None:
        ...


class SocketIONotifier:
    """Publish to Socket.IO rooms from synchronous request handlers.

    Handlers run in the threadpool, the Socket.IO server on the event loop, so
    emits are handed over with ``run_coroutine_threadsafe`` and not awaited.
    """

    def __init__(self, sio, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.sio = sio
        self.loop = loop

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self.loop = loop

    def notify(self, channel: str, event: str, payload: dict) -> None:
        if self.loop is None or self.loop.is_closed():
            logger.warning(f"Dropping {event} for {channel}: no event loop bound")
            return
        future = asyncio.run_coroutine_threadsafe(self.sio.emit(event, payload, room=channel), self.loop)
        future.add_done_callback(lambda f: self._log_failure(f, channel, event))

    @staticmethod
    def _log_failure(future, channel: str, event: str) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.warning(f"Failed to emit {event} to {channel}: {exc}")
