import asyncio
import json
import logging

from quart import Blueprint, Response

from ..common.config import settings
from ..orders.controller import registry
from ..orders.store import OrdersFetched

_logger = logging.getLogger(__name__)

bp = Blueprint("realtime", __name__)

KEEPALIVE_SECONDS = 15.0

OVERFLOW = object()


class StreamRelay:
    """Bounded buffer between store writes and one SSE client.

    A client that falls ``maxsize`` writes behind is cut off: the backlog is
    discarded and the stream ends with an ``overflow`` event, after which the
    client reconnects and refetches.
    """

    def __init__(self, maxsize: int):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.overflowed = False

    def __call__(self, message, applied: bool) -> None:
        if not applied or self.overflowed:
            return
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            self.overflowed = True
            while not self.queue.empty():
                self.queue.get_nowait()
            self.queue.put_nowait(OVERFLOW)
            _logger.warning("SSE client too slow, closing stream | backlog=%s", self.queue.maxsize)


def _frame(message) -> str:
    if message is OVERFLOW:
        return "event: overflow\ndata: {}\n\n"
    if isinstance(message, OrdersFetched):
        return f"event: orders_fetched\ndata: {json.dumps({'count': len(message.orders)})}\n\n"
    return f"event: {message.type}\ndata: {json.dumps(message.payload.to_json())}\n\n"


@bp.get("/businesses/<business_id>/orders/events")
async def order_events(business_id: str):
    """Relays every applied store write for one business as server-sent events."""
    desk = await registry.acquire(business_id)
    relay = StreamRelay(settings.SSE_QUEUE_MAX)
    unsubscribe = desk.store.listen(relay)

    async def gen():
        # Advise client on retry
        yield "retry: 3000\n\n"
        try:
            while True:
                try:
                    message = await asyncio.wait_for(relay.queue.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    # Keep-alive to prevent closes by proxies
                    yield ": keep-alive\n\n"
                    continue
                yield _frame(message)
                if message is OVERFLOW:
                    return
        finally:
            unsubscribe()
            registry.release(business_id)

    headers = {
        "Cache-Control": "no-cache",
        "X-Accel-Buffering": "no",
        "Connection": "keep-alive",
    }
    return Response(gen(), mimetype="text/event-stream", headers=headers)
