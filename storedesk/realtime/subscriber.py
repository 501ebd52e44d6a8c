import asyncio
import logging
from typing import Awaitable, Callable, Optional, Union

from prometheus_client import Counter
from redis.asyncio import Redis

from .events import OrderCreated, OrderUpdated, parse_event
from ..common.config import settings
from ..common.errors import MalformedEvent
from ..common.redis_client import get_redis, reset_if_unhealthy

_logger = logging.getLogger(__name__)

ORDER_EVENTS = Counter(
    "storedesk_order_events_total",
    "Realtime order events received per outcome",
    ["kind", "outcome"],
)

EventHandler = Callable[[Union[OrderCreated, OrderUpdated]], bool]


class OrderChannelSubscriber:
    """Listens to one business's order channel for as long as it is selected.

    Each message is validated and handed to ``on_event`` (the store's apply).
    Broker failures never end the subscription: the pubsub is torn down and
    re-established with exponential backoff until ``stop()`` is called.
    """

    def __init__(
        self,
        business_id: str,
        on_event: EventHandler,
        redis_factory: Callable[[], Awaitable[Redis]] = get_redis,
    ):
        self.business_id = business_id
        self.channel = settings.order_channel(business_id)
        self._on_event = on_event
        self._redis_factory = redis_factory
        self._task: Optional[asyncio.Task] = None
        self._stopped = asyncio.Event()
        self.connected = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopped.clear()
        self._task = asyncio.create_task(self._run(), name=f"orders-channel:{self.business_id}")
        _logger.info("Order channel subscription started | channel=%s", self.channel)

    async def stop(self) -> None:
        self._stopped.set()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.connected.clear()
        _logger.info("Order channel subscription stopped | channel=%s", self.channel)

    def handle_message(self, data) -> bool:
        """Validate one raw message and apply it; returns whether it was applied."""
        if self._stopped.is_set():
            return False
        try:
            event = parse_event(data)
        except MalformedEvent as e:
            ORDER_EVENTS.labels(kind="unknown", outcome="malformed").inc()
            _logger.warning("Dropping malformed order event | channel=%s err=%s", self.channel, e)
            return False
        applied = self._on_event(event)
        ORDER_EVENTS.labels(kind=event.type, outcome="applied" if applied else "dropped").inc()
        return applied

    async def _close_pubsub(self, pubsub) -> None:
        if pubsub is None:
            return
        try:
            await pubsub.unsubscribe(self.channel)
        except Exception as e:
            _logger.debug("Unsubscribe failed | channel=%s err=%s", self.channel, e)
        try:
            await pubsub.close()
        except Exception as e:
            _logger.debug("Pubsub close failed | channel=%s err=%s", self.channel, e)

    async def _run(self) -> None:
        pubsub = None
        backoff = settings.REALTIME_BACKOFF_INITIAL
        try:
            while not self._stopped.is_set():
                try:
                    if pubsub is None:
                        r = await self._redis_factory()
                        pubsub = r.pubsub(ignore_subscribe_messages=True)
                        await pubsub.subscribe(self.channel)
                        self.connected.set()
                        _logger.info("Subscribed to order channel | channel=%s", self.channel)
                    message = await pubsub.get_message(timeout=5.0)
                    if message and message.get("type") == "message":
                        self.handle_message(message.get("data"))
                    backoff = settings.REALTIME_BACKOFF_INITIAL  # reset after success
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self.connected.clear()
                    _logger.warning(
                        "Order channel error, retrying in %.1fs | channel=%s err=%s", backoff, self.channel, e
                    )
                    await self._close_pubsub(pubsub)
                    pubsub = None
                    # other subscriptions share the client; only a dead one is replaced
                    await reset_if_unhealthy()
                    await asyncio.sleep(backoff)
                    backoff = min(backoff * 2, settings.REALTIME_BACKOFF_MAX)
        finally:
            await self._close_pubsub(pubsub)
