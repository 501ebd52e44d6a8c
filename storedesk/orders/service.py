import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional, Set, Tuple, TypeVar, Union

from .arrival import ArrivalResult, ArrivalVerifier
from .client import OrdersClient
from .machine import Action, available_actions, ensure_transition
from .model import Order, OrderStatus, PaymentStatus
from .store import OrdersFetched, OrderStore, filter_orders, status_counts
from ..common.config import settings
from ..common.errors import LookupNotFound, TransportFailure
from ..realtime.subscriber import OrderChannelSubscriber

_logger = logging.getLogger(__name__)

T = TypeVar("T")

SubscriberFactory = Callable[[str, Callable], OrderChannelSubscriber]


class OrderDesk:
    """The order board of one business.

    Owns the reconciled store, the realtime subscription feeding it and the
    user-issued mutations. After every successful mutation the whole list is
    fetched again instead of patching the local copy, so server-side effects
    (recalculated stock, timestamps) always show up.
    """

    def __init__(
        self,
        business_id: str,
        client: Optional[OrdersClient] = None,
        subscriber_factory: SubscriberFactory = OrderChannelSubscriber,
    ):
        self.business_id = business_id
        self.client = client or OrdersClient()
        self.store = OrderStore(business_id)
        self.subscriber = subscriber_factory(business_id, self.store.apply)
        self.verifier = ArrivalVerifier(self.client)
        self.last_error: Optional[TransportFailure] = None
        self._in_flight: Set[str] = set()

    async def open(self) -> None:
        self.subscriber.start()
        try:
            await self.refresh()
        except TransportFailure:
            # subscription stays up; the operator can retry the fetch
            pass

    async def close(self) -> None:
        await self.subscriber.stop()

    async def refresh(self) -> List[Order]:
        try:
            orders = await self.client.fetch_orders(self.business_id)
        except TransportFailure as e:
            self.last_error = e
            _logger.error(
                "Order fetch failed, keeping last known list | business_id=%s count=%s err=%s",
                self.business_id,
                len(self.store),
                e,
            )
            raise
        self.last_error = None
        self.store.apply(OrdersFetched(orders))
        return orders

    def is_in_flight(self, order_id: str) -> bool:
        return order_id in self._in_flight

    def _require(self, order_id: str) -> Order:
        order = self.store.get(order_id)
        if order is None:
            raise LookupNotFound("order", order_id)
        return order

    def actions(self, order_id: str) -> Tuple[Action, ...]:
        return available_actions(self._require(order_id).status)

    def view(self, status: Optional[str] = None, text: Optional[str] = None) -> Dict:
        orders = self.store.orders
        return {
            "orders": filter_orders(orders, status, text),
            "counts": status_counts(orders),
        }

    async def _refresh_after_mutation(self) -> None:
        try:
            await self.refresh()
        except TransportFailure:
            # the mutation went through; the list catches up on the next fetch or event
            pass

    async def _guarded(self, order_id: str, call: Callable[[], Awaitable[T]], what: str) -> Tuple[bool, Optional[T]]:
        """Run one mutation for an order unless another is still outstanding."""
        if order_id in self._in_flight:
            _logger.info("%s skipped, request in flight | order_id=%s", what, order_id)
            return False, None
        self._in_flight.add(order_id)
        try:
            result = await call()
        finally:
            self._in_flight.discard(order_id)
        await self._refresh_after_mutation()
        return True, result

    async def change_status(self, order_id: str, target: Union[OrderStatus, str]) -> bool:
        """Request a transition; False means one is already in flight for this order."""
        order = self._require(order_id)
        target_status = ensure_transition(order.id, order.status, target)
        issued, _ = await self._guarded(
            order_id, lambda: self.client.update_status(order_id, target_status), "Transition"
        )
        return issued

    async def change_payment_status(self, order_id: str, payment_status: Union[PaymentStatus, str]) -> bool:
        # no ordering between payment statuses is enforced client-side
        self._require(order_id)
        if not isinstance(payment_status, PaymentStatus):
            payment_status = PaymentStatus(str(payment_status).strip().lower())
        issued, _ = await self._guarded(
            order_id, lambda: self.client.update_payment_status(order_id, payment_status), "Payment update"
        )
        return issued

    async def verify_arrival(self, code: str) -> Optional[ArrivalResult]:
        """Hand over the order a code belongs to; None while it has a request in flight."""
        order = await self.verifier.resolve(self.business_id, code)
        _, result = await self._guarded(
            order.id, lambda: self.verifier.complete(self.business_id, order), "Arrival"
        )
        return result


class OrderBoard:
    """One operator view: exactly one business selected at a time."""

    def __init__(self, desk_factory: Callable[[str], OrderDesk] = OrderDesk):
        self._desk_factory = desk_factory
        self.desk: Optional[OrderDesk] = None

    async def select(self, business_id: str) -> OrderDesk:
        if self.desk is not None and self.desk.business_id == business_id:
            return self.desk
        previous, self.desk = self.desk, None
        if previous is not None:
            # stop the old channel before anything can write to the new list
            await previous.close()
        desk = self._desk_factory(business_id)
        self.desk = desk
        await desk.open()
        _logger.info("Business selected | business_id=%s", business_id)
        return desk

    async def close(self) -> None:
        if self.desk is not None:
            await self.desk.close()
            self.desk = None


class DeskRegistry:
    """Open desks per business for the HTTP surface.

    A desk holds a live channel subscription, so it is only kept while
    someone is looking at it: SSE streams hold a lease, and a desk without
    leases that has not been touched for ``idle_seconds`` is closed on the
    next access. At most ``max_open`` desks are kept; the least recently
    used unleased desk makes room for a new one.
    """

    def __init__(
        self,
        desk_factory: Callable[[str], OrderDesk] = OrderDesk,
        idle_seconds: Optional[float] = None,
        max_open: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._desk_factory = desk_factory
        self.idle_seconds = settings.DESK_IDLE_SECONDS if idle_seconds is None else idle_seconds
        self.max_open = settings.DESK_MAX_OPEN if max_open is None else max_open
        self._clock = clock
        self._desks: Dict[str, OrderDesk] = {}
        self._last_used: Dict[str, float] = {}
        self._leases: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._desks)

    def __contains__(self, business_id: object) -> bool:
        return business_id in self._desks

    async def get(self, business_id: str) -> OrderDesk:
        await self.sweep(keep=business_id)
        desk = self._desks.get(business_id)
        if desk is None:
            await self._make_room()
            desk = self._desk_factory(business_id)
            self._desks[business_id] = desk
            self._last_used[business_id] = self._clock()
            await desk.open()
        self._last_used[business_id] = self._clock()
        return desk

    async def acquire(self, business_id: str) -> OrderDesk:
        """Like get, but the desk stays open until the matching release."""
        desk = await self.get(business_id)
        self._leases[business_id] = self._leases.get(business_id, 0) + 1
        return desk

    def release(self, business_id: str) -> None:
        count = self._leases.get(business_id, 0) - 1
        if count > 0:
            self._leases[business_id] = count
        else:
            self._leases.pop(business_id, None)
        if business_id in self._desks:
            self._last_used[business_id] = self._clock()

    def _idle(self, business_id: str, now: float) -> bool:
        if self._leases.get(business_id):
            return False
        return now - self._last_used.get(business_id, now) > self.idle_seconds

    async def _evict(self, business_id: str, reason: str) -> None:
        desk = self._desks.pop(business_id, None)
        self._last_used.pop(business_id, None)
        if desk is not None:
            _logger.info("Closing order desk | business_id=%s reason=%s", business_id, reason)
            await desk.close()

    async def sweep(self, keep: Optional[str] = None) -> List[str]:
        """Close every unleased desk idle for longer than idle_seconds."""
        now = self._clock()
        stale = [bid for bid in self._desks if bid != keep and self._idle(bid, now)]
        for business_id in stale:
            await self._evict(business_id, "idle")
        return stale

    async def _make_room(self) -> None:
        while len(self._desks) >= self.max_open:
            unleased = [bid for bid in self._desks if not self._leases.get(bid)]
            if not unleased:
                _logger.warning("Every open desk is leased, exceeding limit | open=%s", len(self._desks))
                return
            oldest = min(unleased, key=lambda bid: self._last_used.get(bid, 0.0))
            await self._evict(oldest, "capacity")

    async def close_all(self) -> None:
        desks, self._desks = list(self._desks.values()), {}
        self._last_used.clear()
        self._leases.clear()
        for desk in desks:
            await desk.close()
