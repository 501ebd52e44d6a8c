"""Reconciled, per-business order collection.

All writes go through ``OrderStore.apply`` with one of three messages: a full
fetch, a pushed creation, a pushed update. Everything runs on one event loop,
so there is no locking; the only hazard is a stale overwrite, and the rule
for that is simple: whatever is applied last wins. No versions or timestamps
are compared because the upstream provides none.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Union

from .model import Order, OrderStatus
from ..realtime.events import OrderCreated, OrderUpdated

_logger = logging.getLogger(__name__)

CANCELLED_GROUP = "cancelled"
ALL = "all"


@dataclass(frozen=True)
class OrdersFetched:
    orders: List[Order]


Message = Union[OrdersFetched, OrderCreated, OrderUpdated]
Listener = Callable[[Message, bool], None]


class OrderStore:
    def __init__(self, business_id: str):
        self.business_id = business_id
        self._orders: List[Order] = []
        self._listeners: List[Listener] = []
        self.loaded = False

    @property
    def orders(self) -> List[Order]:
        return list(self._orders)

    def __len__(self) -> int:
        return len(self._orders)

    def get(self, order_id: str) -> Optional[Order]:
        for order in self._orders:
            if order.id == order_id:
                return order
        return None

    def listen(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply(self, message: Message) -> bool:
        """Apply one write; returns False when the message was dropped."""
        if isinstance(message, OrdersFetched):
            self._orders = list(message.orders)
            self.loaded = True
            applied = True
            _logger.debug("Orders replaced from fetch | business_id=%s count=%s", self.business_id, len(self._orders))
        elif isinstance(message, OrderCreated):
            # no de-duplication by id
            self._orders.insert(0, message.payload)
            applied = True
            _logger.debug("Order prepended | business_id=%s order_id=%s", self.business_id, message.payload.id)
        elif isinstance(message, OrderUpdated):
            applied = self._replace(message.payload)
            if not applied:
                _logger.debug("Update for unknown order dropped | business_id=%s order_id=%s", self.business_id, message.payload.id)
        else:
            raise TypeError(f"Unsupported store message: {type(message).__name__}")

        for listener in list(self._listeners):
            try:
                listener(message, applied)
            except Exception:
                _logger.exception("Order store listener failed | business_id=%s", self.business_id)
        return applied

    def _replace(self, order: Order) -> bool:
        for index, existing in enumerate(self._orders):
            if existing.id == order.id:
                self._orders[index] = order
                return True
        return False


def _matches_status(order: Order, status: str) -> bool:
    if status == ALL:
        return True
    if status == CANCELLED_GROUP:
        return order.status.value.startswith("cancelled_") or order.status == OrderStatus.FAILED_PAYMENT
    return order.status.value == status


def orders_by_status(orders: Iterable[Order], status: Union[OrderStatus, str, None]) -> List[Order]:
    key = status.value if isinstance(status, OrderStatus) else (status or ALL).strip().lower()
    return [o for o in orders if _matches_status(o, key)]


def _haystack(order: Order) -> str:
    fields = [
        order.order_number,
        order.user_email,
        order.arrival_code,
        order.payment_method,
        order.payment_status.value if order.payment_status else None,
        order.special_instructions,
    ]
    return " ".join(str(v).lower() if v else "" for v in fields)


def search_orders(orders: Iterable[Order], text: Optional[str]) -> List[Order]:
    query = (text or "").strip().lower()
    if not query:
        return list(orders)
    return [o for o in orders if query in _haystack(o)]


def filter_orders(orders: Iterable[Order], status: Optional[str] = None, text: Optional[str] = None) -> List[Order]:
    return search_orders(orders_by_status(orders, status), text)


def status_counts(orders: Iterable[Order]) -> Dict[str, int]:
    orders = list(orders)
    counts = {ALL: len(orders)}
    for status in (
        OrderStatus.PENDING,
        OrderStatus.ACCEPTED,
        OrderStatus.PREPARING,
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.PICKED_UP,
    ):
        counts[status.value] = sum(1 for o in orders if o.status == status)
    counts[CANCELLED_GROUP] = sum(1 for o in orders if _matches_status(o, CANCELLED_GROUP))
    return counts
