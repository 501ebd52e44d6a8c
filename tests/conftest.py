"""
Shared fixtures: order/product factories and an in-memory channel subscriber.
"""
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from storedesk.discounts.client import DiscountsClient
from storedesk.discounts.model import Discount, Product
from storedesk.orders.client import OrdersClient
from storedesk.orders.model import Order


def make_order(order_id="o1", status="pending", **overrides) -> Order:
    data = {
        "id": order_id,
        "order_number": f"ORD-{order_id.upper()}",
        "business_id": "b1",
        "status": status,
        "payment_status": "pending",
        "payment_method": "cash_on_pickup",
        "arrival_code": None,
        "subtotal": "100.00",
        "discount_amount": "0",
        "total_amount": "100.00",
        "item_count": 1,
        "user_email": f"{order_id}@example.com",
    }
    data.update(overrides)
    return Order.model_validate(data)


def make_discount(**overrides) -> Discount:
    data = {
        "id": "d1",
        "business_id": "b1",
        "name": "Weekend Special",
        "description": "Snacks and drinks",
        "start_datetime": "2025-10-01T00:00:00Z",
        "end_datetime": None,
        "status": "active",
        "applicable_products": [],
    }
    data.update(overrides)
    return Discount.model_validate(data)


class FakeSubscriber:
    """Stands in for OrderChannelSubscriber; records lifecycle calls."""

    def __init__(self, business_id, on_event, log=None):
        self.business_id = business_id
        self.on_event = on_event
        self.log = log if log is not None else []
        self.started = False
        self.stopped = False

    def start(self):
        self.started = True
        self.log.append(("start", self.business_id))

    async def stop(self):
        self.stopped = True
        self.log.append(("stop", self.business_id))


@pytest.fixture
def now():
    return datetime(2025, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def orders_client():
    client = AsyncMock(spec=OrdersClient)
    client.fetch_orders.return_value = [
        make_order("o3", "ready_for_pickup", arrival_code="ABC123"),
        make_order("o2", "accepted"),
        make_order("o1", "pending"),
    ]
    client.update_status.return_value = None
    client.update_payment_status.return_value = None
    client.verify_arrival.return_value = None
    return client


@pytest.fixture
def catalog():
    return [
        Product(id="p1", name="Coffee Beans", price="1000", current_stock=20),
        Product(id="p2", name="Mug", price="250", current_stock=5),
        Product(id="p3", name="Tote Bag", price="400", current_stock=0),
    ]


@pytest.fixture
def discounts_client(catalog):
    client = AsyncMock(spec=DiscountsClient)
    client.fetch_products.return_value = catalog
    return client
