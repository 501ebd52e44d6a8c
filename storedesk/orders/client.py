"""REST calls against the upstream order service."""
import logging
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import ValidationError

from .model import Order, OrderStatus, PaymentStatus
from ..common.errors import TransportFailure
from ..common.http_client import request_json, unwrap

_logger = logging.getLogger(__name__)


def _parse_order(raw: Any) -> Order:
    try:
        return Order.model_validate(raw)
    except ValidationError as e:
        raise TransportFailure(f"Upstream returned a malformed order: {e.error_count()} error(s)") from e


class OrdersClient:
    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self._session = session

    async def fetch_orders(self, business_id: str) -> List[Order]:
        body = await request_json("GET", "/orders", params={"business_id": business_id}, session=self._session)
        items = unwrap(body, "orders")
        if not isinstance(items, list):
            raise TransportFailure("Upstream order list is not a list")
        orders = [_parse_order(item) for item in items]
        _logger.info("Fetched orders | business_id=%s count=%s", business_id, len(orders))
        return orders

    async def update_status(self, order_id: str, status: OrderStatus) -> Optional[Order]:
        body = await request_json(
            "PATCH", f"/orders/{order_id}/status", json_body={"status": status.value}, session=self._session
        )
        _logger.info("Order status updated | order_id=%s status=%s", order_id, status.value)
        data = unwrap(body, "order")
        return _parse_order(data) if isinstance(data, dict) else None

    async def update_payment_status(self, order_id: str, payment_status: PaymentStatus) -> Optional[Order]:
        body = await request_json(
            "PATCH",
            f"/orders/{order_id}/payment_status",
            json_body={"payment_status": payment_status.value},
            session=self._session,
        )
        _logger.info("Payment status updated | order_id=%s payment_status=%s", order_id, payment_status.value)
        data = unwrap(body, "order")
        return _parse_order(data) if isinstance(data, dict) else None

    async def verify_arrival(self, business_id: str, code: str) -> Optional[Order]:
        """Resolve an arrival code; None when nothing in the business matches."""
        body: Dict = await request_json(
            "POST",
            "/orders/verify_arrival",
            json_body={"business_id": business_id, "code": code},
            session=self._session,
        )
        if not isinstance(body, dict) or not body.get("found") or not body.get("order"):
            return None
        return _parse_order(body["order"])
