import logging
import re
from dataclasses import dataclass

from .client import OrdersClient
from .model import Order, OrderStatus
from ..common.config import settings
from ..common.errors import LookupNotFound, ValidationFailed

_logger = logging.getLogger(__name__)

_CODE_RE = re.compile(r"^[A-Z0-9]+$")


def normalize_arrival_code(code: str) -> str:
    """Uppercase and validate a code typed in at the counter."""
    normalized = (code or "").strip().upper()
    if not normalized:
        raise ValidationFailed({"code": "Please enter an arrival code."})
    if len(normalized) != settings.ARRIVAL_CODE_LENGTH or not _CODE_RE.match(normalized):
        raise ValidationFailed(
            {"code": f"Arrival code must be {settings.ARRIVAL_CODE_LENGTH} letters or digits."}
        )
    return normalized


@dataclass(frozen=True)
class ArrivalResult:
    order: Order

    @property
    def order_number(self) -> str:
        return self.order.order_number

    @property
    def message(self) -> str:
        return f"Order {self.order.order_number} marked as picked up!"


class ArrivalVerifier:
    """Resolves a pickup code to an order and hands it over.

    The resolved order's current status is not re-checked here; the upstream
    status endpoint enforces legality and answers with ForbiddenTransition.
    """

    def __init__(self, client: OrdersClient):
        self._client = client

    async def resolve(self, business_id: str, code: str) -> Order:
        """Find the order a code belongs to; LookupNotFound when none does."""
        normalized = normalize_arrival_code(code)
        try:
            order = await self._client.verify_arrival(business_id, normalized)
        except LookupNotFound:
            order = None
        if order is None:
            _logger.info("Arrival code not found | business_id=%s code=%s", business_id, normalized)
            raise LookupNotFound("arrival code", normalized)
        return order

    async def complete(self, business_id: str, order: Order) -> ArrivalResult:
        await self._client.update_status(order.id, OrderStatus.PICKED_UP)
        _logger.info(
            "Arrival verified | business_id=%s order_id=%s order_number=%s",
            business_id,
            order.id,
            order.order_number,
        )
        return ArrivalResult(order=order)

    async def verify(self, business_id: str, code: str) -> ArrivalResult:
        return await self.complete(business_id, await self.resolve(business_id, code))
