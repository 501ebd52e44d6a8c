"""Discount CRUD and the product catalog, both owned by the upstream service."""
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import aiohttp
from pydantic import BaseModel, ValidationError

from .model import Discount, Product
from ..common.errors import TransportFailure
from ..common.http_client import request_json, unwrap

_logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _parse(model: Type[M], raw: Any) -> M:
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise TransportFailure(f"Upstream returned a malformed {model.__name__.lower()}: {e.error_count()} error(s)") from e


def _parse_list(model: Type[M], body: Any, key: str) -> List[M]:
    items = unwrap(body, key)
    if not isinstance(items, list):
        raise TransportFailure(f"Upstream {key} list is not a list")
    return [_parse(model, item) for item in items]


class DiscountsClient:
    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self._session = session

    async def list_discounts(self, business_id: str) -> List[Discount]:
        body = await request_json("GET", "/discounts", params={"business_id": business_id}, session=self._session)
        discounts = _parse_list(Discount, body, "discounts")
        _logger.info("Fetched discounts | business_id=%s count=%s", business_id, len(discounts))
        return discounts

    async def get_discount(self, discount_id: str) -> Discount:
        body = await request_json("GET", f"/discounts/{discount_id}", session=self._session)
        return _parse(Discount, unwrap(body, "discount"))

    async def create_discount(self, payload: Dict) -> Discount:
        body = await request_json("POST", "/discounts", json_body=payload, session=self._session)
        discount = _parse(Discount, unwrap(body, "discount"))
        _logger.info("Discount created | discount_id=%s name=%s", discount.id, discount.name)
        return discount

    async def update_discount(self, discount_id: str, payload: Dict) -> Discount:
        body = await request_json("PATCH", f"/discounts/{discount_id}", json_body=payload, session=self._session)
        discount = _parse(Discount, unwrap(body, "discount"))
        _logger.info("Discount updated | discount_id=%s", discount_id)
        return discount

    async def fetch_products(self, business_id: str) -> List[Product]:
        body = await request_json("GET", "/products", params={"business_id": business_id}, session=self._session)
        return _parse_list(Product, body, "products")
