"""Channel events, validated before they reach reconciliation.

The upstream pushes ``{"type": ..., "payload": {...order...}}``. Older
emitters use the socket names ``order:new`` / ``order:updated``; both spellings
are accepted and normalized. Anything else is a MalformedEvent.
"""
import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ..common.errors import MalformedEvent
from ..orders.model import Order

TYPE_ALIASES = {
    "order:new": "order_created",
    "order:created": "order_created",
    "order:updated": "order_updated",
}


class OrderCreated(BaseModel):
    type: Literal["order_created"] = "order_created"
    payload: Order


class OrderUpdated(BaseModel):
    type: Literal["order_updated"] = "order_updated"
    payload: Order


OrderEvent = Annotated[Union[OrderCreated, OrderUpdated], Field(discriminator="type")]

_adapter: TypeAdapter = TypeAdapter(OrderEvent)


def parse_event(raw: Any) -> Union[OrderCreated, OrderUpdated]:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise MalformedEvent(f"event is not JSON: {e}") from e
    if not isinstance(raw, dict):
        raise MalformedEvent(f"event must be an object, got {type(raw).__name__}")
    kind = raw.get("type")
    if isinstance(kind, str) and kind in TYPE_ALIASES:
        raw = {**raw, "type": TYPE_ALIASES[kind]}
    try:
        return _adapter.validate_python(raw)
    except ValidationError as e:
        raise MalformedEvent(f"invalid {kind!r} event: {e.error_count()} error(s)") from e
