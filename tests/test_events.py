"""
Tests for realtime event validation at the channel boundary.
"""
import json

import pytest

from storedesk.common.errors import MalformedEvent
from storedesk.realtime.events import OrderCreated, OrderUpdated, parse_event


def _payload(**overrides):
    data = {"id": 7, "order_number": "ORD-7", "status": "pending", "payment_status": "paid"}
    data.update(overrides)
    return data


class TestParseEvent:

    def test_created_from_json_string(self):
        event = parse_event(json.dumps({"type": "order_created", "payload": _payload()}))
        assert isinstance(event, OrderCreated)
        assert event.payload.id == "7"

    def test_updated_from_bytes(self):
        raw = json.dumps({"type": "order_updated", "payload": _payload(status="ACCEPTED")}).encode()
        event = parse_event(raw)
        assert isinstance(event, OrderUpdated)
        assert event.payload.status.value == "accepted"

    @pytest.mark.parametrize("wire,expected", [("order:new", OrderCreated), ("order:updated", OrderUpdated)])
    def test_socket_style_names_accepted(self, wire, expected):
        assert isinstance(parse_event({"type": wire, "payload": _payload()}), expected)

    @pytest.mark.parametrize("raw", [
        "not json",
        "[1, 2]",
        {"type": "order_deleted", "payload": _payload()},
        {"type": "order_created"},
        {"type": "order_created", "payload": _payload(status="teleported")},
        {"type": "order_updated", "payload": {"order_number": "ORD-1", "status": "pending"}},
    ])
    def test_malformed_events_rejected(self, raw):
        with pytest.raises(MalformedEvent):
            parse_event(raw)
