"""
Tests for upstream error mapping and envelope handling.
"""
import pytest

from storedesk.common.errors import ForbiddenTransition, LookupNotFound, TransportFailure
from storedesk.common.http_client import _raise_for_body, unwrap


class TestErrorMapping:

    def test_forbidden_transition_body(self):
        body = {
            "error": "forbidden_transition",
            "message": "Cannot transition from picked_up to accepted",
            "order_id": 12,
            "current": "picked_up",
            "target": "accepted",
        }
        with pytest.raises(ForbiddenTransition) as exc:
            _raise_for_body(400, body, "PATCH", "/orders/12/status")
        assert exc.value.order_id == "12"
        assert exc.value.current == "picked_up"
        assert str(exc.value) == "Cannot transition from picked_up to accepted"

    def test_conflict_with_target_is_a_transition_error(self):
        with pytest.raises(ForbiddenTransition):
            _raise_for_body(409, {"target": "preparing"}, "PATCH", "/orders/1/status")

    def test_not_found(self):
        with pytest.raises(LookupNotFound):
            _raise_for_body(404, None, "GET", "/discounts/9")

    @pytest.mark.parametrize("status,body,message", [
        (500, {"message": "database unavailable"}, "database unavailable"),
        (502, None, "GET /orders failed with HTTP 502"),
        (409, {"error": "conflict"}, "GET /orders failed with HTTP 409"),
    ])
    def test_everything_else_is_transport_failure(self, status, body, message):
        with pytest.raises(TransportFailure) as exc:
            _raise_for_body(status, body, "GET", "/orders")
        assert exc.value.status == status
        assert str(exc.value) == message


class TestUnwrap:

    def test_named_envelope(self):
        assert unwrap({"orders": [1], "data": [2]}, "orders") == [1]

    def test_data_envelope(self):
        assert unwrap({"data": {"id": 1}}, "order") == {"id": 1}

    def test_bare_payload(self):
        assert unwrap([1, 2], "orders") == [1, 2]
        assert unwrap({"id": 1}, "order") == {"id": 1}
