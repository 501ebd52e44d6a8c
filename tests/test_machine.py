"""
Tests for the order lifecycle rules.
"""
import pytest

from storedesk.common.errors import ForbiddenTransition
from storedesk.orders.machine import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    available_actions,
    can_transition,
    effective_order_stage,
    ensure_transition,
    format_status_label,
    is_terminal,
    next_statuses,
)
from storedesk.orders.model import OrderStatus

from conftest import make_order


class TestActionSets:

    def test_pending_offers_accept_then_reject(self):
        actions = available_actions(OrderStatus.PENDING)
        assert [a.target for a in actions] == [OrderStatus.ACCEPTED, OrderStatus.CANCELLED_BY_BUSINESS]
        assert [a.label for a in actions] == ["Accept Order", "Reject"]

    @pytest.mark.parametrize("status,forward", [
        ("accepted", "preparing"),
        ("preparing", "ready_for_pickup"),
        ("ready_for_pickup", "picked_up"),
    ])
    def test_live_statuses_move_forward_or_cancel(self, status, forward):
        assert next_statuses(status) == (OrderStatus(forward), OrderStatus.CANCELLED_BY_BUSINESS)

    @pytest.mark.parametrize("status", sorted(s.value for s in TERMINAL_STATUSES))
    def test_terminal_statuses_have_no_actions(self, status):
        assert available_actions(status) == ()
        assert is_terminal(status)

    def test_every_offered_target_is_in_the_table(self):
        for status in OrderStatus:
            for action in available_actions(status):
                assert action in TRANSITIONS[status]

    def test_cancelled_by_user_never_offered(self):
        for status in OrderStatus:
            assert OrderStatus.CANCELLED_BY_USER not in next_statuses(status)

    def test_action_to_dict(self):
        reject = available_actions("pending")[1]
        assert reject.to_dict() == {"status": "cancelled_by_business", "label": "Reject", "destructive": True}


class TestEnsureTransition:

    def test_legal_transition_returns_target(self):
        assert ensure_transition("o1", "pending", "accepted") == OrderStatus.ACCEPTED

    def test_skipping_a_stage_is_forbidden(self):
        with pytest.raises(ForbiddenTransition) as exc:
            ensure_transition("o1", "pending", "ready_for_pickup")
        assert exc.value.order_id == "o1"
        assert exc.value.target == "ready_for_pickup"
        assert "Valid next states: accepted, cancelled_by_business" in str(exc.value)

    def test_terminal_status_reports_no_next_states(self):
        with pytest.raises(ForbiddenTransition) as exc:
            ensure_transition("o1", OrderStatus.PICKED_UP, "cancelled_by_business")
        assert "none (terminal state)" in str(exc.value)

    def test_unknown_target_is_forbidden(self):
        with pytest.raises(ForbiddenTransition):
            ensure_transition("o1", "pending", "shipped")

    def test_can_transition_is_boolean_view(self):
        assert can_transition("preparing", "ready_for_pickup")
        assert not can_transition("preparing", "accepted")
        assert not can_transition("preparing", "bogus")


class TestLabels:

    def test_format_status_label(self):
        assert format_status_label("ready_for_pickup") == "Ready For Pickup"
        assert format_status_label(OrderStatus.CANCELLED_BY_BUSINESS) == "Cancelled By Business"

    def test_effective_stage_is_stored_status(self):
        assert effective_order_stage(make_order(status="preparing")) == OrderStatus.PREPARING
