"""Order lifecycle rules for the business side of the counter.

The table below is the only place legal transitions are defined. The
operator is offered exactly these actions, in this order; anything else is a
ForbiddenTransition. ``cancelled_by_user`` and ``failed_payment`` are entered
by other actors (the ordering client, the payment processor) and never from
here.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple, Union

from .model import OrderStatus
from ..common.errors import ForbiddenTransition


@dataclass(frozen=True)
class Action:
    target: OrderStatus
    label: str
    destructive: bool = False

    def to_dict(self) -> Dict:
        return {"status": self.target.value, "label": self.label, "destructive": self.destructive}


TRANSITIONS: Dict[OrderStatus, Tuple[Action, ...]] = {
    OrderStatus.PENDING: (
        Action(OrderStatus.ACCEPTED, "Accept Order"),
        Action(OrderStatus.CANCELLED_BY_BUSINESS, "Reject", destructive=True),
    ),
    OrderStatus.ACCEPTED: (
        Action(OrderStatus.PREPARING, "Start Preparing"),
        Action(OrderStatus.CANCELLED_BY_BUSINESS, "Cancel", destructive=True),
    ),
    OrderStatus.PREPARING: (
        Action(OrderStatus.READY_FOR_PICKUP, "Mark Ready"),
        Action(OrderStatus.CANCELLED_BY_BUSINESS, "Cancel", destructive=True),
    ),
    OrderStatus.READY_FOR_PICKUP: (
        Action(OrderStatus.PICKED_UP, "Mark Picked Up"),
        Action(OrderStatus.CANCELLED_BY_BUSINESS, "Cancel", destructive=True),
    ),
}

TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.PICKED_UP,
    OrderStatus.CANCELLED_BY_USER,
    OrderStatus.CANCELLED_BY_BUSINESS,
    OrderStatus.FAILED_PAYMENT,
})

StatusLike = Union[OrderStatus, str]


def _as_status(value: StatusLike) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    return OrderStatus(str(value).strip().lower())


def is_terminal(status: StatusLike) -> bool:
    return _as_status(status) in TERMINAL_STATUSES


def available_actions(status: StatusLike) -> Tuple[Action, ...]:
    """Ordered legal next steps; empty for terminal statuses."""
    return TRANSITIONS.get(_as_status(status), ())


def next_statuses(status: StatusLike) -> Tuple[OrderStatus, ...]:
    return tuple(a.target for a in available_actions(status))


def can_transition(current: StatusLike, target: StatusLike) -> bool:
    try:
        return _as_status(target) in next_statuses(current)
    except ValueError:
        return False


def ensure_transition(order_id: str, current: StatusLike, target: StatusLike) -> OrderStatus:
    """Return the target status, or raise ForbiddenTransition."""
    current_value = current.value if isinstance(current, OrderStatus) else str(current)
    try:
        target_status = _as_status(target)
    except ValueError:
        raise ForbiddenTransition(order_id, current_value, str(target), reason=f"Unknown order status: {target}")
    try:
        allowed = next_statuses(current)
    except ValueError:
        allowed = ()
    if target_status not in allowed:
        valid = ", ".join(s.value for s in allowed) or "none (terminal state)"
        raise ForbiddenTransition(
            order_id,
            current_value,
            target_status.value,
            reason=f"Cannot transition from {current_value} to {target_status.value}. Valid next states: {valid}",
        )
    return target_status


def format_status_label(status: StatusLike) -> str:
    value = status.value if isinstance(status, OrderStatus) else str(status)
    return " ".join(word.capitalize() for word in value.split("_"))


def effective_order_stage(order) -> OrderStatus:
    """An order's stored status is already authoritative; nothing is derived from time."""
    return _as_status(order.status)
