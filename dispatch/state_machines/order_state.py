from datetime import datetime
from typing import Dict, FrozenSet

from dispatch.exceptions import ConflictError
from orders.models import (
    CANCELABLE_STATUSES,
    EmergencyOrder,
    EmergencyOrderStatus,
    PharmacyResponse,
    ResponseDecision,
)

S = EmergencyOrderStatus

ALLOWED_TRANSITIONS: Dict[EmergencyOrderStatus, FrozenSet[EmergencyOrderStatus]] = {
    S.PENDING: frozenset({S.ACCEPTED, S.NO_RESPONSE, S.CANCELED}),
    S.ACCEPTED: frozenset({S.FULFILLED}),
    S.NO_RESPONSE: frozenset({S.CANCELED}),
    S.FULFILLED: frozenset(),
    S.CANCELED: frozenset(),
}


class OrderStateException(ConflictError):
    """Raised when an invalid state transition is attempted."""
    pass


def can_transition(current: EmergencyOrderStatus, target: EmergencyOrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def _move(order: EmergencyOrder, target: EmergencyOrderStatus, now: datetime) -> None:
    if not can_transition(order.status, target):
        raise OrderStateException(f"Cannot move order {order.id} from {order.status.value} to {target.value}")
    order.status = target
    order.updated_at = now


def apply_pharmacy_response(order: EmergencyOrder, response: PharmacyResponse) -> EmergencyOrder:
    """
    Records a targeted pharmacy's answer on a PENDING order.
    An accept also locks the order to that pharmacy.

    Any failed precondition surfaces as one conflict so callers cannot
    tell a lost race from an untargeted pharmacy.
    """
    if (
        order.status != S.PENDING
        or not order.is_targeted(response.pharmacy_id)
        or order.response_from(response.pharmacy_id) is not None
    ):
        raise OrderStateException("order not available for response")

    order.responses.append(response)
    if response.decision == ResponseDecision.ACCEPTED:
        order.accepted_pharmacy_id = response.pharmacy_id
        _move(order, S.ACCEPTED, response.responded_at)
    else:
        # A rejection never moves the order; only the sweeper expires it.
        order.updated_at = response.responded_at
    return order


def cancel_by_requester(order: EmergencyOrder, requester_id: str, now: datetime) -> EmergencyOrder:
    if order.requester_id != requester_id or order.status not in CANCELABLE_STATUSES:
        raise OrderStateException("order cannot be canceled")
    _move(order, S.CANCELED, now)
    return order


def mark_fulfilled(order: EmergencyOrder, now: datetime) -> EmergencyOrder:
    if order.status != S.ACCEPTED:
        raise OrderStateException(f"Order {order.id} is not ACCEPTED. Current: {order.status.value}")
    _move(order, S.FULFILLED, now)
    return order


def expire_if_overdue(order: EmergencyOrder, now: datetime) -> bool:
    """
    PENDING orders past their deadline become NO_RESPONSE.
    Returns True when the order was moved.
    """
    if order.status != S.PENDING or not order.response_deadline < now:
        return False
    _move(order, S.NO_RESPONSE, now)
    return True
