"""
Purpose: Orchestrator / decision pipeline (the "glue").
What it does:
Creates an emergency order by ranking nearby pharmacies that stock the requested
medicine, then drives the order through its lifecycle: pharmacy responses,
requester cancellation, fulfillment and expiry.

Collaborators are injected so the same pipeline runs against the in-memory
directories and against the Django ORM:
- store:      get / insert / record_response / cancel / mark_fulfilled /
              expire_overdue / list_for_requester / list_pending_for_pharmacy
- pharmacies: find_active_near(point, radius_m)
- catalog:    find_by_name(fragment)
- users:      find_location(user_id)
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from orders.models import (
    Caller,
    EmergencyOrder,
    LonLat,
    Pharmacist,
    PharmacyResponse,
    Priority,
    ResponseDecision,
    utcnow,
)
from .candidate_filter import select_targets
from .exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from .policy import DispatchPolicy, default_dispatch_policy
from .scoring import rank_candidates

logger = logging.getLogger(__name__)


class EmergencyDispatcher:
    """
    Coordinates the lifecycle of an EmergencyOrder across a bounded set of pharmacies.
    """
    def __init__(
        self,
        store,
        pharmacies,
        catalog,
        users,
        policy: Optional[DispatchPolicy] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.pharmacies = pharmacies
        self.catalog = catalog
        self.users = users
        self.policy = policy or default_dispatch_policy()
        self.clock = clock

    # -------------------------
    # Dispatch engine
    # -------------------------

    def create_smart_emergency_order(
        self,
        requester_id: str,
        *,
        requested_medicine_name: str,
        delivery_address: str,
        location: Optional[Sequence[float]] = None,
        additional_notes: Optional[str] = None,
        priority=None,
        response_timeout_minutes: Optional[int] = None,
    ) -> EmergencyOrder:
        """
        1. Validates input.
        2. Resolves the location (payload first, then the requester's stored one).
        3. Resolves the medicine by fuzzy name.
        4. Scores active pharmacies within the search radius.
        5. Keeps the best pharmacies that stock it and clear the score floor.
        6. Persists a PENDING order targeting them.
        """
        medicine_name = (requested_medicine_name or "").strip()
        if not medicine_name:
            raise ValidationError("requestedMedicineName is required")

        address = (delivery_address or "").strip()
        if not address:
            raise ValidationError("deliveryAddress is required")

        priority = _parse_priority(priority)
        timeout_minutes = _parse_timeout(response_timeout_minutes, self.policy.default_response_timeout_minutes)

        final_location = _parse_location(location) if location is not None else None
        if final_location is None:
            final_location = self.users.find_location(requester_id)
        if final_location is None:
            raise NotFoundError("user location not found")

        product = self.catalog.find_by_name(medicine_name)
        if product is None:
            raise NotFoundError(f"No product matches '{medicine_name}'")

        nearby = self.pharmacies.find_active_near(final_location, self.policy.search_radius_m)
        ranked = rank_candidates(nearby, product.id, self.policy)
        targets = select_targets(ranked, self.policy)

        if not targets:
            logger.info(
                "No eligible pharmacies for %s near %s (%d within radius)",
                product.name, final_location, len(nearby),
            )
            raise NotFoundError("no nearby pharmacies currently have this product in stock")

        order = EmergencyOrder.new(
            requester_id=requester_id,
            requested_medicine_name=product.name,
            location=final_location,
            delivery_address=address,
            targeted_pharmacy_ids=[target.pharmacy_id for target in targets],
            response_timeout_minutes=timeout_minutes,
            additional_notes=(additional_notes or "").strip(),
            priority=priority,
            now=self.clock(),
        )
        order = self.store.insert(order)

        logger.info(
            "Emergency order %s for %s targeted %d pharmacies: %s",
            order.id, order.requested_medicine_name, len(targets),
            ", ".join(f"{t.pharmacy_id}={t.score:.1f}" for t in targets),
        )
        return order

    # -------------------------
    # Response aggregator
    # -------------------------

    def record_pharmacy_response(
        self,
        order_id: str,
        caller: Caller,
        decision,
        rejection_reason: Optional[str] = None,
    ) -> EmergencyOrder:
        """
        Race Condition Resolver: the store applies the response only if the order is
        still PENDING, the pharmacy was targeted and has not answered yet, all in one
        conditional write. Two pharmacies accepting at once cannot both win.
        """
        if not isinstance(caller, Pharmacist):
            raise ForbiddenError("User is not associated with a pharmacy")

        try:
            decision = ResponseDecision(decision)
        except ValueError:
            raise ValidationError("decision must be 'accepted' or 'rejected'") from None

        response = PharmacyResponse(
            pharmacy_id=caller.pharmacy_id,
            decision=decision,
            responded_at=self.clock(),
            rejection_reason=(rejection_reason or "").strip() or None,
        )

        order = self.store.record_response(order_id, response)
        if order is None:
            raise ConflictError("order not available for response")

        logger.info("Pharmacy %s %s emergency order %s", caller.pharmacy_id, decision.value, order_id)
        return order

    # -------------------------
    # Cancellation / fulfillment
    # -------------------------

    def cancel_order(self, order_id: str, requester_id: str) -> EmergencyOrder:
        order = self.store.cancel(order_id, requester_id, self.clock())
        if order is None:
            raise ConflictError("Order not found, not owned by user, or can no longer be canceled")

        logger.info("Emergency order %s canceled by requester %s", order_id, requester_id)
        return order

    def fulfill_order(self, order_id: str, caller: Caller) -> EmergencyOrder:
        order = self.store.get(order_id)
        if order is None:
            raise NotFoundError("Emergency order not found")

        if not _may_close(order, caller):
            raise ForbiddenError("Only the requester or the accepted pharmacy can fulfill this order")

        # conditional on ACCEPTED at write time, not on the status read above
        fulfilled = self.store.mark_fulfilled(order_id, self.clock())
        if fulfilled is None:
            raise ConflictError(f"Order {order_id} is not accepted (status: {order.status.value})")

        logger.info("Emergency order %s fulfilled", order_id)
        return fulfilled

    # -------------------------
    # Timeouts
    # -------------------------

    def process_order_timeouts(self, now: Optional[datetime] = None) -> int:
        moved = self.store.expire_overdue(now or self.clock())
        if moved:
            logger.info("Updated %d orders to 'no_response' due to timeout", moved)
        return moved

    # -------------------------
    # Queries
    # -------------------------

    def get_order(self, order_id: str, caller: Caller) -> EmergencyOrder:
        order = self.store.get(order_id)
        if order is None:
            raise NotFoundError("Emergency order not found")

        if caller.user_id == order.requester_id:
            return order
        if isinstance(caller, Pharmacist) and order.is_targeted(caller.pharmacy_id):
            return order
        raise ForbiddenError("You are not allowed to view this order")

    def list_orders_for_user(self, user_id: str) -> List[EmergencyOrder]:
        return self.store.list_for_requester(user_id)

    def list_orders_for_pharmacy(self, pharmacy_id: str) -> List[EmergencyOrder]:
        return self.store.list_pending_for_pharmacy(pharmacy_id)


def _may_close(order: EmergencyOrder, caller: Caller) -> bool:
    if caller.user_id == order.requester_id:
        return True
    return (
        isinstance(caller, Pharmacist)
        and order.accepted_pharmacy_id is not None
        and caller.pharmacy_id == order.accepted_pharmacy_id
    )


def _parse_priority(value) -> Priority:
    if value is None or value == "":
        return Priority.HIGH
    try:
        return Priority(value)
    except ValueError:
        raise ValidationError("priority must be 'high' or 'normal'") from None


def _parse_timeout(value, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError("responseTimeoutMinutes must be a positive integer")
    return value


def _parse_location(coordinates: Sequence[float]) -> LonLat:
    """
    Expects GeoJSON order [lng, lat].
    """
    try:
        lng, lat = (float(c) for c in coordinates)
    except (TypeError, ValueError):
        raise ValidationError("location.coordinates must be [longitude, latitude]") from None

    if not (-180 <= lng <= 180 and -90 <= lat <= 90):
        raise ValidationError("Invalid coordinates")
    return (lng, lat)
