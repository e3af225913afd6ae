"""
Purpose: Domain models for the Emergency Orders capability.
What it does:
- Defines core data structures:
- EmergencyOrder (id, requester, medicine, location, targets, responses, deadline, status)
- PharmacyResponse (pharmacy_id, decision, rejection_reason, responded_at)
- Requester / Pharmacist (who is calling an operation)

Defines enums/constants:
- EmergencyOrderStatus = pending | accepted | fulfilled | canceled | no_response
- ResponseDecision = accepted | rejected
- Priority = high | normal

Rule: No store calls, no scoring logic. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional, Tuple, Union
import uuid

# GeoJSON order: (longitude, latitude)
LonLat = Tuple[float, float]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EmergencyOrderStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    FULFILLED = "fulfilled"
    CANCELED = "canceled"
    NO_RESPONSE = "no_response"


class ResponseDecision(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Priority(str, Enum):
    HIGH = "high"
    NORMAL = "normal"


# pharmacy inboxes list high priority first
PRIORITY_RANK = {Priority.HIGH: 0, Priority.NORMAL: 1}

# The requester may still cancel an order nobody answered.
CANCELABLE_STATUSES = (EmergencyOrderStatus.PENDING, EmergencyOrderStatus.NO_RESPONSE)


@dataclass(frozen=True)
class PharmacyResponse:
    """
    One pharmacy's answer to an order it was targeted for.
    """
    pharmacy_id: str
    decision: ResponseDecision
    responded_at: datetime = field(default_factory=utcnow)
    rejection_reason: Optional[str] = None


@dataclass
class EmergencyOrder:
    """
    A medicine request broadcast to a bounded set of nearby pharmacies.
    """

    id: str
    requester_id: str
    requested_medicine_name: str
    location: LonLat
    delivery_address: str
    targeted_pharmacy_ids: List[str]
    response_deadline: datetime

    additional_notes: str = ""
    priority: Priority = Priority.HIGH
    status: EmergencyOrderStatus = EmergencyOrderStatus.PENDING
    responses: List[PharmacyResponse] = field(default_factory=list)
    accepted_pharmacy_id: Optional[str] = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @staticmethod  # Factory method used by the dispatcher once targets are chosen
    def new(
        requester_id: str,
        requested_medicine_name: str,
        location: LonLat,
        delivery_address: str,
        targeted_pharmacy_ids: List[str],
        *,
        response_timeout_minutes: int,
        additional_notes: str = "",
        priority: Priority = Priority.HIGH,
        now: Optional[datetime] = None,
    ) -> EmergencyOrder:
        now = now or utcnow()
        return EmergencyOrder(
            id=str(uuid.uuid4()),
            requester_id=requester_id,
            requested_medicine_name=requested_medicine_name,
            location=location,
            delivery_address=delivery_address,
            targeted_pharmacy_ids=list(targeted_pharmacy_ids),
            response_deadline=now + timedelta(minutes=response_timeout_minutes),
            additional_notes=additional_notes,
            priority=priority,
            created_at=now,
            updated_at=now,
        )

    def response_from(self, pharmacy_id: str) -> Optional[PharmacyResponse]:
        for response in self.responses:
            if response.pharmacy_id == pharmacy_id:
                return response
        return None

    def is_targeted(self, pharmacy_id: str) -> bool:
        return pharmacy_id in self.targeted_pharmacy_ids


@dataclass(frozen=True)
class Requester:
    """
    A plain user acting on their own orders.
    """
    user_id: str


@dataclass(frozen=True)
class Pharmacist:
    """
    A user acting on behalf of the pharmacy they run.
    """
    user_id: str
    pharmacy_id: str


Caller = Union[Requester, Pharmacist]
