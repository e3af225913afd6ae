"""
Emergency orders domain package.

Public API:
- Domain models: EmergencyOrder, PharmacyResponse, EmergencyOrderStatus,
  ResponseDecision, Priority
- Caller identities: Requester, Pharmacist
- In-memory store: InMemoryEmergencyOrderStore
"""
from .models import (
    EmergencyOrder,
    PharmacyResponse,
    EmergencyOrderStatus,
    ResponseDecision,
    Priority,
    Requester,
    Pharmacist,
)
from .store import InMemoryEmergencyOrderStore

__all__ = ["EmergencyOrder",
           "PharmacyResponse",
           "EmergencyOrderStatus",
           "ResponseDecision",
           "Priority",
           "Requester",
           "Pharmacist",
           "InMemoryEmergencyOrderStore",
           ]
