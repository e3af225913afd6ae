"""
Purpose: In-memory Emergency Order Store.
What it does:
- Owns every EmergencyOrder document by id.
- Provides the conditional writes the dispatcher relies on:
   - record_response(order_id, response)
   - cancel(order_id, requester_id)
   - mark_fulfilled(order_id)
   - expire_overdue(now)

Each conditional write checks its predicate and applies the change under one
lock, the in-process equivalent of a find-and-update on a document store.
A failed predicate returns None; the dispatcher turns that into a conflict.

Rule: Store owns persistence and atomicity, state_machines owns the rules.
"""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from dispatch.state_machines.order_state import (
    OrderStateException,
    apply_pharmacy_response,
    cancel_by_requester,
    expire_if_overdue,
    mark_fulfilled,
)
from .models import (
    PRIORITY_RANK,
    EmergencyOrder,
    EmergencyOrderStatus,
    PharmacyResponse,
    utcnow,
)


@dataclass
class InMemoryEmergencyOrderStore:
    """
    Thread-safe order store. Callers always receive copies, so mutating a
    returned order never changes stored state.
    """
    _orders: Dict[str, EmergencyOrder] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    # --- Reads ---

    def get(self, order_id: str) -> Optional[EmergencyOrder]:
        with self._lock:
            order = self._orders.get(order_id)
            return copy.deepcopy(order) if order else None

    def list_for_requester(self, user_id: str) -> List[EmergencyOrder]:
        with self._lock:
            owned = [copy.deepcopy(o) for o in self._orders.values() if o.requester_id == user_id]
        owned.sort(key=lambda o: o.created_at, reverse=True)
        return owned

    def list_pending_for_pharmacy(self, pharmacy_id: str) -> List[EmergencyOrder]:
        with self._lock:
            inbox = [
                copy.deepcopy(o)
                for o in self._orders.values()
                if o.status == EmergencyOrderStatus.PENDING and o.is_targeted(pharmacy_id)
            ]
        inbox.sort(key=lambda o: (PRIORITY_RANK[o.priority], o.created_at))
        return inbox

    # --- Writes ---

    def insert(self, order: EmergencyOrder) -> EmergencyOrder:
        with self._lock:
            if order.id in self._orders:
                raise ValueError(f"Order {order.id} already exists")
            self._orders[order.id] = copy.deepcopy(order)
        return copy.deepcopy(order)

    def record_response(self, order_id: str, response: PharmacyResponse) -> Optional[EmergencyOrder]:
        return self._compare_and_swap(order_id, lambda order: apply_pharmacy_response(order, response))

    def cancel(self, order_id: str, requester_id: str, now: Optional[datetime] = None) -> Optional[EmergencyOrder]:
        now = now or utcnow()
        return self._compare_and_swap(order_id, lambda order: cancel_by_requester(order, requester_id, now))

    def mark_fulfilled(self, order_id: str, now: Optional[datetime] = None) -> Optional[EmergencyOrder]:
        now = now or utcnow()
        return self._compare_and_swap(order_id, lambda order: mark_fulfilled(order, now))

    def expire_overdue(self, now: Optional[datetime] = None) -> int:
        """
        Set-based: every PENDING order past its deadline becomes NO_RESPONSE.
        """
        now = now or utcnow()
        moved = 0
        with self._lock:
            for order in self._orders.values():
                if expire_if_overdue(order, now):
                    moved += 1
        return moved

    # --- Internals ---

    def _compare_and_swap(
        self,
        order_id: str,
        mutate: Callable[[EmergencyOrder], EmergencyOrder],
    ) -> Optional[EmergencyOrder]:
        with self._lock:
            current = self._orders.get(order_id)
            if current is None:
                return None

            # work on a copy so a rejected change leaves nothing behind
            candidate = copy.deepcopy(current)
            try:
                mutate(candidate)
            except OrderStateException:
                return None

            self._orders[order_id] = candidate
            return copy.deepcopy(candidate)
