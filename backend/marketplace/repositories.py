"""
Purpose: Django ORM adapters for the emergency dispatch pipeline.
What it does:
- DjangoEmergencyOrderStore: the order store, with every state change issued as a
  conditional UPDATE (WHERE id = ? AND status = ?) so the database decides races.
- DjangoGeoDirectory / DjangoProductCatalog / DjangoUserDirectory: read-only
  collaborators returning the plain domain models.

It should not contain dispatch rules or scoring.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Case, IntegerField, Q, Value, When

from orders.models import (
    EmergencyOrder as DomainOrder,
    EmergencyOrderStatus,
    LonLat,
    PharmacyResponse,
    Priority,
    ResponseDecision,
)
from pharmacies.geo import bounding_box, longitude_ranges, nearest_within_radius
from pharmacies.models import NearbyPharmacy, Pharmacy as DomainPharmacy, Product as DomainProduct, StockItem as DomainStockItem

from .models import EmergencyOrder, EmergencyOrderResponse, EmergencyOrderTarget, Pharmacy, Product

Status = EmergencyOrder.Status


def _order_pk(order_id) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(order_id))
    except ValueError:
        return None


def _int_pk(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def order_to_domain(row: EmergencyOrder) -> DomainOrder:
    return DomainOrder(
        id=str(row.pk),
        requester_id=str(row.requester_id),
        requested_medicine_name=row.requested_medicine_name,
        location=(row.lng, row.lat),
        delivery_address=row.delivery_address,
        targeted_pharmacy_ids=[str(target.pharmacy_id) for target in row.targets.all()],
        response_deadline=row.response_deadline,
        additional_notes=row.additional_notes,
        priority=Priority(row.priority),
        status=EmergencyOrderStatus(row.status),
        responses=[
            PharmacyResponse(
                pharmacy_id=str(response.pharmacy_id),
                decision=ResponseDecision(response.decision),
                responded_at=response.responded_at,
                rejection_reason=response.rejection_reason or None,
            )
            for response in row.responses.all()
        ],
        accepted_pharmacy_id=str(row.accepted_pharmacy_id) if row.accepted_pharmacy_id else None,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def pharmacy_to_domain(row: Pharmacy) -> DomainPharmacy:
    return DomainPharmacy.new(
        str(row.pk),
        row.lng,
        row.lat,
        name=row.name,
        is_active=row.is_active,
        average_rating=row.average_rating,
        stock=[
            DomainStockItem(product_id=str(item.product_id), quantity=item.quantity, price=item.price)
            for item in row.stock.all()
        ],
    )


class DjangoEmergencyOrderStore:

    def _rows(self):
        return EmergencyOrder.objects.prefetch_related("targets", "responses")

    # --- Reads ---

    def get(self, order_id: str) -> Optional[DomainOrder]:
        pk = _order_pk(order_id)
        if pk is None:
            return None
        row = self._rows().filter(pk=pk).first()
        return order_to_domain(row) if row else None

    def list_for_requester(self, user_id: str) -> List[DomainOrder]:
        rows = self._rows().filter(requester_id=_int_pk(user_id)).order_by("-created_at")
        return [order_to_domain(row) for row in rows]

    def list_pending_for_pharmacy(self, pharmacy_id: str) -> List[DomainOrder]:
        rows = (
            self._rows()
            .filter(status=Status.PENDING, targets__pharmacy_id=_int_pk(pharmacy_id))
            .annotate(
                priority_rank=Case(
                    When(priority=EmergencyOrder.Priority.HIGH, then=Value(0)),
                    default=Value(1),
                    output_field=IntegerField(),
                )
            )
            .order_by("priority_rank", "created_at")
        )
        return [order_to_domain(row) for row in rows]

    # --- Writes ---

    def insert(self, order: DomainOrder) -> DomainOrder:
        with transaction.atomic():
            row = EmergencyOrder.objects.create(
                id=uuid.UUID(order.id),
                requester_id=int(order.requester_id),
                requested_medicine_name=order.requested_medicine_name,
                additional_notes=order.additional_notes,
                delivery_address=order.delivery_address,
                lng=order.location[0],
                lat=order.location[1],
                status=order.status.value,
                priority=order.priority.value,
                response_deadline=order.response_deadline,
                created_at=order.created_at,
                updated_at=order.updated_at,
            )
            EmergencyOrderTarget.objects.bulk_create([
                EmergencyOrderTarget(order=row, pharmacy_id=int(pharmacy_id), rank=rank)
                for rank, pharmacy_id in enumerate(order.targeted_pharmacy_ids)
            ])
        return self.get(order.id)

    def record_response(self, order_id: str, response: PharmacyResponse) -> Optional[DomainOrder]:
        """
        Applies the response only while the order is PENDING, the pharmacy is one of
        its targets and has not answered before. Returns None when any of that fails.
        """
        pk = _order_pk(order_id)
        pharmacy_pk = _int_pk(response.pharmacy_id)
        if pk is None or pharmacy_pk is None:
            return None

        changes = {"updated_at": response.responded_at}
        if response.decision == ResponseDecision.ACCEPTED:
            changes.update(status=Status.ACCEPTED, accepted_pharmacy_id=pharmacy_pk)

        try:
            with transaction.atomic():
                # status guard, target check and write are one statement; on SQLite the
                # first statement of the transaction must write, or a concurrent
                # writer gets "database is locked" instead of waiting
                guarded = EmergencyOrder.objects.filter(
                    pk=pk,
                    status=Status.PENDING,
                    targets__pharmacy_id=pharmacy_pk,
                )
                if not guarded.update(**changes):
                    return None

                # one_response_per_pharmacy rejects a second answer and rolls the update back
                EmergencyOrderResponse.objects.create(
                    order_id=pk,
                    pharmacy_id=pharmacy_pk,
                    decision=response.decision.value,
                    rejection_reason=response.rejection_reason or "",
                    responded_at=response.responded_at,
                )
        except IntegrityError:
            return None

        return self.get(order_id)

    def cancel(self, order_id: str, requester_id: str, now: datetime) -> Optional[DomainOrder]:
        pk = _order_pk(order_id)
        if pk is None:
            return None
        updated = EmergencyOrder.objects.filter(
            pk=pk,
            requester_id=_int_pk(requester_id),
            status__in=[Status.PENDING, Status.NO_RESPONSE],
        ).update(status=Status.CANCELED, updated_at=now)
        return self.get(order_id) if updated else None

    def mark_fulfilled(self, order_id: str, now: datetime) -> Optional[DomainOrder]:
        pk = _order_pk(order_id)
        if pk is None:
            return None
        updated = EmergencyOrder.objects.filter(pk=pk, status=Status.ACCEPTED).update(
            status=Status.FULFILLED, updated_at=now
        )
        return self.get(order_id) if updated else None

    def expire_overdue(self, now: datetime) -> int:
        return EmergencyOrder.objects.filter(
            status=Status.PENDING,
            response_deadline__lt=now,
        ).update(status=Status.NO_RESPONSE, updated_at=now)


class DjangoGeoDirectory:

    def find_active_near(self, point: LonLat, radius_m: float) -> List[NearbyPharmacy]:
        min_lng, max_lng, min_lat, max_lat = bounding_box(point, radius_m)
        in_lng = Q()
        for low, high in longitude_ranges(min_lng, max_lng):
            in_lng |= Q(lng__gte=low, lng__lte=high)
        rows = (
            Pharmacy.objects.filter(
                in_lng,
                is_active=True,
                lat__gte=min_lat,
                lat__lte=max_lat,
            )
            .prefetch_related("stock")
        )
        return nearest_within_radius(point, [pharmacy_to_domain(row) for row in rows], radius_m)


class DjangoProductCatalog:

    def find_by_name(self, fragment: str) -> Optional[DomainProduct]:
        row = Product.objects.filter(name__icontains=fragment).order_by("pk").first()
        if row is None:
            return None
        return DomainProduct(id=str(row.pk), name=row.name, sub_category=row.sub_category or None)


class DjangoUserDirectory:

    def find_location(self, user_id: str) -> Optional[LonLat]:
        user = get_user_model().objects.filter(pk=_int_pk(user_id)).only("lng", "lat").first()
        return user.location if user else None
