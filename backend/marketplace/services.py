"""
Wires the dispatch pipeline to the Django-backed collaborators and
maps authenticated users onto dispatch callers.
"""

import logging

from django.conf import settings
from django.db import transaction

from dispatch import EmergencyDispatcher, policy_from_mapping
from orders.models import Caller, Pharmacist, Requester

from .models import Pharmacy, PharmacyReview
from .repositories import (
    DjangoEmergencyOrderStore,
    DjangoGeoDirectory,
    DjangoProductCatalog,
    DjangoUserDirectory,
)

logger = logging.getLogger(__name__)


def get_dispatcher() -> EmergencyDispatcher:
    return EmergencyDispatcher(
        store=DjangoEmergencyOrderStore(),
        pharmacies=DjangoGeoDirectory(),
        catalog=DjangoProductCatalog(),
        users=DjangoUserDirectory(),
        policy=policy_from_mapping(getattr(settings, "EMERGENCY_ORDERS", None)),
    )


def caller_for(user) -> Caller:
    """
    A pharmacist acts for the first pharmacy they own. Everyone else is a requester.
    """
    user_id = str(user.pk)
    if user.role == user.Roles.PHARMACIST:
        pharmacy = Pharmacy.objects.filter(owner=user).order_by("pk").only("pk").first()
        if pharmacy is not None:
            return Pharmacist(user_id=user_id, pharmacy_id=str(pharmacy.pk))
    return Requester(user_id=user_id)


def rate_pharmacy(pharmacy: Pharmacy, user, rating: int) -> float:
    """
    One review per user; re-rating replaces the earlier value.
    Returns the new average.
    """
    with transaction.atomic():
        PharmacyReview.objects.update_or_create(pharmacy=pharmacy, user=user, defaults={"rating": rating})
        average = pharmacy.recalculate_average_rating()

    logger.info("Pharmacy %s rated %d by user %s (avg %.2f)", pharmacy.pk, rating, user.pk, average)
    return average
