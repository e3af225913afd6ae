import uuid

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Avg
from django.utils import timezone


class Pharmacy(models.Model):
    """
    A physical pharmacy run by a pharmacist.
    Location and stock feed the emergency dispatch engine.
    """
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='pharmacies')
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    address = models.TextField()
    phone = models.CharField(max_length=32, blank=True)

    # Geolocation for the "nearby" search
    lng = models.FloatField(default=35.9106)  # Default to Amman
    lat = models.FloatField(default=31.9539)

    is_active = models.BooleanField(default=True)

    # Kept in sync with reviews by recalculate_average_rating()
    average_rating = models.FloatField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "pharmacies"
        indexes = [models.Index(fields=["is_active", "lat", "lng"], name="pharmacy_active_geo_idx")]

    def recalculate_average_rating(self):
        result = self.reviews.aggregate(avg=Avg("rating"))
        self.average_rating = float(result["avg"] or 0)
        self.save(update_fields=["average_rating", "updated_at"])
        return self.average_rating

    def __str__(self):
        return self.name


class Product(models.Model):
    """
    Catalog entry. Emergency orders resolve free-text medicine names against it.
    """
    name = models.CharField(max_length=255)
    sub_category = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name


class StockItem(models.Model):
    """
    A product a pharmacy carries, with its own quantity and price.
    """
    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='stock')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='stock_items')
    quantity = models.PositiveIntegerField(default=0)
    price = models.DecimalField(max_digits=10, decimal_places=2)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["pharmacy", "product"], name="unique_stock_item"),
        ]

    def __str__(self):
        return f"{self.pharmacy} - {self.product} x{self.quantity}"


class PharmacyReview(models.Model):
    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='reviews')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='pharmacy_reviews')
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(0), MaxValueValidator(5)])
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["pharmacy", "user"], name="one_review_per_user"),
        ]


class EmergencyOrder(models.Model):
    """
    A medicine request broadcast to a bounded set of nearby pharmacies.
    Tracks lifecycle: pending -> accepted -> fulfilled, pending -> no_response,
    pending/no_response -> canceled.
    """
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        ACCEPTED = "accepted", "Accepted by Pharmacy"
        FULFILLED = "fulfilled", "Fulfilled"
        CANCELED = "canceled", "Canceled"
        NO_RESPONSE = "no_response", "No Response"

    class Priority(models.TextChoices):
        HIGH = "high", "High"
        NORMAL = "normal", "Normal"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    requester = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='emergency_orders')

    # Canonical catalog name, not the raw text the requester typed
    requested_medicine_name = models.CharField(max_length=255)
    additional_notes = models.TextField(blank=True)
    delivery_address = models.TextField()

    # Point the pharmacies were ranked from
    lng = models.FloatField()
    lat = models.FloatField()

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.HIGH)

    # Set only by the first accept
    accepted_pharmacy = models.ForeignKey(
        Pharmacy, on_delete=models.SET_NULL, null=True, blank=True, related_name='accepted_emergency_orders'
    )

    response_deadline = models.DateTimeField()

    # Set by the dispatcher's clock, so no auto_now here
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=["status", "response_deadline"], name="emergency_status_deadline_idx"),
            models.Index(fields=["requester", "created_at"], name="emergency_requester_idx"),
        ]

    def __str__(self):
        return f"Emergency order {self.id} - {self.status}"


class EmergencyOrderTarget(models.Model):
    """
    One pharmacy the order was broadcast to. rank 0 is the best-scored pharmacy.
    """
    order = models.ForeignKey(EmergencyOrder, on_delete=models.CASCADE, related_name='targets')
    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='emergency_targets')
    rank = models.PositiveSmallIntegerField()

    class Meta:
        ordering = ["rank"]
        constraints = [
            models.UniqueConstraint(fields=["order", "pharmacy"], name="unique_emergency_target"),
        ]


class EmergencyOrderResponse(models.Model):
    class Decision(models.TextChoices):
        ACCEPTED = "accepted", "Accepted"
        REJECTED = "rejected", "Rejected"

    order = models.ForeignKey(EmergencyOrder, on_delete=models.CASCADE, related_name='responses')
    pharmacy = models.ForeignKey(Pharmacy, on_delete=models.CASCADE, related_name='emergency_responses')
    decision = models.CharField(max_length=10, choices=Decision.choices)
    rejection_reason = models.TextField(blank=True)
    responded_at = models.DateTimeField()

    class Meta:
        ordering = ["responded_at", "id"]
        constraints = [
            models.UniqueConstraint(fields=["order", "pharmacy"], name="one_response_per_pharmacy"),
        ]
