from typing import Optional, Tuple

from django.contrib.auth.models import AbstractUser
from django.db import models
from phonenumber_field.modelfields import PhoneNumberField


class User(AbstractUser):
    class Roles(models.TextChoices):
        CUSTOMER = "CUSTOMER", "Customer"
        PHARMACIST = "PHARMACIST", "Pharmacist"
        ADMIN = "ADMIN", "Admin"

    # Role fields define permissions in the app
    # CUSTOMER: Can place and cancel emergency orders
    # PHARMACIST: Runs a pharmacy, answers the emergency orders it was targeted for
    # ADMIN: Superuser access
    role = models.CharField(max_length=20, choices=Roles.choices, default=Roles.CUSTOMER)

    # Validated against Jordanian numbers (+962...) when no country code is given
    phone_number = PhoneNumberField(blank=True, null=True, unique=True, region="JO")

    address = models.TextField(blank=True)

    # Stored home location, used when an emergency order arrives without coordinates
    lng = models.FloatField(blank=True, null=True)
    lat = models.FloatField(blank=True, null=True)

    @property
    def location(self) -> Optional[Tuple[float, float]]:
        if self.lng is None or self.lat is None:
            return None
        return (self.lng, self.lat)

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"
