from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List

import pytest

from dispatch import EmergencyDispatcher
from orders import InMemoryEmergencyOrderStore
from pharmacies import (
    InMemoryProductCatalog,
    InMemoryUserDirectory,
    NearbyPharmacy,
    Pharmacy,
    Product,
    StockItem,
)

# Requester from the Panadol scenario, GeoJSON order
REQUESTER_LOCATION = (35.9, 31.9)

PANADOL = Product(id="prod_panadol", name="Panadol Extra 500mg", sub_category="Painkillers")
BRUFEN = Product(id="prod_brufen", name="Brufen 400mg", sub_category="Painkillers")


class FixedDistanceDirectory:
    """
    Geo directory that reports preset distances instead of computing them,
    so scores can be asserted exactly.
    """
    def __init__(self):
        self._entries: Dict[str, NearbyPharmacy] = {}
        self.calls: List[tuple] = []

    def place(self, pharmacy: Pharmacy, distance_m: float) -> None:
        self._entries[pharmacy.id] = NearbyPharmacy(pharmacy=pharmacy, distance_m=distance_m)

    def find_active_near(self, point, radius_m):
        self.calls.append((point, radius_m))
        nearby = [
            entry for entry in self._entries.values()
            if entry.pharmacy.is_active and entry.distance_m <= radius_m
        ]
        nearby.sort(key=lambda entry: (entry.distance_m, entry.pharmacy.id))
        return nearby


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def stocked(*products: Product):
    return [StockItem(product_id=p.id, quantity=10, price=Decimal("2.50")) for p in products]


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def directory():
    return FixedDistanceDirectory()


@pytest.fixture
def catalog():
    c = InMemoryProductCatalog()
    c.add(PANADOL)
    c.add(BRUFEN)
    return c


@pytest.fixture
def users():
    u = InMemoryUserDirectory()
    u.set_location("user_1", REQUESTER_LOCATION)
    return u


@pytest.fixture
def store():
    return InMemoryEmergencyOrderStore()


@pytest.fixture
def panadol_pharmacies(directory):
    """
    500 m / rating 5 / stocked   -> 95
    2000 m / rating 3 / stocked  -> 68
    4800 m / rating 0 / no stock -> 2
    """
    near = Pharmacy.new("ph_near", 35.904, 31.902, name="Near", average_rating=5, stock=stocked(PANADOL))
    mid = Pharmacy.new("ph_mid", 35.92, 31.91, name="Mid", average_rating=3, stock=stocked(PANADOL))
    far = Pharmacy.new("ph_far", 35.95, 31.93, name="Far", average_rating=0, stock=stocked(BRUFEN))
    directory.place(near, 500)
    directory.place(mid, 2000)
    directory.place(far, 4800)
    return near, mid, far


@pytest.fixture
def dispatcher(store, directory, catalog, users, clock):
    return EmergencyDispatcher(store=store, pharmacies=directory, catalog=catalog, users=users, clock=clock)


# -------------------------
# Django fixtures
# -------------------------

# Requester point and pharmacies due north of it at ~500 m, ~2000 m and ~4800 m
HOME = (35.9, 31.9)


@pytest.fixture
def customer(db):
    from django.contrib.auth import get_user_model
    return get_user_model().objects.create_user(
        username="customer", password="pass", lng=HOME[0], lat=HOME[1], address="Rainbow St 12",
    )


@pytest.fixture
def make_pharmacist(db):
    from django.contrib.auth import get_user_model
    User = get_user_model()

    def make(username):
        return User.objects.create_user(username=username, password="pass", role=User.Roles.PHARMACIST)
    return make


@pytest.fixture
def panadol(db):
    from backend.marketplace.models import Product
    return Product.objects.create(name="Panadol Extra 500mg", sub_category="Painkillers")


@pytest.fixture
def brufen(db):
    from backend.marketplace.models import Product
    return Product.objects.create(name="Brufen 400mg", sub_category="Painkillers")


@pytest.fixture
def orm_pharmacies(make_pharmacist, panadol, brufen):
    """
    near: ~500 m, rating 5, stocks Panadol
    mid:  ~2000 m, rating 3, stocks Panadol
    far:  ~4800 m, rating 0, stocks Brufen only
    """
    from backend.marketplace.models import Pharmacy, StockItem

    def build(name, lat, rating, product):
        pharmacy = Pharmacy.objects.create(
            owner=make_pharmacist(f"{name}_owner"),
            name=name,
            address=f"{name} street",
            lng=HOME[0],
            lat=lat,
            average_rating=rating,
        )
        StockItem.objects.create(pharmacy=pharmacy, product=product, quantity=10, price=Decimal("2.50"))
        return pharmacy

    near = build("near", 31.9045, 5, panadol)
    mid = build("mid", 31.918, 3, panadol)
    far = build("far", 31.9432, 0, brufen)
    return near, mid, far
