"""
Purpose: In-memory collaborators for the dispatch engine.
What it does:
Holds pharmacies, products and user locations in plain dicts and answers
the three lookups the dispatcher needs:
- find_active_near(point, radius_m) -> List[NearbyPharmacy]
- find_by_name(fragment) -> Optional[Product]
- find_location(user_id) -> Optional[LonLat]

The Django backend provides ORM-backed equivalents with the same method names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .geo import nearest_within_radius
from .models import LonLat, NearbyPharmacy, Pharmacy, Product


@dataclass
class InMemoryGeoDirectory:
    _pharmacies: Dict[str, Pharmacy] = field(default_factory=dict)

    def add(self, pharmacy: Pharmacy) -> None:
        self._pharmacies[pharmacy.id] = pharmacy

    def get(self, pharmacy_id: str) -> Optional[Pharmacy]:
        return self._pharmacies.get(pharmacy_id)

    def find_active_near(self, point: LonLat, radius_m: float) -> List[NearbyPharmacy]:
        return nearest_within_radius(point, self._pharmacies.values(), radius_m)


@dataclass
class InMemoryProductCatalog:
    # insertion order decides which product wins a fuzzy match
    _products: Dict[str, Product] = field(default_factory=dict)

    def add(self, product: Product) -> None:
        self._products[product.id] = product

    def find_by_name(self, fragment: str) -> Optional[Product]:
        """
        First product whose name contains fragment, ignoring case.
        """
        needle = fragment.casefold()
        for product in self._products.values():
            if needle in product.name.casefold():
                return product
        return None


@dataclass
class InMemoryUserDirectory:
    _locations: Dict[str, LonLat] = field(default_factory=dict)

    def set_location(self, user_id: str, location: LonLat) -> None:
        self._locations[user_id] = location

    def find_location(self, user_id: str) -> Optional[LonLat]:
        return self._locations.get(user_id)
