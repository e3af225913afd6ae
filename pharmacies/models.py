"""
Purpose: Core data models for the pharmacies domain.
What it does:
Defines read-only views of pharmacies, their stock and the product catalog
without relying on Django ORM constraints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Tuple

# GeoJSON order: (longitude, latitude)
LonLat = Tuple[float, float]


@dataclass(frozen=True)
class StockItem:
    product_id: str
    quantity: int
    price: Decimal


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    sub_category: Optional[str] = None


@dataclass(frozen=True)
class Pharmacy:
    """
    A purely stateless representation of a Pharmacy at a specific point in time.
    """
    id: str
    name: str
    location: LonLat
    is_active: bool = True
    average_rating: float = 0.0
    stock: Tuple[StockItem, ...] = field(default_factory=tuple)

    @classmethod
    def new(
        cls,
        pharmacy_id: str,
        lng: float,
        lat: float,
        *,
        name: str = "",
        is_active: bool = True,
        average_rating: float = 0.0,
        stock=(),
    ) -> Pharmacy:
        return cls(
            id=pharmacy_id,
            name=name or pharmacy_id,
            location=(lng, lat),
            is_active=is_active,
            average_rating=float(average_rating),
            stock=tuple(stock),
        )

    def stocks(self, product_id: str) -> bool:
        return any(item.product_id == product_id for item in self.stock)


@dataclass(frozen=True)
class NearbyPharmacy:
    """
    Output of the geo directory for a single pharmacy:
    the pharmacy plus its great-circle distance to the query point.
    """
    pharmacy: Pharmacy
    distance_m: float
