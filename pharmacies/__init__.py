"""
Pharmacies domain package.

Public API:
- Domain models: Pharmacy, StockItem, Product, NearbyPharmacy
- Geo helpers: haversine_meters, nearest_within_radius
- In-memory collaborators used by the dispatcher outside Django
"""
from .models import Pharmacy, StockItem, Product, NearbyPharmacy
from .geo import haversine_meters, nearest_within_radius
from .directory import InMemoryGeoDirectory, InMemoryProductCatalog, InMemoryUserDirectory

__all__ = [
    "Pharmacy",
    "StockItem",
    "Product",
    "NearbyPharmacy",
    "haversine_meters",
    "nearest_within_radius",
    "InMemoryGeoDirectory",
    "InMemoryProductCatalog",
    "InMemoryUserDirectory",
]
