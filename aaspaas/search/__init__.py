"""
Search module for the AasPaas local-business directory.

Main classes:
- ProximitySearchEngine: Owner, geospatial, text and browse search
- ShopStore: Storage interface; InMemoryShopStore implements it in process
- SearchFilters, Caller, SearchPage: Request and response value objects
"""

from .search_engine import ProximitySearchEngine
from .search_geo import distance_km_rounded, haversine_km
from .search_models import Caller, SearchFilters, SearchPage
from .search_predicates import all_tokens_match, any_field_contains
from .shop_store import InMemoryShopStore, ShopStore

__all__ = [
    "ProximitySearchEngine",
    "ShopStore",
    "InMemoryShopStore",
    "SearchFilters",
    "Caller",
    "SearchPage",
    "haversine_km",
    "distance_km_rounded",
    "all_tokens_match",
    "any_field_contains",
]
