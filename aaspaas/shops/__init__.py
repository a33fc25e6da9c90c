"""
Shop location enrichment: geocoding shop addresses on create, on address
edits and in a backfill job.
"""

from .shop_locator import BackfillFailure, BackfillReport, ShopLocator, needs_location_predicate

__all__ = [
    "ShopLocator",
    "BackfillReport",
    "BackfillFailure",
    "needs_location_predicate",
]
