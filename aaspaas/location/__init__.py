"""
Location module for the AasPaas local-business directory.

This module provides functionality for:
- Geocoding addresses with ordered provider fallback
- Reverse geocoding and display descriptions of points
- Place suggestions merged from several providers
- Caching results with TTL and LRU eviction
- Rate limiting upstream geocoding calls per caller and globally

Main classes:
- GeocodingResolver: High-level interface for location operations
- MapplsProvider, GoogleMapsProvider, NominatimProvider, PhotonProvider: Provider adapters
- ResultCache: In-process TTL + LRU cache
- RateLimiter: Fixed-window rate limiting

Errors:
- ValidationError: Malformed input
- ResolutionFailed: Every provider failed
- RateLimited: Admission denied
- NotFound: Lookup had no result
"""

from .location_cache import ResultCache, make_cache_key
from .location_config import LocatorSettings
from .location_errors import (
    LocatorError,
    NotFound,
    ProviderFailure,
    ProviderUnavailable,
    RateLimited,
    ResolutionFailed,
    ValidationError,
)
from .location_models import AddressCandidate, GeoPoint, ProviderResult
from .location_providers import (
    GeocodeProvider,
    GoogleMapsProvider,
    MapplsProvider,
    NominatimProvider,
    PhotonProvider,
    build_providers,
)
from .location_rate_limiter import Admission, RateLimiter
from .location_resolver import GeocodingResolver

__all__ = [
    # Main classes
    "GeocodingResolver",
    "GeocodeProvider",
    "MapplsProvider",
    "GoogleMapsProvider",
    "NominatimProvider",
    "PhotonProvider",
    "build_providers",
    "ResultCache",
    "make_cache_key",
    "RateLimiter",
    "Admission",
    "LocatorSettings",

    # Models
    "GeoPoint",
    "AddressCandidate",
    "ProviderResult",

    # Errors
    "LocatorError",
    "ValidationError",
    "ProviderUnavailable",
    "ProviderFailure",
    "ResolutionFailed",
    "RateLimited",
    "NotFound",
]
