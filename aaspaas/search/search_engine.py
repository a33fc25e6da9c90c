"""
Proximity search over shop records.

Chooses between four strategies for a request:
1. Owner listing: an owner (or admin) browsing their own shops, any status
2. Geospatial: a center point, nearest first within a radius
3. Text: a query without coordinates, geocoded to a center when possible,
   otherwise matched token by token against names, addresses and tags
4. Browse: neither, filtered and newest first
"""

import math
from typing import Any, Dict, List, Optional, Sequence, Union

from ..config.logger_module import log_info
from ..location.address_normalizer import split_tokens
from ..location.location_errors import RateLimited, ResolutionFailed, ValidationError
from ..location.location_models import GeoPoint
from ..location.location_resolver import GeocodingResolver
from .search_geo import distance_km_rounded
from .search_models import Caller, SearchFilters, SearchPage
from .search_predicates import (
    And,
    Equals,
    Or,
    Predicate,
    Range,
    TextMatch,
    WithinRadius,
    all_tokens_match,
    any_field_contains,
    record_point,
)
from .shop_store import NEWEST_FIRST, TOP_RATED_FIRST, ShopStore

SORT_OPTIONS = ("proximity", "rating", "newest")

# Queries with at most this many tokens also match the whole phrase
SHORT_QUERY_TOKENS = 2

# Fields never returned to callers
HIDDEN_FIELDS = ("ocr_data",)


class ProximitySearchEngine:
    """
    Finds shops near a point or matching a query.

    The engine is stateless between requests; geocoding of text queries goes
    through the shared GeocodingResolver and its cache and rate limits.
    """

    def __init__(self,
                 store: ShopStore,
                 resolver: GeocodingResolver = None,
                 max_limit: int = 100,
                 default_radius_meters: float = 3000.0):
        """
        Initialize the search engine.

        Args:
            store: Shop document store
            resolver: Geocoder for text queries (text matching only if None)
            max_limit: Upper bound on page size
            default_radius_meters: Radius used when a request gives none
        """
        self.store = store
        self.resolver = resolver
        self.max_limit = max_limit
        self.default_radius_meters = default_radius_meters

    def build_predicate(self, filters: SearchFilters, caller: Caller) -> Predicate:
        """
        AND together the status rule and every attribute filter present.

        Status is restricted to live shops unless the caller manages the
        requested owner_id.
        """
        parts: List[Predicate] = []

        if filters.owner_id and caller.can_manage(filters.owner_id):
            parts.append(Equals("owner_id", filters.owner_id))
        else:
            parts.append(Equals("status", "live"))
            if filters.owner_id:
                parts.append(Equals("owner_id", filters.owner_id))

        if filters.category:
            parts.append(Equals("category", filters.category))
        if filters.category_id:
            parts.append(Equals("primary_category", filters.category_id))
        if filters.min_rating is not None:
            parts.append(Range("ratings.avg", minimum=filters.min_rating))
        if filters.price_range:
            parts.append(Equals("price_range", filters.price_range))
        if filters.min_average_price is not None or filters.max_average_price is not None:
            parts.append(Range("average_price",
                               minimum=filters.min_average_price,
                               maximum=filters.max_average_price))
        if filters.locality:
            parts.append(TextMatch("address.locality", filters.locality.strip(), exact=True))
        if filters.city_slug:
            parts.append(Equals("city_slug", filters.city_slug))

        return And(parts)

    @staticmethod
    def text_predicate(text: str) -> Predicate:
        """Every token somewhere; short queries may also match as a phrase."""
        tokens = split_tokens(text)
        predicate = all_tokens_match(tokens)
        if len(tokens) <= SHORT_QUERY_TOKENS:
            predicate = Or([predicate, any_field_contains(" ".join(tokens))])
        return predicate

    def search(self,
               center: Union[GeoPoint, Sequence[float], None] = None,
               radius_meters: Optional[float] = None,
               filters: Union[SearchFilters, Dict[str, Any], None] = None,
               text_query: Optional[str] = None,
               page: int = 1,
               limit: int = 20,
               sort: str = "proximity",
               caller: Optional[Caller] = None) -> SearchPage:
        """
        Run a search.

        Args:
            center: Search center as GeoPoint or [lon, lat]
            radius_meters: Search radius (default from configuration)
            filters: SearchFilters or a dict of filter values
            text_query: Free-text place or shop query
            page: 1-indexed page number (values below 1 become 1)
            limit: Page size, clamped to [1, max_limit]
            sort: "proximity", "rating" or "newest"
            caller: Identity of the requester

        Returns:
            SearchPage with results and pagination

        Raises:
            ValidationError: On invalid center, radius, sort or filters
        """
        caller = caller or Caller()
        if not isinstance(filters, SearchFilters):
            filters = SearchFilters.parse(filters)
        center = self._coerce_center(center)
        radius = self._coerce_radius(radius_meters)
        page, limit = self._coerce_paging(page, limit)
        if sort not in SORT_OPTIONS:
            raise ValidationError(f"sort must be one of {', '.join(SORT_OPTIONS)}")
        text = (text_query or "").strip() or None
        skip = (page - 1) * limit

        base = self.build_predicate(filters, caller)

        if filters.owner_id and caller.can_manage(filters.owner_id):
            log_info(f"Owner listing for {filters.owner_id} (page={page}, limit={limit})")
            records = self.store.find(base, sort=NEWEST_FIRST, skip=skip, limit=limit)
            return SearchPage(
                results=[self._public(r) for r in records],
                total=self.store.count_matching(base),
                page=page, limit=limit, mode="owner",
            )

        if center is None and text:
            center = self._geocode_query(text, caller)
            if center is None:
                predicate = And([base, self.text_predicate(text)])
                return self._list(predicate, sort, page, limit, mode="text", query=text)

        if center is not None:
            return self._near(center, radius, base, sort, page, limit, query=text)

        return self._list(base, sort, page, limit, mode="browse")

    def _geocode_query(self, text: str, caller: Caller) -> Optional[GeoPoint]:
        if self.resolver is None:
            log_info(f"No geocoder for '{text}', falling back to tokenized text search")
            return None
        try:
            candidate = self.resolver.resolve(text, caller.caller_key)
        except (ResolutionFailed, RateLimited) as e:
            log_info(f"Geocoding unavailable for '{text}' ({e}), "
                     f"falling back to tokenized text search")
            return None
        log_info(f"Geocoded '{text}' to {candidate.coordinates.to_list()}")
        return candidate.coordinates

    def _near(self, center: GeoPoint, radius: float, base: Predicate, sort: str,
              page: int, limit: int, query: Optional[str] = None) -> SearchPage:
        order = {"rating": TOP_RATED_FIRST, "newest": NEWEST_FIRST}.get(sort)
        hits = self.store.find_near(
            center, radius, base, sort=order, skip=(page - 1) * limit, limit=limit
        )

        results = []
        for record, _native_distance in hits:
            shop = self._public(record)
            point = record_point(record)
            shop["distance"] = distance_km_rounded(center, point) if point else None
            results.append(shop)

        total = self.store.count_matching(And([base, WithinRadius(center, radius)]))
        log_info(
            f"Proximity search at {center.to_list()} within {radius}m: "
            f"{len(results)} of {total}"
        )
        return SearchPage(results=results, total=total, page=page, limit=limit,
                          mode="geo", center=center, query=query)

    def _list(self, predicate: Predicate, sort: str, page: int, limit: int,
              mode: str, query: Optional[str] = None) -> SearchPage:
        order = TOP_RATED_FIRST if sort == "rating" else NEWEST_FIRST
        records = self.store.find(predicate, sort=order,
                                  skip=(page - 1) * limit, limit=limit)
        return SearchPage(
            results=[self._public(r) for r in records],
            total=self.store.count_matching(predicate),
            page=page, limit=limit, mode=mode, query=query,
        )

    @staticmethod
    def _public(record: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in record.items() if k not in HIDDEN_FIELDS}

    @staticmethod
    def _coerce_center(center) -> Optional[GeoPoint]:
        if center is None or isinstance(center, GeoPoint):
            return center
        return GeoPoint.from_list(center)

    def _coerce_radius(self, radius_meters) -> float:
        if radius_meters is None:
            return self.default_radius_meters
        try:
            radius = float(radius_meters)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid radius: {radius_meters!r}")
        if not math.isfinite(radius) or radius <= 0:
            raise ValidationError(f"Radius must be a positive number, got {radius_meters!r}")
        return radius

    def _coerce_paging(self, page, limit):
        try:
            page = int(page)
            limit = int(limit)
        except (TypeError, ValueError):
            raise ValidationError("page and limit must be integers")
        return max(1, page), min(max(1, limit), self.max_limit)
