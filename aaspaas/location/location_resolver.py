"""
Location resolution with provider fallback.

Turns addresses and search phrases into coordinates by trying the configured
providers in priority order, memoizing answers in a ResultCache and guarding
upstream quota with a RateLimiter. Also serves reverse geocoding, place
suggestions and place-detail lookups.
"""

from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..config.logger_module import log_error, log_info, log_warning
from .address_normalizer import (
    city_from_formatted_address,
    normalize_query,
    trailing_address_lines,
)
from .location_cache import ResultCache, make_cache_key
from .location_config import LocatorSettings
from .location_errors import NotFound, RateLimited, ResolutionFailed, ValidationError
from .location_models import AddressCandidate, GeoPoint, ProviderResult
from .location_providers import GeocodeProvider, build_providers
from .location_rate_limiter import RateLimiter

MIN_SUGGEST_LENGTH = 2


class GeocodingResolver:
    """
    Resolves location queries against an ordered chain of providers.

    resolve() and reverse() walk the chain sequentially and stop at the first
    success; suggest() asks every available provider at once and merges the
    answers.
    """

    def __init__(self,
                 providers: Sequence[GeocodeProvider],
                 rate_limiter: RateLimiter = None,
                 geocode_cache: ResultCache = None,
                 details_cache: ResultCache = None,
                 geocode_ttl_seconds: float = 300.0,
                 details_ttl_seconds: float = 1800.0,
                 default_country: str = "India",
                 max_workers: int = None):
        """
        Initialize the resolver.

        Args:
            providers: Provider adapters in fallback priority order
            rate_limiter: Shared limiter (a default one is created if None)
            geocode_cache: Cache for forward geocodes and suggestions
            details_cache: Cache for reverse geocodes and place details
            geocode_ttl_seconds: Lifetime of geocode/suggestion entries
            details_ttl_seconds: Lifetime of reverse/detail entries
            default_country: Country used in fallback descriptions
            max_workers: Thread pool size for suggestion fan-out
        """
        self.providers = list(providers)
        self.rate_limiter = rate_limiter or RateLimiter()
        self.geocode_cache = geocode_cache or ResultCache(
            max_entries=300, default_ttl_seconds=geocode_ttl_seconds, name="geocode"
        )
        self.details_cache = details_cache or ResultCache(
            max_entries=300, default_ttl_seconds=details_ttl_seconds, name="details"
        )
        self.geocode_ttl = geocode_ttl_seconds
        self.details_ttl = details_ttl_seconds
        self.default_country = default_country

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or max(1, len(self.providers)),
            thread_name_prefix="suggest",
        )

        log_info(
            f"GeocodingResolver initialized with providers: "
            f"{', '.join(p.name for p in self.providers) or 'none'}"
        )

    @classmethod
    def from_settings(cls, settings: LocatorSettings = None) -> "GeocodingResolver":
        """Build providers, caches and the rate limiter from configuration."""
        settings = settings or LocatorSettings.from_env()
        return cls(
            providers=build_providers(settings),
            rate_limiter=RateLimiter(
                max_per_caller=settings.rate_max_per_caller,
                global_max=settings.rate_global_max,
                window_seconds=settings.rate_window_seconds,
                max_tracked_callers=settings.rate_max_tracked_callers,
            ),
            geocode_cache=ResultCache(
                max_entries=settings.cache_max_entries,
                default_ttl_seconds=settings.geocode_cache_ttl,
                name="geocode",
            ),
            details_cache=ResultCache(
                max_entries=settings.cache_max_entries,
                default_ttl_seconds=settings.details_cache_ttl,
                name="details",
            ),
            geocode_ttl_seconds=settings.geocode_cache_ttl,
            details_ttl_seconds=settings.details_cache_ttl,
            default_country=settings.default_country,
        )

    @property
    def available_providers(self) -> List[GeocodeProvider]:
        return [p for p in self.providers if p.available]

    def _remember(self, cache: ResultCache, key: str, value: Any, ttl: float) -> None:
        try:
            cache.set(key, value, ttl_seconds=ttl)
        except Exception as e:
            # Cache writes are best-effort
            log_warning(f"Failed to cache result (continuing): {e}")

    def _run_chain(self,
                   description: str,
                   call: Callable[[GeocodeProvider], ProviderResult],
                   caller_key: str) -> AddressCandidate:
        """
        Try providers in order until one succeeds.

        Raises:
            RateLimited: If admission is denied before any attempt
            ResolutionFailed: If every available provider failed
        """
        last_error = None
        attempted = 0

        for provider in self.providers:
            if not provider.available:
                continue

            self.rate_limiter.check(caller_key)
            attempted += 1

            try:
                result = call(provider)
            except Exception as e:
                log_error(f"{description}: {provider.name} raised unexpectedly: {e}")
                result = ProviderResult.failure(f"unexpected error: {e}")

            if result.success and result.candidate is not None:
                log_info(f"{description} resolved by {provider.name}")
                return result.candidate

            last_error = f"{provider.name}: {result.error or 'no result'}"
            log_warning(f"{description} failed with {last_error}")

        if attempted == 0:
            last_error = "no geocoding provider is configured"

        log_warning(f"{description} exhausted all providers ({last_error})")
        raise ResolutionFailed(f"Could not resolve {description}", last_error=last_error)

    def resolve(self, address_text: str, caller_key: str = "anonymous") -> AddressCandidate:
        """
        Geocode an address or place name to its best candidate.

        Args:
            address_text: Free-text address
            caller_key: Identity used for rate limiting

        Returns:
            AddressCandidate with coordinates

        Raises:
            ValidationError: If the text is blank
            RateLimited: If the caller or global budget is exhausted
            ResolutionFailed: If no provider could resolve the text
        """
        text = (address_text or "").strip()
        if not text:
            raise ValidationError("Address is required")

        key = make_cache_key("geocode", address=text)
        cached = self.geocode_cache.get(key)
        if cached is not None:
            log_info(f"Geocode cache hit for '{text}'")
            return cached

        candidate = self._run_chain(
            f"address '{text}'", lambda provider: provider.geocode(text), caller_key
        )
        self._remember(self.geocode_cache, key, candidate, self.geocode_ttl)
        return candidate

    def resolve_freeform(self, text: str, caller_key: str = "anonymous") -> AddressCandidate:
        """
        Geocode a loose block of text such as a transcribed shop sign.

        If the whole text cannot be resolved, retries with its last few
        non-blank lines, where the address usually sits.
        """
        try:
            return self.resolve(text, caller_key)
        except ResolutionFailed:
            tail = trailing_address_lines(text)
            if tail is None or normalize_query(tail) == normalize_query(text):
                raise
            log_info(f"Retrying geocode with trailing lines: '{tail}'")
            return self.resolve(tail, caller_key)

    def reverse(self, latitude: float, longitude: float,
                caller_key: str = "anonymous") -> AddressCandidate:
        """
        Reverse geocode a point to an address.

        Raises:
            ValidationError: If the coordinates are invalid
            RateLimited: If the caller or global budget is exhausted
            ResolutionFailed: If no provider could describe the point
        """
        point = GeoPoint.of(longitude, latitude)

        key = make_cache_key("reverse", lat=point.latitude, lon=point.longitude)
        cached = self.details_cache.get(key)
        if cached is not None:
            return cached

        candidate = self._run_chain(
            f"point ({point.latitude}, {point.longitude})",
            lambda provider: provider.reverse_geocode(point.latitude, point.longitude),
            caller_key,
        )
        self._remember(self.details_cache, key, candidate, self.details_ttl)
        return candidate

    def describe_point(self, latitude: float, longitude: float,
                       caller_key: str = "anonymous") -> Dict[str, Any]:
        """
        Describe a point for display. Never fails on provider trouble.

        Returns:
            Dictionary with formatted_address, locality, city, state,
            postal_code, country, display_name and coordinates
        """
        point = GeoPoint.of(longitude, latitude)

        try:
            candidate = self.reverse(point.latitude, point.longitude, caller_key)
        except (ResolutionFailed, RateLimited) as e:
            log_warning(f"Reverse geocoding failed, using coordinate label: {e}")
            coords = f"{point.latitude:.4f}, {point.longitude:.4f}"
            return {
                "formatted_address": f"Location at {coords}",
                "street": "",
                "locality": "",
                "city": "",
                "state": "",
                "postal_code": "",
                "country": self.default_country,
                "display_name": f"Location ({coords})",
                "coordinates": point.to_list(),
                "provider": None,
            }

        city = candidate.city or city_from_formatted_address(
            candidate.formatted_address, candidate.country or self.default_country
        )
        locality = candidate.locality or city
        display_parts = [p for p in (locality, city) if p]
        if len(display_parts) == 2 and display_parts[0].lower() == display_parts[1].lower():
            display_parts = display_parts[:1]

        return {
            "formatted_address": candidate.formatted_address,
            "street": candidate.street,
            "locality": locality,
            "city": city,
            "state": candidate.state,
            "postal_code": candidate.postal_code,
            "country": candidate.country or self.default_country,
            "display_name": ", ".join(display_parts) or candidate.display_label,
            "coordinates": point.to_list(),
            "provider": candidate.provider,
        }

    def suggest(self, query: str, limit: int = 5,
                bias: Optional[GeoPoint] = None,
                caller_key: str = "anonymous") -> List[AddressCandidate]:
        """
        Suggest places matching a partial query.

        All available providers are queried concurrently; answers are merged
        in provider priority order, de-duplicated and ranked.

        Args:
            query: Partial place name (at least two characters)
            limit: Maximum number of suggestions
            bias: Optional point to bias results towards
            caller_key: Identity used for rate limiting

        Returns:
            Ranked list of AddressCandidate (possibly empty)

        Raises:
            ValidationError: If the query is too short
            RateLimited: If the caller or global budget is exhausted
        """
        text = (query or "").strip()
        if len(text) < MIN_SUGGEST_LENGTH:
            raise ValidationError(
                f"Query must be at least {MIN_SUGGEST_LENGTH} characters"
            )
        limit = max(1, int(limit))

        key = make_cache_key(
            "suggest",
            query=text,
            lat=bias.latitude if bias else None,
            lon=bias.longitude if bias else None,
            limit=limit,
        )
        cached = self.geocode_cache.get(key)
        if cached is not None:
            return list(cached)

        providers = self.available_providers
        if not providers:
            log_warning("No geocoding provider available for suggestions")
            return []

        self.rate_limiter.check(caller_key)

        futures = [
            self._executor.submit(provider.autocomplete, text, limit, bias)
            for provider in providers
        ]
        done, _ = wait(futures, timeout=max(p.timeout_seconds for p in providers))

        merged = []
        any_success = False
        for priority, (provider, future) in enumerate(zip(providers, futures)):
            if future not in done:
                future.cancel()
                log_warning(f"Suggestions from {provider.name} timed out")
                continue
            try:
                result = future.result()
            except Exception as e:
                log_error(f"Suggestions from {provider.name} raised: {e}")
                continue
            if not result.success:
                log_warning(f"Suggestions from {provider.name} failed: {result.error}")
                continue
            any_success = True
            merged.extend((priority, candidate) for candidate in result.candidates)

        suggestions = self._rank_suggestions(text, merged)[:limit]

        if any_success:
            self._remember(self.geocode_cache, key, tuple(suggestions), self.geocode_ttl)
        return suggestions

    @staticmethod
    def _rank_suggestions(query: str, merged: List[tuple]) -> List[AddressCandidate]:
        """De-duplicate (first seen wins) and order suggestions."""
        needle = normalize_query(query)
        seen = set()
        unique = []
        for priority, candidate in merged:
            label = normalize_query(candidate.display_label)
            if candidate.coordinates is not None:
                identity = (round(candidate.coordinates.longitude, 5),
                            round(candidate.coordinates.latitude, 5), label)
            else:
                identity = (candidate.place_id, None, label)
            if identity in seen:
                continue
            seen.add(identity)
            unique.append((priority, candidate))

        unique.sort(key=lambda item: (
            0 if needle in normalize_query(item[1].display_label) else 1,
            item[0],
            len(item[1].display_label),
        ))
        return [candidate for _, candidate in unique]

    def place_details(self, place_ref: str, provider_name: str = "google",
                      caller_key: str = "anonymous") -> AddressCandidate:
        """
        Look up full details for a suggestion.

        Args:
            place_ref: Provider place reference (Google place_id, OSM "N123")
            provider_name: Provider that issued the reference

        Raises:
            ValidationError: If the reference is blank or the provider unknown
            NotFound: If the provider has no such place
            RateLimited: If the caller or global budget is exhausted
            ResolutionFailed: If the provider is unavailable or errored
        """
        ref = (place_ref or "").strip()
        if not ref:
            raise ValidationError("place_ref is required")

        provider = next((p for p in self.providers if p.name == provider_name), None)
        if provider is None:
            raise ValidationError(f"Unknown provider '{provider_name}'")

        key = make_cache_key("details", provider=provider.name, ref=ref)
        cached = self.details_cache.get(key)
        if cached is not None:
            return cached

        if not provider.available:
            raise ResolutionFailed(
                f"Provider '{provider.name}' is not available",
                last_error=f"{provider.name}: not configured",
            )

        self.rate_limiter.check(caller_key)
        result = provider.place_details(ref)

        if result.not_found:
            raise NotFound(f"Place '{ref}' not found by {provider.name}")
        if not result.success or result.candidate is None:
            log_warning(f"Place details from {provider.name} failed: {result.error}")
            raise ResolutionFailed(
                f"Could not fetch details for '{ref}'",
                last_error=f"{provider.name}: {result.error}",
            )

        self._remember(self.details_cache, key, result.candidate, self.details_ttl)
        return result.candidate

    def close(self) -> None:
        """Shut down the suggestion thread pool."""
        self._executor.shutdown(wait=False)
