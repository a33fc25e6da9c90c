"""
Geocoding provider adapters.

Each adapter wraps one external geocoding/place-search backend and
normalizes its responses into AddressCandidate objects. Adapters never raise
on upstream problems: HTTP errors, timeouts and malformed payloads come back
as a failed ProviderResult with a readable reason. A provider without
credentials reports itself unavailable and short-circuits without network I/O.
"""

import functools
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import googlemaps
import pydantic
import requests

from ..config.logger_module import log_info, log_warning
from .address_normalizer import first_non_empty
from .location_config import LocatorSettings
from .location_errors import ProviderFailure, ProviderUnavailable, ValidationError
from .location_models import AddressCandidate, GeoPoint, ProviderResult


# Place types that describe an area rather than a point of interest
AREA_TYPES = {
    "suburb", "neighbourhood", "hamlet", "village", "residential",
    "quarter", "locality", "district",
}


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _first_present(*values: Any) -> Any:
    return next((v for v in values if v is not None and v != ""), None)


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _point_or_none(lon: Any, lat: Any) -> Optional[GeoPoint]:
    lon_f, lat_f = _to_float(lon), _to_float(lat)
    if lon_f is None or lat_f is None:
        return None
    try:
        return GeoPoint.of(lon_f, lat_f)
    except ValidationError:
        return None


def _clamp_confidence(value: Any, default: float) -> float:
    number = _to_float(value)
    if number is None:
        return default
    return min(1.0, max(0.0, number))


def _build_label(name: str, city: str, state: str) -> str:
    """Join name, city and state, skipping parts that repeat the previous one."""
    parts = []
    if name:
        parts.append(name)
    if city and city.lower() != (name or "").lower():
        parts.append(city)
    if state and state.lower() != (city or "").lower():
        parts.append(state)
    return ", ".join(parts)


def _area_first(candidates: List[AddressCandidate]) -> List[AddressCandidate]:
    """Order area-like places before points of interest, then shorter labels."""
    def score(candidate: AddressCandidate):
        place_type = candidate.place_type.lower()
        is_area = any(area in place_type for area in AREA_TYPES)
        return (0 if is_area else 1, len(candidate.display_label))
    return sorted(candidates, key=score)


def _guarded(method):
    """
    Keep an adapter operation from raising.

    An unconfigured provider fails fast without network I/O; a payload that
    cannot be mapped onto AddressCandidate becomes a failed result.
    """
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            if not self.available:
                raise ProviderUnavailable(f"{self.name} is not configured")
            return method(self, *args, **kwargs)
        except ProviderUnavailable as e:
            return ProviderResult.failure(str(e))
        except (pydantic.ValidationError, KeyError, TypeError, ValueError, AttributeError) as e:
            log_warning(f"{self.name} {method.__name__} returned an unusable response: {e}")
            return ProviderResult.failure(f"Malformed {self.name} response: {e}")
    return wrapper

class GeocodeProvider(ABC):
    """
    Common capability interface of a geocoding backend.

    Subclasses implement geocode(); autocomplete, reverse geocoding and
    place details are optional and report "not supported" by default.
    """

    name = "provider"

    def __init__(self,
                 timeout_seconds: float = 10.0,
                 user_agent: str = "AasPaas-App/1.0",
                 country_code: str = "IN",
                 default_country: str = "India"):
        self.timeout_seconds = timeout_seconds
        self.country_code = country_code
        self.default_country = default_country

        self._session = requests.Session()
        self._session.headers.update({
            "User-Agent": user_agent,
            "Accept": "application/json",
        })

    @property
    @abstractmethod
    def available(self) -> bool:
        """True when the provider is configured and may be called."""

    @abstractmethod
    def geocode(self, address: str) -> ProviderResult:
        """Resolve free text to a single best candidate."""

    def autocomplete(self, text: str, limit: int = 5,
                     bias: Optional[GeoPoint] = None) -> ProviderResult:
        return ProviderResult.failure(f"{self.name} does not support autocomplete")

    def reverse_geocode(self, latitude: float, longitude: float) -> ProviderResult:
        return ProviderResult.failure(f"{self.name} does not support reverse geocoding")

    def place_details(self, place_ref: str) -> ProviderResult:
        return ProviderResult.failure(f"{self.name} does not support place details")

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None,
                  headers: Optional[Dict[str, str]] = None) -> Any:
        """
        GET a JSON document.

        Raises:
            ProviderFailure: On timeout, transport error, non-200 status or bad JSON
        """
        try:
            response = self._session.get(
                url, params=params, headers=headers, timeout=self.timeout_seconds
            )
        except requests.exceptions.Timeout:
            raise ProviderFailure(self.name, f"timeout after {self.timeout_seconds}s")
        except requests.exceptions.RequestException as e:
            raise ProviderFailure(self.name, f"request failed: {e}")

        if response.status_code != 200:
            raise ProviderFailure(
                self.name, f"HTTP {response.status_code} {response.text[:200]}".strip()
            )

        try:
            return response.json()
        except ValueError:
            raise ProviderFailure(self.name, "invalid JSON in response")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} available={self.available}>"


class MapplsProvider(GeocodeProvider):
    """
    Mappls (MapmyIndia) geocoding, the primary regional provider.

    The endpoint is taken from configuration; the payload shape varies by
    endpoint, so field names are mapped defensively.
    """

    name = "mappls"

    def __init__(self, api_key: Optional[str], geocode_url: Optional[str], **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.geocode_url = geocode_url

    @property
    def available(self) -> bool:
        return bool(self.api_key and self.geocode_url)

    def _pick_first(self, data: Any) -> Any:
        if not isinstance(data, dict):
            return data[0] if isinstance(data, list) and data else None
        for list_key in ("results", "suggestedLocations", "copResults"):
            items = data.get(list_key)
            if isinstance(items, list) and items:
                return items[0]
            if isinstance(items, dict):
                return items
        return data.get("result") or data

    def _normalize(self, item: Any, fallback_address: str) -> ProviderResult:
        if not isinstance(item, dict):
            return ProviderResult.failure("Invalid geocode response")

        geom = item.get("geom") if isinstance(item.get("geom"), dict) else {}
        point = _point_or_none(
            _first_present(item.get("longitude"), item.get("lon"),
                           item.get("lng"), geom.get("lon"), geom.get("lng")),
            _first_present(item.get("latitude"), item.get("lat"), geom.get("lat")),
        )
        if point is None:
            return ProviderResult.failure("Invalid geocode response")

        components = (item.get("addressComponents") or item.get("address_components")
                      or item.get("components") or {})
        if not isinstance(components, dict):
            components = {}

        formatted = first_non_empty(
            item.get("formattedAddress"), item.get("formatted_address"),
            item.get("placeAddress"), item.get("address")
            if isinstance(item.get("address"), str) else None,
            fallback_address,
        )
        city = first_non_empty(item.get("city"), components.get("city"),
                               components.get("district"), components.get("town"))
        state = first_non_empty(item.get("state"), components.get("state"),
                                components.get("region"))

        candidate = AddressCandidate(
            coordinates=point,
            formatted_address=formatted,
            street=first_non_empty(item.get("street"), components.get("street"),
                                   components.get("road")),
            locality=first_non_empty(item.get("locality"), components.get("locality"),
                                     components.get("subLocality"), components.get("suburb")),
            city=city,
            state=state,
            postal_code=str(_first_present(item.get("postalCode"), item.get("pincode"),
                                           components.get("pincode"),
                                           components.get("postal_code")) or ""),
            country=first_non_empty(item.get("country"), components.get("country"),
                                    self.default_country),
            provider=self.name,
            confidence=_clamp_confidence(item.get("confidenceScore"), 0.8),
            label=formatted,
            place_type="geocode",
            place_id=_optional_str(_first_present(item.get("eLoc"), item.get("mapplsPin"))),
            raw=item,
        )
        return ProviderResult.ok(candidate)

    @_guarded
    def geocode(self, address: str) -> ProviderResult:
        existing = parse_qs(urlparse(self.geocode_url).query)
        params = {}
        if "address" not in existing and "q" not in existing:
            params["address"] = address
        if "country" not in existing and "region" not in existing:
            params["country"] = self.country_code

        try:
            data = self._get_json(
                self.geocode_url,
                params=params,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except ProviderFailure as e:
            log_warning(f"Mappls geocode failed for '{address}': {e.reason}")
            return ProviderResult.failure(e.reason)

        return self._normalize(self._pick_first(data), address)

    @_guarded
    def autocomplete(self, text: str, limit: int = 5,
                     bias: Optional[GeoPoint] = None) -> ProviderResult:
        """A precise geocode answer doubles as a single suggestion."""
        return self.geocode(text)


class GoogleMapsProvider(GeocodeProvider):
    """
    Google Maps geocoding and Places, the general purpose fallback.

    Wraps the googlemaps SDK for geocode, reverse geocode, places
    autocomplete and place details.
    """

    name = "google"

    DETAIL_FIELDS = ["address_component", "geometry", "formatted_address", "name"]
    LOCATION_TYPE_CONFIDENCE = {
        "ROOFTOP": 0.95,
        "RANGE_INTERPOLATED": 0.85,
        "GEOMETRIC_CENTER": 0.7,
        "APPROXIMATE": 0.5,
    }

    def __init__(self, api_key: Optional[str], language: str = "en-IN", **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.language = language
        self._gmaps = None

        if api_key:
            try:
                self._gmaps = googlemaps.Client(
                    key=api_key,
                    timeout=self.timeout_seconds,
                    retry_timeout=self.timeout_seconds,
                )
                log_info("GoogleMapsProvider initialized")
            except ValueError as e:
                log_warning(f"Google Maps client disabled: {e}")

    @property
    def available(self) -> bool:
        return self._gmaps is not None

    @staticmethod
    def _component(components: List[Dict[str, Any]], *types: str) -> str:
        for component in components:
            if all(t in component.get("types", []) for t in types):
                return component.get("long_name") or ""
        return ""

    def _normalize(self, result: Dict[str, Any], place_type: str = "geocode") -> AddressCandidate:
        geometry = result.get("geometry") or {}
        location = geometry.get("location") or {}
        point = _point_or_none(location.get("lng"), location.get("lat"))
        if point is None:
            raise ValueError("result has no usable geometry")

        components = result.get("address_components") or []
        street = " ".join(
            part for part in (self._component(components, "street_number"),
                              self._component(components, "route")) if part
        )
        locality = first_non_empty(
            self._component(components, "sublocality_level_1"),
            self._component(components, "sublocality"),
            self._component(components, "neighborhood"),
            self._component(components, "locality"),
        )
        city = first_non_empty(
            self._component(components, "locality"),
            self._component(components, "administrative_area_level_2"),
        )
        formatted = result.get("formatted_address") or ""

        return AddressCandidate(
            coordinates=point,
            formatted_address=formatted,
            street=street,
            locality=locality,
            city=city,
            state=self._component(components, "administrative_area_level_1"),
            postal_code=self._component(components, "postal_code"),
            country=first_non_empty(self._component(components, "country"),
                                    self.default_country),
            provider=self.name,
            confidence=self.LOCATION_TYPE_CONFIDENCE.get(
                geometry.get("location_type", ""), 0.6
            ),
            label=first_non_empty(result.get("name"), formatted),
            place_type=place_type,
            place_id=_optional_str(result.get("place_id")),
            raw=result,
        )

    def _call(self, description: str, func, *args, **kwargs) -> Any:
        """
        Invoke an SDK method, mapping its exceptions to ProviderFailure.
        """
        try:
            return func(*args, **kwargs)
        except googlemaps.exceptions.Timeout:
            raise ProviderFailure(self.name, f"timeout during {description}")
        except googlemaps.exceptions.ApiError as e:
            raise ProviderFailure(self.name, f"API error during {description}: {e}")
        except (googlemaps.exceptions.TransportError, googlemaps.exceptions.HTTPError) as e:
            raise ProviderFailure(self.name, f"transport error during {description}: {e}")

    @_guarded
    def geocode(self, address: str) -> ProviderResult:
        try:
            results = self._call(
                "geocode", self._gmaps.geocode, address,
                components={"country": self.country_code},
            )
            if not results:
                return ProviderResult.failure("Address not found", not_found=True)
            return ProviderResult.ok(self._normalize(results[0]))
        except ProviderFailure as e:
            log_warning(f"Google geocode failed for '{address}': {e.reason}")
            return ProviderResult.failure(e.reason)
        except (KeyError, TypeError, ValueError, IndexError) as e:
            return ProviderResult.failure(f"Malformed Google geocode response: {e}")

    @_guarded
    def reverse_geocode(self, latitude: float, longitude: float) -> ProviderResult:
        try:
            results = self._call(
                "reverse geocode", self._gmaps.reverse_geocode, (latitude, longitude)
            )
            if not results:
                return ProviderResult.failure("Location not found", not_found=True)
            return ProviderResult.ok(self._normalize(results[0], place_type="reverse"))
        except ProviderFailure as e:
            log_warning(f"Google reverse geocode failed: {e.reason}")
            return ProviderResult.failure(e.reason)
        except (KeyError, TypeError, ValueError, IndexError) as e:
            return ProviderResult.failure(f"Malformed Google reverse response: {e}")

    @_guarded
    def autocomplete(self, text: str, limit: int = 5,
                     bias: Optional[GeoPoint] = None) -> ProviderResult:
        kwargs = {
            "components": {"country": [self.country_code.lower()]},
            "language": self.language,
        }
        if bias is not None:
            kwargs["location"] = (bias.latitude, bias.longitude)
            kwargs["radius"] = 50000

        try:
            predictions = self._call(
                "places autocomplete", self._gmaps.places_autocomplete, text, **kwargs
            )
        except ProviderFailure as e:
            log_warning(f"Google autocomplete failed for '{text}': {e.reason}")
            return ProviderResult.failure(e.reason)

        candidates = []
        for prediction in (predictions or [])[:limit]:
            if not isinstance(prediction, dict):
                continue
            description = prediction.get("description") or ""
            structured = prediction.get("structured_formatting") or {}
            main_text = structured.get("main_text") or ""
            secondary = [s.strip() for s in (structured.get("secondary_text") or "").split(",")]
            candidates.append(AddressCandidate(
                formatted_address=description,
                locality=main_text,
                city=secondary[0] if secondary else "",
                state=next((s for s in secondary[1:] if len(s) > 1), ""),
                country=self.default_country,
                provider=self.name,
                confidence=0.6,
                label=main_text or description.split(",")[0],
                place_type=",".join(prediction.get("types", [])),
                place_id=_optional_str(prediction.get("place_id")),
                raw=prediction,
            ))
        return ProviderResult.ok(*candidates)

    @_guarded
    def place_details(self, place_ref: str) -> ProviderResult:
        try:
            response = self._call(
                "place details", self._gmaps.place, place_ref,
                fields=self.DETAIL_FIELDS, language=self.language,
            )
        except ProviderFailure as e:
            log_warning(f"Google place details failed for '{place_ref}': {e.reason}")
            # The SDK raises ApiError for a NOT_FOUND status
            return ProviderResult.failure(e.reason, not_found="NOT_FOUND" in e.reason)

        status = (response or {}).get("status")
        if status == "NOT_FOUND" or status == "ZERO_RESULTS":
            return ProviderResult.failure("Place not found", not_found=True)
        if status != "OK":
            return ProviderResult.failure(f"Place details status {status}")

        try:
            result = dict(response["result"])
            result.setdefault("place_id", place_ref)
            return ProviderResult.ok(self._normalize(result, place_type="details"))
        except (KeyError, TypeError, ValueError) as e:
            return ProviderResult.failure(f"Malformed Google details response: {e}")


class NominatimProvider(GeocodeProvider):
    """
    OpenStreetMap Nominatim, the free fallback.

    Needs no key; respects the usage policy through the shared rate limiter
    and cache upstream of it.
    """

    name = "nominatim"

    # Half-size of the bias viewbox in degrees (~55 km)
    BIAS_DEGREES = 0.5

    def __init__(self, base_url: str = "https://nominatim.openstreetmap.org",
                 enabled: bool = True, **kwargs):
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")
        self.enabled = enabled

    @property
    def available(self) -> bool:
        return self.enabled

    def _normalize(self, item: Dict[str, Any]) -> Optional[AddressCandidate]:
        point = _point_or_none(item.get("lon"), item.get("lat"))
        if point is None:
            return None

        address = item.get("address") or {}
        display_name = item.get("display_name") or ""
        city = first_non_empty(address.get("city"), address.get("town"),
                               address.get("village"), address.get("municipality"),
                               address.get("county"), address.get("state_district"))
        locality = first_non_empty(address.get("suburb"), address.get("neighbourhood"),
                                   address.get("quarter"), address.get("hamlet"))
        if not locality and display_name:
            first_segment = display_name.split(",")[0].strip()
            if first_segment and first_segment.lower() != city.lower():
                locality = first_segment
        state = first_non_empty(address.get("state"), address.get("region"))

        formatted_parts = [
            address.get("road"),
            first_non_empty(address.get("suburb"), address.get("neighbourhood")),
            city, state, address.get("postcode"),
        ]
        formatted = ", ".join(p for p in formatted_parts if p) or display_name

        osm_type = (item.get("osm_type") or "")[:1].upper()
        osm_id = item.get("osm_id")

        return AddressCandidate(
            coordinates=point,
            formatted_address=formatted,
            street=first_non_empty(address.get("road"), address.get("pedestrian")),
            locality=locality,
            city=city,
            state=state,
            postal_code=str(address.get("postcode") or ""),
            country=first_non_empty(address.get("country"), self.default_country),
            provider=self.name,
            confidence=_clamp_confidence(item.get("importance"), 0.5),
            label=_build_label(locality, city, state) or display_name,
            place_type=item.get("type") or item.get("addresstype") or "",
            place_id=f"{osm_type}{osm_id}" if osm_type and osm_id else None,
            raw=item,
        )

    def _search(self, text: str, limit: int, bias: Optional[GeoPoint]) -> List[AddressCandidate]:
        params = {
            "q": text,
            "format": "jsonv2",
            "addressdetails": 1,
            "limit": limit,
            "dedupe": 1,
            "accept-language": "en",
            "countrycodes": self.country_code.lower(),
        }
        if bias is not None:
            left = bias.longitude - self.BIAS_DEGREES
            right = bias.longitude + self.BIAS_DEGREES
            top = bias.latitude + self.BIAS_DEGREES
            bottom = bias.latitude - self.BIAS_DEGREES
            params["viewbox"] = f"{left:.4f},{top:.4f},{right:.4f},{bottom:.4f}"
            params["bounded"] = 1

        data = self._get_json(f"{self.base_url}/search", params=params)
        if not isinstance(data, list):
            raise ProviderFailure(self.name, "unexpected search payload")
        return [c for c in (self._normalize(item) for item in data if isinstance(item, dict)) if c]

    @_guarded
    def geocode(self, address: str) -> ProviderResult:
        try:
            candidates = self._search(address, limit=1, bias=None)
        except ProviderFailure as e:
            log_warning(f"Nominatim geocode failed for '{address}': {e.reason}")
            return ProviderResult.failure(e.reason)
        if not candidates:
            return ProviderResult.failure("Address not found", not_found=True)
        return ProviderResult.ok(candidates[0])

    @_guarded
    def autocomplete(self, text: str, limit: int = 5,
                     bias: Optional[GeoPoint] = None) -> ProviderResult:
        try:
            candidates = self._search(text, limit=limit, bias=bias)
        except ProviderFailure as e:
            log_warning(f"Nominatim search failed for '{text}': {e.reason}")
            return ProviderResult.failure(e.reason)
        return ProviderResult.ok(*_area_first(candidates))

    @_guarded
    def reverse_geocode(self, latitude: float, longitude: float) -> ProviderResult:
        try:
            data = self._get_json(f"{self.base_url}/reverse", params={
                "format": "json",
                "lat": latitude,
                "lon": longitude,
                "zoom": 18,
                "addressdetails": 1,
            })
        except ProviderFailure as e:
            log_warning(f"Nominatim reverse geocode failed: {e.reason}")
            return ProviderResult.failure(e.reason)

        if not isinstance(data, dict) or not data.get("address"):
            return ProviderResult.failure("Location not found", not_found=True)

        candidate = self._normalize(data)
        if candidate is None:
            return ProviderResult.failure("Invalid reverse geocode response")

        address = data["address"]
        return ProviderResult.ok(candidate.model_copy(update={
            "locality": first_non_empty(address.get("suburb"), address.get("neighbourhood"),
                                        candidate.city),
            "place_type": "reverse",
        }))

    @_guarded
    def place_details(self, place_ref: str) -> ProviderResult:
        """Look up an OSM object by reference such as "W123456" or "N42"."""
        if not place_ref or place_ref[:1].upper() not in ("N", "W", "R") or not place_ref[1:].isdigit():
            return ProviderResult.failure(f"Invalid OSM reference {place_ref!r}")

        try:
            data = self._get_json(f"{self.base_url}/lookup", params={
                "osm_ids": place_ref.upper(),
                "format": "json",
                "addressdetails": 1,
            })
        except ProviderFailure as e:
            log_warning(f"Nominatim lookup failed for '{place_ref}': {e.reason}")
            return ProviderResult.failure(e.reason)

        if not isinstance(data, list) or not data:
            return ProviderResult.failure("Place not found", not_found=True)
        candidate = self._normalize(data[0])
        if candidate is None:
            return ProviderResult.failure("Invalid lookup response")
        return ProviderResult.ok(candidate.model_copy(update={"place_type": "details"}))


class PhotonProvider(GeocodeProvider):
    """
    Komoot Photon search-as-you-type, an optional open autocomplete source.
    """

    name = "photon"

    def __init__(self, base_url: str = "https://photon.komoot.io",
                 enabled: bool = False, language: str = "en", **kwargs):
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")
        self.enabled = enabled
        self.language = language

    @property
    def available(self) -> bool:
        return self.enabled

    def _normalize(self, feature: Dict[str, Any]) -> Optional[AddressCandidate]:
        geometry = feature.get("geometry") or {}
        coordinates = geometry.get("coordinates") or []
        if len(coordinates) != 2:
            return None
        # Photon features are GeoJSON: [lon, lat]
        point = _point_or_none(coordinates[0], coordinates[1])
        if point is None:
            return None

        props = feature.get("properties") or {}
        place_type = first_non_empty(props.get("osm_value"), props.get("type"),
                                     props.get("osm_key"))
        name = first_non_empty(props.get("name"), props.get("city"), props.get("suburb"))
        city = first_non_empty(props.get("city"), props.get("town"), props.get("county"))
        state = props.get("state") or ""
        locality = first_non_empty(props.get("suburb"), props.get("neighbourhood"),
                                   props.get("district"))
        if not locality and place_type in ("village", "hamlet", "residential", "suburb"):
            locality = name

        osm_type = (props.get("osm_type") or "")[:1].upper()
        osm_id = props.get("osm_id")

        return AddressCandidate(
            coordinates=point,
            formatted_address=", ".join(p for p in (name, city, state) if p),
            street=props.get("street") or "",
            locality=locality or name,
            city=city,
            state=state,
            postal_code=str(props.get("postcode") or ""),
            country=first_non_empty(props.get("country"), self.default_country),
            provider=self.name,
            confidence=0.5,
            label=_build_label(name, city, state) or name,
            place_type=place_type,
            place_id=f"{osm_type}{osm_id}" if osm_type and osm_id else None,
            raw=feature,
        )

    @_guarded
    def autocomplete(self, text: str, limit: int = 5,
                     bias: Optional[GeoPoint] = None) -> ProviderResult:
        params = {"q": text, "lang": self.language, "limit": limit}
        if bias is not None:
            params["lat"] = bias.latitude
            params["lon"] = bias.longitude

        try:
            data = self._get_json(f"{self.base_url}/api/", params=params)
        except ProviderFailure as e:
            log_warning(f"Photon search failed for '{text}': {e.reason}")
            return ProviderResult.failure(e.reason)

        features = data.get("features") if isinstance(data, dict) else None
        if not isinstance(features, list):
            return ProviderResult.failure("unexpected Photon payload")

        wanted_country = self.default_country.lower()
        candidates = [
            c for c in (self._normalize(f) for f in features if isinstance(f, dict))
            if c and c.country.lower() == wanted_country
        ]
        return ProviderResult.ok(*_area_first(candidates))

    @_guarded
    def geocode(self, address: str) -> ProviderResult:
        result = self.autocomplete(address, limit=1)
        if result.success and not result.candidates:
            return ProviderResult.failure("Address not found", not_found=True)
        return result


def build_providers(settings: LocatorSettings) -> List[GeocodeProvider]:
    """
    Create provider adapters in fallback priority order.

    Regional provider first, then the general purpose one, then the free
    ones. Adding a provider means appending it here.
    """
    common = {
        "user_agent": settings.user_agent,
        "country_code": settings.country_code,
        "default_country": settings.default_country,
    }
    providers: List[GeocodeProvider] = [
        MapplsProvider(
            settings.mappls_api_key, settings.mappls_geocode_url,
            timeout_seconds=settings.mappls_timeout, **common,
        ),
        GoogleMapsProvider(
            settings.google_api_key,
            timeout_seconds=settings.google_timeout, **common,
        ),
        NominatimProvider(
            settings.nominatim_base_url, enabled=settings.nominatim_enabled,
            timeout_seconds=settings.nominatim_timeout, **common,
        ),
        PhotonProvider(
            settings.photon_base_url, enabled=settings.photon_enabled,
            timeout_seconds=settings.photon_timeout, **common,
        ),
    ]

    if settings.mappls_api_key and not settings.mappls_configured:
        log_warning("MAPPLS_API_KEY is set but MAPPLS_GEOCODE_URL is missing, Mappls disabled")

    enabled = [p.name for p in providers if p.available]
    log_info(f"Geocoding providers enabled: {', '.join(enabled) or 'none'}")
    return providers
