"""
Data models shared by the geocoding providers and the resolver.

Coordinates are always carried as [longitude, latitude], matching GeoJSON
and the 2dsphere index of the shop store.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from .location_errors import ValidationError


class GeoPoint(BaseModel):
    """A point on the globe, serialized as [lon, lat]."""
    model_config = ConfigDict(frozen=True)

    longitude: float = Field(ge=-180.0, le=180.0)
    latitude: float = Field(ge=-90.0, le=90.0)

    @classmethod
    def of(cls, longitude: Any, latitude: Any) -> "GeoPoint":
        """
        Build a point from loosely typed input.

        Raises:
            ValidationError: If either value is missing, non-numeric or out of range
        """
        if isinstance(longitude, bool) or isinstance(latitude, bool):
            raise ValidationError("Coordinates must be numbers")
        try:
            return cls(longitude=float(longitude), latitude=float(latitude))
        except (TypeError, ValueError, pydantic.ValidationError) as e:
            raise ValidationError(
                f"Invalid coordinates (lon={longitude!r}, lat={latitude!r}): {e}"
            )

    @classmethod
    def from_list(cls, coordinates: Sequence[Any]) -> "GeoPoint":
        """Build a point from a [lon, lat] pair."""
        if coordinates is None or isinstance(coordinates, (str, bytes)) or len(coordinates) != 2:
            raise ValidationError(f"Expected [lon, lat], got {coordinates!r}")
        return cls.of(coordinates[0], coordinates[1])

    @classmethod
    def from_geojson(cls, geometry: Optional[Dict[str, Any]]) -> Optional["GeoPoint"]:
        """Read a GeoJSON point; returns None when the geometry is absent."""
        if not geometry or not geometry.get("coordinates"):
            return None
        return cls.from_list(geometry["coordinates"])

    def to_list(self) -> List[float]:
        return [self.longitude, self.latitude]

    def to_geojson(self) -> Dict[str, Any]:
        return {"type": "Point", "coordinates": self.to_list()}


class AddressCandidate(BaseModel):
    """
    Normalized geocoding result.

    Produced by a provider adapter and passed through the resolver unchanged.
    Suggestion entries may lack coordinates when they only carry a place_id
    for a follow-up detail lookup; resolved candidates always have them.
    """
    model_config = ConfigDict(frozen=True)

    coordinates: Optional[GeoPoint] = None
    formatted_address: str = ""
    street: str = ""
    locality: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""
    provider: str = "unknown"
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    label: str = ""
    place_type: str = ""
    place_id: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)

    @property
    def display_label(self) -> str:
        return self.label or self.formatted_address

    def components(self) -> Dict[str, str]:
        """Structured address parts."""
        return {
            "street": self.street,
            "locality": self.locality,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
        }

    def to_response(self) -> Dict[str, Any]:
        """Caller-facing shape of a geocode answer."""
        return {
            "coordinates": self.coordinates.to_list() if self.coordinates else None,
            "formatted_address": self.formatted_address,
            "components": self.components(),
            "provider": self.provider,
        }


@dataclass
class ProviderResult:
    """Outcome of one provider call: candidates on success, a reason on failure."""
    success: bool
    candidates: List[AddressCandidate] = field(default_factory=list)
    error: Optional[str] = None
    # The provider answered but had no match (as opposed to erroring)
    not_found: bool = False

    @property
    def candidate(self) -> Optional[AddressCandidate]:
        return self.candidates[0] if self.candidates else None

    @classmethod
    def ok(cls, *candidates: AddressCandidate) -> "ProviderResult":
        return cls(success=True, candidates=list(candidates))

    @classmethod
    def failure(cls, reason: str, not_found: bool = False) -> "ProviderResult":
        return cls(success=False, error=reason, not_found=not_found)
