"""
Composable shop-record predicates.

A predicate renders itself as a document-store query dict (to_query) and can
also evaluate a record in process (matches), so the same filter drives both a
real store and the in-memory store. Dotted field paths reach into nested
documents; list values match when any element matches.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from ..location.location_errors import ValidationError
from ..location.location_models import GeoPoint
from .search_geo import meters_to_radians, spherical_distance_meters

# Fields searched token by token in the text fallback
TOKEN_FIELDS = (
    "name",
    "address.raw",
    "address.street",
    "address.locality",
    "address.city",
    "tags",
)

# Fields searched for the whole phrase on short queries
PHRASE_FIELDS = TOKEN_FIELDS + ("description", "category", "primary_category")


def field_values(document: Dict[str, Any], path: str) -> Iterator[Any]:
    """Yield the value(s) at a dotted path, flattening lists."""
    current: List[Any] = [document]
    for part in path.split("."):
        next_level = []
        for item in current:
            if isinstance(item, dict) and part in item:
                value = item[part]
                if isinstance(value, (list, tuple)):
                    next_level.extend(value)
                else:
                    next_level.append(value)
        current = next_level
    return iter(current)


class Predicate(ABC):
    """A filter over shop records."""

    @abstractmethod
    def to_query(self) -> Dict[str, Any]:
        """Render as a document-store query fragment."""

    @abstractmethod
    def matches(self, document: Dict[str, Any]) -> bool:
        """Evaluate against a record in process."""

    def __and__(self, other: "Predicate") -> "Predicate":
        return And([self, other])

    def __or__(self, other: "Predicate") -> "Predicate":
        return Or([self, other])


class MatchAll(Predicate):

    def to_query(self) -> Dict[str, Any]:
        return {}

    def matches(self, document: Dict[str, Any]) -> bool:
        return True


class Equals(Predicate):

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value

    def to_query(self) -> Dict[str, Any]:
        return {self.field: self.value}

    def matches(self, document: Dict[str, Any]) -> bool:
        return any(v == self.value for v in field_values(document, self.field))


class IsMissing(Predicate):
    """Field absent, null or empty string."""

    def __init__(self, field: str):
        self.field = field

    def to_query(self) -> Dict[str, Any]:
        return {self.field: {"$in": [None, ""]}}

    def matches(self, document: Dict[str, Any]) -> bool:
        return all(v is None or v == "" for v in field_values(document, self.field))


class Range(Predicate):
    """Inclusive numeric bounds; either side may be open."""

    def __init__(self, field: str, minimum: Optional[float] = None,
                 maximum: Optional[float] = None):
        self.field = field
        self.minimum = minimum
        self.maximum = maximum

    def to_query(self) -> Dict[str, Any]:
        bounds = {}
        if self.minimum is not None:
            bounds["$gte"] = self.minimum
        if self.maximum is not None:
            bounds["$lte"] = self.maximum
        return {self.field: bounds}

    def matches(self, document: Dict[str, Any]) -> bool:
        for value in field_values(document, self.field):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            if self.minimum is not None and value < self.minimum:
                continue
            if self.maximum is not None and value > self.maximum:
                continue
            return True
        return False


class TextMatch(Predicate):
    """
    Case-insensitive text match on a field.

    exact=True requires the whole value to equal the text; otherwise the
    text may appear anywhere. The text is always matched literally.
    """

    def __init__(self, field: str, text: str, exact: bool = False):
        self.field = field
        self.text = text
        self.exact = exact
        escaped = re.escape(text)
        self.pattern = f"^{escaped}$" if exact else escaped
        self._regex = re.compile(self.pattern, re.IGNORECASE)

    def to_query(self) -> Dict[str, Any]:
        return {self.field: {"$regex": self.pattern, "$options": "i"}}

    def matches(self, document: Dict[str, Any]) -> bool:
        return any(
            isinstance(v, str) and self._regex.search(v)
            for v in field_values(document, self.field)
        )


class WithinRadius(Predicate):
    """Records whose GeoJSON point lies within radius_meters of center."""

    def __init__(self, center: GeoPoint, radius_meters: float, field: str = "location"):
        self.center = center
        self.radius_meters = radius_meters
        self.field = field

    def to_query(self) -> Dict[str, Any]:
        return {self.field: {"$geoWithin": {"$centerSphere": [
            self.center.to_list(), meters_to_radians(self.radius_meters)
        ]}}}

    def matches(self, document: Dict[str, Any]) -> bool:
        point = record_point(document, self.field)
        if point is None:
            return False
        return spherical_distance_meters(self.center, point) <= self.radius_meters


class And(Predicate):

    def __init__(self, parts: Iterable[Predicate]):
        self.parts = [p for p in parts if not isinstance(p, MatchAll)]

    def to_query(self) -> Dict[str, Any]:
        if not self.parts:
            return {}
        if len(self.parts) == 1:
            return self.parts[0].to_query()
        return {"$and": [p.to_query() for p in self.parts]}

    def matches(self, document: Dict[str, Any]) -> bool:
        return all(p.matches(document) for p in self.parts)


class Or(Predicate):

    def __init__(self, parts: Iterable[Predicate]):
        self.parts = list(parts)

    def to_query(self) -> Dict[str, Any]:
        if len(self.parts) == 1:
            return self.parts[0].to_query()
        return {"$or": [p.to_query() for p in self.parts]}

    def matches(self, document: Dict[str, Any]) -> bool:
        return any(p.matches(document) for p in self.parts)


def record_point(document: Dict[str, Any], field: str = "location") -> Optional[GeoPoint]:
    """Read a record's GeoJSON point, or None when absent or malformed."""
    geometry = document.get(field)
    if not isinstance(geometry, dict):
        return None
    coordinates = geometry.get("coordinates")
    if not isinstance(coordinates, (list, tuple)) or len(coordinates) != 2:
        return None
    try:
        return GeoPoint.of(coordinates[0], coordinates[1])
    except ValidationError:
        return None


def all_tokens_match(tokens: Sequence[str], fields: Sequence[str] = TOKEN_FIELDS) -> Predicate:
    """Every token must appear in at least one of the fields."""
    return And([Or([TextMatch(f, token) for f in fields]) for token in tokens])


def any_field_contains(phrase: str, fields: Sequence[str] = PHRASE_FIELDS) -> Predicate:
    """The whole phrase appears in any one of the fields."""
    return Or([TextMatch(f, phrase) for f in fields])
