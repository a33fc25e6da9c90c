"""
Shop record storage interface.

The production store is an external document database with a 2dsphere index
on `location`; this module defines the operations the search engine and the
shop locator need from it, and an in-memory implementation used by tests
and the command line.
"""

import copy
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config.logger_module import log_info
from ..location.location_models import GeoPoint
from .search_geo import spherical_distance_meters
from .search_predicates import Predicate, field_values, record_point

# Sort specification: [(field, 1 | -1), ...] applied left to right
SortSpec = Optional[Sequence[Tuple[str, int]]]

NEWEST_FIRST = [("created_at", -1)]
TOP_RATED_FIRST = [("ratings.avg", -1)]


class ShopStore(ABC):
    """Operations required from the shop document store."""

    @abstractmethod
    def find_near(self,
                  center: GeoPoint,
                  max_distance_meters: float,
                  predicate: Predicate,
                  sort: SortSpec = None,
                  skip: int = 0,
                  limit: int = 20) -> List[Tuple[Dict[str, Any], float]]:
        """
        Records within max_distance_meters of center that match predicate.

        Returns:
            (record, native distance in meters) pairs, nearest first unless
            an explicit sort is given
        """

    @abstractmethod
    def find(self, predicate: Predicate, sort: SortSpec = None,
             skip: int = 0, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Records matching predicate."""

    @abstractmethod
    def count_matching(self, predicate: Predicate) -> int:
        """Number of records matching predicate."""

    @abstractmethod
    def get(self, shop_id: str) -> Optional[Dict[str, Any]]:
        """Record by id, or None."""

    @abstractmethod
    def save(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert or replace a record; assigns `_id` when missing."""


def _sort_value(record: Dict[str, Any], field: str):
    # Missing values sort first ascending and last descending
    value = next(field_values(record, field), None)
    if value is None:
        return (0, 0)
    return (1, value)


def sort_records(records: List[Any], sort: SortSpec,
                 record_of=lambda item: item) -> List[Any]:
    """Stable multi-key sort of records (or items wrapping records)."""
    ordered = list(records)
    for field, direction in reversed(list(sort or [])):
        ordered.sort(key=lambda item: _sort_value(record_of(item), field),
                     reverse=direction < 0)
    return ordered


class InMemoryShopStore(ShopStore):
    """
    Dict-backed shop store evaluating predicates in process.

    Distances are computed on a sphere of the same radius a 2dsphere index
    uses, so results agree with the production store. Records are copied on
    the way in and out.
    """

    def __init__(self, records: Sequence[Dict[str, Any]] = ()):
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        for record in records:
            self.save(record)
        log_info(f"InMemoryShopStore initialized with {len(self._records)} shops")

    def _snapshot(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._records.values())

    def find_near(self, center, max_distance_meters, predicate,
                  sort=None, skip=0, limit=20):
        hits = []
        for record in self._snapshot():
            point = record_point(record)
            if point is None or not predicate.matches(record):
                continue
            distance = spherical_distance_meters(center, point)
            if distance <= max_distance_meters:
                hits.append((record, distance))

        hits.sort(key=lambda hit: hit[1])
        if sort:
            hits = sort_records(hits, sort, record_of=lambda hit: hit[0])

        page = hits[skip:skip + limit] if limit is not None else hits[skip:]
        return [(copy.deepcopy(record), distance) for record, distance in page]

    def find(self, predicate, sort=None, skip=0, limit=None):
        matched = [r for r in self._snapshot() if predicate.matches(r)]
        matched = sort_records(matched, sort)
        page = matched[skip:skip + limit] if limit is not None else matched[skip:]
        return [copy.deepcopy(r) for r in page]

    def count_matching(self, predicate):
        return sum(1 for r in self._snapshot() if predicate.matches(r))

    def get(self, shop_id):
        with self._lock:
            record = self._records.get(shop_id)
        return copy.deepcopy(record) if record is not None else None

    def save(self, record):
        stored = copy.deepcopy(record)
        if not stored.get("_id"):
            stored["_id"] = uuid.uuid4().hex
        with self._lock:
            self._records[stored["_id"]] = stored
        return copy.deepcopy(stored)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
