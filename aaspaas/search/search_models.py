"""
Value objects for proximity search requests and responses.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..location.location_errors import ValidationError
from ..location.location_models import GeoPoint

SHOP_STATUSES = ("pending", "live", "suspended")


class SearchFilters(BaseModel):
    """Optional attribute filters AND-ed onto a search."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    category: Optional[str] = None
    category_id: Optional[str] = None
    min_rating: Optional[float] = Field(default=None, ge=0.0, le=5.0)
    price_range: Optional[Literal["low", "medium", "high"]] = None
    min_average_price: Optional[float] = Field(default=None, ge=0.0)
    max_average_price: Optional[float] = Field(default=None, ge=0.0)
    locality: Optional[str] = None
    owner_id: Optional[str] = None
    city_slug: Optional[str] = None

    @model_validator(mode="after")
    def check_price_bounds(self):
        if (self.min_average_price is not None and self.max_average_price is not None
                and self.min_average_price > self.max_average_price):
            raise ValueError("min_average_price cannot exceed max_average_price")
        return self

    @classmethod
    def parse(cls, data: Optional[Dict[str, Any]]) -> "SearchFilters":
        """
        Build filters from request parameters, ignoring blank values.

        Raises:
            ValidationError: If a value is out of range or unknown
        """
        cleaned = {k: v for k, v in (data or {}).items() if v is not None and v != ""}
        try:
            return cls(**cleaned)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid search filters: {e}")


@dataclass(frozen=True)
class Caller:
    """The authenticated identity making a request."""
    user_id: Optional[str] = None
    role: str = "customer"
    caller_key: str = "anonymous"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def can_manage(self, owner_id: Optional[str]) -> bool:
        """True for the owner themselves or an admin."""
        if owner_id is None:
            return False
        return self.is_admin or (self.user_id is not None and self.user_id == owner_id)


@dataclass
class SearchPage:
    """One page of search results plus pagination metadata."""
    results: List[Dict[str, Any]]
    total: int
    page: int
    limit: int
    mode: str
    center: Optional[GeoPoint] = None
    query: Optional[str] = None

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": self.results,
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "pages": self.pages,
            },
        }
