"""
Attach resolved locations to shop records.

Handles the location side of shop creation and address edits (coordinates,
canonical address components, city/area names and slugs) and a backfill job
for existing shops that are missing any of them.
"""

import csv
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from ..config.logger_module import log_info, log_warning
from ..location.address_normalizer import assemble_address_string, first_non_empty, slugify
from ..location.location_errors import NotFound, RateLimited, ResolutionFailed, ValidationError
from ..location.location_models import AddressCandidate, GeoPoint
from ..location.location_resolver import GeocodingResolver
from ..search.search_predicates import Equals, IsMissing, Or, Predicate
from ..search.shop_store import ShopStore

PRICE_RANGES = ("low", "medium", "high")
BACKFILL_ATTEMPTS = 2

Address = Union[str, Mapping[str, Any]]


@dataclass
class BackfillFailure:
    shop_id: str
    address: str
    error: str


@dataclass
class BackfillReport:
    """Outcome of a backfill run."""
    processed: int = 0
    updated: int = 0
    failures: List[BackfillFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def write_failures_csv(self, path: Union[str, Path]) -> Optional[Path]:
        """
        Write failures as shop_id,address,error rows.

        Returns:
            The path written, or None when there were no failures
        """
        if not self.failures:
            log_info("Backfill recorded no failures")
            return None

        out_path = Path(path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with open(out_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(["shop_id", "address", "error"])
            for failure in self.failures:
                writer.writerow([failure.shop_id, failure.address, failure.error])

        log_warning(f"Backfill failures written to {out_path} ({len(self.failures)})")
        return out_path


def needs_location_predicate() -> Predicate:
    """Shops missing coordinates or slugs, or explicitly flagged."""
    return Or([
        IsMissing("location.coordinates"),
        IsMissing("city_slug"),
        IsMissing("area_slug"),
        Equals("needs_geocoding", True),
    ])


def _explicit_point(location: Any) -> Optional[GeoPoint]:
    """Read caller-supplied coordinates (GeoJSON or [lon, lat]); None if unusable."""
    if location is None:
        return None
    coordinates = location.get("coordinates") if isinstance(location, Mapping) else location
    if not isinstance(coordinates, (list, tuple)) or len(coordinates) != 2:
        return None
    if not all(isinstance(c, (int, float)) and not isinstance(c, bool) for c in coordinates):
        return None
    try:
        return GeoPoint.from_list(coordinates)
    except ValidationError:
        return None


class ShopLocator:
    """
    Resolves shop addresses and stamps the results onto shop records.
    """

    def __init__(self,
                 resolver: GeocodingResolver,
                 store: ShopStore,
                 default_country: str = "India"):
        self.resolver = resolver
        self.store = store
        self.default_country = default_country

    def locate(self, address: Address, location: Any = None,
               caller_key: str = "anonymous") -> Dict[str, Any]:
        """
        Build the location fields of a shop record.

        Explicit, valid [lon, lat] coordinates are used as given; otherwise
        the address is geocoded.

        Args:
            address: Freeform string or structured address mapping
            location: Optional GeoJSON point or [lon, lat] pair
            caller_key: Identity used for rate limiting

        Returns:
            Dictionary with address, location, city/area names and slugs

        Raises:
            ValidationError: If the address is empty
            ResolutionFailed: If the address cannot be geocoded
            RateLimited: If geocoding quota is exhausted
        """
        structured = address if isinstance(address, Mapping) else {"raw": address or ""}
        if not assemble_address_string(structured):
            raise ValidationError("Address is required")
        address_string = assemble_address_string(structured, self.default_country)

        point = _explicit_point(location)
        candidate: Optional[AddressCandidate] = None

        if point is None:
            try:
                candidate = self.resolver.resolve(address_string, caller_key)
            except ResolutionFailed as e:
                log_warning(f"Could not geocode shop address '{address_string}': {e.last_error}")
                raise ResolutionFailed(
                    "Could not determine location for address", last_error=e.last_error
                )
            point = candidate.coordinates

        def given(key: str) -> str:
            return str(structured.get(key) or "").strip()

        if candidate is not None:
            city = first_non_empty(candidate.city, given("city"))
            locality = first_non_empty(candidate.locality, given("locality"), candidate.street)
            resolved = {
                "raw": first_non_empty(candidate.formatted_address, address_string),
                "street": first_non_empty(given("street"), candidate.street),
                "state": first_non_empty(candidate.state, given("state")),
                "postal_code": first_non_empty(candidate.postal_code, given("postal_code")),
                "country": first_non_empty(candidate.country, given("country"),
                                           self.default_country),
            }
        else:
            city = given("city")
            locality = given("locality")
            resolved = {
                "raw": address_string,
                "street": given("street"),
                "state": given("state"),
                "postal_code": given("postal_code"),
                "country": first_non_empty(given("country"), self.default_country),
            }

        return {
            "address": {
                "raw": resolved["raw"],
                "street": resolved["street"],
                "locality": locality,
                "city": city,
                "state": resolved["state"],
                "postal_code": resolved["postal_code"],
                "country": resolved["country"],
            },
            "location": point.to_geojson(),
            "city_name": city or None,
            "area_name": locality or None,
            "city_slug": slugify(city) or None,
            "area_slug": slugify(locality) or None,
            "needs_geocoding": False,
        }

    def create_shop(self, payload: Mapping[str, Any], owner_id: str,
                    caller_key: str = "anonymous") -> Dict[str, Any]:
        """
        Validate, locate and save a new shop.

        Raises:
            ValidationError: If name, category or address is missing, or a
                             field has an invalid value
            ResolutionFailed: If the address cannot be geocoded
        """
        missing = [label for key, label in (("name", "Missing name"),
                                            ("category", "Missing category"),
                                            ("address", "Missing address"))
                   if not payload.get(key)]
        if missing:
            raise ValidationError(
                f"Name, category, and address are required ({', '.join(missing)})"
            )

        price_range = payload.get("price_range") or None
        if price_range is not None and price_range not in PRICE_RANGES:
            raise ValidationError(f"price_range must be one of {', '.join(PRICE_RANGES)}")

        enrichment = self.locate(payload["address"], payload.get("location"), caller_key)

        record = {
            "owner_id": owner_id,
            "name": str(payload["name"]).strip(),
            "description": payload.get("description") or "",
            "category": payload["category"],
            "primary_category": payload.get("primary_category"),
            "tags": list(payload.get("tags") or []),
            "phone": payload.get("phone") or payload.get("phone_number"),
            "hours": list(payload.get("hours") or []),
            "price_range": price_range,
            "average_price": payload.get("average_price"),
            "ratings": {"avg": 0.0, "count": 0},
            "status": "live",
            "created_at": datetime.now(timezone.utc),
        }
        record.update(enrichment)

        saved = self.store.save(record)
        log_info(f"Created shop {saved['_id']} '{saved['name']}' in {saved['city_name'] or 'unknown city'}")
        return saved

    def update_address(self, shop_id: str, address: Address, location: Any = None,
                       caller_key: str = "anonymous") -> Dict[str, Any]:
        """
        Re-locate an existing shop after an address edit.

        Raises:
            NotFound: If the shop does not exist
            ResolutionFailed: If the new address cannot be geocoded
        """
        record = self.store.get(shop_id)
        if record is None:
            raise NotFound(f"Shop '{shop_id}' not found")

        record.update(self.locate(address, location, caller_key))
        record["updated_at"] = datetime.now(timezone.utc)
        saved = self.store.save(record)
        log_info(f"Updated location of shop {shop_id}")
        return saved

    @retry(
        stop=stop_after_attempt(BACKFILL_ATTEMPTS),
        wait=wait_fixed(1),
        retry=retry_if_exception_type(ResolutionFailed),
        reraise=True
    )
    def _locate_with_retry(self, address: Address, caller_key: str) -> Dict[str, Any]:
        return self.locate(address, caller_key=caller_key)

    def backfill(self, batch_size: int = 50, pause_seconds: float = 0.5,
                 caller_key: str = "backfill") -> BackfillReport:
        """
        Geocode every shop that is missing location data.

        Shops are processed in batches with a pause between shops to stay
        within provider quota. Each shop gets two attempts; shops that still
        fail are flagged with needs_geocoding and reported.

        Args:
            batch_size: Shops fetched per batch
            pause_seconds: Sleep between shops
            caller_key: Identity used for rate limiting

        Returns:
            BackfillReport with counts and failures
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        report = BackfillReport()
        criteria = needs_location_predicate()
        attempted = set()

        log_info("Starting location backfill")
        while True:
            # Failed shops keep matching the criteria, so skip the ones already tried
            batch = [
                r for r in self.store.find(criteria, sort=[("_id", 1)],
                                           limit=batch_size + len(attempted))
                if r["_id"] not in attempted
            ][:batch_size]
            if not batch:
                break

            for record in batch:
                attempted.add(record["_id"])
                self._backfill_one(record, caller_key, report)
                if pause_seconds > 0:
                    time.sleep(pause_seconds)

            log_info(f"Backfill batch done, total processed: {report.processed}")

        log_info(
            f"Backfill completed: {report.updated} updated, {report.failed} failed"
        )
        return report

    def _backfill_one(self, record: Dict[str, Any], caller_key: str,
                      report: BackfillReport) -> None:
        address = record.get("address") or {}
        address_string = assemble_address_string(address, self.default_country)
        report.processed += 1

        try:
            enrichment = self._locate_with_retry(address, caller_key)
        except (ResolutionFailed, RateLimited, ValidationError) as e:
            reason = getattr(e, "last_error", None) or str(e)
            log_warning(f"Backfill failed for shop {record['_id']}: {reason}")
            report.failures.append(BackfillFailure(record["_id"], address_string, reason))
            record["needs_geocoding"] = True
            self.store.save(record)
            return

        record.update(enrichment)
        self.store.save(record)
        report.updated += 1
