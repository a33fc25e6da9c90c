"""
Test suite for shop location enrichment and the backfill job.

To run tests:
- Command line: python -m pytest aaspaas/shops/test_shops.py -v
"""

import csv
from unittest.mock import MagicMock, patch

import pytest

from ..location.location_errors import NotFound, RateLimited, ResolutionFailed, ValidationError
from ..location.location_models import AddressCandidate, GeoPoint
from ..search.shop_store import InMemoryShopStore
from .shop_locator import BackfillFailure, BackfillReport, ShopLocator, needs_location_predicate


# ==================== FIXTURES ====================

@pytest.fixture(autouse=True)
def mock_logging():
    """Mock logging functions to prevent actual logging during tests."""
    with patch('aaspaas.shops.shop_locator.log_info'):
        with patch('aaspaas.shops.shop_locator.log_warning'):
            with patch('aaspaas.search.shop_store.log_info'):
                yield


@pytest.fixture
def mock_sleep():
    """Skip backfill pauses and retry waits."""
    with patch('aaspaas.shops.shop_locator.time.sleep') as mock:
        yield mock


CONNAUGHT_PLACE = AddressCandidate(
    coordinates=GeoPoint.of(77.2167, 28.6315),
    formatted_address="12 Janpath, Connaught Place, New Delhi, Delhi 110001, India",
    street="Janpath",
    locality="Connaught Place",
    city="New Delhi",
    state="Delhi",
    postal_code="110001",
    country="India",
    provider="mappls",
)


@pytest.fixture
def resolver():
    resolver = MagicMock()
    resolver.resolve.return_value = CONNAUGHT_PLACE
    return resolver


@pytest.fixture
def store():
    return InMemoryShopStore()


@pytest.fixture
def locator(resolver, store):
    return ShopLocator(resolver, store)


# ==================== TEST CLASSES ====================

class TestLocate:
    """Test building location fields for a shop."""

    def test_geocodes_structured_address(self, locator, resolver):
        enrichment = locator.locate(
            {"street": "12 Janpath", "city": "New Delhi"}, caller_key="10.0.0.1"
        )

        resolver.resolve.assert_called_once_with("12 Janpath, New Delhi, India", "10.0.0.1")
        assert enrichment["location"] == {"type": "Point", "coordinates": [77.2167, 28.6315]}
        assert enrichment["city_slug"] == "new-delhi"
        assert enrichment["area_slug"] == "connaught-place"
        assert enrichment["area_name"] == "Connaught Place"
        assert enrichment["address"]["street"] == "12 Janpath"
        assert enrichment["address"]["postal_code"] == "110001"
        assert enrichment["needs_geocoding"] is False

    def test_explicit_coordinates_skip_geocoding(self, locator, resolver):
        enrichment = locator.locate(
            {"raw": "Shop 4, Khan Market", "city": "New Delhi", "locality": "Khan Market"},
            location={"type": "Point", "coordinates": [77.2273, 28.6003]},
        )

        resolver.resolve.assert_not_called()
        assert enrichment["location"]["coordinates"] == [77.2273, 28.6003]
        assert enrichment["address"]["raw"] == "Shop 4, Khan Market"
        assert enrichment["area_slug"] == "khan-market"
        assert enrichment["address"]["country"] == "India"

    @pytest.mark.parametrize("location", [
        {"coordinates": [200, 10]},
        {"coordinates": ["77.2", "28.6"]},
        [77.2],
    ])
    def test_invalid_coordinates_fall_back_to_geocoding(self, locator, resolver, location):
        locator.locate("Connaught Place, New Delhi", location=location)
        resolver.resolve.assert_called_once()

    def test_plain_string_address(self, locator, resolver):
        locator.locate("  Connaught   Place ")
        resolver.resolve.assert_called_once_with("Connaught Place", "anonymous")

    def test_empty_address(self, locator):
        with pytest.raises(ValidationError):
            locator.locate({"city": ""})

    def test_geocode_failure_blocks(self, locator, resolver):
        resolver.resolve.side_effect = ResolutionFailed("x", last_error="nominatim: not found")

        with pytest.raises(ResolutionFailed) as exc_info:
            locator.locate("Nowhere Lane")

        assert "Could not determine location" in str(exc_info.value)
        assert exc_info.value.last_error == "nominatim: not found"


class TestCreateAndUpdate:
    """Test shop creation and address edits."""

    def test_create_shop(self, locator, store):
        shop = locator.create_shop({
            "name": "Sharma Sweets",
            "category": "sweets",
            "address": {"street": "12 Janpath", "city": "New Delhi"},
            "price_range": "low",
            "phone_number": "+91 11 2334 5678",
        }, owner_id="owner-1")

        assert shop["_id"]
        assert shop["status"] == "live"
        assert shop["owner_id"] == "owner-1"
        assert shop["phone"] == "+91 11 2334 5678"
        assert shop["city_slug"] == "new-delhi"
        assert store.get(shop["_id"])["name"] == "Sharma Sweets"

    def test_create_shop_missing_fields(self, locator):
        with pytest.raises(ValidationError) as exc_info:
            locator.create_shop({"name": "Sharma Sweets"}, owner_id="owner-1")

        assert "Missing category" in str(exc_info.value)
        assert "Missing address" in str(exc_info.value)

    def test_create_shop_invalid_price_range(self, locator):
        with pytest.raises(ValidationError):
            locator.create_shop({
                "name": "Sharma Sweets", "category": "sweets",
                "address": "Janpath", "price_range": "luxury",
            }, owner_id="owner-1")

    def test_create_shop_not_saved_when_geocoding_fails(self, locator, resolver, store):
        resolver.resolve.side_effect = ResolutionFailed("x")

        with pytest.raises(ResolutionFailed):
            locator.create_shop({"name": "A", "category": "b", "address": "Nowhere"}, "owner-1")

        assert len(store) == 0

    def test_update_address(self, locator, resolver, store):
        saved = store.save({"_id": "s1", "name": "Tea Stall",
                            "address": {"raw": "Old Address"}, "city_slug": "old"})

        updated = locator.update_address("s1", "Connaught Place, New Delhi")

        assert updated["city_slug"] == "new-delhi"
        assert updated["name"] == "Tea Stall"
        assert "updated_at" in updated
        assert store.get(saved["_id"])["area_slug"] == "connaught-place"

    def test_update_unknown_shop(self, locator):
        with pytest.raises(NotFound):
            locator.update_address("missing", "Connaught Place")


class TestBackfill:
    """Test the backfill job."""

    @pytest.fixture
    def seeded(self, store):
        store.save({"_id": "a", "name": "Needs coordinates",
                    "address": {"raw": "12 Janpath, New Delhi"}})
        store.save({"_id": "b", "name": "Complete",
                    "address": {"raw": "Khan Market"},
                    "location": {"type": "Point", "coordinates": [77.2273, 28.6003]},
                    "city_slug": "new-delhi", "area_slug": "khan-market",
                    "needs_geocoding": False})
        store.save({"_id": "c", "name": "Bad address",
                    "address": {"raw": "Unknown Gali"},
                    "location": {"type": "Point", "coordinates": [77.0, 28.0]},
                    "city_slug": "", "area_slug": ""})
        return store

    def test_needs_location_predicate(self, seeded):
        assert [r["_id"] for r in seeded.find(needs_location_predicate(),
                                              sort=[("_id", 1)])] == ["a", "c"]

    def test_backfill_updates_and_flags(self, locator, resolver, seeded, mock_sleep):
        def resolve(address, caller_key):
            if address == "Unknown Gali":
                raise ResolutionFailed("x", last_error="nominatim: Address not found")
            return CONNAUGHT_PLACE

        resolver.resolve.side_effect = resolve

        report = locator.backfill(batch_size=1, pause_seconds=0.5)

        assert report.processed == 2
        assert report.updated == 1
        assert report.failed == 1
        assert report.failures[0].shop_id == "c"
        assert report.failures[0].error == "nominatim: Address not found"

        assert seeded.get("a")["city_slug"] == "new-delhi"
        assert seeded.get("a")["location"]["coordinates"] == [77.2167, 28.6315]
        assert seeded.get("c")["needs_geocoding"] is True

        # Two attempts for the failing shop
        failing_calls = [c for c in resolver.resolve.call_args_list if c[0][0] == "Unknown Gali"]
        assert len(failing_calls) == 2
        mock_sleep.assert_any_call(0.5)

    def test_backfill_rate_limited_recorded(self, locator, resolver, seeded, mock_sleep):
        resolver.resolve.side_effect = RateLimited("slow down", retry_after=30)

        report = locator.backfill(pause_seconds=0)

        assert report.failed == 2
        assert report.updated == 0

    def test_backfill_nothing_to_do(self, locator, store, mock_sleep):
        report = locator.backfill()
        assert report.processed == 0

    def test_invalid_batch_size(self, locator):
        with pytest.raises(ValueError):
            locator.backfill(batch_size=0)


class TestBackfillReport:
    """Test failure export."""

    def test_write_failures_csv(self, tmp_path):
        report = BackfillReport(processed=1, failures=[
            BackfillFailure("c", 'Gali "5", Old Delhi', "nominatim: Address not found"),
        ])

        path = report.write_failures_csv(tmp_path / "out" / "failures.csv")

        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert rows[0] == ["shop_id", "address", "error"]
        assert rows[1] == ["c", 'Gali "5", Old Delhi', "nominatim: Address not found"]

    def test_no_failures_writes_nothing(self, tmp_path):
        assert BackfillReport().write_failures_csv(tmp_path / "f.csv") is None
        assert not (tmp_path / "f.csv").exists()
