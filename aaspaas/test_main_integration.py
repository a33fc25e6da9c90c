"""
Tests for the command line entry point.

To run tests:
- Command line: python -m pytest aaspaas/test_main_integration.py -v
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from .location.location_errors import RateLimited, ResolutionFailed
from .location.location_models import AddressCandidate, GeoPoint
from .main_integration import main, parse_arguments


@pytest.fixture(autouse=True)
def mock_environment():
    """Keep the CLI away from real logging setup and .env files."""
    with patch('aaspaas.main_integration.initialize_logger'), \
         patch('aaspaas.main_integration.load_config'), \
         patch('aaspaas.main_integration.log_info'), \
         patch('aaspaas.main_integration.log_error'), \
         patch('aaspaas.search.shop_store.log_info'):
        yield


@pytest.fixture
def resolver():
    resolver = MagicMock()
    with patch('aaspaas.main_integration.GeocodingResolver.from_settings',
               return_value=resolver):
        yield resolver


@pytest.fixture
def shops_file(tmp_path):
    path = tmp_path / "shops.json"
    path.write_text(json.dumps([
        {"_id": "near", "name": "Chai Point", "status": "live", "category": "cafe",
         "location": {"type": "Point", "coordinates": [77.2100, 28.6140]},
         "ratings": {"avg": 4.2, "count": 10}},
        {"_id": "far", "name": "Mumbai Snacks", "status": "live", "category": "cafe",
         "location": {"type": "Point", "coordinates": [72.8777, 19.0760]},
         "ratings": {"avg": 4.8, "count": 3}},
    ]), encoding="utf-8")
    return path


CANDIDATE = AddressCandidate(
    coordinates=GeoPoint.of(77.2167, 28.6315),
    formatted_address="Connaught Place, New Delhi, Delhi, India",
    locality="Connaught Place",
    city="New Delhi",
    country="India",
    provider="nominatim",
)


class TestParseArguments:

    def test_paired_coordinates_split(self):
        args = parse_arguments(["search", "--shops", "s.json", "--near", "28.6", "77.2"])
        assert (args.lat, args.lon) == (28.6, 77.2)

    def test_suggest_without_bias(self):
        args = parse_arguments(["suggest", "conn"])
        assert args.bias_lat is None and args.bias_lon is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_arguments([])


class TestMain:

    def test_geocode(self, resolver, capsys):
        resolver.resolve.return_value = CANDIDATE

        assert main(["geocode", "Connaught Place"]) == 0

        resolver.resolve.assert_called_once_with("Connaught Place", "cli")
        output = json.loads(capsys.readouterr().out)
        assert output["coordinates"] == [77.2167, 28.6315]
        resolver.close.assert_called_once()

    def test_geocode_freeform(self, resolver, capsys):
        resolver.resolve_freeform.return_value = CANDIDATE

        assert main(["geocode", "--freeform", "Shop 4\nConnaught Place"]) == 0
        resolver.resolve_freeform.assert_called_once()

    def test_geocode_failure_exit_code(self, resolver, capsys):
        resolver.resolve.side_effect = ResolutionFailed("Could not resolve address")

        assert main(["geocode", "Nowhere"]) == 1
        assert "Could not resolve address" in capsys.readouterr().out

    def test_rate_limited_reports_retry(self, resolver, capsys):
        resolver.suggest.side_effect = RateLimited("slow down", retry_after=12)

        assert main(["suggest", "conn"]) == 1
        assert "retry after 12s" in capsys.readouterr().out

    def test_suggest_with_bias(self, resolver, capsys):
        resolver.suggest.return_value = [CANDIDATE]

        assert main(["suggest", "conn", "--bias", "28.6", "77.2", "--limit", "3"]) == 0

        query, limit, bias, caller_key = resolver.suggest.call_args[0]
        assert (query, limit, caller_key) == ("conn", 3, "cli")
        assert bias == GeoPoint.of(77.2, 28.6)
        output = json.loads(capsys.readouterr().out)
        assert output[0]["label"] == "Connaught Place, New Delhi, Delhi, India"

    def test_search_near(self, resolver, shops_file, capsys):
        assert main(["search", "--shops", str(shops_file),
                     "--near", "28.6139", "77.2090", "--radius", "2000"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert [r["_id"] for r in output["results"]] == ["near"]
        assert output["pagination"]["total"] == 1

    def test_missing_shops_file(self, resolver, tmp_path, capsys):
        assert main(["search", "--shops", str(tmp_path / "missing.json")]) == 1
        assert "Shops file not found" in capsys.readouterr().out

    def test_shops_file_must_be_array(self, resolver, tmp_path, capsys):
        path = tmp_path / "shops.json"
        path.write_text('{"name": "x"}', encoding="utf-8")

        assert main(["search", "--shops", str(path)]) == 1
        assert "JSON array" in capsys.readouterr().out

    def test_configuration_error(self, resolver, monkeypatch, capsys):
        monkeypatch.setenv("SEARCH_MAX_LIMIT", "lots")

        assert main(["geocode", "Connaught Place"]) == 1
        assert "Configuration Error" in capsys.readouterr().out
