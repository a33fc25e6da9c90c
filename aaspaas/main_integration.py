#!/usr/bin/env python3
"""
AasPaas Locator - Command line entry point

Geocodes addresses, describes points, suggests places and runs proximity
searches over a JSON file of shops, using the providers configured in the
environment (or a .env file).

Usage:
    python -m aaspaas.main_integration COMMAND [options]

Commands:
    geocode ADDRESS                 Resolve an address to coordinates
    reverse LAT LON                 Describe a point
    suggest QUERY                   Suggest places for a partial query
    details PLACE_REF               Look up a suggestion by reference
    search --shops FILE             Search shops near a point or matching a query
    backfill --shops FILE           Geocode shops missing location data
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config.config_module import ConfigError, load_config
from .config.logger_module import initialize_logger, log_error, log_info
from .location.location_config import LocatorSettings
from .location.location_errors import LocatorError, RateLimited
from .location.location_models import GeoPoint
from .location.location_resolver import GeocodingResolver
from .search.search_engine import ProximitySearchEngine
from .search.search_models import Caller
from .search.search_predicates import MatchAll
from .search.shop_store import InMemoryShopStore
from .shops.shop_locator import ShopLocator

CLI_CALLER_KEY = "cli"


def load_shops(path: str) -> List[Dict[str, Any]]:
    """Read a JSON array of shop records."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array of shops")
    return data


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


class LocatorCli:
    """
    Wires settings, resolver, store and search engine for one CLI run.
    """

    def __init__(self, settings: LocatorSettings, shops_path: Optional[str] = None):
        self.settings = settings
        self.resolver = GeocodingResolver.from_settings(settings)
        self.store = InMemoryShopStore(load_shops(shops_path) if shops_path else ())
        self.engine = ProximitySearchEngine(
            self.store,
            resolver=self.resolver,
            max_limit=settings.search_max_limit,
            default_radius_meters=settings.search_default_radius_meters,
        )
        self.locator = ShopLocator(self.resolver, self.store, settings.default_country)

    def geocode(self, args) -> Dict[str, Any]:
        if args.freeform:
            candidate = self.resolver.resolve_freeform(args.address, CLI_CALLER_KEY)
        else:
            candidate = self.resolver.resolve(args.address, CLI_CALLER_KEY)
        return candidate.to_response()

    def reverse(self, args) -> Dict[str, Any]:
        return self.resolver.describe_point(args.lat, args.lon, CLI_CALLER_KEY)

    def suggest(self, args) -> List[Dict[str, Any]]:
        bias = GeoPoint.of(args.bias_lon, args.bias_lat) if args.bias_lat is not None else None
        suggestions = self.resolver.suggest(args.query, args.limit, bias, CLI_CALLER_KEY)
        return [
            {
                "label": s.display_label,
                "coordinates": s.coordinates.to_list() if s.coordinates else None,
                "place_id": s.place_id,
                "provider": s.provider,
                "components": s.components(),
            }
            for s in suggestions
        ]

    def details(self, args) -> Dict[str, Any]:
        candidate = self.resolver.place_details(args.place_ref, args.provider, CLI_CALLER_KEY)
        return candidate.to_response()

    def search(self, args) -> Dict[str, Any]:
        center = [args.lon, args.lat] if args.lat is not None else None
        filters = {
            "category": args.category,
            "min_rating": args.min_rating,
            "price_range": args.price_range,
            "locality": args.locality,
            "owner_id": args.owner_id,
        }
        caller = Caller(user_id=args.user_id, role=args.role, caller_key=CLI_CALLER_KEY)
        page = self.engine.search(
            center=center,
            radius_meters=args.radius,
            filters=filters,
            text_query=args.query,
            page=args.page,
            limit=args.limit,
            sort=args.sort,
            caller=caller,
        )
        return page.to_dict()

    def backfill(self, args) -> Dict[str, Any]:
        report = self.locator.backfill(
            batch_size=self.settings.backfill_batch_size,
            pause_seconds=self.settings.backfill_pause_seconds,
        )
        if args.failures_csv:
            report.write_failures_csv(args.failures_csv)
        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                records = self.store.find(MatchAll(), sort=[("_id", 1)])
                json.dump(records, f, indent=2, ensure_ascii=False, default=str)
        return {"processed": report.processed, "updated": report.updated, "failed": report.failed}

    def close(self) -> None:
        self.resolver.close()


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="AasPaas Locator - geocoding and proximity search for local shops",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s geocode "Connaught Place, New Delhi"
  %(prog)s reverse 28.6139 77.2090
  %(prog)s suggest "conn" --bias 28.6139 77.2090
  %(prog)s search --shops shops.json --near 28.6139 77.2090 --radius 3000
  %(prog)s search --shops shops.json --query "biryani house"
  %(prog)s backfill --shops shops.json --output shops.out.json --failures-csv failures.csv
        """
    )

    parser.add_argument('--log-level',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='INFO',
                        help='Logging level (default: INFO)')
    parser.add_argument('--env-file', type=str, default='.env',
                        help='Path to a .env file (default: .env)')

    commands = parser.add_subparsers(dest='command', required=True)

    geocode = commands.add_parser('geocode', help='Resolve an address to coordinates')
    geocode.add_argument('address', help='Address or place name')
    geocode.add_argument('--freeform', action='store_true',
                         help='Retry with the trailing lines of multi-line text')

    reverse = commands.add_parser('reverse', help='Describe a point')
    reverse.add_argument('lat', type=float)
    reverse.add_argument('lon', type=float)

    suggest = commands.add_parser('suggest', help='Suggest places for a partial query')
    suggest.add_argument('query')
    suggest.add_argument('--limit', type=int, default=5)
    suggest.add_argument('--bias', nargs=2, type=float, metavar=('LAT', 'LON'))

    details = commands.add_parser('details', help='Look up a suggestion by reference')
    details.add_argument('place_ref', help='Google place_id or OSM reference like N123')
    details.add_argument('--provider', default='google',
                         choices=['mappls', 'google', 'nominatim', 'photon'])

    search = commands.add_parser('search', help='Search shops from a JSON file')
    search.add_argument('--shops', required=True, help='JSON array of shop records')
    search.add_argument('--near', nargs=2, type=float, metavar=('LAT', 'LON'))
    search.add_argument('--radius', type=float, help='Radius in meters (default: 3000)')
    search.add_argument('--query', help='Free-text place or shop query')
    search.add_argument('--category')
    search.add_argument('--min-rating', type=float)
    search.add_argument('--price-range', choices=['low', 'medium', 'high'])
    search.add_argument('--locality')
    search.add_argument('--owner-id')
    search.add_argument('--user-id', help='Caller identity for owner listings')
    search.add_argument('--role', default='customer', choices=['customer', 'vendor', 'admin'])
    search.add_argument('--sort', default='proximity', choices=['proximity', 'rating', 'newest'])
    search.add_argument('--page', type=int, default=1)
    search.add_argument('--limit', type=int, default=20)

    backfill = commands.add_parser('backfill', help='Geocode shops missing location data')
    backfill.add_argument('--shops', required=True, help='JSON array of shop records')
    backfill.add_argument('--output', help='Write updated shops to this JSON file')
    backfill.add_argument('--failures-csv', help='Write failures to this CSV file')

    args = parser.parse_args(argv)

    # Split the paired coordinate options
    if args.command == 'suggest':
        args.bias_lat, args.bias_lon = args.bias if args.bias else (None, None)
    if args.command == 'search':
        args.lat, args.lon = args.near if args.near else (None, None)

    return args


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the AasPaas locator CLI."""
    args = parse_arguments(argv)

    initialize_logger(log_level=args.log_level)

    try:
        load_config(args.env_file)
        settings = LocatorSettings.from_env()
    except ConfigError as e:
        print(f"\n❌ Configuration Error: {e}")
        return 1

    shops_path = getattr(args, 'shops', None)
    if shops_path and not Path(shops_path).exists():
        print(f"\n❌ Shops file not found: {shops_path}")
        return 1

    try:
        cli = LocatorCli(settings, shops_path)
    except ValueError as e:
        print(f"\n❌ {e}")
        return 1

    log_info(f"Running command '{args.command}'")
    try:
        print_json(getattr(cli, args.command)(args))
        return 0
    except RateLimited as e:
        print(f"\n❌ {e} (retry after {e.retry_after}s)")
        return 1
    except LocatorError as e:
        log_error(f"Command '{args.command}' failed: {e}")
        print(f"\n❌ {e}")
        return 1
    finally:
        cli.close()


if __name__ == "__main__":
    sys.exit(main())
