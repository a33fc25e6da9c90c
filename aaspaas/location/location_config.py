"""
Settings for geocoding providers, caches, rate limits and search.

Values are read from the environment (optionally loaded from a .env file by
config_module.load_config) and validated on construction.
"""

from dataclasses import dataclass
from typing import Optional

from ..config.config_module import (
    ConfigError,
    get_bool_config,
    get_config,
    get_float_config,
    get_int_config,
)


@dataclass
class LocatorSettings:
    """Configuration for the location resolution and search engine."""

    # Mappls (primary regional provider); disabled unless both are set
    mappls_api_key: Optional[str] = None
    mappls_geocode_url: Optional[str] = None
    mappls_timeout: float = 10.0

    # Google Maps (general purpose fallback)
    google_api_key: Optional[str] = None
    google_timeout: float = 15.0

    # Nominatim (free/open fallback, no key)
    nominatim_enabled: bool = True
    nominatim_base_url: str = "https://nominatim.openstreetmap.org"
    nominatim_timeout: float = 8.0

    # Photon (optional open autocomplete)
    photon_enabled: bool = False
    photon_base_url: str = "https://photon.komoot.io"
    photon_timeout: float = 6.0

    user_agent: str = "AasPaas-App/1.0"
    country_code: str = "IN"
    default_country: str = "India"

    # Rate limiting
    rate_window_seconds: float = 60.0
    rate_max_per_caller: int = 120
    rate_global_max: int = 600
    rate_max_tracked_callers: int = 1000

    # Caching
    geocode_cache_ttl: float = 5 * 60
    details_cache_ttl: float = 30 * 60
    cache_max_entries: int = 300

    # Search
    search_max_limit: int = 100
    search_default_radius_meters: float = 3000.0

    # Backfill job
    backfill_batch_size: int = 50
    backfill_pause_seconds: float = 0.5

    def __post_init__(self):
        """Validate configuration values."""
        for name in ("mappls_timeout", "google_timeout", "nominatim_timeout",
                     "photon_timeout", "rate_window_seconds",
                     "geocode_cache_ttl", "details_cache_ttl",
                     "search_default_radius_meters"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")

        for name in ("rate_max_per_caller", "rate_global_max",
                     "rate_max_tracked_callers", "cache_max_entries",
                     "search_max_limit", "backfill_batch_size"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be at least 1, got {getattr(self, name)}")

        if self.backfill_pause_seconds < 0:
            raise ConfigError("backfill_pause_seconds cannot be negative")

        if len(self.country_code) != 2:
            raise ConfigError(f"country_code must be an ISO alpha-2 code, got {self.country_code!r}")

    @property
    def mappls_configured(self) -> bool:
        return bool(self.mappls_api_key and self.mappls_geocode_url)

    @classmethod
    def from_env(cls) -> "LocatorSettings":
        """Load settings from environment variables with sensible defaults."""
        return cls(
            mappls_api_key=get_config("MAPPLS_API_KEY") or None,
            mappls_geocode_url=(
                get_config("MAPPLS_GEOCODE_URL") or get_config("MAPPLS_BASE_URL") or None
            ),
            mappls_timeout=get_float_config("MAPPLS_TIMEOUT_SECONDS", 10.0),
            google_api_key=(
                get_config("GOOGLE_MAPS_API_KEY") or get_config("GOOGLE_PLACES_API_KEY") or None
            ),
            google_timeout=get_float_config("GOOGLE_TIMEOUT_SECONDS", 15.0),
            nominatim_enabled=get_bool_config("NOMINATIM_ENABLED", True),
            nominatim_base_url=get_config(
                "NOMINATIM_BASE_URL", "https://nominatim.openstreetmap.org"
            ),
            nominatim_timeout=get_float_config("NOMINATIM_TIMEOUT_SECONDS", 8.0),
            photon_enabled=get_bool_config("PHOTON_ENABLED", False),
            photon_base_url=get_config("PHOTON_BASE_URL", "https://photon.komoot.io"),
            photon_timeout=get_float_config("PHOTON_TIMEOUT_SECONDS", 6.0),
            user_agent=get_config("GEOCODER_USER_AGENT", "AasPaas-App/1.0"),
            country_code=get_config("GEOCODER_COUNTRY", "IN").upper(),
            default_country=get_config("GEOCODER_DEFAULT_COUNTRY_NAME", "India"),
            rate_window_seconds=get_float_config("RL_WINDOW_SECONDS", 60.0),
            rate_max_per_caller=get_int_config("RL_MAX_PER_CALLER", 120),
            rate_global_max=get_int_config("RL_GLOBAL_MAX", 600),
            rate_max_tracked_callers=get_int_config("RL_MAX_TRACKED_CALLERS", 1000),
            geocode_cache_ttl=get_float_config("GEOCODE_CACHE_TTL_SECONDS", 300.0),
            details_cache_ttl=get_float_config("DETAILS_CACHE_TTL_SECONDS", 1800.0),
            cache_max_entries=get_int_config("CACHE_MAX_ENTRIES", 300),
            search_max_limit=get_int_config("SEARCH_MAX_LIMIT", 100),
            search_default_radius_meters=get_float_config(
                "SEARCH_DEFAULT_RADIUS_METERS", 3000.0
            ),
            backfill_batch_size=get_int_config("BACKFILL_BATCH_SIZE", 50),
            backfill_pause_seconds=get_float_config("BACKFILL_PAUSE_SECONDS", 0.5),
        )
