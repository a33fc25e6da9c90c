"""
AasPaas location resolution and proximity search engine.

Subpackages:
- config: Environment configuration and logging setup
- location: Geocoding, suggestions, caching and rate limiting
- search: Proximity and text search over shop records
- shops: Attaching resolved locations to shop records
"""

__version__ = "1.0.0"
