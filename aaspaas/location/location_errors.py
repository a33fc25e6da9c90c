"""
Custom exceptions for the location module.

These exceptions provide granular error handling for the different failure
modes of geocoding, provider access, rate limiting and lookups.
"""

from typing import Optional


class LocatorError(Exception):
    """Base exception for the location and search engine."""
    pass


class ValidationError(LocatorError):
    """Raised on malformed input: bad coordinates, missing address, blank query."""
    pass


class ProviderUnavailable(LocatorError):
    """
    Raised when a provider has no credentials configured.

    Adapter operations convert it into a failed ProviderResult, so it never
    reaches resolver callers.
    """
    pass


class ProviderFailure(LocatorError):
    """Raised when a single provider fails (network, HTTP or parse error)."""

    def __init__(self, provider: str, reason: str):
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason


class ResolutionFailed(LocatorError):
    """Raised when every provider in the chain failed to resolve a query."""

    def __init__(self, message: str, last_error: Optional[str] = None):
        super().__init__(message)
        self.last_error = last_error


class RateLimited(LocatorError):
    """Raised when admission is denied; carries a retry-after hint in seconds."""

    def __init__(self, message: str, retry_after: int = 1, scope: str = "caller"):
        super().__init__(message)
        self.retry_after = retry_after
        self.scope = scope


class NotFound(LocatorError):
    """Raised when an ID-based lookup has no result."""
    pass
