"""
Address and place-name normalization helpers.

Slugs are ASCII-only, lowercase and hyphen separated, and are stable under
repeated application: slugify(slugify(x)) == slugify(x).
"""

import re
import unicodedata
from typing import Any, List, Mapping, Optional, Union

ADDRESS_PARTS = ("street", "locality", "city", "state", "postal_code", "country")

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")
_WHITESPACE = re.compile(r"\s+")


def slugify(name: Any) -> str:
    """
    Convert a city/locality name to a URL-safe slug.

    Diacritics are folded ("Bengalūru" -> "bengaluru"), runs of anything other
    than [a-z0-9] become a single hyphen, and leading/trailing hyphens are
    trimmed. Characters without an ASCII decomposition are treated as
    separators.
    """
    if name is None:
        return ""
    decomposed = unicodedata.normalize("NFKD", str(name))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_SLUG_CHARS.sub("-", stripped.lower()).strip("-")


def normalize_query(text: Any) -> str:
    """Lowercase, trim and collapse internal whitespace."""
    if text is None:
        return ""
    return _WHITESPACE.sub(" ", str(text)).strip().lower()


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return _WHITESPACE.sub(" ", str(value)).strip()


def assemble_address_string(structured: Union[str, Mapping[str, Any], None],
                            default_country: Optional[str] = None) -> str:
    """
    Build a canonical one-line address.

    Args:
        structured: Either a freeform string or a mapping with an optional
                    'raw' field and the usual address parts
        default_country: Country appended when the mapping has none

    Returns:
        The raw address when present, otherwise the non-empty parts joined
        with ", " in street, locality, city, state, postal_code, country order
    """
    if structured is None:
        return ""
    if isinstance(structured, str):
        return _clean(structured)

    raw = _clean(structured.get("raw"))
    if raw:
        return raw

    parts = []
    for key in ADDRESS_PARTS:
        value = _clean(structured.get(key))
        if not value and key == "country":
            value = _clean(default_country)
        if value:
            parts.append(value)
    return ", ".join(parts)


def trailing_address_lines(text: str, max_lines: int = 3, min_length: int = 10) -> Optional[str]:
    """
    Pick the last few non-blank lines of a freeform block (e.g. a shop sign).

    Addresses tend to sit at the bottom of such text. Returns None when the
    joined candidate is too short to be worth geocoding.
    """
    lines = [line.strip() for line in (text or "").splitlines() if line.strip()]
    candidate = ", ".join(lines[-max_lines:])
    if len(candidate) > min_length:
        return candidate
    return None


def city_from_formatted_address(formatted_address: str,
                                country: Optional[str] = None) -> str:
    """
    Guess the city from a formatted address when the provider omitted it.

    Walks the comma separated parts from the end and returns the first one
    that is not a postal code, not the country and longer than two
    characters.
    """
    skip = {normalize_query(country)} if country else set()
    for part in reversed((formatted_address or "").split(",")):
        part = part.strip()
        if len(part) <= 2 or part.isdigit():
            continue
        if normalize_query(part) in skip:
            continue
        return part
    return ""


def split_tokens(text: str) -> List[str]:
    """Split a search phrase on whitespace, dropping empties."""
    return [token for token in _WHITESPACE.split(text or "") if token]


def first_non_empty(*values: Any) -> str:
    """Return the first truthy value among values, as a string."""
    return next((v if isinstance(v, str) else str(v) for v in values if v), "")
