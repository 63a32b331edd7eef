"""
Outbound link resolution for hotels and experiences.

An explicit URL wins when it is a real http(s) link. Otherwise a search URL
is synthesized from name + location: Booking.com search for hotels, web
search with "billetter" for experiences. Map/directions URLs are never used.
"""

import re
from typing import Any, Dict, Optional
from urllib.parse import quote, urlsplit

URL_FIELDS = (
    "url", "booking_url", "bookingUrl", "ticket_url", "ticketUrl",
    "link", "external_url", "externalUrl",
)
PLACEHOLDER_HOSTS = ("example.com", "example.org", "example.net")

HOTEL_SEARCH_URL = "https://www.booking.com/searchresults.html?ss={query}"
EXPERIENCE_SEARCH_URL = "https://www.google.com/search?q={query}"

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s")


def sanitize_url(value: Any) -> Optional[str]:
    """Return a cleaned absolute http(s) URL, or None if the value is unusable."""
    if not isinstance(value, str):
        return None
    url = _CONTROL_CHARS.sub("", value).strip()
    if not url or _WHITESPACE.search(url):
        return None

    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError:
        return None

    if parts.scheme.lower() not in ("http", "https") or not host:
        return None
    if "." not in host.strip("."):
        return None
    if any(host == p or host.endswith("." + p) for p in PLACEHOLDER_HOSTS):
        return None
    return url


def _text(value: Any) -> str:
    return " ".join(value.split()) if isinstance(value, str) else ""


def record_name(record: Dict[str, Any]) -> str:
    for field in ("name", "title", "activity"):
        name = _text(record.get(field))
        if name:
            return name
    return ""


def record_location(record: Dict[str, Any]) -> str:
    for field in ("location", "city", "area"):
        location = _text(record.get(field))
        if location:
            return location
    return ""


def explicit_url(record: Dict[str, Any]) -> Optional[str]:
    for field in URL_FIELDS:
        url = sanitize_url(record.get(field))
        if url:
            return url
    return None


def _search_url(template: str, *terms: str) -> str:
    query = " ".join(t for t in terms if t)
    return template.format(query=quote(query, safe=""))


def resolve_hotel_url(hotel: Any) -> Optional[str]:
    if not isinstance(hotel, dict):
        return None
    url = explicit_url(hotel)
    if url:
        return url
    name = record_name(hotel)
    if not name:
        return None
    return _search_url(HOTEL_SEARCH_URL, name, record_location(hotel))


def resolve_experience_url(experience: Any) -> Optional[str]:
    if not isinstance(experience, dict):
        return None
    url = explicit_url(experience)
    if url:
        return url
    name = record_name(experience)
    if not name:
        return None
    return _search_url(EXPERIENCE_SEARCH_URL, name, record_location(experience), "billetter")
