"""
Trip structure normalization.

Composes stop normalization, packing classification and link resolution to
turn one raw AI/episode/client payload into the canonical trip:

    {title, description, stops[], packing_list[4], hotels[], experiences[]}

Malformed input never raises; it degrades to an empty trip with a fallback
title and a padded packing list.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from reise.core.trips.extract import extract_json
from reise.core.trips.links import (
    record_location,
    record_name,
    resolve_experience_url,
    resolve_hotel_url,
)
from reise.core.trips.packing import classify_packing
from reise.core.trips.stops import first_text, normalize_stop, sequence_stops, to_number

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Reiseforslag fra KI"
DEFAULT_CURRENCY = "NOK"
DEFAULT_HOTEL_PRICE = 1200
MIN_BUDGET_HOTEL_PRICE = 500
BUDGET_HOTEL_SHARE = 0.7
CENTRAL_HOTEL_MARKUP = 1.2
MAX_HOTELS = 12
MAX_EXPERIENCES = 20

PACKING_FIELDS = ("packing_list", "packingList", "packing")
HOTEL_FIELDS = ("hotels", "accommodations")
EXPERIENCE_FIELDS = ("experiences", "activities", "tickets", "bookings")

FALLBACK_EXPERIENCES = (
    ("Guidet opplevelse / byvandring", "Sjekk tilgjengelige turer og billetter i området."),
    ("Museum / attraksjon", "Et trygt valg på reisedager – sjekk åpningstider og billetter."),
)

_PRICE_JUNK = re.compile(r"[^\d,.\-]")


def default_hotel_price(user_profile: Optional[Dict[str, Any]] = None,
                        fallback: int = DEFAULT_HOTEL_PRICE) -> int:
    """Nightly price for placeholder hotels, derived from the profile budget if set."""
    budget = to_number((user_profile or {}).get("budget_per_day"))
    if budget is not None and budget > 0:
        return max(MIN_BUDGET_HOTEL_PRICE, int(round(budget * BUDGET_HOTEL_SHARE)))
    return fallback


def _price(raw: Dict[str, Any], fields) -> Optional[float]:
    for field in fields:
        value = raw.get(field)
        if isinstance(value, str):
            value = _PRICE_JUNK.sub("", value)
        number = to_number(value)
        if number is not None and number > 0:
            return number
    return None


def _unwrap(raw_payload: Any) -> Dict[str, Any]:
    payload = raw_payload
    if isinstance(payload, str):
        payload = extract_json(payload)
    if isinstance(payload, dict) and "trip" in payload:
        inner = payload["trip"]
        if isinstance(inner, str):
            inner = extract_json(inner)
        if isinstance(inner, dict):
            payload = inner
    return payload if isinstance(payload, dict) else {}


def _as_list(value: Any, key: Optional[str] = None) -> List[Any]:
    """Accept a list, a JSON-encoded list, or a wrapper object holding one."""
    if isinstance(value, str):
        value = extract_json(value)
    if isinstance(value, dict):
        if key and isinstance(value.get(key), list):
            return value[key]
        values = list(value.values())
        return values if values and all(isinstance(v, dict) for v in values) else []
    return value if isinstance(value, list) else []


def _first_list(source: Dict[str, Any], fields) -> List[Any]:
    for field in fields:
        items = _as_list(source.get(field), field)
        if items:
            return items
    return []


def _as_record(raw: Any) -> Optional[Dict[str, Any]]:
    if isinstance(raw, str) and raw.strip():
        return {"name": raw}
    return raw if isinstance(raw, dict) else None


def _currency(raw: Dict[str, Any], default: str) -> str:
    currency = raw.get("currency")
    if isinstance(currency, str) and currency.strip():
        return currency.strip().upper()
    return default


def _stop_place(stop: Optional[Dict[str, Any]]) -> str:
    if not stop:
        return ""
    return stop.get("location") or stop["name"]


def normalize_hotel(raw: Any, index: int, stop: Optional[Dict[str, Any]] = None,
                    currency: str = DEFAULT_CURRENCY) -> Optional[Dict[str, Any]]:
    record = _as_record(raw)
    if record is None:
        return None
    name = record_name(record)
    if not name:
        return None
    location = record_location(record) or (stop["name"] if stop else "")

    hotel = {
        "id": first_text(record, ("id",)) or f"h-{index}",
        "name": name,
        "location": location,
        "description": first_text(record, ("description", "notes", "summary")),
        "price_per_night": _price(record, ("price_per_night", "approx_price_per_night", "price")),
        "currency": _currency(record, currency),
    }
    hotel["url"] = resolve_hotel_url({**record, "name": name, "location": location})
    return hotel


def normalize_experience(raw: Any, index: int, stop: Optional[Dict[str, Any]] = None,
                         currency: str = DEFAULT_CURRENCY) -> Optional[Dict[str, Any]]:
    record = _as_record(raw)
    if record is None:
        return None
    name = record_name(record)
    if not name:
        return None
    location = record_location(record) or (stop["name"] if stop else "")

    day = None
    for field in ("day", "order"):
        number = to_number(record.get(field))
        if number is not None:
            day = max(1, int(round(number)))
            break
    if day is None and stop:
        day = stop["order"]

    experience = {
        "id": first_text(record, ("id",)) or f"e-{index}",
        "name": name,
        "location": location,
        "description": first_text(record, ("description", "notes", "summary")),
        "day": day,
        "price_per_person": _price(record, ("price_per_person", "price", "approx_price")),
        "currency": _currency(record, currency),
    }
    experience["url"] = resolve_experience_url({**record, "name": name, "location": location})
    return experience


def fallback_hotels(first_stop: Dict[str, Any], price: int, currency: str) -> List[Dict[str, Any]]:
    place = first_stop["name"]
    hotels = [
        {
            "id": "h-fallback-1",
            "name": f"Budsjett-hotell i {place}",
            "location": _stop_place(first_stop),
            "description": "Rimelig overnatting. Sjekk pris og tilgjengelighet.",
            "price_per_night": price,
            "currency": currency,
        },
        {
            "id": "h-fallback-2",
            "name": f"Sentral overnatting i {place}",
            "location": _stop_place(first_stop),
            "description": "Sentral beliggenhet med kort vei til det meste.",
            "price_per_night": int(round(price * CENTRAL_HOTEL_MARKUP)),
            "currency": currency,
        },
    ]
    for hotel in hotels:
        hotel["url"] = resolve_hotel_url(hotel)
    return hotels


def fallback_experiences(first_stop: Dict[str, Any], currency: str) -> List[Dict[str, Any]]:
    experiences = []
    for index, (name, description) in enumerate(FALLBACK_EXPERIENCES, start=1):
        experience = {
            "id": f"e-fallback-{index}",
            "name": name,
            "location": _stop_place(first_stop),
            "description": description,
            "day": first_stop["order"],
            "price_per_person": None,
            "currency": currency,
        }
        experience["url"] = resolve_experience_url(experience)
        experiences.append(experience)
    return experiences


def _experience_key(experience: Dict[str, Any]):
    return (
        experience["name"].casefold(),
        (experience.get("location") or "").casefold(),
        experience.get("day"),
    )


def _hotel_key(hotel: Dict[str, Any]):
    return (hotel["name"].casefold(), (hotel.get("location") or "").casefold())


def build_context_text(title: str, description: Optional[str], stops: List[Dict[str, Any]]) -> str:
    parts = [title, description or ""]
    for stop in stops:
        parts.append(stop["name"])
        parts.append(stop.get("description") or "")
    return " ".join(p for p in parts if p)


def normalize_trip_structure(
    raw_payload: Any,
    fallback_title: Optional[str] = None,
    fallback_description: Optional[str] = None,
    user_profile: Optional[Dict[str, Any]] = None,
    default_price: int = DEFAULT_HOTEL_PRICE,
    currency: str = DEFAULT_CURRENCY,
) -> Dict[str, Any]:
    """Normalize a raw trip payload (dict, {"trip": ...} wrapper or model text)."""
    root = _unwrap(raw_payload)
    if not root:
        logger.warning("Trip payload had no usable JSON object, using empty trip")

    title = first_text(root, ("title", "name")) or (fallback_title or "").strip() or DEFAULT_TITLE
    description = first_text(root, ("description", "summary")) or fallback_description or None
    currency = _currency(root, currency)

    # keep each normalized stop next to its raw source for per-stop hotels/experiences
    pairs = []
    for position, raw in enumerate(_as_list(root.get("stops"), "stops"), start=1):
        stop = normalize_stop(raw, position)
        if stop is not None:
            pairs.append((raw if isinstance(raw, dict) else {}, stop))
    stops = sequence_stops([stop for _, stop in pairs])
    pairs.sort(key=lambda pair: pair[1]["order"])

    packing_raw = next((root[f] for f in PACKING_FIELDS if root.get(f)), None)
    packing_list = classify_packing(packing_raw, build_context_text(title, description, stops))

    hotels: List[Dict[str, Any]] = []
    seen_hotels = set()
    hotel_sources = [(raw, None) for raw in _first_list(root, HOTEL_FIELDS)]
    for raw_stop, stop in pairs:
        hotel_sources.extend((raw, stop) for raw in _first_list(raw_stop, HOTEL_FIELDS))
    for raw, stop in hotel_sources:
        hotel = normalize_hotel(raw, len(hotels) + 1, stop, currency)
        if hotel is None or _hotel_key(hotel) in seen_hotels:
            continue
        seen_hotels.add(_hotel_key(hotel))
        hotels.append(hotel)

    experiences: List[Dict[str, Any]] = []
    seen_experiences = set()
    experience_sources = [(raw, None) for raw in _first_list(root, EXPERIENCE_FIELDS)]
    for raw_stop, stop in pairs:
        experience_sources.extend((raw, stop) for raw in _first_list(raw_stop, EXPERIENCE_FIELDS))
    for raw, stop in experience_sources:
        experience = normalize_experience(raw, len(experiences) + 1, stop, currency)
        if experience is None or _experience_key(experience) in seen_experiences:
            continue
        seen_experiences.add(_experience_key(experience))
        experiences.append(experience)

    if stops and not hotels:
        price = default_hotel_price(user_profile, default_price)
        hotels = fallback_hotels(stops[0], price, currency)
    if stops and not experiences:
        experiences = fallback_experiences(stops[0], currency)

    return {
        "title": title,
        "description": description,
        "stops": stops,
        "packing_list": packing_list,
        "hotels": hotels[:MAX_HOTELS],
        "experiences": experiences[:MAX_EXPERIENCES],
    }
