"""
Stop normalization.

Turns one raw stop (AI output, episode payload or client input) into the
canonical stop dict:

    {id, order, name, description, location?, coordinates?, countryCode?, codes?}
"""

import math
from typing import Any, Dict, List, Optional

NAME_FIELDS = ("name", "title", "label", "place", "location")
LOCATION_FIELDS = ("location", "address", "subtitle", "city", "area")
ORDER_FIELDS = ("order", "day")
LAT_FIELDS = ("lat", "latitude")
LNG_FIELDS = ("lng", "lon", "long", "longitude")


def to_number(value: Any) -> Optional[float]:
    """Parse a finite number from a number or a numeric string.

    Comma decimal separators are accepted ("41,90" -> 41.9).
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(" ", "")
        if not text:
            return None
        if "," in text and "." not in text:
            text = text.replace(",", ".")
        else:
            text = text.replace(",", "")
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _text(value: Any) -> str:
    if isinstance(value, str):
        return " ".join(value.split())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def first_text(raw: Dict[str, Any], fields) -> str:
    for field in fields:
        text = _text(raw.get(field))
        if text:
            return text
    return ""


def _pair_from(obj: Any):
    """Extract (lat, lng) from a {lat, lng}-style dict or a GeoJSON [lng, lat] list."""
    if isinstance(obj, dict):
        lat = next((obj[f] for f in LAT_FIELDS if obj.get(f) is not None), None)
        lng = next((obj[f] for f in LNG_FIELDS if obj.get(f) is not None), None)
        return to_number(lat), to_number(lng)
    if isinstance(obj, (list, tuple)) and len(obj) >= 2:
        return to_number(obj[1]), to_number(obj[0])
    return None, None


def pick_coordinates(raw: Dict[str, Any]) -> Optional[Dict[str, float]]:
    """Return {lat, lng} only when both parse to finite, in-range numbers."""
    candidates = [
        raw.get("coordinates"),
        raw.get("geo"),
        raw.get("coords"),
        raw,
        raw.get("location") if isinstance(raw.get("location"), dict) else None,
        raw.get("center"),
    ]
    for candidate in candidates:
        if candidate is None:
            continue
        lat, lng = _pair_from(candidate)
        if lat is None or lng is None:
            continue
        if -90 <= lat <= 90 and -180 <= lng <= 180:
            return {"lat": lat, "lng": lng}
    return None


def pick_order(raw: Dict[str, Any], fallback: int) -> int:
    for field in ORDER_FIELDS:
        number = to_number(raw.get(field))
        if number is not None:
            return max(1, int(round(number)))
    return max(1, int(fallback))


def _codes(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    source = raw.get("codes") if isinstance(raw.get("codes"), dict) else {}
    codes: Dict[str, Any] = {}
    for key in ("iata", "cityIata"):
        value = _text(source.get(key) or raw.get(key))
        if value:
            codes[key] = value.upper()
    hotellook = source.get("hotellookCityId") or raw.get("hotellookCityId")
    if hotellook not in (None, ""):
        codes["hotellookCityId"] = hotellook
    return codes or None


def normalize_stop(raw: Any, order: int) -> Optional[Dict[str, Any]]:
    """Normalize one raw stop. Returns None for entries that are not objects."""
    if isinstance(raw, str) and raw.strip():
        raw = {"name": raw}
    if not isinstance(raw, dict):
        return None

    stop_order = pick_order(raw, order)
    name = first_text(raw, NAME_FIELDS) or f"Stopp {stop_order}"
    raw_id = _text(raw.get("id"))

    stop: Dict[str, Any] = {
        "id": raw_id or f"s-{order}",
        "order": stop_order,
        "name": name,
        "description": first_text(raw, ("description", "summary", "notes")),
    }

    location = first_text(raw, LOCATION_FIELDS)
    if location:
        stop["location"] = location

    coordinates = pick_coordinates(raw)
    if coordinates:
        stop["coordinates"] = coordinates

    country = first_text(raw, ("countryCode", "country_code"))
    if country:
        stop["countryCode"] = country.upper()

    codes = _codes(raw)
    if codes:
        stop["codes"] = codes
    return stop


def sequence_stops(stops: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Sort normalized stops by order and make orders strictly increasing.

    Colliding orders (two stops on "day 2") keep their relative position and
    are pushed forward. Ids are made unique within the list. Stops are
    updated in place.
    """
    stops = sorted(stops, key=lambda s: s["order"])
    previous = 0
    seen_ids = set()
    for stop in stops:
        if stop["order"] <= previous:
            stop["order"] = previous + 1
        previous = stop["order"]
        if stop["id"] in seen_ids:
            stop["id"] = f"{stop['id']}-{stop['order']}"
        seen_ids.add(stop["id"])
    return stops


def normalize_stops(raw_stops: Any) -> List[Dict[str, Any]]:
    if not isinstance(raw_stops, list):
        return []
    stops = []
    for position, raw in enumerate(raw_stops, start=1):
        stop = normalize_stop(raw, position)
        if stop is not None:
            stops.append(stop)
    return sequence_stops(stops)
