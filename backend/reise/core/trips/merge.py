"""
Field precedence between a user's episode trip and the episode's canonical trip.

    field                              rule
    ---------------------------------  -----------------------------------------------
    stops                              canonical if the user stops are empty or none has
                                       coordinates (and canonical has stops), else user
    packing_list, hotels, experiences  user if non-empty, else canonical
    gallery                            canonical if non-empty, else user
    anything else                      user
"""

from typing import Any, Dict, Optional

from reise.core.trips.stops import pick_coordinates

USER_FIRST_FIELDS = ("packing_list", "hotels", "experiences")


def _non_empty(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0


def has_coordinates(stop: Any) -> bool:
    return isinstance(stop, dict) and pick_coordinates(stop) is not None


def merge_with_canonical(user_fields: Dict[str, Any],
                         canonical_fields: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return a new dict with the user fields completed from the canonical trip."""
    merged = dict(user_fields)
    if not canonical_fields:
        return merged

    user_stops = user_fields.get("stops")
    canonical_stops = canonical_fields.get("stops")
    if _non_empty(canonical_stops):
        stops_usable = _non_empty(user_stops) and any(has_coordinates(s) for s in user_stops)
        if not stops_usable:
            merged["stops"] = canonical_stops

    for field in USER_FIRST_FIELDS:
        if not _non_empty(user_fields.get(field)) and _non_empty(canonical_fields.get(field)):
            merged[field] = canonical_fields[field]

    if _non_empty(canonical_fields.get("gallery")):
        merged["gallery"] = canonical_fields["gallery"]
    return merged
