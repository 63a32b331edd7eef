"""
Entitlement-gated projection of a trip.

Pro viewers (admin or premium) get the full record. Everyone else gets a
teaser: a few hotels/experiences without links or prices and the first few
packing items, plus true counts so the client can show "N more".
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from reise.core.trips.links import resolve_experience_url, resolve_hotel_url

PREVIEW_HOTELS = 3
PREVIEW_EXPERIENCES = 3
PREVIEW_PACKING_ITEMS = 6


@dataclass(frozen=True)
class Entitlements:
    is_admin: bool = False
    is_premium: bool = False

    @property
    def is_pro(self) -> bool:
        return bool(self.is_admin or self.is_premium)

    @classmethod
    def from_user(cls, user: Any) -> "Entitlements":
        """Entitlements for a user object/dict; unknown users get nothing."""
        if user is None:
            return cls()
        if isinstance(user, dict):
            return cls(is_admin=bool(user.get("is_admin")), is_premium=bool(user.get("is_premium")))
        return cls(
            is_admin=bool(getattr(user, "is_admin", False)),
            is_premium=bool(getattr(user, "is_premium", False)),
        )


def _dict_items(value: Any) -> List[Dict[str, Any]]:
    return [item for item in value if isinstance(item, dict)] if isinstance(value, list) else []


def _packing_total(packing_list: List[Dict[str, Any]]) -> int:
    return sum(len(entry.get("items") or []) for entry in packing_list)


def preview_packing(packing_list: List[Dict[str, Any]], limit: int = PREVIEW_PACKING_ITEMS):
    """First ``limit`` items across categories in category order; empty categories drop out."""
    preview = []
    remaining = limit
    for entry in packing_list:
        if remaining <= 0:
            break
        items = list(entry.get("items") or [])[:remaining]
        if items:
            preview.append({"category": entry.get("category"), "items": items})
            remaining -= len(items)
    return preview


def with_resolved_urls(trip: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``trip`` whose hotels/experiences carry resolved outbound URLs."""
    view = dict(trip)
    view["hotels"] = [
        {**hotel, "url": resolve_hotel_url(hotel)} for hotel in _dict_items(trip.get("hotels"))
    ]
    view["experiences"] = [
        {**exp, "url": resolve_experience_url(exp)} for exp in _dict_items(trip.get("experiences"))
    ]
    return view


def project_for_viewer(
    trip: Dict[str, Any],
    entitlements: Entitlements,
    hotel_limit: int = PREVIEW_HOTELS,
    experience_limit: int = PREVIEW_EXPERIENCES,
    packing_limit: int = PREVIEW_PACKING_ITEMS,
) -> Dict[str, Any]:
    """Project a stored trip for one viewer. Pure; the input is not modified."""
    hotels = _dict_items(trip.get("hotels"))
    experiences = _dict_items(trip.get("experiences"))
    packing_list = _dict_items(trip.get("packing_list"))
    is_pro = entitlements.is_pro

    if is_pro:
        view = with_resolved_urls(trip)
        view["packing_list"] = packing_list
    else:
        view = dict(trip)
        view["hotels"] = [
            {"name": h.get("name"), "location": h.get("location")} for h in hotels[:hotel_limit]
        ]
        view["experiences"] = [
            {"name": e.get("name"), "location": e.get("location"), "description": e.get("description")}
            for e in experiences[:experience_limit]
        ]
        view["packing_list"] = preview_packing(packing_list, packing_limit)

    view["counts"] = {
        "hotels": len(hotels),
        "experiences": len(experiences),
        "packing_list": _packing_total(packing_list),
    }
    locked = not is_pro
    view["entitlements"] = {
        "isPro": is_pro,
        "locked": {"hotels": locked, "experiences": locked, "packing_list": locked},
    }
    return view

