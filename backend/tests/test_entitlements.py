"""
Tests for the entitlement-gated trip projection
"""

import copy
from types import SimpleNamespace

import pytest

from reise.core.trips.entitlements import Entitlements, preview_packing, project_for_viewer

PACKING = [
    {"category": "Klær", "items": ["Genser", "Bukse", "Sokker", "Lue"]},
    {"category": "Toalettsaker", "items": ["Tannbørste", "Tannkrem", "Deodorant"]},
    {"category": "Elektronikk", "items": ["Lader", "Powerbank", "Hodetelefoner"]},
    {"category": "Annet", "items": ["Pass", "Reiseforsikring", "Sekk"]},
]

TRIP = {
    "title": "Italia",
    "description": None,
    "stops": [{"id": "s-1", "order": 1, "name": "Roma"}],
    "packing_list": PACKING,
    "hotels": [
        {"name": f"Hotell {i}", "location": "Roma", "price_per_night": 1000 + i, "url": "https://hotel%d.it" % i}
        for i in range(5)
    ],
    "experiences": [
        {"name": f"Opplevelse {i}", "location": "Roma", "description": "Fin", "price_per_person": 200}
        for i in range(4)
    ],
}


class TestEntitlements:

    def test_from_user(self):
        assert Entitlements.from_user(None).is_pro is False
        assert Entitlements.from_user({"is_premium": True}).is_pro is True
        assert Entitlements.from_user(SimpleNamespace(is_admin=True)).is_pro is True
        assert Entitlements.from_user(SimpleNamespace(email="a@b.no")).is_pro is False


class TestFreeProjection:

    @pytest.fixture
    def view(self):
        return project_for_viewer(TRIP, Entitlements())

    def test_hotels_are_teasers(self, view):
        assert view["hotels"] == [{"name": f"Hotell {i}", "location": "Roma"} for i in range(3)]

    def test_experiences_are_teasers(self, view):
        assert len(view["experiences"]) == 3
        for experience in view["experiences"]:
            assert set(experience) == {"name", "location", "description"}

    def test_no_links_or_prices_leak(self, view):
        for record in view["hotels"] + view["experiences"]:
            assert "url" not in record
            assert "price_per_night" not in record
            assert "price_per_person" not in record

    def test_packing_preview_is_first_six_items(self, view):
        assert view["packing_list"] == [
            {"category": "Klær", "items": ["Genser", "Bukse", "Sokker", "Lue"]},
            {"category": "Toalettsaker", "items": ["Tannbørste", "Tannkrem"]},
        ]

    def test_counts_are_true_totals(self, view):
        assert view["counts"] == {"hotels": 5, "experiences": 4, "packing_list": 13}

    def test_everything_locked(self, view):
        assert view["entitlements"] == {
            "isPro": False,
            "locked": {"hotels": True, "experiences": True, "packing_list": True},
        }

    def test_other_fields_untouched(self, view):
        assert view["title"] == "Italia"
        assert view["stops"] == TRIP["stops"]

    def test_custom_limits(self):
        view = project_for_viewer(TRIP, Entitlements(), hotel_limit=1, experience_limit=0, packing_limit=2)
        assert len(view["hotels"]) == 1
        assert view["experiences"] == []
        assert view["packing_list"] == [{"category": "Klær", "items": ["Genser", "Bukse"]}]


class TestProProjection:

    def test_full_records_with_links(self):
        trip = copy.deepcopy(TRIP)
        trip["hotels"].append({"name": "Uten lenke", "location": "Roma"})

        view = project_for_viewer(trip, Entitlements(is_premium=True))

        assert len(view["hotels"]) == 6
        assert view["hotels"][0]["price_per_night"] == 1000
        assert view["hotels"][-1]["url"].startswith("https://www.booking.com/searchresults.html")
        assert all(e["url"].startswith("https://www.google.com/search") for e in view["experiences"])
        assert view["packing_list"] == PACKING
        assert view["counts"] == {"hotels": 6, "experiences": 4, "packing_list": 13}
        assert view["entitlements"]["isPro"] is True
        assert view["entitlements"]["locked"]["hotels"] is False

    def test_admin_is_pro(self):
        view = project_for_viewer(TRIP, Entitlements(is_admin=True))
        assert len(view["experiences"]) == 4


def test_projection_does_not_modify_input():
    trip = copy.deepcopy(TRIP)
    project_for_viewer(trip, Entitlements())
    project_for_viewer(trip, Entitlements(is_premium=True))
    assert trip == TRIP


def test_preview_packing_skips_empty_categories():
    packing = [
        {"category": "Klær", "items": []},
        {"category": "Toalettsaker", "items": ["Tannbørste"]},
        {"category": "Elektronikk", "items": ["Lader", "Kabel"]},
    ]
    assert preview_packing(packing, 2) == [
        {"category": "Toalettsaker", "items": ["Tannbørste"]},
        {"category": "Elektronikk", "items": ["Lader"]},
    ]
