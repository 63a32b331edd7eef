"""
Tests for stop normalization
"""

import pytest

from reise.core.trips.stops import (
    normalize_stop,
    normalize_stops,
    pick_coordinates,
    sequence_stops,
    to_number,
)


class TestToNumber:
    """Numeric parsing used for coordinates, orders and prices"""

    @pytest.mark.parametrize("value,expected", [
        (41.9, 41.9),
        ("41.9", 41.9),
        ("41,90", 41.9),
        (" 12 ", 12.0),
        ("1,250.50", 1250.5),
        (3, 3.0),
    ])
    def test_parses_numbers(self, value, expected):
        assert to_number(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", [None, "", "abc", True, [], {}, float("nan"), "inf"])
    def test_rejects_non_numbers(self, value):
        assert to_number(value) is None


class TestNormalizeStop:

    def test_comma_decimal_without_lng_has_no_coordinates(self):
        """A lone latitude never becomes a coordinate pair"""
        stop = normalize_stop({"name": "Roma", "day": 2, "lat": "41,90"}, 1)

        assert stop["order"] == 2
        assert stop["name"] == "Roma"
        assert "coordinates" not in stop

    def test_flat_lat_lng_strings(self):
        stop = normalize_stop({"name": "Oslo", "lat": "59,91", "lng": "10.75"}, 1)
        assert stop["coordinates"] == {"lat": pytest.approx(59.91), "lng": pytest.approx(10.75)}

    @pytest.mark.parametrize("raw", [
        {"name": "Oslo", "coordinates": {"lat": 59.91, "lng": 10.75}},
        {"name": "Oslo", "geo": {"latitude": "59.91", "longitude": "10.75"}},
        {"name": "Oslo", "coords": {"lat": 59.91, "lon": 10.75}},
        {"name": "Oslo", "location": {"lat": 59.91, "long": 10.75}},
        {"name": "Oslo", "center": [10.75, 59.91]},
    ])
    def test_coordinate_sources(self, raw):
        """Nested objects and GeoJSON [lng, lat] centers are all understood"""
        stop = normalize_stop(raw, 1)
        assert stop["coordinates"] == {"lat": pytest.approx(59.91), "lng": pytest.approx(10.75)}

    def test_zero_coordinates_are_kept(self):
        stop = normalize_stop({"name": "Null Island", "lat": 0, "lng": 0}, 1)
        assert stop["coordinates"] == {"lat": 0.0, "lng": 0.0}

    def test_out_of_range_coordinates_are_dropped(self):
        assert pick_coordinates({"lat": 123, "lng": 10}) is None
        assert pick_coordinates({"lat": 45, "lng": 190}) is None

    def test_name_fallback_order(self):
        assert normalize_stop({"title": "Tittel", "label": "Etikett"}, 1)["name"] == "Tittel"
        assert normalize_stop({"place": "Sted"}, 1)["name"] == "Sted"

    def test_missing_name_is_synthesized_from_order(self):
        stop = normalize_stop({"description": "Ukjent sted"}, 3)
        assert stop["name"] == "Stopp 3"
        assert stop["order"] == 3
        assert stop["description"] == "Ukjent sted"

    def test_order_from_fields(self):
        assert normalize_stop({"name": "A", "order": "3"}, 1)["order"] == 3
        assert normalize_stop({"name": "A", "day": 0}, 5)["order"] == 1
        assert normalize_stop({"name": "A"}, 4)["order"] == 4

    def test_ids(self):
        assert normalize_stop({"name": "A", "id": "roma"}, 2)["id"] == "roma"
        assert normalize_stop({"name": "A"}, 2)["id"] == "s-2"

    def test_optional_fields(self):
        stop = normalize_stop(
            {"name": "Oslo", "city": "Oslo sentrum", "countryCode": "no", "iata": "osl", "hotellookCityId": 1234},
            1,
        )
        assert stop["location"] == "Oslo sentrum"
        assert stop["countryCode"] == "NO"
        assert stop["codes"] == {"iata": "OSL", "hotellookCityId": 1234}

    def test_string_stop_becomes_name(self):
        assert normalize_stop("Bergen", 1)["name"] == "Bergen"

    @pytest.mark.parametrize("raw", [None, 42, [], "  "])
    def test_non_objects_are_rejected(self, raw):
        assert normalize_stop(raw, 1) is None


class TestSequenceStops:

    def test_drops_malformed_entries(self):
        stops = normalize_stops([None, {"name": "Roma"}, 42, {"name": "Firenze"}])
        assert [s["name"] for s in stops] == ["Roma", "Firenze"]

    def test_orders_strictly_increase(self):
        """Colliding days keep their relative order and are pushed forward"""
        stops = normalize_stops([
            {"name": "A", "day": 2},
            {"name": "B", "day": 1},
            {"name": "C", "day": 2},
        ])
        assert [s["name"] for s in stops] == ["B", "A", "C"]
        assert [s["order"] for s in stops] == [1, 2, 3]

    def test_duplicate_ids_are_made_unique(self):
        stops = sequence_stops([
            {"id": "x", "order": 1, "name": "A"},
            {"id": "x", "order": 2, "name": "B"},
        ])
        assert len({s["id"] for s in stops}) == 2

    def test_non_list_input(self):
        assert normalize_stops({"name": "Roma"}) == []
        assert normalize_stops(None) == []

    def test_normalizing_twice_changes_nothing(self):
        raw = [
            {"name": "Roma", "day": 2, "lat": "41,90", "lng": "12,5", "iata": "fco"},
            {"title": "Firenze", "day": 2},
            {"description": "uten navn"},
        ]
        once = normalize_stops(raw)
        assert normalize_stops(once) == once
