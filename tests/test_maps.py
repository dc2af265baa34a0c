"""Tests for the maps service helpers and the maps endpoints."""
from unittest.mock import AsyncMock

import pytest

from tradesbook.services import maps_service
from tradesbook.services.maps_service import (
    MapsError,
    booking_map_url,
    calculate_distance_km,
    find_nearby,
    generate_static_map_url,
    is_irish_result,
    parse_google_result,
)

DUBLIN = {"lat": 53.3498, "lng": -6.2603}
CORK = {"lat": 51.8985, "lng": -8.4756}
SWORDS = {"lat": 53.4597, "lng": -6.2181}

GEOCODED = {
    "lat": 53.4597,
    "lng": -6.2181,
    "formattedAddress": "Main Street, Swords, Co. Dublin, Ireland",
    "county": "Dublin",
    "country": "Ireland",
    "postalCode": None,
    "placeId": None,
    "source": "nominatim",
}


class TestHelpers:
    def test_distance(self):
        assert calculate_distance_km(DUBLIN["lat"], DUBLIN["lng"], CORK["lat"], CORK["lng"]) == pytest.approx(219, abs=3)
        assert calculate_distance_km(DUBLIN["lat"], DUBLIN["lng"], DUBLIN["lat"], DUBLIN["lng"]) == 0

    def test_find_nearby_sorts_and_skips(self):
        locations = [
            {"id": 1, **CORK},
            {"id": 2, **SWORDS},
            {"id": 3, "lat": None, "lng": None},
            {"id": 4, **DUBLIN},
        ]
        nearby = find_nearby(DUBLIN["lat"], DUBLIN["lng"], locations, radius_km=50)
        assert [n["id"] for n in nearby] == [4, 2]
        assert nearby[0]["distance"] == 0

    def test_static_map_url(self):
        url = generate_static_map_url(53.3, -6.2, markers=[{"lat": 53.3, "lng": -6.2}])
        assert url.startswith("https://maps.googleapis.com/maps/api/staticmap?")
        assert "center=53.3%2C-6.2" in url
        assert "label%3A1" in url

    def test_booking_map_zooms_out_for_two_markers(self):
        assert "zoom=15" in booking_map_url(53.3, -6.2)
        url = booking_map_url(53.3, -6.2, 53.4, -6.1)
        assert "zoom=12" in url
        assert "label%3AI" in url

    def test_parse_google_result(self):
        result = parse_google_result(
            {
                "formatted_address": "Patrick Street, Cork, Ireland",
                "place_id": "abc",
                "geometry": {"location": {"lat": 51.9, "lng": -8.47}},
                "address_components": [
                    {"long_name": "County Cork", "types": ["administrative_area_level_1"]},
                    {"long_name": "Ireland", "types": ["country"]},
                ],
            }
        )
        assert result["county"] == "Cork"
        assert result["country"] == "Ireland"
        assert result["source"] == "google"

    def test_is_irish_result(self):
        assert is_irish_result(GEOCODED)
        assert not is_irish_result({"country": "United Kingdom", "formattedAddress": "Belfast, UK"})
        assert not is_irish_result(None)


class TestMapsApi:
    def test_distance(self, client):
        r = client.post("/api/maps/distance", json={"point1": DUBLIN, "point2": SWORDS})
        assert r.status_code == 200
        assert r.json()["unit"] == "km"
        assert 10 < r.json()["distance"] < 15

    def test_distance_validates_coordinates(self, client):
        r = client.post("/api/maps/distance", json={"point1": {"lat": 95, "lng": 0}, "point2": DUBLIN})
        assert r.status_code == 422

    def test_static_map_requires_google(self, client):
        assert client.post("/api/maps/static-map", json={"center": DUBLIN}).status_code == 503

    def test_static_map(self, client, monkeypatch):
        monkeypatch.setattr(maps_service, "GOOGLE_MAPS_API_KEY", "test-key")
        r = client.post("/api/maps/static-map", json={"center": DUBLIN, "zoom": 12})
        assert r.status_code == 200
        assert "key=test-key" in r.json()["mapUrl"]

    def test_find_nearby_with_given_locations(self, client):
        r = client.post(
            "/api/maps/find-nearby-installers",
            json={
                "customerLocation": DUBLIN,
                "installerLocations": [{"id": 1, **CORK}, {"id": 2, **SWORDS, "name": "North Crew"}],
                "radiusKm": 30,
            },
        )
        assert r.status_code == 200
        nearby = r.json()["nearbyInstallers"]
        assert [n["id"] for n in nearby] == [2]
        assert nearby[0]["name"] == "North Crew"

    def test_find_nearby_defaults_to_approved_installers(self, client, make_installer):
        near = make_installer(latitude=SWORDS["lat"], longitude=SWORDS["lng"], business_name="Swords Mounts")
        make_installer(latitude=CORK["lat"], longitude=CORK["lng"], business_name="Cork Mounts")
        make_installer(approval_status="pending", latitude=DUBLIN["lat"], longitude=DUBLIN["lng"])

        r = client.post("/api/maps/find-nearby-installers", json={"customerLocation": DUBLIN})
        nearby = r.json()["nearbyInstallers"]
        assert [n["id"] for n in nearby] == [near.id]
        assert nearby[0]["serviceArea"] == "Dublin"

    def test_geocode(self, client, monkeypatch):
        monkeypatch.setattr("tradesbook.routes.maps.geocode_address", AsyncMock(return_value=GEOCODED))
        r = client.post("/api/maps/geocode", json={"address": "Main Street, Swords"})
        assert r.status_code == 200
        assert r.json()["county"] == "Dublin"

    def test_geocode_not_found(self, client, monkeypatch):
        monkeypatch.setattr("tradesbook.routes.maps.geocode_address", AsyncMock(return_value=None))
        assert client.post("/api/maps/geocode", json={"address": "Nowhere at all"}).status_code == 404

    def test_geocode_provider_error(self, client, monkeypatch):
        monkeypatch.setattr(
            "tradesbook.routes.maps.geocode_address", AsyncMock(side_effect=MapsError("OVER_QUERY_LIMIT"))
        )
        assert client.post("/api/maps/geocode", json={"address": "Main Street"}).status_code == 502

    def test_geocode_is_rate_limited(self, client, monkeypatch):
        monkeypatch.setattr("tradesbook.routes.maps.geocode_address", AsyncMock(return_value=GEOCODED))
        statuses = [
            client.post("/api/maps/geocode", json={"address": "Main Street"}).status_code for _ in range(61)
        ]
        assert statuses[-1] == 429
        assert set(statuses[:60]) == {200}

    def test_batch_geocode_limit(self, client):
        r = client.post("/api/maps/batch-geocode", json={"addresses": ["a street"] * 26})
        assert r.status_code == 400

    def test_booking_map_requires_google(self, client):
        r = client.post("/api/maps/booking-map", json={"customerAddress": "Main Street, Swords"})
        assert r.status_code == 503

    def test_booking_map(self, client, monkeypatch):
        monkeypatch.setattr(maps_service, "GOOGLE_MAPS_API_KEY", "test-key")
        monkeypatch.setattr("tradesbook.routes.maps.geocode_address", AsyncMock(return_value=GEOCODED))
        r = client.post(
            "/api/maps/booking-map",
            json={"customerAddress": "Main Street, Swords", "installerLocation": DUBLIN},
        )
        assert r.status_code == 200
        assert "label%3AC" in r.json()["mapUrl"]

    def test_validate_irish_address(self, client, monkeypatch):
        monkeypatch.setattr(
            "tradesbook.routes.maps.validate_irish_address",
            AsyncMock(return_value={"valid": True, "result": GEOCODED}),
        )
        r = client.post("/api/maps/validate-irish-address", json={"address": "Main Street, Swords"})
        assert r.json()["isValid"] is True
